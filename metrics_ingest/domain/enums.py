"""Domain enums for sources, metrics and sync lifecycle."""

from enum import Enum


class SourceKind(str, Enum):
    """Kind of external data source a metric was ingested from."""

    GOOGLE_SHEETS = "google_sheets"
    FILE_IMPORT = "file_import"


class MetricType(str, Enum):
    """Semantic tag governing how a stored value is interpreted."""

    NUMBER = "number"
    CURRENCY = "currency"
    PERCENTAGE = "percentage"  # 12.5 means 12.5%, never 0.125


class SyncState(str, Enum):
    """Sync lifecycle state of a (scope, sheet) pair."""

    NEVER_SYNCED = "never_synced"
    SYNCING = "syncing"
    SUCCESS = "success"
    ERROR = "error"


class SyncOutcome(str, Enum):
    """User-visible outcome of a sync invocation."""

    SUCCESS = "success"
    PARTIAL_SUCCESS = "partial_success"
    FAILED = "failed"


class SyncAction(str, Enum):
    """Actions checked against the authorization collaborator."""

    SYNC = "sync"
    DISCOVER = "discover"


class ErrorKind(str, Enum):
    """Error kinds surfaced in structured results."""

    PERMISSION_DENIED = "PermissionDenied"
    MALFORMED_REFERENCE = "MalformedReference"
    AUTH_EXPIRED = "AuthExpired"
    UPSTREAM_TIMEOUT = "UpstreamTimeout"
    UPSTREAM_UNAVAILABLE = "UpstreamUnavailable"
    UPSTREAM_REJECTED = "UpstreamRejected"
    UPSTREAM_MALFORMED = "UpstreamMalformed"
    ROW_MAPPING = "RowMappingError"
    PERSISTENCE = "PersistenceError"
    INTERNAL = "Internal"
