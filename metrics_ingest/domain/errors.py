"""Domain errors."""

from metrics_ingest.domain.enums import ErrorKind


class DomainError(Exception):
    """Base domain error."""

    kind: ErrorKind = ErrorKind.INTERNAL
    retryable: bool = False


class PermissionDeniedError(DomainError):
    """Actor is not allowed to perform the action in the scope."""

    kind = ErrorKind.PERMISSION_DENIED


class MalformedReferenceError(DomainError):
    """Source reference cannot be used at all."""

    kind = ErrorKind.MALFORMED_REFERENCE

    def __init__(self, message: str, raw: str) -> None:
        super().__init__(message)
        self.raw = raw


class AuthExpiredError(DomainError):
    """Upstream credentials were rejected; retry after re-authentication."""

    kind = ErrorKind.AUTH_EXPIRED
    retryable = True


class UpstreamTimeoutError(DomainError):
    """Upstream did not answer in time or the network failed."""

    kind = ErrorKind.UPSTREAM_TIMEOUT
    retryable = True


class UpstreamUnavailableError(DomainError):
    """Upstream is throttling or failing (429/5xx)."""

    kind = ErrorKind.UPSTREAM_UNAVAILABLE
    retryable = True


class UpstreamRejectedError(DomainError):
    """Upstream refused access to the resource (revoked share, missing tab)."""

    kind = ErrorKind.UPSTREAM_REJECTED


class UpstreamMalformedError(DomainError):
    """Upstream answered with a body that cannot be interpreted."""

    kind = ErrorKind.UPSTREAM_MALFORMED

    def __init__(self, message: str, payload: str) -> None:
        super().__init__(message)
        self.payload = payload


class RowMappingError(DomainError):
    """A single raw row or cell cannot be turned into a metric."""

    kind = ErrorKind.ROW_MAPPING


class PersistenceError(DomainError):
    """Row store operation failed."""

    kind = ErrorKind.PERSISTENCE
