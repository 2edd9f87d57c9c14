"""Ports (interfaces) for infrastructure adapters."""

from abc import ABC, abstractmethod

from metrics_ingest.domain.entities import (
    MetricColumnConfig,
    SheetsCredentials,
    SheetTab,
    SourceReference,
    SyncScope,
)
from metrics_ingest.domain.enums import SyncAction
from metrics_ingest.domain.types import RawRow, RowDict, Timestamp, UniqueKey


class AuthorizationPort(ABC):
    """Port for the permission subsystem."""

    @abstractmethod
    async def can_perform(self, actor_id: str, scope: SyncScope, action: SyncAction) -> bool:
        """Return True if the actor may perform the action in the scope."""


class SheetsSourcePort(ABC):
    """Port for the external spreadsheet source."""

    @abstractmethod
    async def discover_tabs(
        self,
        ref: SourceReference,
        credentials: SheetsCredentials,
    ) -> list[SheetTab]:
        """List the tabs of a spreadsheet in display order."""

    @abstractmethod
    async def fetch_range(
        self,
        ref: SourceReference,
        tab: SheetTab,
        cell_range: str,
        credentials: SheetsCredentials,
    ) -> list[RawRow]:
        """Fetch a tab's value range as header-keyed rows."""


class MetricConfigPort(ABC):
    """Port for the metric configuration lookup."""

    @abstractmethod
    async def get_configured_metrics(self, scope: SyncScope) -> dict[str, MetricColumnConfig]:
        """Map of column name to metric configuration for the scope."""


class CredentialsPort(ABC):
    """Port for resolving spreadsheet API credentials."""

    @abstractmethod
    async def get_credentials(self, actor_id: str, scope: SyncScope) -> SheetsCredentials:
        """Credentials to call the spreadsheet API on behalf of the actor."""


class RowStorePort(ABC):
    """Port for the persisted, engine-agnostic row store."""

    @abstractmethod
    async def upsert(self, table: str, unique_key: UniqueKey, row: RowDict) -> bool:
        """Insert or replace the row stored under unique_key. True if inserted."""

    @abstractmethod
    async def get(self, table: str, unique_key: UniqueKey) -> RowDict | None:
        """Get the row stored under unique_key."""

    @abstractmethod
    async def query(self, table: str, row_filter: RowDict) -> list[RowDict]:
        """Rows whose fields equal every item of row_filter."""


class ClockPort(ABC):
    """Port for time operations."""

    @abstractmethod
    def now(self) -> Timestamp:
        """Get current timezone-aware UTC timestamp."""
