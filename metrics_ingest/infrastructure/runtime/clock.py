"""Clock implementation."""

from datetime import datetime, timezone

from metrics_ingest.domain.ports import ClockPort
from metrics_ingest.domain.types import Timestamp


class SystemClock(ClockPort):
    """System clock implementation."""

    def now(self) -> Timestamp:
        """Get current timezone-aware UTC timestamp."""
        return datetime.now(timezone.utc)
