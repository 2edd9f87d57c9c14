"""Spreadsheet API credential providers."""

from metrics_ingest.domain.entities import SheetsCredentials, SyncScope
from metrics_ingest.domain.errors import AuthExpiredError
from metrics_ingest.domain.ports import CredentialsPort


class StaticCredentialsProvider(CredentialsPort):
    """Hands out one configured bearer token to every actor."""

    def __init__(self, access_token: str | None) -> None:
        """Initialize provider."""
        self._access_token = access_token

    async def get_credentials(self, actor_id: str, scope: SyncScope) -> SheetsCredentials:
        """Credentials for the actor; AuthExpiredError if none are configured."""
        if not self._access_token:
            raise AuthExpiredError("No spreadsheet access token configured; re-authenticate and retry")
        return SheetsCredentials(access_token=self._access_token)
