"""Google Sheets v4 API client."""

from typing import Any
from urllib.parse import quote

import httpx
import structlog
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from metrics_ingest.application.services.reference_resolver import tab_url
from metrics_ingest.domain.entities import SheetsCredentials, SheetTab, SourceReference
from metrics_ingest.domain.errors import (
    AuthExpiredError,
    UpstreamMalformedError,
    UpstreamRejectedError,
    UpstreamTimeoutError,
    UpstreamUnavailableError,
)
from metrics_ingest.domain.ports import SheetsSourcePort
from metrics_ingest.domain.types import RawRow

logger = structlog.get_logger()

DEFAULT_BASE_URL = "https://sheets.googleapis.com/v4/spreadsheets"
_PAYLOAD_EXCERPT = 2000


class GoogleSheetsClient(SheetsSourcePort):
    """Async client for spreadsheet metadata and value ranges.

    Every HTTP failure is mapped to a domain error. Timeouts, network
    failures, throttling and server errors are retried with exponential
    backoff; everything else fails on the first attempt.
    """

    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        timeout_seconds: float = 8.0,
        max_attempts: int = 3,
        retry_wait_seconds: float = 1.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize client."""
        self.base_url = base_url.rstrip("/")
        self.timeout_seconds = timeout_seconds
        self.max_attempts = max(1, max_attempts)
        self.retry_wait_seconds = retry_wait_seconds
        self._client = httpx.AsyncClient(timeout=timeout_seconds, transport=transport)

    async def aclose(self) -> None:
        """Close the underlying HTTP connection pool."""
        await self._client.aclose()

    async def discover_tabs(
        self,
        ref: SourceReference,
        credentials: SheetsCredentials,
    ) -> list[SheetTab]:
        """List the tabs of a spreadsheet in display order."""
        url = f"{self.base_url}/{quote(ref.source_id, safe='')}"
        body = await self._get_json(url, credentials, params={"fields": "sheets.properties(title,sheetId,index)"})

        sheets = body.get("sheets")
        if not isinstance(sheets, list):
            raise UpstreamMalformedError("Spreadsheet metadata has no 'sheets' list", str(body)[:_PAYLOAD_EXCERPT])

        tabs: list[SheetTab] = []
        for sheet in sheets:
            properties = sheet.get("properties") if isinstance(sheet, dict) else None
            if not isinstance(properties, dict) or "title" not in properties:
                raise UpstreamMalformedError("Sheet entry without properties.title", str(sheet)[:_PAYLOAD_EXCERPT])
            gid = str(properties.get("sheetId", 0))
            tabs.append(SheetTab(name=str(properties["title"]), gid=gid, url=tab_url(ref.source_id, gid)))

        logger.info("sheet_tabs_discovered", spreadsheet_id=ref.source_id, tab_count=len(tabs))
        return tabs

    async def fetch_range(
        self,
        ref: SourceReference,
        tab: SheetTab,
        cell_range: str,
        credentials: SheetsCredentials,
    ) -> list[RawRow]:
        """Fetch a tab's value range as header-keyed rows.

        The first row is the header. Trailing empty cells omitted by the API
        are padded with empty strings; columns with a blank header are
        ignored.
        """
        a1 = quote(_a1_range(tab.name, cell_range), safe="")
        url = f"{self.base_url}/{quote(ref.source_id, safe='')}/values/{a1}"
        body = await self._get_json(url, credentials)

        values = body.get("values", [])
        if not isinstance(values, list) or not all(isinstance(v, list) for v in values):
            raise UpstreamMalformedError("Value range 'values' is not a list of rows", str(body)[:_PAYLOAD_EXCERPT])
        if not values:
            return []

        header = [str(cell).strip() for cell in values[0]]
        rows: list[RawRow] = []
        for raw in values[1:]:
            cells = [str(cell) for cell in raw] + [""] * (len(header) - len(raw))
            rows.append({name: cells[i] for i, name in enumerate(header) if name})

        logger.info(
            "sheet_range_fetched",
            spreadsheet_id=ref.source_id,
            tab_name=tab.name,
            cell_range=cell_range,
            row_count=len(rows),
        )
        return rows

    async def _get_json(
        self,
        url: str,
        credentials: SheetsCredentials,
        params: dict[str, str] | None = None,
    ) -> dict[str, Any]:
        retrying = AsyncRetrying(
            retry=retry_if_exception_type((UpstreamTimeoutError, UpstreamUnavailableError)),
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_exponential(multiplier=self.retry_wait_seconds, max=10),
            before_sleep=_log_retry,
            reraise=True,
        )
        async for attempt in retrying:
            with attempt:
                return await self._get_json_once(url, credentials, params)
        raise AssertionError("unreachable")

    async def _get_json_once(
        self,
        url: str,
        credentials: SheetsCredentials,
        params: dict[str, str] | None,
    ) -> dict[str, Any]:
        headers = {"Authorization": f"Bearer {credentials.access_token}", "Accept": "application/json"}
        try:
            response = await self._client.get(url, params=params, headers=headers)
        except httpx.TimeoutException as e:
            raise UpstreamTimeoutError(f"Spreadsheet API timed out after {self.timeout_seconds}s") from e
        except httpx.TransportError as e:
            raise UpstreamTimeoutError(f"Spreadsheet API unreachable: {e}") from e

        if response.status_code >= 400:
            raise _map_status_error(response)

        try:
            body = response.json()
        except ValueError as e:
            raise UpstreamMalformedError("Spreadsheet API returned non-JSON body", response.text[:_PAYLOAD_EXCERPT]) from e
        if not isinstance(body, dict):
            raise UpstreamMalformedError("Spreadsheet API returned unexpected body", response.text[:_PAYLOAD_EXCERPT])
        return body


def _a1_range(tab_name: str, cell_range: str) -> str:
    """A1 notation of a range inside a tab, quoting the tab name."""
    escaped = tab_name.replace("'", "''")
    return f"'{escaped}'!{cell_range}"


def _map_status_error(response: httpx.Response) -> Exception:
    status = response.status_code
    api_status, message = _error_details(response)
    detail = f"Spreadsheet API error {status}: {message}"

    if status == 401 or api_status == "UNAUTHENTICATED":
        return AuthExpiredError(detail)
    if status == 429 or status >= 500:
        return UpstreamUnavailableError(detail)
    return UpstreamRejectedError(detail)


def _error_details(response: httpx.Response) -> tuple[str, str]:
    """Google error status and message, falling back to the raw body."""
    try:
        error = response.json().get("error", {})
    except (ValueError, AttributeError):
        return "", response.text[:200] or response.reason_phrase
    if not isinstance(error, dict):
        return "", str(error)[:200]
    return str(error.get("status", "")), str(error.get("message", response.reason_phrase))


def _log_retry(retry_state: RetryCallState) -> None:
    error = retry_state.outcome.exception() if retry_state.outcome else None
    logger.warning(
        "sheets_request_retry",
        attempt=retry_state.attempt_number,
        error=str(error),
    )
