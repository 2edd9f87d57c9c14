"""Unit tests for the discover tabs use case."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from metrics_ingest.application.use_cases.discover_tabs import run as discover_tabs
from metrics_ingest.domain.entities import SheetsCredentials, SheetTab, SyncScope
from metrics_ingest.domain.enums import SyncAction
from metrics_ingest.domain.errors import MalformedReferenceError, PermissionDeniedError
from metrics_ingest.domain.ports import AuthorizationPort, CredentialsPort, SheetsSourcePort

SCOPE = SyncScope(actor_id="user-1", client_id="client-1")


@pytest.fixture
def mock_authorization():
    """Create mock authorization."""
    authorization = MagicMock(spec=AuthorizationPort)
    authorization.can_perform = AsyncMock(return_value=True)
    return authorization


@pytest.fixture
def mock_sheets():
    """Create mock sheets source."""
    sheets = MagicMock(spec=SheetsSourcePort)
    sheets.discover_tabs = AsyncMock(return_value=[SheetTab(name="Weekly", gid="0", url="u")])
    return sheets


@pytest.fixture
def mock_credentials():
    """Create mock credentials provider."""
    credentials = MagicMock(spec=CredentialsPort)
    credentials.get_credentials = AsyncMock(return_value=SheetsCredentials(access_token="tok"))
    return credentials


@pytest.mark.asyncio
async def test_discover_tabs(mock_authorization, mock_sheets, mock_credentials):
    """Test discovering tabs from a sheet URL."""
    tabs = await discover_tabs(
        "user-1",
        SCOPE,
        "https://docs.google.com/spreadsheets/d/abc123/edit",
        mock_authorization,
        mock_sheets,
        mock_credentials,
    )

    assert [t.name for t in tabs] == ["Weekly"]
    mock_authorization.can_perform.assert_awaited_once_with("user-1", SCOPE, SyncAction.DISCOVER)
    ref = mock_sheets.discover_tabs.call_args[0][0]
    assert ref.source_id == "abc123"


@pytest.mark.asyncio
async def test_discover_tabs_denied(mock_authorization, mock_sheets, mock_credentials):
    """Test that denied actors never reach the upstream."""
    mock_authorization.can_perform.return_value = False

    with pytest.raises(PermissionDeniedError):
        await discover_tabs("user-1", SCOPE, "abc", mock_authorization, mock_sheets, mock_credentials)

    mock_sheets.discover_tabs.assert_not_called()


@pytest.mark.asyncio
async def test_discover_tabs_authorization_failure_denies(mock_authorization, mock_sheets, mock_credentials):
    """Test that a failing permission check is treated as a denial."""
    mock_authorization.can_perform.side_effect = RuntimeError("grants table unavailable")

    with pytest.raises(PermissionDeniedError):
        await discover_tabs("user-1", SCOPE, "abc", mock_authorization, mock_sheets, mock_credentials)

    mock_credentials.get_credentials.assert_not_called()
    mock_sheets.discover_tabs.assert_not_called()


@pytest.mark.asyncio
async def test_discover_tabs_blank_reference(mock_authorization, mock_sheets, mock_credentials):
    """Test that a blank reference is rejected."""
    with pytest.raises(MalformedReferenceError):
        await discover_tabs("user-1", SCOPE, " ", mock_authorization, mock_sheets, mock_credentials)
