"""Unit tests for spreadsheet reference resolution."""

import pytest

from metrics_ingest.application.services.reference_resolver import extract_id, tab_url
from metrics_ingest.domain.enums import SourceKind

SHEET_ID = "1AbCdEfGhIjKlMnOpQrStUvWxYz0123456789"


@pytest.mark.parametrize(
    "raw",
    [
        f"https://docs.google.com/spreadsheets/d/{SHEET_ID}/edit#gid=0",
        f"https://docs.google.com/spreadsheets/d/{SHEET_ID}",
        f"https://drive.google.com/file/d/{SHEET_ID}/view",
        f"https://example.com/open?spreadsheetId={SHEET_ID}&foo=bar",
        f"https://drive.google.com/open?id={SHEET_ID}",
        SHEET_ID,
        f"  {SHEET_ID}  ",
    ],
)
def test_extract_id_known_patterns(raw):
    """Test that every supported URL shape yields the same confident ID."""
    ref = extract_id(raw)

    assert ref.source_id == SHEET_ID
    assert ref.confident is True
    assert ref.kind == SourceKind.GOOGLE_SHEETS
    assert ref.raw == raw


def test_extract_id_unrecognized_input_is_low_confidence():
    """Test that unknown input is returned stripped with confident=False."""
    ref = extract_id("  my-sheet  ")

    assert ref.source_id == "my-sheet"
    assert ref.confident is False


def test_extract_id_never_raises_on_empty_input():
    """Test that empty input does not raise."""
    ref = extract_id("")

    assert ref.source_id == ""
    assert ref.confident is False


def test_extract_id_first_pattern_wins():
    """Test that the spreadsheets path takes precedence over query ids."""
    ref = extract_id(f"https://docs.google.com/spreadsheets/d/{SHEET_ID}/edit?id=other-id-value")

    assert ref.source_id == SHEET_ID


def test_tab_url():
    """Test building the browser URL of a tab."""
    assert tab_url("abc", "123") == "https://docs.google.com/spreadsheets/d/abc/edit#gid=123"
