"""Spreadsheet reference resolution."""

import re

from metrics_ingest.domain.entities import SourceReference

SHEETS_WEB_BASE = "https://docs.google.com/spreadsheets/d"

# Ordered: the first matching pattern wins
_ID_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"/spreadsheets/d/([a-zA-Z0-9-_]+)"),
    re.compile(r"/d/([a-zA-Z0-9-_]+)"),
    re.compile(r"spreadsheetId=([a-zA-Z0-9-_]+)"),
    re.compile(r"[?&#]id=([a-zA-Z0-9-_]+)"),
    re.compile(r"^([a-zA-Z0-9-_]{25,})$"),
)


def extract_id(raw: str) -> SourceReference:
    """Turn a spreadsheet URL or ID into a canonical source reference.

    Never raises. When no known pattern matches, the stripped input is
    returned as the ID with ``confident=False`` so the caller can warn and
    proceed.
    """
    text = raw.strip()
    for pattern in _ID_PATTERNS:
        match = pattern.search(text)
        if match:
            return SourceReference.google_sheet(match.group(1), raw=raw)

    return SourceReference.google_sheet(text, raw=raw, confident=False)


def tab_url(spreadsheet_id: str, gid: str) -> str:
    """Browser URL of one tab."""
    return f"{SHEETS_WEB_BASE}/{spreadsheet_id}/edit#gid={gid}"
