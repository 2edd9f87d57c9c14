"""Cell value, date and category parsing for spreadsheet rows."""

import math
import re
from datetime import date

import pandas as pd

from metrics_ingest.domain.errors import RowMappingError

EXCEL_EPOCH = pd.Timestamp("1899-12-30")
# Serial numbers outside this range are not treated as spreadsheet dates
_EXCEL_SERIAL_RANGE = (1, 2958465)

_EMPTY_MARKERS = {"", "-", "—", "n/a", "N/A"}
_STRIP_CHARS = re.compile(r"[$€£,%\s]")
_ISO_DATE = re.compile(r"^\d{4}-\d{1,2}-\d{1,2}$")
_SLASH_DATE = re.compile(r"^\d{1,2}/\d{1,2}/\d{4}$")

DEFAULT_TAB_NAME = "Main"


def parse_value(raw: str | float | int | None) -> float | None:
    """Parse a spreadsheet cell into a number.

    Returns None for empty cells. Percent signs are stripped without
    scaling, so ``"12.5%"`` parses to ``12.5``. Accounting negatives such as
    ``"(1,234)"`` parse to ``-1234.0``.

    Raises:
        RowMappingError: If the cell is not numeric.
    """
    if raw is None:
        return None
    if isinstance(raw, bool):
        raise RowMappingError(f"Boolean is not a numeric value: {raw}")
    if isinstance(raw, (int, float)):
        value = float(raw)
        if not math.isfinite(value):
            raise RowMappingError(f"Non-finite numeric value: {raw}")
        return value

    text = str(raw).strip()
    if text in _EMPTY_MARKERS:
        return None

    negative = text.startswith("(") and text.endswith(")")
    if negative:
        text = text[1:-1]

    cleaned = _STRIP_CHARS.sub("", text)
    try:
        value = float(cleaned)
    except ValueError:
        raise RowMappingError(f"Invalid numeric value: {raw!r}") from None

    if not math.isfinite(value):
        raise RowMappingError(f"Non-finite numeric value: {raw!r}")

    return -value if negative else value


def parse_date(raw: str | None) -> date:
    """Parse a spreadsheet date cell.

    Accepts ISO dates, US ``MM/DD/YYYY`` dates, Excel serial day numbers and
    anything else pandas understands.

    Raises:
        RowMappingError: If the cell is empty or not a date.
    """
    text = str(raw).strip() if raw is not None else ""
    if not text:
        raise RowMappingError("Missing date")

    try:
        if _ISO_DATE.match(text):
            return pd.to_datetime(text, format="%Y-%m-%d").date()
        if _SLASH_DATE.match(text):
            return pd.to_datetime(text, format="%m/%d/%Y").date()
        if re.fullmatch(r"\d+(\.\d+)?", text):
            serial = float(text)
            low, high = _EXCEL_SERIAL_RANGE
            if not low <= serial <= high:
                raise RowMappingError(f"Serial date out of range: {text}")
            return (EXCEL_EPOCH + pd.to_timedelta(int(serial), unit="D")).date()
        parsed = pd.to_datetime(text)
    except (ValueError, OverflowError) as e:
        raise RowMappingError(f"Invalid date: {text!r}") from e

    if pd.isna(parsed):
        raise RowMappingError(f"Invalid date: {text!r}")
    return parsed.date()


def categorize_metric(metric_name: str) -> str:
    """Business category of a metric inferred from its name."""
    name = metric_name.lower()

    if any(word in name for word in ("spend", "revenue", "cash", "roas", "roi", "budget")):
        return "spend-revenue"
    if "cost per" in name:
        return "cost-per-show"
    if any(
        word in name
        for word in ("lead", "sql", "calls booked", "live calls", "shows", "closed sales", "closes", "conversion")
    ):
        return "funnel-volume"
    if "rate" in name or "opt-in" in name:
        return "funnel-conversion"
    if any(word in name for word in ("click", "impression", "reach")):
        return "spend-revenue"
    if any(word in name for word in ("email", "outreach", "cold", "spam", "unsubscribe")):
        return "funnel-volume"

    return "spend-revenue"


def tab_name_from_sheet(sheet_name: str) -> str:
    """Tab label embedded in ``"<sheet> - <tab>"`` names, else the default tab."""
    if " - " in sheet_name:
        return sheet_name.split(" - ", 1)[1]
    return DEFAULT_TAB_NAME
