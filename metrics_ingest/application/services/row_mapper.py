"""Raw spreadsheet rows to metric records."""

from dataclasses import dataclass, field

import structlog

from metrics_ingest.application.services.value_parsing import (
    categorize_metric,
    parse_date,
    parse_value,
)
from metrics_ingest.domain.entities import (
    Metric,
    MetricColumnConfig,
    RowFailure,
    SourceReference,
    SyncScope,
)
from metrics_ingest.domain.errors import RowMappingError
from metrics_ingest.domain.types import RawRow

logger = structlog.get_logger()

DATE_COLUMN = "date"


@dataclass(frozen=True)
class MappingContext:
    """Dimensions shared by every metric of one sync."""

    scope: SyncScope
    source: SourceReference
    sheet_name: str
    tab_name: str
    tab_gid: str


@dataclass
class MappingOutcome:
    """Metrics produced from raw rows plus what was left behind."""

    metrics: list[Metric] = field(default_factory=list)
    failures: list[RowFailure] = field(default_factory=list)
    skipped_rows: int = 0
    dropped_columns: set[str] = field(default_factory=set)


def map_rows(
    rows: list[RawRow],
    config: dict[str, MetricColumnConfig],
    context: MappingContext,
) -> MappingOutcome:
    """Materialize configured columns of raw rows into metrics.

    Columns absent from config are dropped. An empty config yields no
    metrics and no failures. Rows where every value is zero or empty are
    skipped as template rows. A row without a usable date fails as a whole;
    a bad cell fails only that cell.
    """
    outcome = MappingOutcome()
    if not rows:
        return outcome

    for index, row in enumerate(rows):
        date_column = _find_date_column(row)
        value_columns = [c for c in row if c != date_column]
        outcome.dropped_columns.update(c for c in value_columns if c not in config)

        if not config:
            continue

        if _is_blank_row(row, value_columns):
            outcome.skipped_rows += 1
            continue

        try:
            row_date = parse_date(row.get(date_column) if date_column else None)
        except RowMappingError as e:
            outcome.failures.append(
                RowFailure(
                    row_index=index,
                    column=date_column or DATE_COLUMN,
                    reason=str(e),
                    raw=row.get(date_column) if date_column else None,
                )
            )
            continue

        for column in value_columns:
            column_config = config.get(column)
            if column_config is None:
                continue
            raw_value = row.get(column)
            try:
                value = parse_value(raw_value)
            except RowMappingError as e:
                outcome.failures.append(
                    RowFailure(row_index=index, column=column, reason=str(e), raw=raw_value)
                )
                continue
            if value is None:
                continue

            outcome.metrics.append(
                Metric(
                    scope=context.scope,
                    date=row_date,
                    category=column_config.category or categorize_metric(column_config.metric_name),
                    metric_name=column_config.metric_name,
                    value=value,
                    metric_type=column_config.metric_type,
                    source_kind=context.source.kind,
                    source_id=context.source.source_id,
                    sheet_name=context.sheet_name,
                    tab_name=context.tab_name,
                    tab_gid=context.tab_gid,
                    target_value=column_config.target_value,
                    source_row=index,
                )
            )

    if outcome.dropped_columns:
        logger.debug(
            "unconfigured_columns_dropped",
            scope_key=context.scope.key,
            sheet_name=context.sheet_name,
            columns=sorted(outcome.dropped_columns),
        )

    logger.info(
        "rows_mapped",
        scope_key=context.scope.key,
        sheet_name=context.sheet_name,
        row_count=len(rows),
        metric_count=len(outcome.metrics),
        failure_count=len(outcome.failures),
        skipped_rows=outcome.skipped_rows,
    )
    return outcome


def _find_date_column(row: RawRow) -> str | None:
    """Header of the date column, matched case-insensitively."""
    for column in row:
        if column.strip().lower() == DATE_COLUMN:
            return column
    return None


def _is_blank_row(row: RawRow, value_columns: list[str]) -> bool:
    """True when no value cell holds a non-zero number."""
    for column in value_columns:
        try:
            value = parse_value(row.get(column))
        except RowMappingError:
            # Unparseable text still makes the row meaningful
            return False
        if value:
            return False
    return True
