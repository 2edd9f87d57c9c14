"""Command line entrypoint: manual sync, tab discovery and status."""

import asyncio
import json
from enum import IntEnum
from typing import Any, Awaitable, Callable

import structlog
import typer
from pydantic import ValidationError

from metrics_ingest.application.dto.sync_request import (
    ErrorPayload,
    SyncRequest,
    SyncResultPayload,
    SyncStatusPayload,
    TabPayload,
)
from metrics_ingest.application.use_cases.discover_tabs import run as discover_tabs
from metrics_ingest.domain.entities import SyncScope
from metrics_ingest.domain.enums import ErrorKind
from metrics_ingest.domain.errors import DomainError
from metrics_ingest.infrastructure.config.settings import Settings
from metrics_ingest.infrastructure.observability.logging import configure_logging
from metrics_ingest.infrastructure.runtime.bootstrap import Application, build_application
from metrics_ingest.infrastructure.runtime.health import start_metrics_server

logger = structlog.get_logger()

app = typer.Typer(
    name="metrics-ingest",
    help="Sync Google Sheets tabs into the metrics store",
    no_args_is_help=True,
)


class ExitCode(IntEnum):
    """Exit codes of the metrics-ingest CLI."""

    SUCCESS = 0
    GENERAL_ERROR = 1
    # Fixable by the caller: missing grant or unusable reference
    USER_ERROR = 2


_USER_ERROR_KINDS = {ErrorKind.PERMISSION_DENIED, ErrorKind.MALFORMED_REFERENCE}


@app.callback()
def main(
    ctx: typer.Context,
    metrics_server: bool = typer.Option(
        False,
        "--metrics-server",
        help="Expose Prometheus metrics on the configured port while running",
    ),
) -> None:
    """Load settings and configure logging once for every command."""
    settings = Settings()
    configure_logging(settings.log_level)
    if metrics_server:
        start_metrics_server(settings)
    ctx.obj = settings


@app.command()
def sync(
    ctx: typer.Context,
    actor: str = typer.Option(..., "--actor", help="Acting user ID"),
    source: str = typer.Option(..., "--source", help="Spreadsheet URL or ID"),
    client: str | None = typer.Option(None, "--client", help="Client ID; omit for the personal scope"),
    sheet: str | None = typer.Option(None, "--sheet", help="Tab to sync; defaults to the first tab"),
    tab: str | None = typer.Option(None, "--tab", help="Tab label stored with each metric"),
    cell_range: str | None = typer.Option(None, "--range", help="A1 range inside the tab, e.g. A:AZ"),
) -> None:
    """Sync one tab and print the result as JSON."""
    try:
        request = SyncRequest(
            actor_id=actor,
            client_id=client,
            source_ref=source,
            sheet_name=sheet,
            tab_name=tab,
            range=cell_range,
        )
    except ValidationError as e:
        typer.echo(str(e), err=True)
        raise typer.Exit(ExitCode.USER_ERROR)

    async def _sync(application: Application) -> SyncResultPayload:
        result = await application.orchestrator.sync(request.actor_id, request.scope, request.to_selector())
        return SyncResultPayload.from_result(result)

    payload = _run(ctx.obj, _sync)
    typer.echo(payload.model_dump_json(by_alias=True, exclude_none=True, indent=2))

    if payload.error is not None:
        user_error = payload.error.kind in {k.value for k in _USER_ERROR_KINDS}
        raise typer.Exit(ExitCode.USER_ERROR if user_error else ExitCode.GENERAL_ERROR)


@app.command()
def discover(
    ctx: typer.Context,
    actor: str = typer.Option(..., "--actor", help="Acting user ID"),
    source: str = typer.Option(..., "--source", help="Spreadsheet URL or ID"),
    client: str | None = typer.Option(None, "--client", help="Client ID; omit for the personal scope"),
) -> None:
    """Print the tabs of a spreadsheet as JSON."""
    scope = SyncScope(actor_id=actor, client_id=client or None)

    async def _discover(application: Application) -> list[TabPayload]:
        tabs = await discover_tabs(
            actor,
            scope,
            source,
            application.authorization,
            application.sheets,
            application.credentials,
        )
        return [TabPayload.from_tab(t) for t in tabs]

    try:
        tabs = _run(ctx.obj, _discover)
    except DomainError as e:
        _echo_error(e)
        raise typer.Exit(ExitCode.USER_ERROR if e.kind in _USER_ERROR_KINDS else ExitCode.GENERAL_ERROR)

    typer.echo(_dump_list(tabs))


@app.command()
def status(
    ctx: typer.Context,
    actor: str = typer.Option(..., "--actor", help="Acting user ID"),
    client: str | None = typer.Option(None, "--client", help="Client ID; omit for the personal scope"),
    sheet: str | None = typer.Option(None, "--sheet", help="Only this tab"),
) -> None:
    """Print the sync status records of a scope as JSON."""
    scope = SyncScope(actor_id=actor, client_id=client or None)

    async def _status(application: Application) -> list[SyncStatusPayload]:
        store = application.status_store
        if sheet:
            records = [await store.get(scope, sheet)]
        else:
            records = await store.list_for_scope(scope)
        return [SyncStatusPayload.from_record(r, stale=store.is_stale(r)) for r in records]

    try:
        records = _run(ctx.obj, _status)
    except DomainError as e:
        _echo_error(e)
        raise typer.Exit(ExitCode.GENERAL_ERROR)

    typer.echo(_dump_list(records))


def _run(settings: Settings, command: Callable[[Application], Awaitable[Any]]) -> Any:
    """Build the application, run one async command and release resources."""

    async def runner() -> Any:
        application = build_application(settings)
        try:
            return await command(application)
        finally:
            await application.aclose()

    return asyncio.run(runner())


def _dump_list(items: list) -> str:
    return json.dumps([item.model_dump(mode="json", by_alias=True, exclude_none=True) for item in items], indent=2)


def _echo_error(error: DomainError) -> None:
    logger.error("command_failed", error_kind=error.kind.value, error=str(error))
    payload = ErrorPayload(kind=error.kind.value, message=str(error), retryable=error.retryable)
    typer.echo(json.dumps({"success": False, "error": payload.model_dump(mode="json")}, indent=2))
