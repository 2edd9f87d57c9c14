"""Health check and metrics server."""

import structlog
from prometheus_client import start_http_server

from metrics_ingest.infrastructure.config.settings import Settings

logger = structlog.get_logger()


def start_metrics_server(settings: Settings) -> None:
    """Start Prometheus metrics HTTP server."""
    start_http_server(settings.prometheus_port)
    logger.info("metrics_server_started", port=settings.prometheus_port)
