"""HTTP endpoint serving a metrics registry in Prometheus text format."""
from typing import Optional
import io
import logging
import time

from fastapi import FastAPI, Request, Response

from promexport.config import Config
from promexport.exporter import RegistryExporter
from promexport.registry import ALL, MetricRegistry, get_shared_registry, starts_with
from promexport.text_writer import CONTENT_TYPE, PrometheusTextWriter

logger = logging.getLogger(__name__)


class RegistryNotFoundError(RuntimeError):
    """Raised when no metrics registry can be found for the exporter."""


class SelfMetrics:
    """Self-monitoring metrics for the exporter."""

    def __init__(self, registry: MetricRegistry, prefix: str = ""):
        self.exports = registry.timer(f"{prefix}exports")
        self.export_errors = registry.counter(f"{prefix}export_errors")

    def time_export(self):
        """Time one export request."""
        return self.exports.time()

    def record_export_error(self):
        self.export_errors.inc()


class ExporterAPI:
    """FastAPI application exposing a registry to Prometheus scrapers."""

    def __init__(self, config: Config, registry: Optional[MetricRegistry] = None):
        """
        Initialize the exporter API.

        Args:
            config: Root configuration
            registry: Registry to serve; when omitted the shared registry
                named by `config.export.registry` is used

        Raises:
            RegistryNotFoundError: If no registry is given or shared
        """
        self.config = config
        if registry is None:
            registry = get_shared_registry(config.export.registry)
        if registry is None:
            raise RegistryNotFoundError(
                f"Couldn't find a MetricRegistry instance named '{config.export.registry}'."
            )
        self.registry = registry

        if config.export.include_prefixes:
            self.metric_filter = starts_with(*config.export.include_prefixes)
        else:
            self.metric_filter = ALL

        self.allowed_origin = config.export.allowed_origin
        self.exporter = RegistryExporter(source=config.export.source)

        self.self_metrics = None
        if config.export.self_metrics:
            self.self_metrics = SelfMetrics(self.registry, config.export.self_metrics_prefix)

        self.app = FastAPI(title="Prometheus Registry Exporter")
        self._setup_routes()

    def render(self, wanted=None) -> str:
        """Render the registry as exposition text."""
        sink = io.StringIO()
        writer = PrometheusTextWriter(sink)
        try:
            self.exporter.write(writer, self.registry, self.metric_filter, wanted)
            writer.flush()
            return sink.getvalue()
        finally:
            writer.close()

    def _export(self, wanted) -> str:
        if self.self_metrics is None:
            return self.render(wanted)
        with self.self_metrics.time_export():
            return self.render(wanted)

    def _setup_routes(self):
        """Setup API routes."""

        @self.app.get("/healthz")
        async def healthz():
            """Health check endpoint."""
            return {"status": "healthy", "timestamp": time.time()}

        @self.app.get(self.config.server.path)
        def metrics(request: Request):
            """Export the registry, optionally restricted by `name[]`."""
            wanted = set(request.query_params.getlist("name[]"))

            try:
                body = self._export(wanted)
            except Exception:
                logger.error("Unhandled exception while exporting metrics", exc_info=True)
                if self.self_metrics is not None:
                    self.self_metrics.record_export_error()
                return Response(status_code=500)

            headers = {"Cache-Control": "must-revalidate,no-cache,no-store"}
            if self.allowed_origin is not None:
                headers["Access-Control-Allow-Origin"] = self.allowed_origin

            return Response(content=body, media_type=CONTENT_TYPE, headers=headers)

    def run(self, host: str = "0.0.0.0", port: int = 8080):
        """Run the API server."""
        import uvicorn
        uvicorn.run(self.app, host=host, port=port, log_level="info")
