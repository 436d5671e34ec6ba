# ========================
# api_server.py
# ========================

"""
FastAPI Server for Chartor

Serves the chart pages, the list of dataset files, the CSV files themselves
and the chart data computed by the pipeline.
"""

import html
import logging
import time
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from fastapi import FastAPI, HTTPException, Query, Request
from fastapi.responses import HTMLResponse, JSONResponse
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.staticfiles import StaticFiles
from starlette.exceptions import HTTPException as StarletteHTTPException
import uvicorn

from src.chartor.charting import METRICS, to_chart_data
from src.chartor.errors import ChartorError
from src.chartor.orchestrator import ChartPipeline
from src.chartor.sources import LocalDataSource
from src.utils.config import Config
from src.utils.logging_setup import setup_logging, setup_access_log

logger = logging.getLogger(__name__)

# Constants
CHARTS_ERROR_MSG = "Impossible de charger les graphiques."

SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "SAMEORIGIN",
    "Referrer-Policy": "no-referrer",
}


@dataclass(frozen=True)
class FileListSnapshot:
    """CSV file names of the data directory, read once when the app is created."""
    names: Tuple[str, ...]

    @classmethod
    def from_directory(cls, data_dir) -> "FileListSnapshot":
        return cls(names=tuple(LocalDataSource(data_dir).list_files()))

    def to_json(self) -> Dict[str, List[str]]:
        return {"list": list(self.names)}


class SnapshotDataSource(LocalDataSource):
    """Local source whose file list is the startup snapshot."""

    def __init__(self, data_dir, snapshot: FileListSnapshot):
        super().__init__(data_dir)
        self.snapshot = snapshot

    def list_files(self) -> List[str]:
        return list(self.snapshot.names)


def _page(title: str, body_html: str, script: str = "") -> str:
    return f"""<!doctype html>
<html lang='fr'>
<head>
  <meta charset='utf-8'>
  <meta name='viewport' content='width=device-width, initial-scale=1'>
  <title>{html.escape(title)}</title>
</head>
<body>
<nav><a href='/'>Chartor</a> | <a href='/source'>Sources</a></nav>
<main>
{body_html}
</main>
{script}
</body>
</html>"""

_INDEX_SCRIPT = """<script src='https://cdn.jsdelivr.net/npm/chart.js'></script>
<script>
(async () => {
  const error = document.getElementById('error');
  const response = await fetch('/api/charts');
  if (!response.ok) {
    const message = document.createElement('span');
    message.textContent = '%s';
    error.appendChild(message);
    return;
  }
  const payload = await response.json();
  const draw = (id, data) => {
    const canvas = document.createElement('canvas');
    document.getElementById(id).appendChild(canvas);
    new Chart(canvas, {type: 'line', data: data,
      options: {scales: {y: {beginAtZero: true}}}});
  };
  draw('chart-1', payload.by_museum);
  draw('chart-2', payload.by_city);
})();
</script>""" % CHARTS_ERROR_MSG


def create_app(config: Optional[Config] = None) -> FastAPI:
    """
    Build the Chartor application.

    The data directory is listed once here; the resulting snapshot backs
    ``/csv`` and ``/api/charts`` for the lifetime of the app.

    Args:
        config (Config): Configuration object

    Returns:
        FastAPI: The application
    """
    config = config or Config()
    data_dir = Path(config.DATA_DIR)
    snapshot = FileListSnapshot.from_directory(data_dir)
    logger.info(f"Loaded {len(snapshot.names)} data files from {data_dir}")

    app = FastAPI(
        title="Chartor",
        description="Museum attendance charts built from yearly CSV datasets",
        version="1.0.0"
    )
    app.state.config = config
    app.state.file_list = snapshot

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET"],
        allow_headers=["*"],
    )
    app.add_middleware(GZipMiddleware, minimum_size=1024)

    access_logger = setup_access_log(config.LOG_DIR)

    @app.middleware("http")
    async def access_log(request: Request, call_next):
        started = time.perf_counter()
        response = await call_next(request)
        for header, value in SECURITY_HEADERS.items():
            response.headers.setdefault(header, value)
        elapsed_ms = (time.perf_counter() - started) * 1000
        client = request.client.host if request.client else "-"
        access_logger.info(
            f'{client} - - [{datetime.now().strftime("%d/%b/%Y:%H:%M:%S")}] '
            f'"{request.method} {request.url.path} HTTP/{request.scope.get("http_version", "1.1")}" '
            f'{response.status_code} {elapsed_ms:.1f}ms "{request.headers.get("user-agent", "-")}"'
        )
        return response

    @app.exception_handler(StarletteHTTPException)
    async def http_error(request: Request, exc: StarletteHTTPException):
        detail = exc.detail
        if exc.status_code == 404 and detail == "Not Found":
            detail = f"Unknown resource at URL: {request.url.path}"
        return JSONResponse(status_code=exc.status_code, content={"detail": detail})

    @app.get("/", response_class=HTMLResponse)
    async def index():
        """Chart page; the charts are filled from /api/charts."""
        body = """<h1>Chartor</h1>
<p>Fréquentation des musées par année.</p>
<div id='error'></div>
<h2>Par musée</h2><div id='chart-1'></div>
<h2>Par ville</h2><div id='chart-2'></div>"""
        return _page("Chartor", body, _INDEX_SCRIPT)

    @app.get("/source", response_class=HTMLResponse)
    async def source():
        """List of the data files with download links."""
        items = "\n".join(
            f"<li> - <a href='/data/{html.escape(name, quote=True)}'>{html.escape(name)}</a></li>"
            for name in snapshot.names
        )
        body = f"<h1>Sources</h1>\n<ul id='data_source'>\n{items}\n</ul>"
        return _page("Chartor - Source", body)

    @app.get("/csv")
    async def csv_list():
        """Names of the available CSV files."""
        return snapshot.to_json()

    @app.get("/health")
    async def health_check():
        """Health check endpoint."""
        return {
            "status": "healthy",
            "timestamp": datetime.now().isoformat(),
            "files": len(snapshot.names),
        }

    @app.get("/api/charts")
    async def charts(
        metric: str = Query("payant", description="payant, gratuit or total"),
        limit: int = Query(10, description="Number of series per chart", ge=1, le=100),
    ) -> Dict[str, Any]:
        """
        Run the pipeline over the data files and return chart payloads.

        Returns:
            dict: by_city and by_museum chart data plus the timing report
        """
        if metric not in METRICS:
            raise HTTPException(status_code=400, detail=f"Unknown metric '{metric}'")

        pipeline = ChartPipeline(SnapshotDataSource(data_dir, snapshot), config)
        try:
            result = await pipeline.run_async()
        except (ChartorError, OSError) as e:
            logger.error(f"Chart data failed: {e}")
            raise HTTPException(status_code=502, detail=f"{CHARTS_ERROR_MSG} {e}")

        payload = {
            "by_city": to_chart_data(result.by_city, metric, limit=limit),
            "by_museum": to_chart_data(result.by_museum, metric, limit=limit),
            "timings": result.timings.to_dict(),
        }
        if result.by_department is not None:
            payload["by_department"] = to_chart_data(result.by_department, metric, limit=limit)
        return payload

    # Mounted last so the routes above take precedence
    app.mount("/data", StaticFiles(directory=str(data_dir)), name="data")

    return app


def start_server(host: Optional[str] = None, port: Optional[int] = None, reload: bool = False):
    """Start the FastAPI server."""
    config = Config()
    setup_logging(log_level=config.LOG_LEVEL, log_file="chartor.log", log_dir=config.LOG_DIR)
    host = host or config.SERVER_HOST
    port = port or config.SERVER_PORT
    logger.info(f"Starting Chartor server on {host}:{port}")
    uvicorn.run(
        "api_server:create_app",
        factory=True,
        host=host,
        port=port,
        reload=reload,
        log_level="info"
    )


if __name__ == "__main__":
    start_server()
