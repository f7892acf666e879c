import json
import logging
import re
import sys
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from sqlalchemy import text

from market_intel.api.v1.router import api_router
from market_intel.config import get_settings
from market_intel.core.circuit_breaker import get_all_breakers
from market_intel.core.metrics import APP_INFO, HTTP_REQUEST_DURATION, HTTP_REQUESTS
from market_intel.db.session import engine

APP_VERSION = "0.1.0"

_DATE_SEGMENT = re.compile(r"^\d{4}-\d{2}-\d{2}$")

logger = logging.getLogger("market_intel")


class JSONFormatter(logging.Formatter):
    """Single-line JSON log records."""

    def format(self, record: logging.LogRecord) -> str:
        log = {
            "ts": self.formatTime(record, "%Y-%m-%dT%H:%M:%S"),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        if record.exc_info and record.exc_info[0]:
            log["exception"] = self.formatException(record.exc_info)
        return json.dumps(log, ensure_ascii=False)


def setup_logging():
    """JSON logs in production, plain text with debug enabled."""
    debug = get_settings().debug
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        logging.Formatter("[%(asctime)s] %(levelname)s %(name)s: %(message)s") if debug else JSONFormatter()
    )
    root = logging.getLogger()
    root.setLevel(logging.DEBUG if debug else logging.INFO)
    root.handlers = [handler]

    for noisy in ("httpx", "httpcore", "uvicorn.access", "sqlalchemy.engine", "yfinance"):
        logging.getLogger(noisy).setLevel(logging.WARNING)


def normalize_metric_path(path: str) -> str:
    """Collapse date and entity-name segments so metric labels stay bounded."""
    if "/api/v1/" not in path:
        return path
    parts: list[str] = []
    for p in path.split("/"):
        if _DATE_SEGMENT.match(p):
            parts.append("<date>")
        elif parts and parts[-1] == "entity":
            parts.append("<entity>")
        else:
            parts.append(p)
    return "/".join(parts)


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging()
    APP_INFO.info({"version": APP_VERSION, "name": "market-intel"})
    logger.info("Market intelligence backend starting up")
    yield
    await engine.dispose()


def create_app() -> FastAPI:
    settings = get_settings()

    app = FastAPI(
        title=settings.app_name,
        description="Daily market intelligence: enrichment, narratives, signals and hindsight validation.",
        version=APP_VERSION,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_methods=["GET", "POST"],
        allow_headers=["Content-Type", "X-Admin-Token"],
    )

    @app.middleware("http")
    async def observe_request(request: Request, call_next):
        start = time.monotonic()
        response: Response = await call_next(request)
        path = normalize_metric_path(request.url.path)
        HTTP_REQUESTS.labels(method=request.method, path=path, status_code=str(response.status_code)).inc()
        HTTP_REQUEST_DURATION.labels(method=request.method, path=path).observe(time.monotonic() - start)

        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        return response

    app.include_router(api_router, prefix="/api/v1")

    @app.get("/metrics")
    async def metrics():
        return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

    @app.get("/health")
    async def health():
        breakers = {cb.name: cb.state.value for cb in get_all_breakers()}
        try:
            async with engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
            database = "ok"
        except Exception as e:
            logger.warning("Health check could not reach the database: %s", e)
            database = f"error: {e}"

        degraded = database != "ok" or any(cb.is_open for cb in get_all_breakers())
        return {
            "status": "degraded" if degraded else "ok",
            "database": database,
            "circuit_breakers": breakers,
        }

    return app


app = create_app()
