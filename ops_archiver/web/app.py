import asyncio
import logging
import time
from typing import List, Optional

from fastapi import FastAPI, Header, HTTPException, Query, Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from ..archival.models import ArchiveStats, failure_response
from ..archival.runner import ArchiveRunner
from ..config.config import AppConfig, load_config
from ..db.hot_store import HotStore, PostgresHotStore
from ..db.postgres import PostgresDatabase
from ..monitoring.metrics import metrics
from ..utils.logging import RequestContextFilter, setup_logging
from ..utils.tracing import start_trace, start_trace_from_traceparent

ROLE_LEVEL = {"user": 1, "admin": 2}


def _parse_months(value: Optional[str]) -> Optional[int]:
    if value is None or value == "":
        return None
    try:
        return int(value)
    except ValueError:
        raise ValueError(f"months must be an integer, got {value!r}")


def create_app(
    store: Optional[HotStore] = None,
    cfg: Optional[AppConfig] = None,
    api_key: str | None = None,
) -> FastAPI:
    """Create the FastAPI application exposing the archival trigger.

    Parameters
    ----------
    store : Optional[HotStore]
        Hot store to archive from. When ``None`` a PostgreSQL-backed store is
        built from ``cfg.postgres``.
    cfg : Optional[AppConfig]
        Pre-loaded configuration; read from ``config.yaml`` when omitted.
    api_key : str | None
        API key required on protected endpoints; falls back to
        ``cfg.security.api_key``.
    """
    app = FastAPI()
    if cfg is None:
        cfg = load_config()
    hot_store = store or PostgresHotStore(PostgresDatabase(cfg.postgres))
    required_key = api_key or cfg.security.api_key
    logger = setup_logging(cfg.logging)

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        logger.exception("Unhandled exception", exc_info=exc)
        return JSONResponse(
            status_code=500, content={"detail": "Internal Server Error"}
        )

    def _check_role(required: str, role: str | None) -> None:
        if role is None:
            return
        if ROLE_LEVEL.get(role, -1) < ROLE_LEVEL.get(required, 0):
            raise HTTPException(status_code=403, detail="Forbidden")

    def _check_key(x_api_key: str | None) -> None:
        if required_key and x_api_key != required_key:
            raise HTTPException(status_code=401, detail="Invalid API key")

    @app.middleware("http")
    async def trace_middleware(request: Request, call_next):
        traceparent = request.headers.get("traceparent")
        if traceparent:
            trace_id = start_trace_from_traceparent(traceparent)
        else:
            trace_id = start_trace(request.headers.get("X-Request-ID"))
        response = await call_next(request)
        response.headers["X-Trace-ID"] = trace_id
        return response

    class RequestLoggingMiddleware(BaseHTTPMiddleware):
        """Log incoming requests and responses with context."""

        def __init__(self, app: FastAPI) -> None:  # type: ignore[override]
            super().__init__(app)
            self.logger = logging.getLogger("ops_archiver")
            if not any(
                isinstance(f, RequestContextFilter) for f in self.logger.filters
            ):
                self.logger.addFilter(RequestContextFilter())

        async def dispatch(self, request: Request, call_next):
            start = time.perf_counter()
            path = request.url.path
            method = request.method
            self.logger.info("request", extra={"path": path, "method": method})
            response = await call_next(request)
            latency_ms = (time.perf_counter() - start) * 1000
            self.logger.info(
                "response",
                extra={
                    "path": path,
                    "method": method,
                    "status": response.status_code,
                    "latency_ms": latency_ms,
                },
            )
            return response

    app.add_middleware(RequestLoggingMiddleware)

    @app.on_event("startup")
    async def startup() -> None:
        await hot_store.connect()

    @app.on_event("shutdown")
    async def shutdown() -> None:
        await hot_store.close()

    @app.post("/api/admin/archive-data")
    async def archive_data(
        months: Optional[str] = Query(None),
        dry_run: str = Query("false", alias="dryRun"),
        provider: str = Query("all"),
        x_api_key: str | None = Header(None),
        x_user_role: str | None = Header(None),
    ):
        _check_key(x_api_key)
        _check_role("admin", x_user_role)
        runner = ArchiveRunner(hot_store, cfg.archive)
        stats: List[ArchiveStats] = []
        try:
            result = await asyncio.wait_for(
                runner.run(
                    months_to_keep=_parse_months(months),
                    dry_run=dry_run.lower() == "true",
                    provider=provider,
                    stats=stats,
                ),
                timeout=cfg.archive.max_duration_seconds,
            )
        except ValueError as e:
            logger.error(f"Rejected archival request: {e}")
            return JSONResponse(status_code=400, content=failure_response(str(e), stats))
        except asyncio.TimeoutError:
            logger.error(
                f"Archival exceeded {cfg.archive.max_duration_seconds}s and was cancelled"
            )
            return JSONResponse(
                status_code=500,
                content=failure_response("Archival run timed out", stats),
            )
        except Exception as e:
            logger.exception("Archival run failed")
            return JSONResponse(
                status_code=500,
                content=failure_response(str(e) or "Failed to archive data", stats),
            )
        logger.info(result.message)
        return result.to_dict()

    @app.get("/health")
    async def health(
        x_api_key: str | None = Header(None),
        x_user_role: str | None = Header(None),
    ):
        _check_key(x_api_key)
        _check_role("user", x_user_role)
        return {"hot_store": await hot_store.health_check()}

    @app.get("/liveness")
    async def liveness() -> dict[str, str]:
        return {"status": "ok"}

    @app.get("/metrics")
    async def get_metrics(
        x_api_key: str | None = Header(None),
        x_user_role: str | None = Header(None),
    ):
        _check_key(x_api_key)
        _check_role("admin", x_user_role)
        return metrics.as_dict()

    return app
