import json
import logging
import time
from typing import Any, Iterable

import asyncpg

from ..config.config import PostgresConfig
from ..monitoring.metrics import metrics
from ..utils.circuit_breaker import CircuitBreaker
from ..utils.errors import CircuitBreakerOpenError, QueryError
from ..utils.tracing import get_traceparent
from .base import BaseDatabase
from .connection_utils import connect_with_retry

logger = logging.getLogger("ops_archiver")


class PostgresDatabase(BaseDatabase):
    """asyncpg pool wrapper guarded by a circuit breaker."""

    def __init__(self, cfg: PostgresConfig):
        self.cfg = cfg
        self.pool: asyncpg.pool.Pool | None = None
        self.circuit_breaker = CircuitBreaker(
            failure_threshold=cfg.circuit_breaker.failure_threshold,
            recovery_time=cfg.circuit_breaker.recovery_time,
            name="postgres",
        )

    def _with_traceparent(self, query: str, traceparent: str | None) -> str:
        """Prepend a traceparent comment to the query when provided."""
        tp = traceparent or get_traceparent()
        if tp:
            return f"/* traceparent={tp} */ {query}"
        return query

    async def _init_connection(self, conn: "asyncpg.Connection") -> None:
        # payload columns come back as plain dicts instead of JSON text
        for type_name in ("json", "jsonb"):
            await conn.set_type_codec(
                type_name,
                encoder=json.dumps,
                decoder=json.loads,
                schema="pg_catalog",
            )

    async def connect(self) -> None:
        async def _open() -> None:
            self.pool = await asyncpg.create_pool(
                host=self.cfg.host,
                port=self.cfg.port,
                user=self.cfg.user,
                password=self.cfg.password,
                database=self.cfg.database,
                min_size=self.cfg.min_pool_size,
                max_size=self.cfg.max_pool_size,
                init=self._init_connection,
                command_timeout=self.cfg.command_timeout,
                server_settings={"application_name": "ops_archiver"},
            )

        await connect_with_retry(
            self.circuit_breaker,
            CircuitBreakerOpenError("Postgres circuit open"),
            _open,
            retries=self.cfg.retries,
            delay=self.cfg.retry_delay,
            max_delay=self.cfg.retry_max_delay,
            jitter=self.cfg.retry_jitter,
        )
        logger.info(
            "postgres_connected",
            extra={"host": self.cfg.host, "database": self.cfg.database},
        )

    async def _ensure_pool(self) -> None:
        if not self.pool:
            await self.connect()

    async def _run(self, method: str, query: str, *params: Any, traceparent=None):
        await self._ensure_pool()
        assert self.pool
        pool = self.pool
        query = self._with_traceparent(query, traceparent)

        async def _query():
            async with pool.acquire() as conn:
                return await getattr(conn, method)(query, *params)

        start = time.perf_counter()
        try:
            result = await self.circuit_breaker.call(_query)
        except CircuitBreakerOpenError:
            raise
        except Exception as e:
            raise QueryError(str(e)) from e

        duration = (time.perf_counter() - start) * 1000
        metrics.inc("postgres_query_ms", duration)
        metrics.inc("postgres_query_count")
        if duration > self.cfg.threshold_ms:
            logger.warning(
                "slow_query",
                extra={"query": query, "duration_ms": duration},
            )
        return result

    async def fetch(
        self, query: str, *params: Any, traceparent: str | None = None
    ) -> Iterable[dict]:
        rows = await self._run("fetch", query, *params, traceparent=traceparent)
        return [dict(row) for row in rows]

    async def execute(
        self, query: str, *params: Any, traceparent: str | None = None
    ) -> int:
        """Execute a single statement and return affected row count."""
        status = await self._run("execute", query, *params, traceparent=traceparent)
        try:
            return int(status.split()[-1])
        except (AttributeError, IndexError, ValueError):
            return 0

    async def health_check(self) -> bool:
        try:
            await self._ensure_pool()
            assert self.pool
            async with self.pool.acquire() as conn:
                healthy = await conn.fetchval("SELECT 1") == 1
        except Exception as e:
            logger.error(f"PostgreSQL health check failed: {e}")
            await self.circuit_breaker.record_failure()
            metrics.set("postgres_health_check_passed", 0.0)
            return False
        metrics.set("postgres_health_check_passed", 1.0 if healthy else 0.0)
        return healthy

    async def close(self) -> None:
        if self.pool:
            await self.pool.close()
            self.pool = None
