"""
Per-request diagnostics: wall-clock time and SQL statement count.

``install_query_counter`` hooks an engine so every statement it executes
bumps a per-request counter.  ``RequestMetricsMiddleware`` resets that
counter, reports both figures as response headers and logs requests that
run longer than ``settings.SLOW_REQUEST_MS``.
"""
import logging
import time
from contextvars import ContextVar

from sqlalchemy import event
from starlette.datastructures import MutableHeaders
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from app.config import settings

logger = logging.getLogger(__name__)

_statement_count: ContextVar[int] = ContextVar("sql_statement_count", default=0)


def install_query_counter(engine) -> None:
    """Count statements on *engine*, selectinload round-trips included."""

    @event.listens_for(engine.sync_engine, "before_cursor_execute")
    def _on_statement(conn, cursor, statement, parameters, context, executemany):
        _statement_count.set(_statement_count.get() + 1)


def statements_executed() -> int:
    return _statement_count.get()


class RequestMetricsMiddleware:
    """
    Adds ``X-Response-Time-Ms`` and ``X-Query-Count`` to HTTP responses.

    Written as plain ASGI: the app runs in the middleware's own context, so
    the counter it increments is the one read here.
    """

    def __init__(self, app: ASGIApp, slow_ms: float | None = None) -> None:
        self.app = app
        self.slow_ms = settings.SLOW_REQUEST_MS if slow_ms is None else slow_ms

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        _statement_count.set(0)
        started = time.perf_counter()
        elapsed_ms = 0.0

        async def send_with_metrics(message: Message) -> None:
            nonlocal elapsed_ms
            if message["type"] == "http.response.start":
                elapsed_ms = round((time.perf_counter() - started) * 1000, 2)
                headers = MutableHeaders(scope=message)
                headers.append("X-Response-Time-Ms", str(elapsed_ms))
                headers.append("X-Query-Count", str(statements_executed()))
            await send(message)

        await self.app(scope, receive, send_with_metrics)

        if elapsed_ms >= self.slow_ms:
            logger.warning(
                "Slow request %s %s: %.2f ms, %d statement(s)",
                scope["method"], scope["path"], elapsed_ms, statements_executed(),
            )
