"""
ASGI middleware wrapped around every route.

``MetricsMiddleware`` sits outermost and records one counter increment and one
latency observation per request. ``RequestTimeoutMiddleware`` sits between it
and the router, turning a slow handler into a 408 and any unhandled error into
a plain-text 500, so the metrics layer always sees a real status code.
"""
from __future__ import annotations

import asyncio
import logging
import time

from starlette.responses import PlainTextResponse
from starlette.routing import Match, Router
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from app.metrics import RequestMetrics

logger = logging.getLogger(__name__)


def matched_path(router: Router, scope: Scope) -> str:
    """Route template for the request, or the literal path when nothing matches."""
    partial = None
    for route in router.routes:
        match, _ = route.matches(scope)
        if match == Match.FULL:
            return getattr(route, "path", scope["path"])
        if match == Match.PARTIAL and partial is None:
            partial = getattr(route, "path", None)
    return partial or scope["path"]


class MetricsMiddleware:
    def __init__(self, app: ASGIApp, metrics: RequestMetrics, router: Router) -> None:
        self.app = app
        self.metrics = metrics
        self.router = router

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        start = time.perf_counter()
        method = scope["method"]
        path = matched_path(self.router, scope)
        status = 500

        async def send_wrapper(message: Message) -> None:
            nonlocal status
            if message["type"] == "http.response.start":
                status = message["status"]
            await send(message)

        try:
            await self.app(scope, receive, send_wrapper)
        finally:
            self._record(method, path, status, time.perf_counter() - start)

    def _record(self, method: str, path: str, status: int, elapsed: float) -> None:
        try:
            self.metrics.observe(method, path, status, elapsed)
        except Exception:
            logger.exception("Failed to record metrics for %s %s", method, path)
            return
        logger.debug("%s %s -> %s in %.4fs", method, path, status, elapsed)


class RequestTimeoutMiddleware:
    """
    Bound client-visible latency without aborting the handler.

    A handler that overruns is detached and left to finish on its own; whatever
    it writes to the store still lands, but its response is dropped.
    """

    def __init__(self, app: ASGIApp, timeout: float) -> None:
        self.app = app
        self.timeout = timeout
        self._detached: set[asyncio.Task] = set()

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        started = False
        abandoned = False

        async def guarded_send(message: Message) -> None:
            nonlocal started
            if abandoned:
                return
            if message["type"] == "http.response.start":
                started = True
            await send(message)

        task = asyncio.ensure_future(self.app(scope, receive, guarded_send))
        done, _ = await asyncio.wait({task}, timeout=self.timeout)

        if not done and not started:
            abandoned = True
            self._detach(task)
            logger.warning(
                "%s %s exceeded %.1fs timeout", scope["method"], scope["path"], self.timeout
            )
            response = PlainTextResponse("Request timed out", status_code=408)
            await response(scope, receive, send)
            return

        try:
            await task
        except Exception as exc:
            logger.exception("Unhandled error serving %s %s", scope["method"], scope["path"])
            if started:
                raise
            response = PlainTextResponse(f"Unhandled internal error: {exc}", status_code=500)
            await response(scope, receive, send)

    def _detach(self, task: asyncio.Task) -> None:
        self._detached.add(task)
        task.add_done_callback(self._reap)

    def _reap(self, task: asyncio.Task) -> None:
        self._detached.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Timed-out request failed after detaching", exc_info=exc)
