"""Cross-cutting ASGI middleware: request/response logging and error capture.

Both classes wrap the raw ``receive``/``send`` channels. The logging
middleware drains the request body ahead of the handler and holds the
response until the handler has returned.
"""

from __future__ import annotations

import logging
import time
from contextlib import asynccontextmanager
from typing import AsyncIterator, List, Optional, Tuple

from starlette.datastructures import Headers
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from .errors import INTERNAL_ERROR_MESSAGE, error_response

http_logger = logging.getLogger("userapi.http")
error_logger = logging.getLogger("userapi.errors")

NOT_AVAILABLE = "N/A"


def _display(text: Optional[str]) -> str:
    if text is None or not text.strip():
        return NOT_AVAILABLE
    return text


def _decode(body: bytes) -> str:
    return body.decode("utf-8", errors="replace")


def _declared_length(headers: Headers) -> int:
    raw = headers.get("content-length")
    if raw is None:
        return 0
    try:
        return int(raw)
    except ValueError:
        return 0


class _ReplayReceive:
    """Receive channel that yields an already-drained body before delegating."""

    def __init__(self, receive: Receive, body: bytes, *, disconnected: bool) -> None:
        self._receive = receive
        self._body = body
        self._disconnected = disconnected
        self._replayed = False

    async def __call__(self) -> Message:
        if not self._replayed:
            self._replayed = True
            return {"type": "http.request", "body": self._body, "more_body": False}
        if self._disconnected:
            return {"type": "http.disconnect"}
        return await self._receive()


async def _drain_request_body(receive: Receive) -> Tuple[bytes, bool]:
    """Read the whole request body; report whether the client disconnected."""

    chunks: List[bytes] = []
    while True:
        message = await receive()
        if message["type"] == "http.disconnect":
            return b"".join(chunks), True
        chunks.append(message.get("body", b""))
        if not message.get("more_body", False):
            return b"".join(chunks), False


class _ResponseBuffer:
    """Stand-in response sink that keeps everything until :meth:`flush`."""

    def __init__(self, send: Send) -> None:
        self._send = send
        self._start: Optional[Message] = None
        self._body = bytearray()
        self._trailing: List[Message] = []
        self._flushed = False

    @property
    def status_code(self) -> Optional[int]:
        if self._start is None:
            return None
        return int(self._start["status"])

    @property
    def body(self) -> bytes:
        return bytes(self._body)

    async def __call__(self, message: Message) -> None:
        message_type = message["type"]
        if message_type == "http.response.start":
            self._start = message
        elif message_type == "http.response.body":
            self._body.extend(message.get("body", b""))
        else:
            self._trailing.append(message)

    async def flush(self) -> None:
        """Write the held response to the original sink, at most once."""

        if self._flushed:
            return
        self._flushed = True
        if self._start is None:
            return
        await self._send(self._start)
        await self._send({"type": "http.response.body", "body": bytes(self._body), "more_body": False})
        for message in self._trailing:
            await self._send(message)


@asynccontextmanager
async def buffered_response(send: Send) -> AsyncIterator[_ResponseBuffer]:
    """Swap *send* for an in-memory buffer and always copy it back on exit."""

    buffer = _ResponseBuffer(send)
    try:
        yield buffer
    finally:
        await buffer.flush()


class RequestResponseLoggingMiddleware:
    """Log every HTTP request and its response without altering either."""

    def __init__(self, app: ASGIApp, *, logger: Optional[logging.Logger] = None) -> None:
        self.app = app
        self.logger = logger or http_logger

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        started = time.perf_counter()
        receive = await self._log_request(scope, receive)

        async with buffered_response(send) as buffer:
            await self.app(scope, receive, buffer)
            elapsed_ms = int((time.perf_counter() - started) * 1000)
            self._log_response(scope, buffer, elapsed_ms)

    async def _log_request(self, scope: Scope, receive: Receive) -> Receive:
        headers = Headers(scope=scope)
        body = ""
        if _declared_length(headers) > 0:
            raw, disconnected = await _drain_request_body(receive)
            receive = _ReplayReceive(receive, raw, disconnected=disconnected)
            body = _decode(raw)

        method = scope.get("method", "")
        path = scope.get("path", "")
        query = _decode(scope.get("query_string", b""))
        query_string = f"?{query}" if query else ""
        content_type = headers.get("content-type") or NOT_AVAILABLE

        self.logger.info(
            "HTTP Request: %s %s %s | Content-Type: %s | Body: %s",
            method,
            path,
            query_string,
            content_type,
            _display(body),
            extra={
                "http_method": method,
                "http_path": path,
                "http_query": query_string,
                "http_content_type": content_type,
            },
        )
        return receive

    def _log_response(self, scope: Scope, buffer: _ResponseBuffer, elapsed_ms: int) -> None:
        method = scope.get("method", "")
        path = scope.get("path", "")
        self.logger.info(
            "HTTP Response: %s %s | Status: %s | Elapsed: %sms | Body: %s",
            method,
            path,
            buffer.status_code,
            elapsed_ms,
            _display(_decode(buffer.body)),
            extra={
                "http_method": method,
                "http_path": path,
                "http_status": buffer.status_code,
                "elapsed_ms": elapsed_ms,
            },
        )


class ExceptionHandlingMiddleware:
    """Outermost guard turning uncaught exceptions into a 500 error payload."""

    def __init__(self, app: ASGIApp, *, logger: Optional[logging.Logger] = None) -> None:
        self.app = app
        self.logger = logger or error_logger

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        response_started = False

        async def send_wrapper(message: Message) -> None:
            nonlocal response_started
            if message["type"] == "http.response.start":
                response_started = True
            await send(message)

        try:
            await self.app(scope, receive, send_wrapper)
        except Exception as exc:
            self.logger.exception(
                "An unhandled exception occurred while processing %s %s",
                scope.get("method", ""),
                scope.get("path", ""),
            )
            if response_started:
                return
            response = error_response(500, INTERNAL_ERROR_MESSAGE, str(exc))
            await response(scope, receive, send)


__all__ = [
    "ExceptionHandlingMiddleware",
    "NOT_AVAILABLE",
    "RequestResponseLoggingMiddleware",
    "buffered_response",
]
