# src/app/infra/proxy/origin_bridge.py
"""
Reverse proxy that forwards a path prefix (the auth endpoints) to a second
backend so the browser sees a single origin.

The browser's Host header is forwarded untouched: the backend then builds
external URLs (OAuth redirect_uri, Location headers) on the public origin
instead of its own internal address, and its cookies are scoped to the
origin the browser is actually on.
"""
from __future__ import annotations

import json
import logging
from collections.abc import AsyncIterator
from typing import Optional

import anyio
import httpx
from starlette.requests import ClientDisconnect
from starlette.types import ASGIApp, Message, Receive, Scope, Send

logger = logging.getLogger(__name__)

UPSTREAM_UNAVAILABLE_STATUS = 502


class OriginBridge:
    """
    ASGI middleware. Must sit outside anything that reads the request body,
    because the body is forwarded as the raw, single-use receive stream.

    Each proxied request is an independent streaming pipe: the request body
    is relayed chunk by chunk, the response is relayed chunk by chunk, and a
    browser disconnect closes the outbound connection.
    """

    def __init__(
        self,
        app: ASGIApp,
        target: str,
        prefix: str = "/api/auth",
        connect_timeout: float = 5.0,
        read_timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.app = app
        self.target = target.rstrip("/")
        self.prefix = prefix.rstrip("/")
        self.timeout = httpx.Timeout(read_timeout, connect=connect_timeout)
        # A bare transport: no cookie jar, no redirect following, no auth,
        # so nothing leaks between unrelated browsers.
        self.transport = transport or httpx.AsyncHTTPTransport()

    def matches(self, path: str) -> bool:
        return path == self.prefix or path.startswith(self.prefix + "/")

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http" or not self.matches(scope["path"]):
            await self.app(scope, receive, send)
            return
        await self.forward(scope, receive, send)

    def _upstream_url(self, scope: Scope) -> str:
        raw_path = scope.get("raw_path") or scope["path"].encode("utf-8")
        url = self.target + raw_path.decode("latin-1")
        query = scope.get("query_string") or b""
        if query:
            url += "?" + query.decode("latin-1")
        return url

    @staticmethod
    def _has_body(headers: list[tuple[bytes, bytes]]) -> bool:
        return any(name.lower() in (b"content-length", b"transfer-encoding") for name, _ in headers)

    @staticmethod
    async def _request_body(receive: Receive, body_done: anyio.Event) -> AsyncIterator[bytes]:
        while True:
            message = await receive()
            if message["type"] == "http.disconnect":
                raise ClientDisconnect()
            body = message.get("body", b"")
            if body:
                yield body
            if not message.get("more_body", False):
                body_done.set()
                break

    async def forward(self, scope: Scope, receive: Receive, send: Send) -> None:
        method = scope["method"]
        path = scope["path"]
        headers = list(scope.get("headers") or [])

        body_done = anyio.Event()
        if self._has_body(headers):
            content = self._request_body(receive, body_done)
        else:
            content = None
            body_done.set()

        request = httpx.Request(
            method,
            self._upstream_url(scope),
            headers=headers,
            content=content,
            extensions={"timeout": self.timeout.as_dict()},
        )

        upstream: Optional[httpx.Response] = None
        try:
            async with anyio.create_task_group() as task_group:
                task_group.start_soon(
                    self._watch_disconnect, receive, body_done, task_group.cancel_scope, method, path
                )
                upstream = await self._open_upstream(request, send, method, path)
                if upstream is not None:
                    await self._relay_response(upstream, send, method, path)
                task_group.cancel_scope.cancel()
        finally:
            if upstream is not None:
                await upstream.aclose()

    async def _open_upstream(
        self, request: httpx.Request, send: Send, method: str, path: str
    ) -> Optional[httpx.Response]:
        try:
            return await self.transport.handle_async_request(request)
        except ClientDisconnect:
            logger.info("[origin bridge] %s %s aborted by client during upload", method, path)
        except httpx.TransportError as e:
            logger.error(
                "[origin bridge] %s %s -> %s failed: %s",
                method,
                path,
                self.target,
                str(e) or type(e).__name__,
            )
            await self._send_unavailable(send)
        return None

    @staticmethod
    async def _relay_response(response: httpx.Response, send: Send, method: str, path: str) -> None:
        await send(
            {
                "type": "http.response.start",
                "status": response.status_code,
                "headers": [(name.lower(), value) for name, value in response.headers.raw],
            }
        )
        try:
            async for chunk in response.aiter_raw():
                await send({"type": "http.response.body", "body": chunk, "more_body": True})
            await send({"type": "http.response.body", "body": b"", "more_body": False})
        except (httpx.TransportError, OSError) as e:
            # Headers are already out; all that is left is dropping the connection.
            logger.warning("[origin bridge] %s %s stream aborted: %s", method, path, e)

    @staticmethod
    async def _watch_disconnect(
        receive: Receive,
        body_done: anyio.Event,
        cancel_scope: anyio.CancelScope,
        method: str,
        path: str,
    ) -> None:
        # The request body owns the receive channel until it is fully read.
        await body_done.wait()
        while True:
            message: Message = await receive()
            if message["type"] == "http.disconnect":
                break
        logger.debug("[origin bridge] %s %s client went away, closing upstream", method, path)
        cancel_scope.cancel()

    @staticmethod
    async def _send_unavailable(send: Send) -> None:
        body = json.dumps(
            {
                "error": "Auth service unavailable",
                "detail": "Could not reach the authentication backend.",
            }
        ).encode("utf-8")
        await send(
            {
                "type": "http.response.start",
                "status": UPSTREAM_UNAVAILABLE_STATUS,
                "headers": [
                    (b"content-type", b"application/json"),
                    (b"content-length", str(len(body)).encode("latin-1")),
                ],
            }
        )
        await send({"type": "http.response.body", "body": body, "more_body": False})
