from __future__ import annotations

from typing import Any, Callable

import anyio
import httpx
import pytest
from fastapi.testclient import TestClient

from src.app.infra.proxy.origin_bridge import UPSTREAM_UNAVAILABLE_STATUS, OriginBridge
from src.app.main import create_app


class UpstreamRecorder:
    """Plays the auth backend behind an httpx.MockTransport."""

    def __init__(self, respond: Callable[[httpx.Request], httpx.Response]) -> None:
        self.respond = respond
        self.requests: list[httpx.Request] = []
        self.bodies: list[bytes] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        self.bodies.append(request.content)
        return self.respond(request)


def _ok(body: bytes = b'{"authenticated": false}', status: int = 200, headers=None) -> httpx.Response:
    return httpx.Response(
        status,
        headers=headers or [(b"content-type", b"application/json")],
        stream=httpx.ByteStream(body),
    )


class SlowStream(httpx.AsyncByteStream):
    """Sends one chunk, then stalls until cancelled."""

    def __init__(self) -> None:
        self.closed = False

    async def __aiter__(self):
        yield b"first"
        await anyio.sleep(30)
        yield b"never sent"

    async def aclose(self) -> None:
        self.closed = True


class BrokenStream(httpx.AsyncByteStream):
    async def __aiter__(self):
        yield b"partial"
        raise httpx.ReadError("connection reset")


def _scope(path: str = "/api/auth/check") -> dict[str, Any]:
    return {
        "type": "http",
        "method": "GET",
        "path": path,
        "raw_path": path.encode("ascii"),
        "query_string": b"",
        "headers": [(b"host", b"kitchen.local")],
    }


def _client(upstream: Callable[[httpx.Request], httpx.Response]) -> TestClient:
    app = create_app(auth_transport=httpx.MockTransport(upstream))
    return TestClient(app)


class TestPrefixMatching:
    def test_matches_prefix_and_children_only(self) -> None:
        bridge = OriginBridge(app=None, target="http://auth:5000", prefix="/api/auth/")

        assert bridge.matches("/api/auth")
        assert bridge.matches("/api/auth/callback")
        assert not bridge.matches("/api/authx")
        assert not bridge.matches("/api/recipe")

    def test_upstream_url_keeps_raw_path_and_query(self) -> None:
        bridge = OriginBridge(app=None, target="http://auth:5000/")
        scope = {
            "path": "/api/auth/callback",
            "raw_path": b"/api/auth/callback%2Fx",
            "query_string": b"code=abc&state=x%20y",
        }

        assert bridge._upstream_url(scope) == "http://auth:5000/api/auth/callback%2Fx?code=abc&state=x%20y"


class TestForwarding:
    def test_forwards_method_path_query_and_host(self) -> None:
        upstream = UpstreamRecorder(lambda request: _ok())
        client = _client(upstream)

        response = client.get("/api/auth/check?probe=1", headers={"X-Trace": "t-1"})

        assert response.status_code == 200
        assert response.json() == {"authenticated": False}
        forwarded = upstream.requests[0]
        assert forwarded.method == "GET"
        assert forwarded.url.path == "/api/auth/check"
        assert forwarded.url.query == b"probe=1"
        assert forwarded.url.host == "localhost"
        assert forwarded.headers["host"] == "testserver"
        assert forwarded.headers["x-trace"] == "t-1"

    def test_forwards_request_body(self) -> None:
        upstream = UpstreamRecorder(lambda request: _ok(b'{"success": true}'))
        client = _client(upstream)

        response = client.post(
            "/api/auth/logout",
            content=b'{"reason": "bye"}',
            headers={"Content-Type": "application/json"},
        )

        assert response.status_code == 200
        assert upstream.requests[0].method == "POST"
        assert upstream.bodies[0] == b'{"reason": "bye"}'

    def test_relays_status_and_cookies_unmodified(self) -> None:
        upstream = UpstreamRecorder(
            lambda request: _ok(
                b'{"error": "nope"}',
                status=401,
                headers=[
                    (b"content-type", b"application/json"),
                    (b"set-cookie", b"session=abc; Path=/; HttpOnly"),
                    (b"set-cookie", b"csrf=xyz; Path=/"),
                ],
            )
        )
        client = _client(upstream)

        response = client.get("/api/auth/check")

        assert response.status_code == 401
        assert response.json() == {"error": "nope"}
        assert response.headers.get_list("set-cookie") == [
            "session=abc; Path=/; HttpOnly",
            "csrf=xyz; Path=/",
        ]
        # Proxied responses bypass the application's middleware.
        assert "x-frame-options" not in response.headers

    def test_redirects_are_passed_back_not_followed(self) -> None:
        upstream = UpstreamRecorder(
            lambda request: _ok(
                b"",
                status=302,
                headers=[(b"location", b"http://testserver/?login=success")],
            )
        )
        client = _client(upstream)

        response = client.get("/api/auth/callback?code=abc", follow_redirects=False)

        assert response.status_code == 302
        assert response.headers["location"] == "http://testserver/?login=success"
        assert len(upstream.requests) == 1

    def test_backend_down_returns_single_diagnostic(self) -> None:
        def refuse(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        client = _client(UpstreamRecorder(refuse))

        response = client.get("/api/auth/check")

        assert response.status_code == UPSTREAM_UNAVAILABLE_STATUS
        assert response.json()["error"] == "Auth service unavailable"
        assert "detail" in response.json()


class TestNonMatchingTraffic:
    def test_other_paths_reach_the_application(self) -> None:
        upstream = UpstreamRecorder(lambda request: _ok())
        client = _client(upstream)

        assert client.get("/api/health").json() == {"status": "ok"}
        assert client.get("/api/authx").status_code == 404
        assert upstream.requests == []


class TestStreamingLifecycle:
    @pytest.mark.asyncio
    async def test_client_disconnect_closes_upstream_stream(self) -> None:
        stream = SlowStream()
        bridge = OriginBridge(
            app=None,
            target="http://auth:5000",
            transport=httpx.MockTransport(lambda request: httpx.Response(200, stream=stream)),
        )
        first_chunk_sent = anyio.Event()
        sent: list[dict[str, Any]] = []

        async def receive() -> dict[str, Any]:
            await first_chunk_sent.wait()
            return {"type": "http.disconnect"}

        async def send(message: dict[str, Any]) -> None:
            sent.append(message)
            if message.get("body"):
                first_chunk_sent.set()

        with anyio.fail_after(5):
            await bridge(_scope(), receive, send)

        assert stream.closed
        assert sent[0]["type"] == "http.response.start"
        assert sent[0]["status"] == 200
        bodies = [m for m in sent if m["type"] == "http.response.body"]
        assert [m["body"] for m in bodies] == [b"first"]
        assert all(m["more_body"] for m in bodies)

    @pytest.mark.asyncio
    async def test_upstream_failure_after_first_chunk_only_drops_connection(self) -> None:
        bridge = OriginBridge(
            app=None,
            target="http://auth:5000",
            transport=httpx.MockTransport(
                lambda request: httpx.Response(200, stream=BrokenStream())
            ),
        )
        sent: list[dict[str, Any]] = []

        async def receive() -> dict[str, Any]:
            await anyio.Event().wait()
            return {"type": "http.disconnect"}

        async def send(message: dict[str, Any]) -> None:
            sent.append(message)

        with anyio.fail_after(5):
            await bridge(_scope(), receive, send)

        starts = [m for m in sent if m["type"] == "http.response.start"]
        assert [m["status"] for m in starts] == [200]
        assert UPSTREAM_UNAVAILABLE_STATUS not in [m["status"] for m in starts]
        bodies = [m for m in sent if m["type"] == "http.response.body"]
        assert [m["body"] for m in bodies] == [b"partial"]
        assert all(m["more_body"] for m in bodies)
