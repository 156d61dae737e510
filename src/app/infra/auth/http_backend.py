# src/app/infra/auth/http_backend.py
"""
HTTP client for the authentication backend endpoints, normally reached
through the origin bridge so its cookies live on the public origin.
"""
from __future__ import annotations

import logging
from typing import Optional

import httpx
from pydantic import ValidationError

from src.app.domain.errors import AuthBackendUnavailableError
from src.app.domain.models import AuthSession
from src.app.infra.auth.base import AuthBackend

logger = logging.getLogger(__name__)

CHECK_PATH = "/api/auth/check"
LOGIN_PATH = "/api/auth/login"
LOGOUT_PATH = "/api/auth/logout"


class HttpAuthBackend(AuthBackend):
    """
    Auth backend reached over HTTP with a bounded timeout.

    Every transport failure (refused connection, DNS, timeout) and every
    undecodable body surfaces as AuthBackendUnavailableError, so callers
    have a single "unreachable" path to handle.
    """

    def __init__(
        self,
        base_url: str,
        timeout_seconds: float = 5.0,
        cookies: Optional[dict[str, str]] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout_seconds = timeout_seconds
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=httpx.Timeout(timeout_seconds),
            cookies=cookies,
            transport=transport,
        )

    @property
    def cookies(self) -> httpx.Cookies:
        return self._client.cookies

    async def _request(self, operation: str, method: str, path: str) -> httpx.Response:
        try:
            return await self._client.request(method, path)
        except httpx.TimeoutException as e:
            raise AuthBackendUnavailableError(
                operation, f"timed out after {self.timeout_seconds}s"
            ) from e
        except httpx.TransportError as e:
            raise AuthBackendUnavailableError(operation, str(e) or type(e).__name__) from e

    async def check_session(self) -> AuthSession:
        response = await self._request("check_session", "GET", CHECK_PATH)
        if not response.is_success:
            logger.info("Session check returned %d, treating as signed out", response.status_code)
            return AuthSession(authenticated=False)

        try:
            return AuthSession.model_validate_json(response.content)
        except (ValidationError, ValueError) as e:
            raise AuthBackendUnavailableError("check_session", f"invalid response: {e}") from e

    async def begin_login(self) -> Optional[str]:
        response = await self._request("begin_login", "GET", LOGIN_PATH)
        try:
            payload = response.json()
        except ValueError as e:
            raise AuthBackendUnavailableError("begin_login", f"invalid response: {e}") from e

        if not response.is_success:
            message = payload.get("error") if isinstance(payload, dict) else None
            logger.warning(
                "Login initiation failed: status=%d, error=%s",
                response.status_code,
                message or "Failed to initiate login",
            )
            return None

        url = payload.get("authorization_url") if isinstance(payload, dict) else None
        return url or None

    async def end_session(self) -> None:
        response = await self._request("end_session", "POST", LOGOUT_PATH)
        if not response.is_success:
            logger.warning("Logout returned %d", response.status_code)

    async def aclose(self) -> None:
        await self._client.aclose()
