# src/app/infra/generation/http_client.py
"""
HTTP client for the recipe and image generation endpoints.
"""
from __future__ import annotations

import logging
from typing import Any, Optional, Sequence

import httpx

from src.app.infra.generation.base import GenerationBackend
from src.services.errors import (
    GenerationConfigurationError,
    GenerationFailedError,
    NetworkTimeoutError,
    RateLimitedError,
)

logger = logging.getLogger(__name__)

RECIPE_PATH = "/api/recipe"
IMAGE_PATH = "/api/image"


def _error_message(response: httpx.Response, fallback: str) -> str:
    try:
        payload = response.json()
    except ValueError:
        return response.text.strip() or fallback
    if isinstance(payload, dict) and payload.get("error"):
        return str(payload["error"])
    return fallback


class HttpGenerationBackend(GenerationBackend):
    """
    Generation API reached over HTTP.

    Server answers are mapped back onto the ServiceError family:
    429 -> RateLimitedError, 503 -> GenerationConfigurationError,
    504 or a client-side timeout -> NetworkTimeoutError, anything else
    that is not a usable success -> GenerationFailedError.
    """

    def __init__(
        self,
        base_url: str,
        timeout_seconds: float = 60.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout_seconds = timeout_seconds
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=httpx.Timeout(timeout_seconds),
            transport=transport,
        )

    async def _post(self, path: str, payload: dict[str, Any], fallback: str) -> Any:
        url = f"{self.base_url}{path}"
        try:
            response = await self._client.post(path, json=payload)
        except httpx.TimeoutException as e:
            raise NetworkTimeoutError(url, self.timeout_seconds) from e
        except httpx.TransportError as e:
            raise GenerationFailedError(f"{fallback} {str(e) or type(e).__name__}") from e

        if response.status_code == 429:
            raise RateLimitedError(_error_message(response, "Too many generation requests."))
        if response.status_code == 503:
            raise GenerationConfigurationError(_error_message(response, fallback))
        if response.status_code == 504:
            raise NetworkTimeoutError(url, self.timeout_seconds)
        if not response.is_success:
            logger.warning("POST %s returned %d", path, response.status_code)
            raise GenerationFailedError(_error_message(response, fallback))

        try:
            return response.json()
        except ValueError as e:
            raise GenerationFailedError(f"{fallback} Invalid response body.") from e

    async def generate_recipe(self, prompt: str) -> dict[str, Any]:
        draft = await self._post(RECIPE_PATH, {"prompt": prompt}, "Recipe generation failed.")
        if not isinstance(draft, dict):
            raise GenerationFailedError("Recipe generation failed. Expected a recipe object.")
        return draft

    async def generate_image(self, keywords: Sequence[str], recipe_name: str) -> str:
        payload = await self._post(
            IMAGE_PATH,
            {"keywords": list(keywords), "recipeName": recipe_name},
            "Image generation failed.",
        )
        url = payload.get("imageDataUrl") if isinstance(payload, dict) else None
        if not url:
            raise GenerationFailedError("No image generated.")
        return url

    async def aclose(self) -> None:
        await self._client.aclose()
