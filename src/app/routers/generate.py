# src/app/routers/generate.py
"""
Recipe and image generation endpoints. The model itself is an external
collaborator injected through dependencies.
"""
import base64
import logging
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Request, status
from starlette.concurrency import run_in_threadpool

from src.app.config import settings
from src.app.deps import get_image_generator, get_recipe_generator, limiter
from src.app.schemas.generate import ImageRequest, ImageResponse, RecipeRequest
from src.services.errors import (
    GenerationConfigurationError,
    GenerationFailedError,
    NetworkTimeoutError,
    RateLimitedError,
    ServiceError,
)
from src.services.recipe_agent import ImageGenerator, RecipeGenerator

log = logging.getLogger(__name__)
router = APIRouter(prefix="/api", tags=["generate"])


def _to_http_error(error: ServiceError, what: str) -> HTTPException:
    if isinstance(error, RateLimitedError):
        return HTTPException(status_code=status.HTTP_429_TOO_MANY_REQUESTS, detail=str(error))
    if isinstance(error, GenerationConfigurationError):
        return HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(error))
    if isinstance(error, NetworkTimeoutError):
        return HTTPException(status_code=status.HTTP_504_GATEWAY_TIMEOUT, detail="Generation timed out.")
    if isinstance(error, GenerationFailedError):
        return HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=f"No {what} generated.")
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(error))


@router.post("/recipe")
@limiter.limit(settings.GENERATION_RATE_LIMIT)
async def generate_recipe(
    request: Request,
    payload: RecipeRequest,
    generator: RecipeGenerator = Depends(get_recipe_generator),
) -> dict[str, Any]:
    try:
        recipe = await run_in_threadpool(generator.generate_structured_recipe, payload.prompt)
    except ServiceError as exc:
        log.warning("Recipe generation failed: %s", exc)
        raise _to_http_error(exc, "recipe")

    log.info("Generated recipe id=%s name=%r", recipe.get("id"), recipe.get("name"))
    return recipe


@router.post("/image", response_model=ImageResponse)
@limiter.limit(settings.GENERATION_RATE_LIMIT)
async def generate_image(
    request: Request,
    payload: ImageRequest,
    generator: ImageGenerator = Depends(get_image_generator),
) -> ImageResponse:
    try:
        image_bytes = await run_in_threadpool(
            generator.generate_image, payload.keywords, payload.recipeName
        )
    except ServiceError as exc:
        log.warning("Image generation failed: %s", exc)
        raise _to_http_error(exc, "image")

    encoded = base64.b64encode(image_bytes).decode("ascii")
    return ImageResponse(imageDataUrl=f"data:image/jpeg;base64,{encoded}")
