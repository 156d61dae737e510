# src/app/deps.py (singletons exposed as FastAPI dependencies)

from __future__ import annotations

import logging

from fastapi import HTTPException, status
from slowapi import Limiter
from slowapi.util import get_remote_address

from src.app.config import settings
from src.services.errors import GenerationConfigurationError
from src.services.recipe_agent import ImageGenerator, RecipeGenerator

logger = logging.getLogger(__name__)

limiter = Limiter(
    key_func=get_remote_address,
    default_limits=[settings.API_RATE_LIMIT],
    enabled=settings.RATE_LIMIT_ENABLED,
)

_recipe_generator: RecipeGenerator | None = None
_image_generator: ImageGenerator | None = None


def get_recipe_generator() -> RecipeGenerator:
    global _recipe_generator
    if _recipe_generator is None:
        try:
            _recipe_generator = RecipeGenerator(
                api_key=settings.gemini_api_key,
                model_name=settings.GEMINI_RECIPE_MODEL,
            )
        except GenerationConfigurationError as e:
            logger.error("Recipe generation is not configured: %s", e)
            raise HTTPException(
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                detail="Recipe generation is not configured. Set GEMINI_API_KEY.",
            )
    return _recipe_generator


def get_image_generator() -> ImageGenerator:
    global _image_generator
    if _image_generator is None:
        try:
            _image_generator = ImageGenerator(
                api_key=settings.gemini_api_key,
                model_name=settings.GEMINI_IMAGE_MODEL,
            )
        except GenerationConfigurationError as e:
            logger.error("Image generation is not configured: %s", e)
            raise HTTPException(
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                detail="Image generation is not configured. Set GEMINI_API_KEY.",
            )
    return _image_generator
