from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Optional, Sequence

from google import genai
from google.genai import types
from google.genai.errors import APIError, ClientError

from src.services.errors import (
    GenerationConfigurationError,
    GenerationFailedError,
    RateLimitedError,
)
from src.services.gemini_client import GeminiClient
from src.services.ids import new_id

logger = logging.getLogger(__name__)

PROMPT_DIR = Path(__file__).resolve().parents[2] / "data" / "Prompt"
RECIPE_SYSTEM_PROMPT = PROMPT_DIR / "RECIPE_SYSTEM_PROMPT.txt"

_INGREDIENT_LIST_SCHEMA: dict[str, Any] = {
    "type": "ARRAY",
    "items": {
        "type": "OBJECT",
        "properties": {
            "name": {"type": "STRING"},
            "amount": {"type": "NUMBER"},
            "units": {"type": "STRING"},
            "notes": {"type": "STRING"},
        },
        "required": ["name", "amount", "units"],
    },
}

RECIPE_SCHEMA: dict[str, Any] = {
    "type": "OBJECT",
    "properties": {
        "name": {"type": "STRING"},
        "description": {"type": "STRING"},
        "prepTime": {"type": "INTEGER"},
        "cookTime": {"type": "INTEGER"},
        "servings": {"type": "INTEGER"},
        "ingredients": {
            "type": "OBJECT",
            "properties": {
                "wet": _INGREDIENT_LIST_SCHEMA,
                "dry": _INGREDIENT_LIST_SCHEMA,
                "other": _INGREDIENT_LIST_SCHEMA,
            },
            "required": ["wet", "dry"],
        },
        "instructions": {"type": "ARRAY", "items": {"type": "STRING"}},
        "notes": {"type": "STRING"},
        "tags": {"type": "ARRAY", "items": {"type": "STRING"}},
        "image_keywords": {"type": "ARRAY", "items": {"type": "STRING"}},
    },
    "required": [
        "name",
        "description",
        "prepTime",
        "cookTime",
        "servings",
        "ingredients",
        "instructions",
        "image_keywords",
    ],
}


def build_image_prompt(keywords: Sequence[str], subject: str) -> str:
    return (
        f"Professional food photography of {subject}. {', '.join(keywords)}. "
        "High resolution, photorealistic, natural lighting, overhead shot, delicious plating."
    )


class RecipeGenerator:
    """Structured recipe drafts from a free-text prompt."""

    def __init__(self, api_key: Optional[str], model_name: str = "gemini-2.5-flash") -> None:
        self._client = GeminiClient(api_key=api_key or "", model_name=model_name)

    def generate_structured_recipe(self, prompt: str) -> dict[str, Any]:
        draft = self._client.generate_json(
            user_prompt=prompt,
            system_prompt_path=RECIPE_SYSTEM_PROMPT,
            response_schema=RECIPE_SCHEMA,
        )
        if not draft.get("id"):
            draft["id"] = new_id()
        return draft


class ImageGenerator:
    """Food photos for a generated recipe, via Imagen."""

    def __init__(self, api_key: Optional[str], model_name: str = "imagen-4.0-generate-001") -> None:
        if not api_key:
            raise GenerationConfigurationError("Missing Google API key.")
        self.model_name = model_name
        self._client = genai.Client(api_key=api_key)

    def generate_image(self, keywords: Sequence[str], subject: str) -> bytes:
        prompt = build_image_prompt(keywords, subject)
        try:
            response = self._client.models.generate_images(
                model=self.model_name,
                prompt=prompt,
                config=types.GenerateImagesConfig(
                    number_of_images=1,
                    aspect_ratio="4:3",
                    output_mime_type="image/jpeg",
                ),
            )
        except ClientError as err:
            status_code = getattr(err, "code", None)
            if status_code == 429 or "RESOURCE_EXHAUSTED" in str(err):
                raise RateLimitedError("Gemini API quota reached. Try again shortly.") from err
            raise GenerationFailedError(f"Image request rejected: {err}") from err
        except APIError as err:
            raise GenerationFailedError(f"Image request failed: {err}") from err

        images = response.generated_images or []
        image_bytes = images[0].image.image_bytes if images and images[0].image else None
        if not image_bytes:
            raise GenerationFailedError("No image generated.")

        logger.info("Generated image for %r (%d bytes)", subject, len(image_bytes))
        return image_bytes
