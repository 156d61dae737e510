# src/app/services/recipe_transfer.py
"""
Recipe import/export documents.
A document is a JSON object (one recipe) or a JSON array of recipe objects.
"""
from __future__ import annotations

import json
from typing import Any

from src.app.domain.models import Identity, Recipe
from src.services.slugify import slugify

LIBRARY_EXPORT_FILENAME = "library.json"


def _dump(payload: Any) -> str:
    return json.dumps(payload, indent=2, ensure_ascii=False)


def export_recipe(recipe: Recipe) -> str:
    return _dump(recipe.model_dump(mode="json", exclude_none=True))


def export_library(identity: Identity) -> str:
    return _dump([recipe.model_dump(mode="json", exclude_none=True) for recipe in identity.library])


def export_filename(recipe: Recipe) -> str:
    return f"{slugify(recipe.name)}.json"


def parse_import_document(text: str) -> list[Any]:
    """
    Turn an import document into a list of raw records.

    Items are returned as-is; structural validation happens in
    CollectionReconciler.import_batch.

    Raises:
        ValueError: If the text is not JSON or is neither an object nor an array
    """
    try:
        payload = json.loads(text)
    except json.JSONDecodeError as e:
        raise ValueError(f"Import file is not valid JSON: {e}") from e

    if isinstance(payload, dict):
        return [payload]
    if isinstance(payload, list):
        return payload
    raise ValueError("Import file must contain a recipe object or an array of recipes")
