# src/app/services/recipe_studio.py
"""
Recipe studio.
Turns a prompt into a recipe draft for the current identity: makes sure
there is someone to own the draft, personalizes the prompt, and attaches a
generated cover image when the model suggested image keywords.
"""
from __future__ import annotations

import logging

from pydantic import ValidationError

from src.app.domain.models import Identity, IdentityKind, Recipe
from src.app.infra.generation.base import GenerationBackend
from src.app.services.identity_resolver import IdentityResolver
from src.services.errors import GenerationFailedError, ServiceError
from src.services.ids import new_id

logger = logging.getLogger(__name__)


def personalize_prompt(prompt: str, identity: Identity) -> str:
    """Signed-in users get their name in front of the prompt; guests do not."""
    if identity.kind == IdentityKind.AUTHENTICATED and identity.displayName:
        return f"For user {identity.displayName}: {prompt}"
    return prompt


class RecipeStudio:
    def __init__(self, resolver: IdentityResolver, backend: GenerationBackend):
        self._resolver = resolver
        self._backend = backend

    async def generate(self, prompt: str) -> Recipe:
        """
        Generate a draft. The draft is not saved anywhere; the caller decides
        whether it goes to the library or a cookbook.

        Raises:
            ValueError: If the prompt is blank
            ServiceError: If no usable recipe came back
        """
        prompt = prompt.strip()
        if not prompt:
            raise ValueError("Prompt must not be empty")

        identity = self._resolver.ensure_guest()
        raw = await self._backend.generate_recipe(personalize_prompt(prompt, identity))

        payload = dict(raw)
        payload["id"] = str(payload["id"]) if payload.get("id") else new_id()
        try:
            draft = Recipe.model_validate(payload)
        except ValidationError as e:
            raise GenerationFailedError(f"Invalid recipe draft: {e}") from e

        logger.info("Generated draft id=%s name=%r for identity=%s", draft.id, draft.name, identity.id)
        return await self._attach_image(draft)

    async def _attach_image(self, draft: Recipe) -> Recipe:
        if not draft.image_keywords:
            return draft
        try:
            image_url = await self._backend.generate_image(draft.image_keywords, draft.name)
        except ServiceError as e:
            # The recipe is still usable without a cover.
            logger.warning("Image generation failed for draft id=%s: %s", draft.id, e)
            return draft
        return draft.model_copy(update={"ai_image_url": image_url})
