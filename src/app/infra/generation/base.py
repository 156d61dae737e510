# src/app/infra/generation/base.py
"""
Abstract interface for the generation API as seen from a client: the
kitchen's own /api/recipe and /api/image endpoints.
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Sequence


class GenerationBackend(ABC):
    @abstractmethod
    async def generate_recipe(self, prompt: str) -> dict[str, Any]:
        """
        Request a recipe draft for a free-text prompt.

        Returns:
            The raw recipe object as sent by the server

        Raises:
            ServiceError: If no draft could be produced
        """
        pass

    @abstractmethod
    async def generate_image(self, keywords: Sequence[str], recipe_name: str) -> str:
        """
        Request a cover image for a recipe.

        Returns:
            The image as a data URL

        Raises:
            ServiceError: If no image could be produced
        """
        pass

    async def aclose(self) -> None:
        return None
