from __future__ import annotations

from typing import Annotated

from pydantic import BaseModel, Field, StringConstraints

Keyword = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=50)]


class RecipeRequest(BaseModel):
    prompt: Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=500)]


class ImageRequest(BaseModel):
    recipeName: Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=100)]
    keywords: list[Keyword] = Field(..., min_length=1, max_length=10)


class ImageResponse(BaseModel):
    imageDataUrl: str
