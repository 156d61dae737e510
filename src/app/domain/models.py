# src/app/domain/models.py
"""
Domain models for the kitchen: recipes, cookbooks and the current identity.
These are immutable value objects; every change produces a new instance.
"""
from __future__ import annotations

from enum import Enum
from typing import Optional, Union

from pydantic import BaseModel, ConfigDict, Field


class IdentityKind(str, Enum):
    """Who the current actor is."""
    GUEST = "guest"
    AUTHENTICATED = "authenticated"


class ResolverState(str, Enum):
    """States of the identity resolver."""
    UNRESOLVED = "unresolved"
    GUEST = "guest"
    AUTHENTICATED = "authenticated"


GUEST_DISPLAY_NAME = "Guest Chef"
DEFAULT_DISPLAY_NAME = "Chef"


class _Record(BaseModel):
    # Unknown keys (UI state, legacy fields) are dropped on validation.
    model_config = ConfigDict(frozen=True, extra="ignore")


class Ingredient(_Record):
    name: str
    # A scalar amount, a numeric range such as [2, 3], or free text ("a pinch").
    amount: Union[float, list[float], str]
    units: str = ""
    notes: Optional[str] = None


class InstructionStep(_Record):
    step: Optional[int] = None
    description: str


class Recipe(_Record):
    """
    A generated or imported dish.
    `id` is the only identity key; a record with the same id is an update.
    """
    id: str
    name: str
    description: str = ""
    prepTime: Union[int, float] = 0
    cookTime: Union[int, float] = 0
    servings: Union[int, float] = 0
    ingredients: dict[str, list[Ingredient]] = Field(default_factory=dict)
    instructions: list[Union[str, InstructionStep]] = Field(default_factory=list)
    notes: Optional[str] = None
    tags: list[str] = Field(default_factory=list)
    image_keywords: list[str] = Field(default_factory=list)
    ai_image_url: Optional[str] = None
    stock_image_url: Optional[str] = None
    user_id: Optional[str] = None

    @property
    def image_ref(self) -> Optional[str]:
        """Image reference usable as a cookbook cover, generated image first."""
        return self.ai_image_url or self.stock_image_url


class Cookbook(_Record):
    id: str
    name: str
    description: str = ""
    recipeIds: list[str] = Field(default_factory=list)
    coverImage: Optional[str] = None


class Identity(_Record):
    """
    The current actor and the collection state it owns.
    This is exactly the projection written to local storage.
    """
    id: str
    kind: IdentityKind
    displayName: str = GUEST_DISPLAY_NAME
    email: Optional[str] = None
    avatarRef: Optional[str] = None
    library: list[Recipe] = Field(default_factory=list)
    collections: list[Cookbook] = Field(default_factory=list)

    @property
    def is_guest(self) -> bool:
        return self.kind == IdentityKind.GUEST

    def find_recipe(self, recipe_id: str) -> Optional[Recipe]:
        return next((recipe for recipe in self.library if recipe.id == recipe_id), None)

    def find_cookbook(self, cookbook_id: str) -> Optional[Cookbook]:
        return next((book for book in self.collections if book.id == cookbook_id), None)

    def cookbook_recipes(self, cookbook_id: str) -> list[Recipe]:
        """Library entries referenced by a cookbook, in library order."""
        book = self.find_cookbook(cookbook_id)
        if book is None:
            return []
        members = set(book.recipeIds)
        return [recipe for recipe in self.library if recipe.id in members]


class AuthSession(BaseModel):
    """Payload of the auth backend session check."""
    model_config = ConfigDict(extra="ignore")

    authenticated: bool = False
    user_id: Optional[str] = None
    email: Optional[str] = None
    name: Optional[str] = None
    picture: Optional[str] = None
