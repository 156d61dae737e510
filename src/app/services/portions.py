# src/app/services/portions.py
"""
Servings scaling for display. A scaled recipe is a view: the stored recipe
keeps its original amounts.
"""
from __future__ import annotations

import math
from typing import Union

from src.app.domain.models import Ingredient, Recipe

Amount = Union[float, list[float], str]

# Decimal -> kitchen fraction, matched within 0.01.
_FRACTIONS = (
    (0.25, "1/4"),
    (0.5, "1/2"),
    (0.75, "3/4"),
    (0.33, "1/3"),
    (0.66, "2/3"),
)


def scale_amount(amount: Amount, multiplier: float) -> Amount:
    if isinstance(amount, str):
        return amount
    if isinstance(amount, list):
        return [round(value * multiplier, 2) for value in amount]
    return round(amount * multiplier, 2)


def scaled_servings(servings: Union[int, float], multiplier: float) -> int:
    # Halves round up, as on the recipe card.
    return int(math.floor(servings * multiplier + 0.5))


def scale_recipe(recipe: Recipe, multiplier: float) -> Recipe:
    """
    Return a copy of the recipe with every numeric amount multiplied.

    Raises:
        ValueError: If the multiplier is not positive
    """
    if multiplier <= 0:
        raise ValueError(f"Servings multiplier must be positive, got {multiplier}")
    if multiplier == 1:
        return recipe

    groups: dict[str, list[Ingredient]] = {
        group: [
            item.model_copy(update={"amount": scale_amount(item.amount, multiplier)})
            for item in items
        ]
        for group, items in recipe.ingredients.items()
    }
    return recipe.model_copy(
        update={
            "ingredients": groups,
            "servings": scaled_servings(recipe.servings, multiplier),
        }
    )


def _plain_number(value: float) -> str:
    if float(value).is_integer():
        return str(int(value))
    return str(value)


def format_amount(amount: Amount) -> str:
    if isinstance(amount, str):
        return amount
    if isinstance(amount, list):
        return " - ".join(_plain_number(value) for value in amount)
    for decimal, fraction in _FRACTIONS:
        if abs(amount - decimal) < 0.01:
            return fraction
    return _plain_number(amount)
