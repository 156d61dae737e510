# src/app/services/collection_reconciler.py
"""
Collection reconciler.
Every mutation of an identity's library and cookbooks goes through here so
uniqueness and reference integrity hold after each write.
"""
from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping, Sequence
from typing import Any, Optional

from pydantic import ValidationError

from src.app.domain.models import Cookbook, Identity, Recipe
from src.app.services.session_store import SessionStore
from src.services.ids import new_id

logger = logging.getLogger(__name__)


def same_recipe_by_id(existing: Recipe, candidate: Recipe) -> bool:
    """Library-save key: only the id identifies a recipe."""
    return existing.id == candidate.id


def same_recipe_by_id_or_name(existing: Recipe, candidate: Recipe) -> bool:
    """
    Cookbook-add key: a recipe with the same name counts as the same dish
    even under a different id.
    """
    return existing.id == candidate.id or existing.name == candidate.name


def _with_cover(book: Cookbook, recipes: Iterable[Recipe]) -> Cookbook:
    """Adopt the first available image as cover if the cookbook has none."""
    if book.coverImage:
        return book
    cover = next((recipe.image_ref for recipe in recipes if recipe.image_ref), None)
    if cover is None:
        return book
    return book.model_copy(update={"coverImage": cover})


def _is_importable(record: Any) -> bool:
    if not isinstance(record, Mapping):
        return False
    name = record.get("name")
    return (
        isinstance(name, str)
        and bool(name.strip())
        and isinstance(record.get("ingredients"), Mapping)
        and isinstance(record.get("instructions"), list)
    )


class CollectionReconciler:
    """
    Read-modify-write over the stored identity.

    Each operation loads the current identity, computes a new immutable value
    and saves it as one replacement. With no current identity, or when a
    referenced cookbook does not exist, operations are silent no-ops.
    """

    def __init__(self, store: SessionStore):
        self._store = store

    def _commit(self, identity: Identity) -> Identity:
        self._store.save(identity)
        return identity

    def save_to_library(self, recipe: Recipe) -> Optional[Identity]:
        """
        Insert or replace a recipe in the library, keyed strictly on id.
        A replaced entry keeps its position.
        """
        identity = self._store.load()
        if identity is None:
            return None

        library = list(identity.library)
        index = next(
            (i for i, existing in enumerate(library) if same_recipe_by_id(existing, recipe)),
            None,
        )
        if index is None:
            library.append(recipe)
        else:
            library[index] = recipe

        return self._commit(identity.model_copy(update={"library": library}))

    def add_to_cookbook(self, cookbook_id: str, recipe: Recipe) -> Optional[Identity]:
        """
        Put a recipe in a cookbook, adding it to the library first when no
        entry matches by id or name.
        """
        identity = self._store.load()
        if identity is None:
            return None

        book = identity.find_cookbook(cookbook_id)
        if book is None:
            logger.info("add_to_cookbook: cookbook %s not found, ignoring", cookbook_id)
            return identity

        library = list(identity.library)
        resolved = next(
            (existing for existing in library if same_recipe_by_id_or_name(existing, recipe)),
            None,
        )
        if resolved is None:
            library.append(recipe)
            resolved = recipe

        collections = list(identity.collections)
        if resolved.id not in book.recipeIds:
            updated = book.model_copy(update={"recipeIds": [*book.recipeIds, resolved.id]})
            # The incoming record's image decides the cover, not the matched entry's.
            updated = _with_cover(updated, [recipe])
            collections = [updated if b.id == cookbook_id else b for b in collections]

        return self._commit(
            identity.model_copy(update={"library": library, "collections": collections})
        )

    def import_batch(
        self,
        records: Sequence[Any],
        target_cookbook_id: Optional[str] = None,
    ) -> int:
        """
        Import externally supplied recipe records.

        Records without a name, an ingredients mapping and an instructions
        list are skipped. Records whose id is already in the library (or
        earlier in the batch) are not appended again but still count and
        still join the target cookbook.

        Returns:
            Number of structurally valid records processed
        """
        identity = self._store.load()
        if identity is None:
            return 0

        library = list(identity.library)
        known_ids = {recipe.id for recipe in library}
        valid_ids: list[str] = []
        skipped = 0

        for record in records:
            if not _is_importable(record):
                skipped += 1
                continue
            payload = dict(record)
            payload["id"] = str(payload["id"]) if payload.get("id") else new_id()
            try:
                recipe = Recipe.model_validate(payload)
            except ValidationError:
                skipped += 1
                continue

            if recipe.id not in known_ids:
                library.append(recipe)
                known_ids.add(recipe.id)
            valid_ids.append(recipe.id)

        if skipped:
            logger.info("import_batch: skipped %d invalid record(s)", skipped)
        if not valid_ids:
            return 0

        collections = list(identity.collections)
        if target_cookbook_id:
            collections = [
                self._merge_into_cookbook(book, valid_ids, library)
                if book.id == target_cookbook_id
                else book
                for book in collections
            ]

        self._commit(
            identity.model_copy(update={"library": library, "collections": collections})
        )
        return len(valid_ids)

    @staticmethod
    def _merge_into_cookbook(
        book: Cookbook, imported_ids: list[str], library: list[Recipe]
    ) -> Cookbook:
        recipe_ids = list(dict.fromkeys([*book.recipeIds, *imported_ids]))
        updated = book.model_copy(update={"recipeIds": recipe_ids})
        imported = set(imported_ids)
        return _with_cover(updated, (recipe for recipe in library if recipe.id in imported))

    def create_cookbook(self, name: str, description: str = "") -> Optional[Cookbook]:
        identity = self._store.load()
        if identity is None:
            return None

        book = Cookbook(id=new_id(), name=name, description=description)
        self._commit(
            identity.model_copy(update={"collections": [*identity.collections, book]})
        )
        return book

    def delete_cookbook(self, cookbook_id: str) -> Optional[Identity]:
        """Remove a cookbook. Its recipes stay in the library."""
        identity = self._store.load()
        if identity is None:
            return None

        collections = [book for book in identity.collections if book.id != cookbook_id]
        return self._commit(identity.model_copy(update={"collections": collections}))

    def remove_from_cookbook(self, cookbook_id: str, recipe_id: str) -> Optional[Identity]:
        identity = self._store.load()
        if identity is None:
            return None

        collections = [
            book.model_copy(
                update={"recipeIds": [rid for rid in book.recipeIds if rid != recipe_id]}
            )
            if book.id == cookbook_id
            else book
            for book in identity.collections
        ]
        return self._commit(identity.model_copy(update={"collections": collections}))
