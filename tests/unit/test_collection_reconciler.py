from __future__ import annotations

from typing import Any

import pytest

from src.app.domain.models import Cookbook, Identity, IdentityKind, Recipe
from src.app.infra.storage.local_provider import InMemoryStorage
from src.app.services.collection_reconciler import (
    CollectionReconciler,
    same_recipe_by_id,
    same_recipe_by_id_or_name,
)
from src.app.services.session_store import SessionStore


def _record(name: str, **extra: Any) -> dict[str, Any]:
    return {
        "name": name,
        "ingredients": {"dry": [{"name": "oats", "amount": 1, "units": "cup"}]},
        "instructions": ["Mix.", "Bake."],
        **extra,
    }


@pytest.fixture
def store() -> SessionStore:
    store = SessionStore(InMemoryStorage(), key="session")
    store.save(Identity(id="g1", kind=IdentityKind.GUEST))
    return store


@pytest.fixture
def reconciler(store: SessionStore) -> CollectionReconciler:
    return CollectionReconciler(store)


@pytest.fixture
def cookbook_id(reconciler: CollectionReconciler) -> str:
    return reconciler.create_cookbook("Weeknight", "Quick dinners").id


class TestPredicates:
    def test_library_key_is_id_only(self) -> None:
        a = Recipe(id="1", name="Soup")
        assert same_recipe_by_id(a, Recipe(id="1", name="Other"))
        assert not same_recipe_by_id(a, Recipe(id="2", name="Soup"))

    def test_cookbook_key_is_id_or_name(self) -> None:
        a = Recipe(id="1", name="Soup")
        assert same_recipe_by_id_or_name(a, Recipe(id="2", name="Soup"))
        assert same_recipe_by_id_or_name(a, Recipe(id="1", name="Other"))
        assert not same_recipe_by_id_or_name(a, Recipe(id="2", name="Stew"))


class TestSaveToLibrary:
    def test_appends_new_recipe(self, reconciler: CollectionReconciler) -> None:
        identity = reconciler.save_to_library(Recipe(id="r1", name="Soup"))
        assert [r.id for r in identity.library] == ["r1"]

    def test_second_save_replaces_in_place(
        self, reconciler: CollectionReconciler, store: SessionStore
    ) -> None:
        reconciler.save_to_library(Recipe(id="r1", name="Soup"))
        reconciler.save_to_library(Recipe(id="r2", name="Salad"))
        reconciler.save_to_library(Recipe(id="r1", name="Better Soup"))

        library = store.load().library
        assert [r.id for r in library] == ["r1", "r2"]
        assert library[0].name == "Better Soup"

    def test_same_name_different_id_is_kept_separately(
        self, reconciler: CollectionReconciler
    ) -> None:
        reconciler.save_to_library(Recipe(id="r1", name="Soup"))
        identity = reconciler.save_to_library(Recipe(id="r2", name="Soup"))

        assert len(identity.library) == 2

    def test_no_identity_is_no_op(self) -> None:
        reconciler = CollectionReconciler(SessionStore(InMemoryStorage()))
        assert reconciler.save_to_library(Recipe(id="r1", name="Soup")) is None


class TestAddToCookbook:
    def test_adds_missing_recipe_to_library_first(
        self, reconciler: CollectionReconciler, store: SessionStore, cookbook_id: str
    ) -> None:
        reconciler.add_to_cookbook(cookbook_id, Recipe(id="r1", name="Soup"))

        identity = store.load()
        assert identity.find_recipe("r1") is not None
        assert identity.find_cookbook(cookbook_id).recipeIds == ["r1"]

    def test_is_idempotent(
        self, reconciler: CollectionReconciler, store: SessionStore, cookbook_id: str
    ) -> None:
        recipe = Recipe(id="r1", name="Soup")
        reconciler.add_to_cookbook(cookbook_id, recipe)
        once = store.load()
        reconciler.add_to_cookbook(cookbook_id, recipe)
        twice = store.load()

        assert twice.find_cookbook(cookbook_id).recipeIds == once.find_cookbook(cookbook_id).recipeIds
        assert len(twice.library) == 1

    def test_matches_existing_entry_by_name(
        self, reconciler: CollectionReconciler, store: SessionStore, cookbook_id: str
    ) -> None:
        reconciler.save_to_library(Recipe(id="r1", name="Soup"))
        reconciler.add_to_cookbook(cookbook_id, Recipe(id="r2", name="Soup"))

        identity = store.load()
        assert [r.id for r in identity.library] == ["r1"]
        assert identity.find_cookbook(cookbook_id).recipeIds == ["r1"]

    def test_cover_backfill_first_image_wins(
        self, reconciler: CollectionReconciler, store: SessionStore, cookbook_id: str
    ) -> None:
        reconciler.add_to_cookbook(cookbook_id, Recipe(id="r1", name="Plain"))
        assert store.load().find_cookbook(cookbook_id).coverImage is None

        reconciler.add_to_cookbook(cookbook_id, Recipe(id="r2", name="Pretty", ai_image_url="data:one"))
        reconciler.add_to_cookbook(cookbook_id, Recipe(id="r3", name="Prettier", ai_image_url="data:two"))

        assert store.load().find_cookbook(cookbook_id).coverImage == "data:one"

    def test_cover_falls_back_to_stock_image(
        self, reconciler: CollectionReconciler, store: SessionStore, cookbook_id: str
    ) -> None:
        reconciler.add_to_cookbook(
            cookbook_id, Recipe(id="r1", name="Stock", stock_image_url="https://img/1.jpg")
        )
        assert store.load().find_cookbook(cookbook_id).coverImage == "https://img/1.jpg"

    def test_missing_cookbook_is_no_op(
        self, reconciler: CollectionReconciler, store: SessionStore
    ) -> None:
        before = store.load()
        after = reconciler.add_to_cookbook("nope", Recipe(id="r1", name="Soup"))

        assert after == before
        assert store.load().library == []


class TestImportBatch:
    def test_counts_valid_records_and_skips_invalid(
        self, reconciler: CollectionReconciler, store: SessionStore
    ) -> None:
        records = [
            _record("Granola"),
            {"name": "No ingredients", "instructions": []},
            {"ingredients": {}, "instructions": []},
            _record("   "),
            "not a record",
            _record("Bad instructions", instructions="stir"),
        ]

        assert reconciler.import_batch(records) == 1
        library = store.load().library
        assert [r.name for r in library] == ["Granola"]
        assert library[0].id

    def test_duplicates_by_id_are_counted_but_not_appended(
        self, reconciler: CollectionReconciler, store: SessionStore
    ) -> None:
        reconciler.save_to_library(Recipe(id="r1", name="Original"))

        count = reconciler.import_batch(
            [_record("New", id="r2"), _record("Clash", id="r1"), _record("Again", id="r2")]
        )

        library = store.load().library
        assert count == 3
        assert [r.id for r in library] == ["r1", "r2"]
        assert library[0].name == "Original"

    def test_unions_ids_into_target_cookbook(
        self, reconciler: CollectionReconciler, store: SessionStore, cookbook_id: str
    ) -> None:
        reconciler.add_to_cookbook(cookbook_id, Recipe(id="r0", name="Existing"))
        reconciler.save_to_library(Recipe(id="r1", name="Already saved"))

        count = reconciler.import_batch(
            [_record("Clash", id="r1"), _record("Fresh", id="r2", ai_image_url="data:img")],
            target_cookbook_id=cookbook_id,
        )

        book = store.load().find_cookbook(cookbook_id)
        assert count == 2
        assert book.recipeIds == ["r0", "r1", "r2"]
        assert book.coverImage == "data:img"

    def test_nothing_valid_returns_zero_and_does_not_write(
        self, reconciler: CollectionReconciler, store: SessionStore
    ) -> None:
        before = store.load()
        assert reconciler.import_batch([{"bogus": True}]) == 0
        assert store.load() == before

    def test_unknown_target_cookbook_still_imports(
        self, reconciler: CollectionReconciler, store: SessionStore
    ) -> None:
        assert reconciler.import_batch([_record("Granola")], target_cookbook_id="nope") == 1
        assert len(store.load().library) == 1

    def test_free_text_amount_is_kept(
        self, reconciler: CollectionReconciler, store: SessionStore
    ) -> None:
        record = {
            "name": "Salted oats",
            "ingredients": {"dry": [{"name": "salt", "amount": "a pinch", "units": ""}]},
            "instructions": ["Mix."],
        }

        assert reconciler.import_batch([record]) == 1
        salt = store.load().library[0].ingredients["dry"][0]
        assert salt.amount == "a pinch"

    def test_numeric_id_is_stringified(
        self, reconciler: CollectionReconciler, store: SessionStore
    ) -> None:
        assert reconciler.import_batch([_record("Granola", id=42)]) == 1
        assert [r.id for r in store.load().library] == ["42"]

    def test_instruction_without_step_number(
        self, reconciler: CollectionReconciler, store: SessionStore
    ) -> None:
        record = _record("Porridge", instructions=[{"description": "Stir"}])

        assert reconciler.import_batch([record]) == 1
        step = store.load().library[0].instructions[0]
        assert step.step is None
        assert step.description == "Stir"


class TestCookbookLifecycle:
    def test_create_cookbook(self, reconciler: CollectionReconciler, store: SessionStore) -> None:
        book = reconciler.create_cookbook("Desserts", "Sweet things")

        stored = store.load().find_cookbook(book.id)
        assert stored == Cookbook(id=book.id, name="Desserts", description="Sweet things")

    def test_delete_keeps_library(
        self, reconciler: CollectionReconciler, store: SessionStore, cookbook_id: str
    ) -> None:
        reconciler.add_to_cookbook(cookbook_id, Recipe(id="r1", name="Soup"))

        reconciler.delete_cookbook(cookbook_id)

        identity = store.load()
        assert identity.collections == []
        assert [r.id for r in identity.library] == ["r1"]

    def test_remove_from_cookbook_only_touches_ids(
        self, reconciler: CollectionReconciler, store: SessionStore, cookbook_id: str
    ) -> None:
        reconciler.add_to_cookbook(cookbook_id, Recipe(id="r1", name="Soup"))
        reconciler.add_to_cookbook(cookbook_id, Recipe(id="r2", name="Stew"))

        reconciler.remove_from_cookbook(cookbook_id, "r1")

        identity = store.load()
        assert identity.find_cookbook(cookbook_id).recipeIds == ["r2"]
        assert len(identity.library) == 2

    def test_no_identity_returns_none(self) -> None:
        reconciler = CollectionReconciler(SessionStore(InMemoryStorage()))

        assert reconciler.create_cookbook("X") is None
        assert reconciler.delete_cookbook("c") is None
        assert reconciler.remove_from_cookbook("c", "r") is None
        assert reconciler.import_batch([_record("Granola")]) == 0
