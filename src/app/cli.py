# src/app/cli.py
"""
Command line client for the kitchen core: resolves the identity against the
auth backend, generates recipe drafts, and edits the locally stored library
and cookbooks.
"""
from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Optional

import httpx
from pydantic import ValidationError

from src.app.config import settings
from src.app.domain.errors import CookbookNotFoundError, KitchenError
from src.app.domain.models import Identity, InstructionStep, Recipe
from src.app.infra.auth.http_backend import HttpAuthBackend
from src.app.infra.generation.http_client import HttpGenerationBackend
from src.app.infra.storage.local_provider import LocalFileStorage
from src.app.services.collection_reconciler import CollectionReconciler
from src.app.services.identity_resolver import IdentityResolver
from src.app.services.portions import format_amount, scale_recipe
from src.app.services.recipe_studio import RecipeStudio
from src.app.services.recipe_transfer import (
    LIBRARY_EXPORT_FILENAME,
    export_filename,
    export_library,
    export_recipe,
    parse_import_document,
)
from src.app.services.session_store import SessionStore
from src.services.errors import ServiceError
from src.services.ids import new_id

logger = logging.getLogger(__name__)


def _parse_cookies(pairs: list[str]) -> dict[str, str]:
    cookies: dict[str, str] = {}
    for pair in pairs:
        name, sep, value = pair.partition("=")
        if not sep or not name:
            raise argparse.ArgumentTypeError(f"Invalid cookie (expected NAME=VALUE): {pair}")
        cookies[name.strip()] = value.strip()
    return cookies


def _positive_float(value: str) -> float:
    number = float(value)
    if number <= 0:
        raise argparse.ArgumentTypeError(f"must be positive: {value}")
    return number


class KitchenClient:
    """
    Wires the session store, resolver, reconciler and recipe studio for one
    CLI run. Auth cookies are kept next to the session record so a sign-in
    survives between runs.
    """

    def __init__(
        self,
        storage_dir: str,
        api_base: str,
        cookies: Optional[dict[str, str]] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._storage = LocalFileStorage(storage_dir)
        self._cookie_key = f"{settings.SESSION_STORAGE_KEY}_cookies"
        self.store = SessionStore(self._storage, key=settings.SESSION_STORAGE_KEY)
        self.auth = HttpAuthBackend(
            api_base,
            timeout_seconds=settings.AUTH_CHECK_TIMEOUT_SECONDS,
            cookies={**self._load_cookies(), **(cookies or {})},
            transport=transport,
        )
        self.generation = HttpGenerationBackend(
            api_base,
            timeout_seconds=settings.GENERATION_TIMEOUT_SECONDS,
            transport=transport,
        )
        self.resolver = IdentityResolver(self.store, self.auth)
        self.reconciler = CollectionReconciler(self.store)
        self.studio = RecipeStudio(self.resolver, self.generation)

    def _load_cookies(self) -> dict[str, str]:
        raw = self._storage.get_item(self._cookie_key)
        if raw is None:
            return {}
        try:
            stored = json.loads(raw)
        except ValueError as e:
            logger.warning("Ignoring unreadable cookie file: %s", e)
            return {}
        if not isinstance(stored, dict):
            logger.warning("Ignoring cookie file with unexpected shape")
            return {}
        return {str(name): str(value) for name, value in stored.items()}

    def save_cookies(self) -> None:
        jar = {cookie.name: cookie.value for cookie in self.auth.cookies.jar}
        if jar:
            self._storage.set_item(self._cookie_key, json.dumps(jar))
        else:
            self._storage.remove_item(self._cookie_key)

    def forget_cookies(self) -> None:
        self.auth.cookies.clear()

    async def resolve(self, create_guest: bool = False) -> Optional[Identity]:
        await self.resolver.resolve()
        if create_guest:
            return self.resolver.ensure_guest()
        return self.resolver.identity

    async def aclose(self) -> None:
        try:
            self.save_cookies()
        finally:
            await self.auth.aclose()
            await self.generation.aclose()


def _require_cookbook(identity: Identity, cookbook_id: str) -> None:
    if identity.find_cookbook(cookbook_id) is None:
        raise CookbookNotFoundError(cookbook_id)


def _load_recipe_file(path: Path) -> Recipe:
    records = parse_import_document(path.read_text(encoding="utf-8"))
    if len(records) != 1 or not isinstance(records[0], dict):
        raise ValueError("Expected a single recipe object")
    payload = dict(records[0])
    payload["id"] = str(payload["id"]) if payload.get("id") else new_id()
    return Recipe.model_validate(payload)


def _print_identity(identity: Optional[Identity], state: str) -> None:
    print(f"state: {state}")
    if identity is None:
        return
    print(f"id: {identity.id}")
    print(f"name: {identity.displayName}")
    if identity.email:
        print(f"email: {identity.email}")
    print(f"recipes: {len(identity.library)}")
    print(f"cookbooks: {len(identity.collections)}")


def _print_recipe(recipe: Recipe) -> None:
    print(f"{recipe.name}  ({recipe.id})")
    if recipe.description:
        print(recipe.description)
    print(f"servings: {recipe.servings}  prep: {recipe.prepTime} min  cook: {recipe.cookTime} min")
    for group, items in recipe.ingredients.items():
        if not items:
            continue
        print(f"\n{group}:")
        for item in items:
            parts = [format_amount(item.amount), item.units, item.name]
            line = "  - " + " ".join(part for part in parts if part)
            if item.notes:
                line += f" ({item.notes})"
            print(line)
    if recipe.instructions:
        print("\ninstructions:")
        for number, step in enumerate(recipe.instructions, start=1):
            if isinstance(step, InstructionStep):
                print(f"  {step.step or number}. {step.description}")
            else:
                print(f"  {number}. {step}")
    if recipe.notes:
        print(f"\nnotes: {recipe.notes}")
    if recipe.ai_image_url:
        print("\nimage: attached")


async def _run(args: argparse.Namespace) -> int:
    client = KitchenClient(args.storage_dir, args.api_base, _parse_cookies(args.cookie))
    try:
        return await run_command(client, args)
    finally:
        await client.aclose()


async def run_command(client: KitchenClient, args: argparse.Namespace) -> int:
    command = args.command

    if command == "status":
        identity = await client.resolve()
        _print_identity(identity, client.resolver.state.value)
        return 0

    if command == "guest":
        identity = await client.resolve(create_guest=True)
        _print_identity(identity, client.resolver.state.value)
        return 0

    if command == "login":
        url = await client.resolver.login()
        if not url:
            print("Could not start login. Is the auth backend running?", file=sys.stderr)
            return 1
        print(url)
        return 0

    if command == "logout":
        await client.resolver.logout()
        client.forget_cookies()
        print("Signed out.")
        return 0

    identity = await client.resolve(create_guest=True)
    reconciler = client.reconciler

    if command == "generate":
        if args.cookbook:
            _require_cookbook(identity, args.cookbook)
        draft = await client.studio.generate(args.prompt)
        _print_recipe(scale_recipe(draft, args.scale))
        if args.cookbook:
            reconciler.add_to_cookbook(args.cookbook, draft)
            print(f"\nAdded {draft.name} to {args.cookbook}")
        elif args.save:
            reconciler.save_to_library(draft)
            print(f"\nSaved {draft.name} ({draft.id})")
        return 0

    if command == "save":
        recipe = _load_recipe_file(Path(args.file))
        reconciler.save_to_library(recipe)
        print(f"Saved {recipe.name} ({recipe.id})")
        return 0

    if command == "import":
        if args.cookbook:
            _require_cookbook(identity, args.cookbook)
        records = parse_import_document(Path(args.file).read_text(encoding="utf-8"))
        count = reconciler.import_batch(records, target_cookbook_id=args.cookbook)
        print(f"Imported {count} recipe(s)")
        return 0 if count else 1

    if command == "export":
        output_dir = Path(args.output)
        output_dir.mkdir(parents=True, exist_ok=True)
        if args.recipe:
            recipe = identity.find_recipe(args.recipe)
            if recipe is None:
                print(f"Recipe not found: {args.recipe}", file=sys.stderr)
                return 1
            target = output_dir / export_filename(recipe)
            target.write_text(export_recipe(recipe), encoding="utf-8")
        else:
            target = output_dir / LIBRARY_EXPORT_FILENAME
            target.write_text(export_library(identity), encoding="utf-8")
        print(f"Wrote {target}")
        return 0

    if command == "library":
        for recipe in identity.library:
            print(f"{recipe.id}  {recipe.name}")
        return 0

    if command == "cookbook":
        return _cookbook(client, identity, args)

    print(f"Unknown command: {command}", file=sys.stderr)
    return 2


def _cookbook(client: KitchenClient, identity: Identity, args: argparse.Namespace) -> int:
    reconciler = client.reconciler
    action = args.action

    if action == "create":
        book = reconciler.create_cookbook(args.name, args.description)
        print(f"Created cookbook {book.name} ({book.id})")
        return 0

    if action == "list":
        for book in identity.collections:
            print(f"{book.id}  {book.name}  ({len(book.recipeIds)} recipes)")
        return 0

    _require_cookbook(identity, args.cookbook_id)

    if action == "show":
        book = identity.find_cookbook(args.cookbook_id)
        print(f"{book.name}  ({book.id})")
        if book.description:
            print(book.description)
        for recipe in identity.cookbook_recipes(book.id):
            print(f"{recipe.id}  {recipe.name}")
        return 0

    if action == "delete":
        reconciler.delete_cookbook(args.cookbook_id)
        print(f"Deleted cookbook {args.cookbook_id}")
        return 0

    if action == "add":
        recipe = identity.find_recipe(args.recipe_id)
        if recipe is None:
            print(f"Recipe not found: {args.recipe_id}", file=sys.stderr)
            return 1
        reconciler.add_to_cookbook(args.cookbook_id, recipe)
        print(f"Added {recipe.name} to {args.cookbook_id}")
        return 0

    if action == "remove":
        reconciler.remove_from_cookbook(args.cookbook_id, args.recipe_id)
        print(f"Removed {args.recipe_id} from {args.cookbook_id}")
        return 0

    return 2


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="kitchen", description="Vegan Genius kitchen client")
    parser.add_argument("--storage-dir", default=settings.SESSION_STORAGE_DIR)
    parser.add_argument("--api-base", default=settings.AUTH_API_BASE)
    parser.add_argument(
        "--cookie",
        action="append",
        default=[],
        metavar="NAME=VALUE",
        help="Session cookie to send to the auth backend (repeatable)",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    serve = sub.add_parser("serve", help="Run the web server")
    serve.add_argument("--host", default="0.0.0.0")
    serve.add_argument("--port", type=int, default=settings.PORT)
    serve.add_argument("--reload", action="store_true")

    sub.add_parser("status", help="Resolve and show the current identity")
    sub.add_parser("guest", help="Start a guest session if none is active")
    sub.add_parser("login", help="Print the sign-in URL")
    sub.add_parser("logout", help="End the session and clear local state")
    sub.add_parser("library", help="List saved recipes")

    generate = sub.add_parser("generate", help="Generate a recipe draft from a prompt")
    generate.add_argument("prompt")
    generate.add_argument("--save", action="store_true", help="Save the draft to the library")
    generate.add_argument(
        "--cookbook", default=None, help="Add the draft to this cookbook (and the library)"
    )
    generate.add_argument(
        "--scale",
        type=_positive_float,
        default=1.0,
        help="Servings multiplier for the printed recipe; the saved draft is not scaled",
    )

    save = sub.add_parser("save", help="Save a recipe JSON file to the library")
    save.add_argument("file")

    imp = sub.add_parser("import", help="Import a recipe or an array of recipes")
    imp.add_argument("file")
    imp.add_argument("--cookbook", default=None, help="Also add imported recipes to this cookbook")

    exp = sub.add_parser("export", help="Export one recipe or the whole library")
    exp.add_argument("--recipe", default=None)
    exp.add_argument("--output", default=".")

    cookbook = sub.add_parser("cookbook", help="Manage cookbooks")
    actions = cookbook.add_subparsers(dest="action", required=True)
    create = actions.add_parser("create")
    create.add_argument("name")
    create.add_argument("--description", default="")
    actions.add_parser("list")
    show = actions.add_parser("show")
    show.add_argument("cookbook_id")
    delete = actions.add_parser("delete")
    delete.add_argument("cookbook_id")
    add = actions.add_parser("add")
    add.add_argument("cookbook_id")
    add.add_argument("recipe_id")
    remove = actions.add_parser("remove")
    remove.add_argument("cookbook_id")
    remove.add_argument("recipe_id")

    return parser


def main(argv: Optional[list[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.WARNING,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
        handlers=[logging.StreamHandler(sys.stderr)],
    )

    if args.command == "serve":
        import uvicorn

        uvicorn.run("src.app.main:app", host=args.host, port=args.port, reload=args.reload)
        return 0

    try:
        return asyncio.run(_run(args))
    except argparse.ArgumentTypeError as e:
        parser.error(str(e))
    except (ValueError, ValidationError, OSError, KitchenError, ServiceError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
