# src/app/services/session_store.py
"""
Session store.
Durable local persistence of exactly one Identity snapshot.
"""
from __future__ import annotations

import logging
from typing import Optional

from pydantic import ValidationError

from src.app.domain.errors import SessionStorageError
from src.app.domain.models import Identity
from src.app.infra.storage.base import KeyValueStorage

logger = logging.getLogger(__name__)

DEFAULT_STORAGE_KEY = "vegan_genius_session"


class SessionStore:
    """
    Owns the serialized form of the current Identity.

    Responsibilities:
    - Persist a sanitized projection of the identity (overwrite, idempotent)
    - Load it back, discarding anything malformed instead of raising
    - Clear it on logout
    """

    def __init__(self, storage: KeyValueStorage, key: str = DEFAULT_STORAGE_KEY):
        self._storage = storage
        self.key = key

    def save(self, identity: Identity) -> None:
        """
        Persist the identity, replacing any previous snapshot.

        Raises:
            SessionStorageError: If the underlying storage cannot be written
        """
        # Re-validating drops anything that is not part of the stored projection.
        sanitized = Identity.model_validate(identity.model_dump())
        self._storage.set_item(self.key, sanitized.model_dump_json(exclude_none=True))

    def load(self) -> Optional[Identity]:
        """
        Load the persisted identity.

        Returns:
            The identity, or None when nothing usable is stored. A corrupt
            record is removed so it cannot block the next start-up.
        """
        raw = self._storage.get_item(self.key)
        if raw is None:
            return None

        try:
            return Identity.model_validate_json(raw)
        except (ValidationError, ValueError) as e:
            logger.warning("Discarding malformed local session key=%s: %s", self.key, e)
            try:
                self._storage.remove_item(self.key)
            except SessionStorageError as remove_error:
                logger.error("Could not remove malformed session: %s", remove_error)
            return None

    def clear(self) -> None:
        self._storage.remove_item(self.key)
