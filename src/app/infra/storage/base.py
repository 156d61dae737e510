# src/app/infra/storage/base.py
"""
Abstract base class for client-side key/value storage.
This interface allows swapping where the kitchen keeps its local state
(a directory on disk, process memory, ...).
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Optional


class KeyValueStorage(ABC):
    """
    Abstract interface for durable local storage of string values.

    Implementations:
    - LocalFileStorage: one file per key in a directory
    - InMemoryStorage: dict-backed, for tests and throwaway sessions
    """

    @abstractmethod
    def get_item(self, key: str) -> Optional[str]:
        """
        Read the value stored under a key.

        Args:
            key: Storage key

        Returns:
            The stored string, or None if nothing is stored

        Raises:
            SessionStorageError: If the value exists but cannot be read
        """
        pass

    @abstractmethod
    def set_item(self, key: str, value: str) -> None:
        """
        Store a value under a key, replacing any previous value.

        Raises:
            SessionStorageError: If the value cannot be written
        """
        pass

    @abstractmethod
    def remove_item(self, key: str) -> None:
        """Remove a key. Removing a missing key is a no-op."""
        pass
