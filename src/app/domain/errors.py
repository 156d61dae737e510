from __future__ import annotations


class KitchenError(Exception):
    pass


class SessionStorageError(KitchenError):
    def __init__(self, key: str, reason: str = "Storage write failed"):
        super().__init__(f"Failed to persist {key}: {reason}")
        self.key = key
        self.reason = reason


class AuthBackendUnavailableError(KitchenError):
    def __init__(self, operation: str, reason: str = "Auth backend unreachable"):
        super().__init__(f"Auth backend unavailable during {operation}: {reason}")
        self.operation = operation
        self.reason = reason


class CookbookNotFoundError(KitchenError):
    def __init__(self, cookbook_id: str):
        super().__init__(f"Cookbook not found: {cookbook_id}")
        self.cookbook_id = cookbook_id
