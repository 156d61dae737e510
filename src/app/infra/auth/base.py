# src/app/infra/auth/base.py
"""
Abstract interface for the external authentication backend.
The backend owns OAuth and its session cookie; the kitchen only asks it
three questions.
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Optional

from src.app.domain.models import AuthSession


class AuthBackend(ABC):
    @abstractmethod
    async def check_session(self) -> AuthSession:
        """
        Ask whether the caller has a live session.

        Raises:
            AuthBackendUnavailableError: If the backend cannot be reached
        """
        pass

    @abstractmethod
    async def begin_login(self) -> Optional[str]:
        """
        Start the login flow.

        Returns:
            The authorization URL to navigate to, or None if the backend gave none

        Raises:
            AuthBackendUnavailableError: If the backend cannot be reached
        """
        pass

    @abstractmethod
    async def end_session(self) -> None:
        """
        Ask the backend to end its session.

        Raises:
            AuthBackendUnavailableError: If the backend cannot be reached
        """
        pass

    async def aclose(self) -> None:
        return None
