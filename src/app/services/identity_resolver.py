# src/app/services/identity_resolver.py
"""
Identity resolver.
Decides the active identity at start-up and across login/logout, reconciling
the auth backend (who you are) with local storage (what you own).
"""
from __future__ import annotations

import logging
from typing import Optional

from src.app.domain.errors import AuthBackendUnavailableError
from src.app.domain.models import (
    DEFAULT_DISPLAY_NAME,
    GUEST_DISPLAY_NAME,
    AuthSession,
    Identity,
    IdentityKind,
    ResolverState,
)
from src.app.infra.auth.base import AuthBackend
from src.app.services.session_store import SessionStore
from src.services.ids import new_id

logger = logging.getLogger(__name__)


class IdentityResolver:
    """
    State machine over {UNRESOLVED, GUEST, AUTHENTICATED}.

    Auth backend calls are best-effort: an unreachable backend degrades to
    the guest/unresolved path and never raises out of this class.
    """

    def __init__(self, store: SessionStore, auth: AuthBackend):
        self._store = store
        self._auth = auth
        self.state = ResolverState.UNRESOLVED

    @property
    def identity(self) -> Optional[Identity]:
        """The current identity, read fresh from the session store."""
        if self.state == ResolverState.UNRESOLVED:
            return None
        return self._store.load()

    async def resolve(self) -> ResolverState:
        """
        Run the session check. Called on start-up and after the login
        redirect comes back.
        """
        try:
            session = await self._auth.check_session()
        except AuthBackendUnavailableError as e:
            logger.warning("Auth backend unavailable, using local session: %s", e)
            return self._restore_local()

        if session.authenticated:
            self._adopt_session(session)
            return self.state

        return self._restore_local()

    def ensure_guest(self) -> Identity:
        """
        Create a guest identity if nobody is resolved yet.
        No-op when a guest or authenticated identity is already active.
        """
        current = self.identity
        if current is not None:
            return current

        guest = Identity(
            id=new_id(),
            kind=IdentityKind.GUEST,
            displayName=GUEST_DISPLAY_NAME,
        )
        self._store.save(guest)
        self.state = ResolverState.GUEST
        logger.info("Created guest identity id=%s", guest.id)
        return guest

    async def login(self) -> Optional[str]:
        """
        Ask the backend where to send the user to sign in.

        Returns:
            The authorization URL the caller should navigate to, or None when
            the backend is unreachable or returned no URL. Local state is left
            untouched; the transition happens on the next resolve().
        """
        try:
            url = await self._auth.begin_login()
        except AuthBackendUnavailableError as e:
            logger.warning("Login initiation failed: %s", e)
            return None

        if not url:
            logger.warning("Auth backend returned no authorization URL")
        return url

    async def logout(self) -> None:
        try:
            await self._auth.end_session()
        except AuthBackendUnavailableError as e:
            # Local logout still proceeds.
            logger.warning("Could not end backend session: %s", e)

        self._store.clear()
        self.state = ResolverState.UNRESOLVED

    def _adopt_session(self, session: AuthSession) -> None:
        prior = self._store.load()

        identity = Identity(
            id=session.user_id or session.email or new_id(),
            kind=IdentityKind.AUTHENTICATED,
            displayName=session.name or DEFAULT_DISPLAY_NAME,
            email=session.email,
            avatarRef=session.picture,
            library=list(prior.library) if prior else [],
            collections=list(prior.collections) if prior else [],
        )
        self._store.save(identity)
        self.state = ResolverState.AUTHENTICATED

        if prior is not None and prior.is_guest:
            logger.info(
                "Merged guest session into authenticated user: guest=%s, user=%s, recipes=%d, cookbooks=%d",
                prior.id,
                identity.id,
                len(identity.library),
                len(identity.collections),
            )

    def _restore_local(self) -> ResolverState:
        stored = self._store.load()
        if stored is None:
            self.state = ResolverState.UNRESOLVED
        elif stored.kind == IdentityKind.AUTHENTICATED:
            self.state = ResolverState.AUTHENTICATED
        else:
            self.state = ResolverState.GUEST
        return self.state
