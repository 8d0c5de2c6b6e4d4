"""
Pubky Messenger - Process session state.

Holds the single active identity, its display name, the signed-in flag and
the shared store client. One instance is created at process start and passed
to every operation.
"""

import asyncio
import logging
from typing import Callable, Optional, Tuple

from .errors import StateError
from .keys import Keypair
from .store import ObjectStore
from .utils import abbreviate_key

logger = logging.getLogger(__name__)


class SessionState:
    """
    Mutable session state shared by concurrent command invocations.

    Identity fields are guarded by one lock; client creation by another so
    a slow client factory never blocks reads of the identity.
    """

    def __init__(self):
        self._keypair: Optional[Keypair] = None
        self._display_name: Optional[str] = None
        self._signed_in = False
        self._client: Optional[ObjectStore] = None

        self._identity_lock = asyncio.Lock()
        self._client_lock = asyncio.Lock()

    @property
    def signed_in(self) -> bool:
        return self._signed_in

    @property
    def keypair(self) -> Optional[Keypair]:
        return self._keypair

    @property
    def display_name(self) -> Optional[str]:
        return self._display_name

    @property
    def client(self) -> Optional[ObjectStore]:
        """The shared client if one has been created."""
        return self._client

    def require_keypair(self) -> Keypair:
        """
        Return the active keypair without suspending.

        Raises:
            StateError: If no identity is signed in
        """
        keypair = self._keypair
        if keypair is None or not self._signed_in:
            raise StateError()
        return keypair

    async def snapshot(self) -> Tuple[Optional[Keypair], Optional[str], bool]:
        """Consistent read of (keypair, display name, signed in)."""
        async with self._identity_lock:
            return self._keypair, self._display_name, self._signed_in

    async def set_identity(self, keypair: Keypair, display_name: Optional[str] = None) -> None:
        """Replace the active identity and mark the session signed in."""
        async with self._identity_lock:
            self._keypair = keypair
            self._display_name = display_name
            self._signed_in = True
        logger.info(f"Active identity set to {abbreviate_key(keypair.public_key())}")

    async def set_display_name(self, display_name: Optional[str]) -> None:
        async with self._identity_lock:
            self._display_name = display_name

    async def clear(self) -> None:
        """
        Forget the identity.

        The cached client is kept for the next sign-in; callers drop its
        credentials with ObjectStore.sign_out.
        """
        async with self._identity_lock:
            self._keypair = None
            self._display_name = None
            self._signed_in = False
        logger.info("Session cleared")

    async def get_or_create_client(self, factory: Callable[[], ObjectStore]) -> ObjectStore:
        """Return the shared client, creating it on first use only."""
        async with self._client_lock:
            if self._client is None:
                self._client = factory()
                logger.debug("Store client created")
            return self._client

    async def close_client(self) -> None:
        async with self._client_lock:
            if self._client is not None:
                await self._client.close()
                self._client = None
