"""
Pubky Messenger - Caller-facing operations.

The front end (desktop shell, CLI, tests) drives the messenger through the
Messenger class. Every operation takes its state from an injected
SessionState, raises typed errors for the single thing it was asked to do,
and degrades to partial results for batch views.
"""

import base64
import binascii
import logging
from dataclasses import dataclass
from typing import Callable, List, Optional

from .config import Config
from .conversation import ConversationStore
from .errors import (
    ConfigError,
    CryptoError,
    ErrorCode,
    FormatError,
    MessengerError,
    StoreError,
)
from .keys import Keypair, PublicKey
from .notifications import drain_notifications
from .profiles import FollowedUser, PublicProfile, fetch_profile, get_followed_users_with_profiles
from .state import SessionState
from .store import HttpObjectStore, ObjectStore
from .vault import SessionFile, WrappedSession, unwrap, wrap

logger = logging.getLogger(__name__)

# decrypt_backup(recovery file bytes, passphrase) -> Keypair
BackupDecoder = Callable[[bytes, str], Keypair]


@dataclass(frozen=True)
class ChatMessage:
    """A message as presented to the front end."""

    sender: str
    content: str
    timestamp: int
    verified: bool
    is_own_message: bool


@dataclass(frozen=True)
class UserProfile:
    """The signed-in account as presented to the front end."""

    public_key: str
    signed_in: bool
    name: Optional[str] = None


class Messenger:
    """Entry point for all messenger operations."""

    def __init__(self, state: SessionState, config: Optional[Config] = None,
                 decrypt_backup: Optional[BackupDecoder] = None,
                 client_factory: Optional[Callable[[], ObjectStore]] = None,
                 session_file: Optional[SessionFile] = None):
        """
        Args:
            state: Process session state
            config: Configuration (defaults to the user's config file)
            decrypt_backup: Recovery-file decoder
            client_factory: Builds the store client (defaults to HttpObjectStore)
            session_file: Where wrapped sessions are persisted
        """
        self.state = state
        self.config = config or Config()
        self.decrypt_backup = decrypt_backup
        self.client_factory = client_factory or self._default_client
        self.session_file = session_file or SessionFile(self.config.session_file())

    def _default_client(self) -> ObjectStore:
        return HttpObjectStore(
            homeserver=self.config.get("store", "homeserver"),
            timeout=self.config.get("store", "timeout"),
        )

    async def init_client(self) -> ObjectStore:
        """Create (once) and return the shared store client."""
        return await self.state.get_or_create_client(self.client_factory)

    async def _activate(self, keypair: Keypair) -> UserProfile:
        client = await self.init_client()
        await client.sign_in(keypair)

        display_name = None
        try:
            profile = await fetch_profile(client, keypair.public_key())
        except StoreError as e:
            logger.warning(f"Could not fetch own profile: {e}")
            profile = None
        if profile is not None:
            display_name = profile.name

        await self.state.set_identity(keypair, display_name)

        if self.config.get("vault", "remember_session", True):
            try:
                await self.session_file.save_async(wrap(keypair))
            except (OSError, MessengerError) as e:
                logger.warning(f"Could not persist session: {e}")

        return UserProfile(str(keypair.public_key()), True, display_name)

    async def sign_in_with_recovery(self, recovery_file_b64: str, passphrase: str) -> UserProfile:
        """
        Sign in with a recovery file and its passphrase.

        Raises:
            FormatError: If the recovery file is not valid base64
            CryptoError: If the passphrase is wrong (E207)
            StoreError: If the homeserver rejects or cannot be reached
        """
        if not recovery_file_b64 or not passphrase:
            raise FormatError(
                ErrorCode.E002_INVALID_ARGUMENT, "Recovery file and passphrase must not be empty"
            )
        if self.decrypt_backup is None:
            raise ConfigError(ErrorCode.E703_INVALID_CONFIG, "No recovery-file decoder configured")

        try:
            recovery_bytes = base64.b64decode(recovery_file_b64, validate=True)
        except binascii.Error as e:
            raise FormatError(
                ErrorCode.E400_FORMAT_ERROR, f"Failed to decode recovery file: {e}"
            ) from e

        try:
            keypair = self.decrypt_backup(recovery_bytes, passphrase)
        except Exception as e:
            raise CryptoError(
                ErrorCode.E207_RECOVERY_DECRYPT_FAILED,
                "Failed to decrypt recovery file - check your passphrase",
            ) from e

        return await self._activate(keypair)

    async def restore_session(self, blob: Optional[str] = None) -> Optional[UserProfile]:
        """
        Sign in again from a wrapped session.

        Uses the session file when no blob is given; returns None if there
        is nothing to restore.

        Raises:
            FormatError: If the blob is malformed
            CryptoError: If the session cannot be unwrapped on this device
            StoreError: If the homeserver rejects or cannot be reached
        """
        session = WrappedSession.decode(blob) if blob is not None else self.session_file.load()
        if session is None:
            return None
        keypair = unwrap(session)
        return await self._activate(keypair)

    def export_session(self) -> str:
        """Wrap the active identity and return it as an opaque blob."""
        return wrap(self.state.require_keypair()).encode()

    async def send_message(self, recipient_pubkey: str, content: str) -> str:
        """
        Send a private message.

        Returns:
            The stored message id
        """
        keypair = self.state.require_keypair()
        recipient = PublicKey.from_string(recipient_pubkey)
        client = await self.init_client()

        conversations = ConversationStore(
            client, keypair, notifications=self.config.get("messaging", "notifications", False)
        )
        return await conversations.send(recipient, content)

    async def get_conversation(self, other_pubkey: str) -> List[ChatMessage]:
        """Messages exchanged with other_pubkey, oldest first."""
        keypair = self.state.require_keypair()
        other = PublicKey.from_string(other_pubkey)
        client = await self.init_client()

        result = await ConversationStore(client, keypair).fetch_conversation(other)
        own = str(keypair.public_key())
        return [
            ChatMessage(m.sender, m.content, m.timestamp, m.verified, m.sender == own)
            for m in result.messages
        ]

    async def get_new_messages(self) -> List[ChatMessage]:
        """
        Drain notifications and return the announced conversations' messages.

        Senders are fetched once each; the result is newest first.
        """
        keypair = self.state.require_keypair()
        client = await self.init_client()

        drained = await drain_notifications(client, keypair)
        senders: List[PublicKey] = []
        for sender, _ in drained.entries:
            if sender not in senders:
                senders.append(sender)
        if not senders:
            return []

        own = str(keypair.public_key())
        messages = await ConversationStore(client, keypair).fetch_from_contacts(senders)
        return [
            ChatMessage(m.sender, m.content, m.timestamp, m.verified, m.sender == own)
            for m in messages
        ]

    async def get_user_profile(self) -> Optional[UserProfile]:
        """The signed-in account, or None when signed out."""
        keypair, display_name, signed_in = await self.state.snapshot()
        if keypair is None or not signed_in:
            return None
        return UserProfile(str(keypair.public_key()), True, display_name)

    async def get_profile(self, public_key: str) -> Optional[PublicProfile]:
        """Another account's public profile, if it has one."""
        key = PublicKey.from_string(public_key)
        client = await self.init_client()
        return await fetch_profile(client, key)

    async def scan_followed_users(self) -> List[FollowedUser]:
        """Followed accounts with their display names where available."""
        keypair = self.state.require_keypair()
        client = await self.init_client()
        result = await get_followed_users_with_profiles(client, keypair)
        return result.users

    async def sign_out(self) -> None:
        """
        Clear the session state and forget the persisted session.

        The store client survives but drops the previous identity's
        sign-in credentials.
        """
        await self.state.clear()
        client = self.state.client
        if client is not None:
            await client.sign_out()
        self.session_file.clear()
