"""
Pubky Messenger - Conversation storage.

Each participant writes envelopes into their own namespace under the
shared conversation address:

    pubky://<own key>/pub/private_messages/<hex sha256(secret)>/<uuid>.json

Reading a conversation therefore lists both participants' copies of the
address, decrypts what it can and merges the result in timestamp order.
Objects that cannot be read, parsed or decrypted are skipped and counted so
one corrupt or foreign object never hides the rest of the conversation.
"""

import asyncio
import logging
import uuid
from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Union

from . import crypto
from .constants import OBJECT_SUFFIX, PUBLIC_ROOT
from .envelope import Envelope, OpenedMessage
from .errors import ErrorCode, MessengerError, StoreError
from .keys import Keypair, PublicKey
from .notifications import notify
from .store import ObjectStore, StoreResponse, build_uri, is_success
from .utils import abbreviate_key

logger = logging.getLogger(__name__)


@dataclass
class ConversationResult:
    """Messages of one conversation plus the number of skipped objects."""

    messages: List[OpenedMessage] = field(default_factory=list)
    skipped: int = 0


class ConversationStore:
    """Reads and writes private conversations for one local identity."""

    def __init__(self, store: ObjectStore, keypair: Keypair, notifications: bool = False):
        """
        Args:
            store: Object store client
            keypair: Local identity
            notifications: Whether send() also drops a notification for the recipient
        """
        self.store = store
        self.keypair = keypair
        self.notifications = notifications

    def conversation_path(self, other: PublicKey) -> str:
        """Path of the conversation with other, relative to an account root."""
        secret = crypto.derive_shared_secret(self.keypair, other)
        return f"{PUBLIC_ROOT}{crypto.conversation_address(secret)}"

    async def send(self, recipient: Union[PublicKey, str], plaintext: str) -> str:
        """
        Encrypt, sign and store a message for recipient.

        Returns:
            The new message id

        Raises:
            KeyConversionError: If the recipient key is invalid
            StoreError: If the PUT is not successful (not retried)
        """
        recipient = PublicKey.coerce(recipient)
        envelope = Envelope.compose(self.keypair, recipient, plaintext)
        message_id = str(uuid.uuid4())

        uri = build_uri(
            self.keypair.public_key(),
            f"{self.conversation_path(recipient)}{message_id}{OBJECT_SUFFIX}",
        )
        logger.debug(f"Storing message for {abbreviate_key(recipient)} at {uri}")

        status = await self.store.put(uri, envelope.to_json())
        if not is_success(status):
            logger.error(f"Message storage failed with status {status}")
            raise StoreError(
                ErrorCode.E303_WRITE_FAILED,
                f"Failed to store message: {status}",
                {"status": status, "uri": uri},
            )

        logger.info(f"Message {message_id} sent to {abbreviate_key(recipient)}")

        if self.notifications:
            try:
                await notify(self.store, self.keypair, recipient, message_id)
            except MessengerError as e:
                logger.warning(f"Notification for {message_id} not delivered: {e}")

        return message_id

    async def _list_quietly(self, prefix: str) -> List[str]:
        try:
            return await self.store.list(prefix)
        except StoreError as e:
            logger.debug(f"Nothing listed under {prefix}: {e}")
            return []

    async def _get_quietly(self, uri: str) -> Optional[StoreResponse]:
        try:
            return await self.store.get(uri)
        except StoreError as e:
            logger.debug(f"Failed to fetch {uri}: {e}")
            return None

    async def fetch_conversation(self, other: Union[PublicKey, str]) -> ConversationResult:
        """
        Collect every readable message exchanged with other.

        The result is sorted by timestamp ascending; messages with equal
        timestamps keep listing order (own namespace first).
        """
        other = PublicKey.coerce(other)
        path = self.conversation_path(other)

        own_prefix = build_uri(self.keypair.public_key(), path)
        other_prefix = build_uri(other, path)

        own_uris, other_uris = await asyncio.gather(
            self._list_quietly(own_prefix), self._list_quietly(other_prefix)
        )
        uris = own_uris + other_uris
        responses = await asyncio.gather(*(self._get_quietly(uri) for uri in uris))

        result = ConversationResult()
        for uri, response in zip(uris, responses):
            if response is None or not response.ok:
                result.skipped += 1
                continue
            try:
                envelope = Envelope.from_json(response.body)
                result.messages.append(envelope.open(self.keypair, other))
            except MessengerError as e:
                logger.debug(f"Skipping {uri}: {e}")
                result.skipped += 1

        result.messages.sort(key=lambda message: message.timestamp)
        logger.debug(
            f"Conversation with {abbreviate_key(other)}: "
            f"{len(result.messages)} messages, {result.skipped} skipped"
        )
        return result

    async def fetch_from_contacts(self, contacts: Iterable[Union[PublicKey, str]]) -> List[OpenedMessage]:
        """
        Merge the conversations with several contacts, newest first.

        A contact whose key cannot be used contributes nothing.
        """
        messages: List[OpenedMessage] = []
        for contact in contacts:
            try:
                conversation = await self.fetch_conversation(contact)
            except MessengerError as e:
                logger.warning(f"Skipping contact {abbreviate_key(contact)}: {e}")
                continue
            messages.extend(conversation.messages)

        messages.sort(key=lambda message: message.timestamp, reverse=True)
        return messages
