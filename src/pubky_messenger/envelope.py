"""
Pubky Messenger - Message envelope.

An envelope is the unit stored for each private message. Content and sender
identity are sealed independently under the pair's shared secret, and the
signature covers a digest of the plaintext, so only the two participants can
read the message or check who wrote it.

Wire form (JSON, byte fields as arrays of integers):
    {"timestamp": u64, "encrypted_sender": [...], "encrypted_content": [...],
     "signature": [64 ints]}
"""

import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional, Union

from . import crypto
from .constants import SIGNATURE_SIZE
from .errors import ErrorCode, FormatError, KeyConversionError
from .keys import Keypair, PublicKey
from .utils import unix_timestamp

logger = logging.getLogger(__name__)

# Older objects carried the signature under this name
LEGACY_SIGNATURE_FIELD = "signature_bytes"


@dataclass(frozen=True)
class OpenedMessage:
    """Plaintext view of an envelope after decryption."""

    sender: str
    content: str
    timestamp: int
    verified: bool


@dataclass(frozen=True)
class Envelope:
    """Immutable signed and encrypted message record."""

    timestamp: int
    encrypted_sender: bytes
    encrypted_content: bytes
    signature: bytes

    @classmethod
    def compose(cls, sender_keypair: Keypair, recipient_public_key: Union[PublicKey, str],
                plaintext: str, timestamp: Optional[int] = None) -> "Envelope":
        """
        Build an envelope from sender to recipient.

        Raises:
            KeyConversionError: If the recipient key cannot be converted
        """
        recipient = PublicKey.coerce(recipient_public_key)
        if timestamp is None:
            timestamp = unix_timestamp()

        content_bytes = plaintext.encode("utf-8")
        sender_public = sender_keypair.public_key()

        digest = crypto.message_digest(content_bytes, sender_public.as_bytes(), timestamp)
        signature = sender_keypair.sign(digest)

        secret = crypto.derive_shared_secret(sender_keypair, recipient)

        return cls(
            timestamp=timestamp,
            encrypted_sender=crypto.seal(str(sender_public).encode("utf-8"), secret),
            encrypted_content=crypto.seal(content_bytes, secret),
            signature=signature,
        )

    def open(self, receiver_keypair: Keypair,
             other_participant: Union[PublicKey, str]) -> OpenedMessage:
        """
        Decrypt and verify the envelope.

        Either participant can open it, passing the other one's key.

        Raises:
            KeyConversionError: If other_participant cannot be converted
            CryptoError: If either field fails to decrypt
            FormatError: If a decrypted field is not UTF-8
        """
        secret = crypto.derive_shared_secret(
            receiver_keypair, PublicKey.coerce(other_participant)
        )

        content_bytes = crypto.unseal(self.encrypted_content, secret)
        sender_bytes = crypto.unseal(self.encrypted_sender, secret)

        try:
            content = content_bytes.decode("utf-8")
            sender = sender_bytes.decode("utf-8")
        except UnicodeDecodeError as e:
            raise FormatError(ErrorCode.E403_INVALID_UTF8, "Decrypted field is not UTF-8") from e

        return OpenedMessage(
            sender=sender,
            content=content,
            timestamp=self.timestamp,
            verified=self.verify(content, sender),
        )

    def verify(self, content: str, sender: str) -> bool:
        """
        Check the signature against decrypted content and sender.

        Returns False rather than raising for forged, malformed or
        wrong-length signatures and unparseable sender keys.
        """
        if len(self.signature) != SIGNATURE_SIZE:
            logger.debug("Envelope signature has invalid length")
            return False
        try:
            sender_key = PublicKey.from_string(sender)
        except KeyConversionError:
            logger.debug("Envelope sender is not a valid public key")
            return False

        digest = crypto.message_digest(
            content.encode("utf-8"), sender_key.as_bytes(), self.timestamp
        )
        return sender_key.verify(digest, self.signature)

    def to_dict(self) -> Dict[str, Any]:
        """Export envelope to its wire dictionary."""
        return {
            "timestamp": self.timestamp,
            "encrypted_sender": list(self.encrypted_sender),
            "encrypted_content": list(self.encrypted_content),
            "signature": list(self.signature),
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict())

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Envelope":
        """
        Import an envelope from its wire dictionary.

        Raises:
            FormatError: If any field is missing or has the wrong shape
        """
        if not isinstance(data, dict):
            raise FormatError(ErrorCode.E402_INVALID_ENVELOPE, "Envelope must be an object")

        signature = data.get("signature", data.get(LEGACY_SIGNATURE_FIELD))
        timestamp = data.get("timestamp")
        # u64 on the wire; anything wider cannot be digested
        if isinstance(timestamp, bool) or not isinstance(timestamp, int) \
                or not 0 <= timestamp < 2 ** 64:
            raise FormatError(ErrorCode.E402_INVALID_ENVELOPE, "Invalid envelope timestamp")

        return cls(
            timestamp=timestamp,
            encrypted_sender=_bytes_field(data.get("encrypted_sender"), "encrypted_sender"),
            encrypted_content=_bytes_field(data.get("encrypted_content"), "encrypted_content"),
            signature=_bytes_field(signature, "signature"),
        )

    @classmethod
    def from_json(cls, text: Union[str, bytes]) -> "Envelope":
        """Parse the JSON wire form, raising FormatError on anything else."""
        try:
            data = json.loads(text)
        except (ValueError, TypeError) as e:
            raise FormatError(ErrorCode.E401_INVALID_JSON, f"Invalid envelope JSON: {e}") from e
        return cls.from_dict(data)


def _bytes_field(value: Any, name: str) -> bytes:
    """Decode a JSON array of integers in 0..255."""
    if not isinstance(value, list):
        raise FormatError(ErrorCode.E402_INVALID_ENVELOPE, f"Missing or invalid field: {name}")
    try:
        return bytes(value)
    except (TypeError, ValueError) as e:
        raise FormatError(
            ErrorCode.E402_INVALID_ENVELOPE, f"Field {name} is not a byte array"
        ) from e
