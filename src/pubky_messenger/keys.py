"""
Pubky Messenger - Identity keys.

An account is an Ed25519 signing keypair. The public key doubles as the
account's network address and is written as 52 characters of z-base-32.
"""

import base64
from typing import Union

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ed25519

from .constants import (
    KEY_SIZE,
    PUBLIC_KEY_SIZE,
    PUBLIC_KEY_STRING_LENGTH,
    SIGNATURE_SIZE,
    ZBASE32_ALPHABET,
)
from .errors import ErrorCode, KeyConversionError

_RFC4648_ALPHABET = "ABCDEFGHIJKLMNOPQRSTUVWXYZ234567"
_TO_ZBASE32 = str.maketrans(_RFC4648_ALPHABET, ZBASE32_ALPHABET)
_FROM_ZBASE32 = str.maketrans(ZBASE32_ALPHABET, _RFC4648_ALPHABET)


def zbase32_encode(data: bytes) -> str:
    """Encode bytes as unpadded z-base-32."""
    return base64.b32encode(data).decode("ascii").rstrip("=").translate(_TO_ZBASE32)


def zbase32_decode(text: str) -> bytes:
    """Decode unpadded z-base-32; raises ValueError on bad input."""
    if any(c not in ZBASE32_ALPHABET for c in text):
        raise ValueError("invalid z-base-32 character")
    standard = text.translate(_FROM_ZBASE32)
    standard += "=" * (-len(standard) % 8)
    return base64.b32decode(standard)


class PublicKey:
    """A 32-byte Ed25519 public key with its z-base-32 string form."""

    __slots__ = ("_raw",)

    def __init__(self, raw: bytes):
        if len(raw) != PUBLIC_KEY_SIZE:
            raise KeyConversionError(
                ErrorCode.E101_INVALID_KEY_LENGTH,
                f"Public key must be {PUBLIC_KEY_SIZE} bytes, got {len(raw)}",
            )
        self._raw = bytes(raw)

    @classmethod
    def from_string(cls, text: str) -> "PublicKey":
        """Parse a z-base-32 public key string.

        Raises:
            KeyConversionError: If the string is not a 32-byte key
        """
        text = text.strip()
        if len(text) != PUBLIC_KEY_STRING_LENGTH:
            raise KeyConversionError(
                ErrorCode.E103_INVALID_PUBLIC_KEY,
                f"Public key string must be {PUBLIC_KEY_STRING_LENGTH} characters",
                {"length": len(text)},
            )
        try:
            raw = zbase32_decode(text)
        except ValueError as e:
            raise KeyConversionError(
                ErrorCode.E103_INVALID_PUBLIC_KEY, f"Invalid public key encoding: {e}"
            ) from e
        return cls(raw[:PUBLIC_KEY_SIZE])

    @classmethod
    def coerce(cls, value: Union["PublicKey", str, bytes]) -> "PublicKey":
        """Accept a PublicKey, its string form, or raw bytes."""
        if isinstance(value, PublicKey):
            return value
        if isinstance(value, (bytes, bytearray)):
            return cls(bytes(value))
        return cls.from_string(value)

    def as_bytes(self) -> bytes:
        return self._raw

    def verify(self, data: bytes, signature: bytes) -> bool:
        """Return True if signature is a valid Ed25519 signature of data."""
        if len(signature) != SIGNATURE_SIZE:
            return False
        try:
            ed25519.Ed25519PublicKey.from_public_bytes(self._raw).verify(signature, data)
        except (InvalidSignature, ValueError):
            return False
        return True

    def __str__(self) -> str:
        return zbase32_encode(self._raw)

    def __repr__(self) -> str:
        return f"PublicKey({self})"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, PublicKey):
            return NotImplemented
        return self._raw == other._raw

    def __hash__(self) -> int:
        return hash(self._raw)


class Keypair:
    """
    Represents an account's identity keypair.

    Uses Ed25519 for signing. The same seed is converted to an X25519
    scalar for key agreement (see crypto.secret_to_dh).
    """

    def __init__(self, private_key: ed25519.Ed25519PrivateKey):
        self._private_key = private_key
        raw_public = private_key.public_key().public_bytes(
            encoding=serialization.Encoding.Raw,
            format=serialization.PublicFormat.Raw,
        )
        self._public_key = PublicKey(raw_public)

    @classmethod
    def random(cls) -> "Keypair":
        """Generate a fresh keypair."""
        return cls(ed25519.Ed25519PrivateKey.generate())

    @classmethod
    def from_secret_key(cls, secret: bytes) -> "Keypair":
        """Rebuild a keypair from its 32-byte seed."""
        if len(secret) != KEY_SIZE:
            raise KeyConversionError(
                ErrorCode.E101_INVALID_KEY_LENGTH,
                f"Secret key must be {KEY_SIZE} bytes, got {len(secret)}",
            )
        return cls(ed25519.Ed25519PrivateKey.from_private_bytes(secret))

    def secret_key(self) -> bytes:
        """Get the 32-byte seed."""
        return self._private_key.private_bytes(
            encoding=serialization.Encoding.Raw,
            format=serialization.PrivateFormat.Raw,
            encryption_algorithm=serialization.NoEncryption(),
        )

    def public_key(self) -> PublicKey:
        return self._public_key

    def sign(self, data: bytes) -> bytes:
        """Sign data, returning a 64-byte signature."""
        return self._private_key.sign(data)

    def __repr__(self) -> str:
        return f"Keypair(public_key={self._public_key})"
