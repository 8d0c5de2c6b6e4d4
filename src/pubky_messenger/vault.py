"""
Pubky Messenger - Local session vault.

Wraps the identity seed for storage on this device so a restart does not
require the recovery file again. The wrapping key is derived with Argon2id
from a random salt and device entropy (host name, user name and an
application identifier). That entropy is not a secret: the vault binds a
session to the machine and account that created it and is not meant to
move secrets between devices.

Security features:
- Argon2id key derivation with a fresh 32-byte salt per wrap
- ChaCha20-Poly1305 authenticated encryption with a fresh 96-bit nonce
- Fail-closed unwrap (bad nonce length, failed authentication or a
  plaintext that is not a 32-byte seed)
- Atomic file writes to prevent corruption
"""

import base64
import binascii
import getpass
import json
import logging
import os
import socket
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import aiofiles
from argon2.low_level import Type, hash_secret_raw
from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import ChaCha20Poly1305

from .constants import (
    ARGON2_MEMORY_COST,
    ARGON2_PARALLELISM,
    ARGON2_TIME_COST,
    KEY_SIZE,
    NONCE_SIZE,
    VAULT_APP_IDENTIFIER,
    VAULT_SALT_SIZE,
)
from .errors import CryptoError, ErrorCode, FormatError
from .keys import Keypair

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class WrappedSession:
    """Encrypted-at-rest identity seed.

    Attributes:
        ciphertext: ChaCha20-Poly1305 output (seed + tag)
        nonce: 12-byte nonce
        salt: 32-byte Argon2id salt
    """

    ciphertext: bytes
    nonce: bytes
    salt: bytes

    def encode(self) -> str:
        """Serialize to an opaque base64 blob."""
        record = {
            "ciphertext": base64.b64encode(self.ciphertext).decode("ascii"),
            "nonce": base64.b64encode(self.nonce).decode("ascii"),
            "salt": base64.b64encode(self.salt).decode("ascii"),
        }
        return base64.b64encode(json.dumps(record).encode("utf-8")).decode("ascii")

    @classmethod
    def decode(cls, blob: str) -> "WrappedSession":
        """
        Parse a blob produced by encode().

        Raises:
            FormatError: If the blob is not a wrapped session
        """
        try:
            record = json.loads(base64.b64decode(blob, validate=True))
            return cls(
                ciphertext=base64.b64decode(record["ciphertext"], validate=True),
                nonce=base64.b64decode(record["nonce"], validate=True),
                salt=base64.b64decode(record["salt"], validate=True),
            )
        except (binascii.Error, ValueError, KeyError, TypeError) as e:
            raise FormatError(
                ErrorCode.E405_INVALID_SESSION_BLOB, f"Invalid session blob: {e}"
            ) from e


def device_entropy() -> bytes:
    """
    Host name, user name and application identifier, concatenated.

    Best-effort machine binding; missing values fall back to empty strings.
    """
    try:
        user = getpass.getuser()
    except (KeyError, OSError):
        user = ""
    return f"{socket.gethostname()}{user}{VAULT_APP_IDENTIFIER}".encode("utf-8")


def derive_vault_key(salt: bytes) -> bytes:
    """
    Derive the 32-byte wrapping key from salt and device entropy (Argon2id).

    Parameters:
        - Time cost: 3 iterations
        - Memory cost: 65536 KB (64 MB)
        - Parallelism: 1 thread
    """
    return hash_secret_raw(
        secret=device_entropy(),
        salt=salt,
        time_cost=ARGON2_TIME_COST,
        memory_cost=ARGON2_MEMORY_COST,
        parallelism=ARGON2_PARALLELISM,
        hash_len=KEY_SIZE,
        type=Type.ID,
    )


def wrap(keypair: Keypair) -> WrappedSession:
    """Encrypt the keypair's seed for local persistence."""
    salt = os.urandom(VAULT_SALT_SIZE)
    nonce = os.urandom(NONCE_SIZE)
    key = derive_vault_key(salt)
    ciphertext = ChaCha20Poly1305(key).encrypt(nonce, keypair.secret_key(), None)
    return WrappedSession(ciphertext=ciphertext, nonce=nonce, salt=salt)


def unwrap(session: WrappedSession) -> Keypair:
    """
    Recover the keypair from a wrapped session.

    Raises:
        CryptoError: BAD_NONCE_LENGTH, KEY_DERIVATION_FAILED, DECRYPTION_FAILED
            or BAD_KEY_LENGTH
    """
    if len(session.nonce) != NONCE_SIZE:
        raise CryptoError(
            ErrorCode.E205_BAD_NONCE_LENGTH,
            f"Session nonce must be {NONCE_SIZE} bytes, got {len(session.nonce)}",
        )
    if len(session.salt) != VAULT_SALT_SIZE:
        raise CryptoError(
            ErrorCode.E204_KEY_DERIVATION_FAILED,
            f"Session salt must be {VAULT_SALT_SIZE} bytes, got {len(session.salt)}",
        )

    key = derive_vault_key(session.salt)
    try:
        secret = ChaCha20Poly1305(key).decrypt(session.nonce, session.ciphertext, None)
    except InvalidTag as e:
        raise CryptoError(
            ErrorCode.E202_DECRYPTION_FAILED,
            "Failed to decrypt session. It was created on another device or is corrupted.",
        ) from e

    if len(secret) != KEY_SIZE:
        raise CryptoError(
            ErrorCode.E206_BAD_KEY_LENGTH,
            f"Session key must be {KEY_SIZE} bytes, got {len(secret)}",
        )
    return Keypair.from_secret_key(secret)


class SessionFile:
    """Persists a wrapped session blob on disk."""

    def __init__(self, path: Path):
        self.path = Path(path).expanduser()

    def exists(self) -> bool:
        return self.path.exists()

    def save(self, session: WrappedSession) -> None:
        """Write the blob atomically (synchronous)."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        temp_file = self.path.with_name(self.path.name + ".tmp")
        with open(temp_file, "w", encoding="utf-8") as f:
            f.write(session.encode())
        os.replace(temp_file, self.path)
        logger.info(f"Session saved: {self.path}")

    async def save_async(self, session: WrappedSession) -> None:
        """Write the blob atomically using async I/O."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        temp_file = self.path.with_name(self.path.name + ".tmp")
        async with aiofiles.open(temp_file, "w", encoding="utf-8") as f:
            await f.write(session.encode())
        os.replace(temp_file, self.path)
        logger.info(f"Session saved (async): {self.path}")

    def load(self) -> Optional[WrappedSession]:
        """
        Read the stored session.

        Returns None if no session file exists.

        Raises:
            FormatError: If the file does not hold a valid blob
        """
        if not self.path.exists():
            logger.debug(f"Session file does not exist: {self.path}")
            return None
        with open(self.path, "r", encoding="utf-8") as f:
            return WrappedSession.decode(f.read().strip())

    def clear(self) -> None:
        """Remove the stored session if present."""
        try:
            self.path.unlink()
            logger.info(f"Session removed: {self.path}")
        except FileNotFoundError:
            pass
