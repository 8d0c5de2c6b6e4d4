"""
Pubky Messenger - Cryptographic operations.

This module implements the primitives the private messaging protocol is
built from:
- Edwards to Montgomery conversion of identity keys (Ed25519 -> X25519)
- X25519 shared-secret derivation between two identity keys
- ChaCha20-Poly1305 sealing with the 96-bit nonce carried in front of the
  ciphertext
- SHA-256 message digests for signing
- Deterministic conversation addresses derived from the shared secret

All cryptographic operations use well-tested, open-source libraries:
- cryptography library (Apache 2.0/BSD License)
- PyNaCl (Apache 2.0 License) for the Edwards point decompression
"""

import hashlib
import os
from typing import Union

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import x25519
from cryptography.hazmat.primitives.ciphers.aead import ChaCha20Poly1305
from nacl.bindings import crypto_sign_ed25519_pk_to_curve25519
from nacl.exceptions import CryptoError as NaClCryptoError

from .constants import CONVERSATION_ROOT, KEY_SIZE, NONCE_SIZE, PUBLIC_KEY_SIZE
from .errors import CryptoError, ErrorCode, KeyConversionError
from .keys import Keypair, PublicKey

# ChaCha20-Poly1305 authentication tag length
TAG_SIZE = 16


def public_to_dh(ed_pub: bytes) -> bytes:
    """
    Convert an Ed25519 public key to its X25519 (Montgomery u) form.

    Raises:
        KeyConversionError: If the encoding is not a valid curve point
    """
    if len(ed_pub) != PUBLIC_KEY_SIZE:
        raise KeyConversionError(
            ErrorCode.E101_INVALID_KEY_LENGTH,
            f"Public key must be {PUBLIC_KEY_SIZE} bytes, got {len(ed_pub)}",
        )
    try:
        return crypto_sign_ed25519_pk_to_curve25519(bytes(ed_pub))
    except NaClCryptoError as e:
        raise KeyConversionError(
            ErrorCode.E102_INVALID_POINT, "Failed to convert public key to X25519"
        ) from e


def secret_to_dh(ed_secret: bytes) -> bytes:
    """
    Convert an Ed25519 seed to an X25519 scalar.

    SHA-512 of the seed, first 32 bytes, clamped as in RFC 7748. This is
    the same scalar Ed25519 signs with, so the result pairs with
    public_to_dh() of the matching public key.
    """
    scalar = bytearray(hashlib.sha512(ed_secret).digest()[:KEY_SIZE])
    scalar[0] &= 248
    scalar[31] &= 127
    scalar[31] |= 64
    return bytes(scalar)


def derive_shared_secret(local_keypair: Keypair,
                         remote_public_key: Union[PublicKey, bytes]) -> bytes:
    """
    Derive the 32-byte symmetric key shared by two identities.

    Both participants get the same value regardless of which side calls:
    derive(A, B.public) == derive(B, A.public).

    Raises:
        KeyConversionError: On a wrong-length or invalid remote key
    """
    remote_bytes = (
        remote_public_key.as_bytes()
        if isinstance(remote_public_key, PublicKey)
        else bytes(remote_public_key)
    )
    if len(remote_bytes) != PUBLIC_KEY_SIZE:
        raise KeyConversionError(
            ErrorCode.E101_INVALID_KEY_LENGTH,
            "Invalid public key length",
            {"length": len(remote_bytes)},
        )

    local_secret = x25519.X25519PrivateKey.from_private_bytes(
        secret_to_dh(local_keypair.secret_key())
    )
    remote_dh = x25519.X25519PublicKey.from_public_bytes(public_to_dh(remote_bytes))

    try:
        return local_secret.exchange(remote_dh)
    except ValueError as e:
        # cryptography rejects an all-zero shared output
        raise KeyConversionError(
            ErrorCode.E102_INVALID_POINT, f"Key agreement failed: {e}"
        ) from e


def seal(plaintext: bytes, key: bytes) -> bytes:
    """
    Encrypt with ChaCha20-Poly1305 under a fresh random 96-bit nonce.

    Returns nonce || ciphertext || tag, so the nonce travels with the
    ciphertext and two seals under one key never share a nonce.
    """
    if len(key) != KEY_SIZE:
        raise CryptoError(
            ErrorCode.E206_BAD_KEY_LENGTH, f"Key must be {KEY_SIZE} bytes, got {len(key)}"
        )
    nonce = os.urandom(NONCE_SIZE)
    return nonce + ChaCha20Poly1305(key).encrypt(nonce, plaintext, None)


def unseal(blob: bytes, key: bytes) -> bytes:
    """
    Decrypt a blob produced by seal().

    Raises:
        CryptoError: If the blob is truncated or fails authentication
    """
    if len(key) != KEY_SIZE:
        raise CryptoError(
            ErrorCode.E206_BAD_KEY_LENGTH, f"Key must be {KEY_SIZE} bytes, got {len(key)}"
        )
    if len(blob) < NONCE_SIZE + TAG_SIZE:
        raise CryptoError(ErrorCode.E202_DECRYPTION_FAILED, "Ciphertext too short")

    nonce, ciphertext = blob[:NONCE_SIZE], blob[NONCE_SIZE:]
    try:
        return ChaCha20Poly1305(key).decrypt(nonce, ciphertext, None)
    except InvalidTag as e:
        raise CryptoError(ErrorCode.E202_DECRYPTION_FAILED, "Decryption failed") from e


def message_digest(content: bytes, sender_public_key: bytes, timestamp: int) -> bytes:
    """
    Compute the digest a message signature covers.

    SHA-256 over content || sender public key || timestamp (8 bytes,
    big-endian). Signatures cover plaintext, never ciphertext.
    """
    digest = hashes.Hash(hashes.SHA256())
    digest.update(content)
    digest.update(sender_public_key)
    digest.update(timestamp.to_bytes(8, "big"))
    return digest.finalize()


def conversation_address(shared_secret: bytes) -> str:
    """
    Map a shared secret to the conversation's storage path.

    Returns "/private_messages/<hex sha256(secret)>/". Both participants
    compute the same path; third parties without the secret cannot link
    it to the pair.
    """
    digest = hashes.Hash(hashes.SHA256())
    digest.update(shared_secret)
    return f"{CONVERSATION_ROOT}{digest.finalize().hex()}/"
