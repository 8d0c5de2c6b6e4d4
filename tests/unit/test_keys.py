"""
Unit tests for pubky_messenger.keys module.

Tests keypair handling and the z-base-32 public key form.
"""

import pytest

from pubky_messenger.constants import PUBLIC_KEY_STRING_LENGTH, ZBASE32_ALPHABET
from pubky_messenger.errors import ErrorCode, KeyConversionError
from pubky_messenger.keys import Keypair, PublicKey, zbase32_decode, zbase32_encode


class TestZBase32:
    """Test z-base-32 encoding."""

    def test_known_vector(self):
        """Test a vector from the z-base-32 reference."""
        assert zbase32_encode(b"\x00") == "yy"
        assert zbase32_encode(bytes([0xF0, 0xBF, 0xC7])) == "6n9hq"

    def test_decode_inverts_encode(self):
        data = bytes(range(32))
        assert zbase32_decode(zbase32_encode(data)) == data

    def test_rejects_foreign_characters(self):
        with pytest.raises(ValueError):
            zbase32_decode("0lv2")


class TestPublicKey:
    """Test public key parsing and formatting."""

    def test_string_form(self, alice):
        text = str(alice.public_key())
        assert len(text) == PUBLIC_KEY_STRING_LENGTH
        assert all(c in ZBASE32_ALPHABET for c in text)

    def test_from_string(self, alice):
        key = alice.public_key()
        assert PublicKey.from_string(str(key)) == key
        assert PublicKey.from_string(f"  {key}\n") == key

    def test_wrong_string_length(self, alice):
        with pytest.raises(KeyConversionError) as exc_info:
            PublicKey.from_string(str(alice.public_key())[:-1])
        assert exc_info.value.code == ErrorCode.E103_INVALID_PUBLIC_KEY

    def test_invalid_characters(self):
        with pytest.raises(KeyConversionError) as exc_info:
            PublicKey.from_string("0" * PUBLIC_KEY_STRING_LENGTH)
        assert exc_info.value.code == ErrorCode.E103_INVALID_PUBLIC_KEY

    def test_wrong_byte_length(self):
        with pytest.raises(KeyConversionError) as exc_info:
            PublicKey(b"\x01" * 31)
        assert exc_info.value.code == ErrorCode.E101_INVALID_KEY_LENGTH

    def test_coerce(self, alice):
        key = alice.public_key()
        assert PublicKey.coerce(key) is key
        assert PublicKey.coerce(str(key)) == key
        assert PublicKey.coerce(key.as_bytes()) == key

    def test_hashable(self, alice, bob):
        keys = {alice.public_key(), PublicKey(alice.public_key().as_bytes()), bob.public_key()}
        assert len(keys) == 2


class TestKeypair:
    """Test keypair generation, signing and restoration."""

    def test_secret_key_round_trip(self, alice):
        restored = Keypair.from_secret_key(alice.secret_key())
        assert restored.public_key() == alice.public_key()

    def test_secret_key_length(self):
        with pytest.raises(KeyConversionError) as exc_info:
            Keypair.from_secret_key(b"\x00" * 16)
        assert exc_info.value.code == ErrorCode.E101_INVALID_KEY_LENGTH

    def test_sign_and_verify(self, alice, bob):
        signature = alice.sign(b"payload")
        assert len(signature) == 64
        assert alice.public_key().verify(b"payload", signature) is True
        assert alice.public_key().verify(b"other payload", signature) is False
        assert bob.public_key().verify(b"payload", signature) is False

    def test_verify_rejects_malformed_signature(self, alice):
        assert alice.public_key().verify(b"payload", b"\x00" * 10) is False

    def test_random_keypairs_differ(self):
        assert Keypair.random().public_key() != Keypair.random().public_key()
