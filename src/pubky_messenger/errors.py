"""
Pubky Messenger - Custom Exception Classes and Error Codes

This module defines all custom exceptions and error codes used throughout
the messenger core. Each error has a unique code for logging and so the
front end can tell failure classes apart (e.g. a wrong recovery passphrase
versus an unreachable homeserver).
"""

from enum import Enum
from typing import Any, Dict, Optional


class ErrorCode(Enum):
    """Enumeration of all messenger error codes."""

    # General Errors (E001-E099)
    E001_UNKNOWN_ERROR = "E001"
    E002_INVALID_ARGUMENT = "E002"
    E005_OPERATION_FAILED = "E005"

    # Key Conversion Errors (E100-E199)
    E100_KEY_CONVERSION_ERROR = "E100"
    E101_INVALID_KEY_LENGTH = "E101"
    E102_INVALID_POINT = "E102"
    E103_INVALID_PUBLIC_KEY = "E103"

    # Crypto Errors (E200-E299)
    E200_CRYPTO_ERROR = "E200"
    E201_ENCRYPTION_FAILED = "E201"
    E202_DECRYPTION_FAILED = "E202"
    E203_SIGNATURE_FAILED = "E203"
    E204_KEY_DERIVATION_FAILED = "E204"
    E205_BAD_NONCE_LENGTH = "E205"
    E206_BAD_KEY_LENGTH = "E206"
    E207_RECOVERY_DECRYPT_FAILED = "E207"

    # Store Errors (E300-E399)
    E300_STORE_ERROR = "E300"
    E301_CONNECTION_FAILED = "E301"
    E302_REQUEST_TIMEOUT = "E302"
    E303_WRITE_FAILED = "E303"
    E304_READ_FAILED = "E304"
    E305_LIST_FAILED = "E305"
    E306_DELETE_FAILED = "E306"
    E307_SIGN_IN_FAILED = "E307"

    # Format Errors (E400-E499)
    E400_FORMAT_ERROR = "E400"
    E401_INVALID_JSON = "E401"
    E402_INVALID_ENVELOPE = "E402"
    E403_INVALID_UTF8 = "E403"
    E404_INVALID_PROFILE = "E404"
    E405_INVALID_SESSION_BLOB = "E405"
    E406_INVALID_URI = "E406"

    # State Errors (E500-E599)
    E500_STATE_ERROR = "E500"
    E501_NOT_SIGNED_IN = "E501"

    # Config Errors (E700-E799)
    E700_CONFIG_ERROR = "E700"
    E701_CONFIG_LOAD_FAILED = "E701"
    E702_CONFIG_SAVE_FAILED = "E702"
    E703_INVALID_CONFIG = "E703"
    E704_CONFIG_PARSE_ERROR = "E704"


class MessengerError(Exception):
    """Base exception class for all messenger errors.

    All custom exceptions in the package inherit from this class.
    Provides standardized error handling and logging.

    Attributes:
        code: Error code from ErrorCode enum
        message: Human-readable error message
        details: Additional error details (optional)
    """

    def __init__(self, code: ErrorCode, message: str, details: Optional[Dict[str, Any]] = None):
        """Initialize a messenger error.

        Args:
            code: Error code from ErrorCode enum
            message: Human-readable error message
            details: Additional error context (optional)
        """
        self.code = code
        self.message = message
        self.details = details or {}
        super().__init__(f"[{code.value}] {message}")

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to dictionary for serialization.

        Returns:
            Dictionary containing error information
        """
        return {"code": self.code.value, "message": self.message, "details": self.details}


class KeyConversionError(MessengerError):
    """Exception raised for malformed keys.

    This includes public keys of the wrong length, encodings that are not
    valid curve points, and unparseable public key strings.
    """

    def __init__(
        self,
        code: ErrorCode = ErrorCode.E100_KEY_CONVERSION_ERROR,
        message: str = "Key conversion failed",
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(code, message, details)


class CryptoError(MessengerError):
    """Exception raised for cryptographic operation failures.

    This includes AEAD encryption/decryption, key derivation and
    recovery-file decryption. A bad message signature is NOT an error;
    it is reported as an unverified message.
    """

    def __init__(
        self,
        code: ErrorCode = ErrorCode.E200_CRYPTO_ERROR,
        message: str = "Cryptographic operation failed",
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(code, message, details)


class StoreError(MessengerError):
    """Exception raised for object store failures.

    This includes non-success responses, connectivity problems, timeouts
    and a failed sign-in handshake.
    """

    def __init__(
        self,
        code: ErrorCode = ErrorCode.E300_STORE_ERROR,
        message: str = "Store operation failed",
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(code, message, details)


class FormatError(MessengerError):
    """Exception raised when stored or transported data cannot be decoded."""

    def __init__(
        self,
        code: ErrorCode = ErrorCode.E400_FORMAT_ERROR,
        message: str = "Invalid data format",
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(code, message, details)


class StateError(MessengerError):
    """Exception raised when an operation needs a signed-in session."""

    def __init__(
        self,
        code: ErrorCode = ErrorCode.E501_NOT_SIGNED_IN,
        message: str = "Not signed in",
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(code, message, details)


class ConfigError(MessengerError):
    """Exception raised for configuration failures.

    This includes loading, parsing, and validating configuration files.
    """

    def __init__(
        self,
        code: ErrorCode = ErrorCode.E700_CONFIG_ERROR,
        message: str = "Configuration operation failed",
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(code, message, details)
