"""
Pubky Messenger - Private messaging core for public-key-addressed storage

End-to-end encrypted one-to-one conversations stored on a Pubky homeserver,
with notification draining, a local session vault and follow-graph
profile resolution.

Version: 0.2.0
License: MIT
"""

__version__ = "0.2.0"
__license__ = "MIT"

# Import core modules for easy access
from .config import Config
from .constants import APP_NAME, VERSION
from .errors import (
    ConfigError,
    CryptoError,
    ErrorCode,
    FormatError,
    KeyConversionError,
    MessengerError,
    StateError,
    StoreError,
)
from .keys import Keypair, PublicKey
from .service import ChatMessage, Messenger, UserProfile
from .state import SessionState
from .store import HttpObjectStore, ObjectStore

__all__ = [
    "APP_NAME",
    "VERSION",
    "ChatMessage",
    "Config",
    "ConfigError",
    "CryptoError",
    "ErrorCode",
    "FormatError",
    "HttpObjectStore",
    "KeyConversionError",
    "Keypair",
    "Messenger",
    "MessengerError",
    "ObjectStore",
    "PublicKey",
    "SessionState",
    "StateError",
    "StoreError",
    "UserProfile",
    "__license__",
    "__version__",
]
