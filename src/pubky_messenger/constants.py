"""
Pubky Messenger - Global Constants and Configuration Values

This module defines all constants used throughout the messenger core.
Storage paths, key sizes and KDF parameters are centralized here.
"""

# Version Information
VERSION = "0.2.0"
APP_NAME = "Pubky Private Messenger"

# Store addressing
URI_SCHEME = "pubky://"
PUBLIC_ROOT = "/pub"
CONVERSATION_ROOT = "/private_messages/"
NOTIFICATIONS_PATH = PUBLIC_ROOT + "/notifications/"
PROFILE_PATH = PUBLIC_ROOT + "/pubky.app/profile.json"
FOLLOWS_PATH = PUBLIC_ROOT + "/pubky.app/follows/"
OBJECT_SUFFIX = ".json"

# Store client defaults
DEFAULT_HOMESERVER = "http://localhost:6286"
STORE_REQUEST_TIMEOUT = 30  # seconds
SIGN_IN_PATH = "/session"
AUTH_TOKEN_NAMESPACE = b"PUBKY:AUTH"

# Cryptography Constants
KEY_SIZE = 32  # Ed25519 seed / X25519 scalar / symmetric key
PUBLIC_KEY_SIZE = 32
SIGNATURE_SIZE = 64
NONCE_SIZE = 12  # 96 bits for ChaCha20-Poly1305
VAULT_SALT_SIZE = 32
PUBLIC_KEY_STRING_LENGTH = 52  # z-base-32 of 32 bytes
ZBASE32_ALPHABET = "ybndrfg8ejkmcpqxot1uwisza345h769"

# Local Session Vault (Argon2id over device entropy)
VAULT_APP_IDENTIFIER = "pubky-private-messenger"
ARGON2_TIME_COST = 3
ARGON2_MEMORY_COST = 65536  # 64 MB
ARGON2_PARALLELISM = 1

# File Paths
DEFAULT_DATA_DIR = "~/.pubky-messenger"
CONFIG_FILENAME = "config.toml"
SESSION_FILENAME = "session.blob"
LOGS_DIR = "logs"
LOG_FILENAME = "messenger.log"

# Logging Configuration
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
LOG_MAX_BYTES = 10 * 1024 * 1024  # 10 MB
LOG_BACKUP_COUNT = 5
LOG_KEY_PREFIX = 8  # public keys are abbreviated in log lines

# Feature Flags
FEATURE_NOTIFICATIONS = True
