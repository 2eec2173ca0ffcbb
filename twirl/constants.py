"""Application-wide constants.

Thresholds, timings and storage keys shared by the extraction engine,
the store and the transfer side live here as the single source of truth.
"""

from enum import Enum


class Role(str, Enum):
    """Speaker of a conversation turn.

    Inherits from str so persisted values compare equal to plain strings.
    """

    USER = "User"
    AI = "AI"

    def __str__(self) -> str:
        return self.value


# Extraction
MIN_TURN_LENGTH = 10  # Turns must be strictly longer than this after cleanup
MAX_EXTRACTION_ATTEMPTS = 10
DEFAULT_START_DELAY = 3.0  # seconds
DEFAULT_RETRY_DELAY = 3.0  # seconds
CONTAINER_RETRY_DELAY = 2.0  # seconds

# Store
DEFAULT_MAX_CHATS = 10
TITLE_MAX_LENGTH = 50
PLATFORM_PASTED = "pasted"
PLATFORM_UNKNOWN = "unknown"

# Storage keys
KEY_CHATS = "chats"
KEY_SELECTED = "selectedChat"
KEY_LEGACY = "chatHistory"
KEY_TRANSFER = "transferData"

# Transfer
TRANSFER_TTL_MS = 30 * 1000
DEFAULT_MAX_CHAT_LENGTH = 10000
DEFAULT_MAX_MESSAGES = 50
TRANSFER_HEADER = "Context from {source}:\n\n"
TRANSFER_FOOTER = "\n\n---\n\nPlease continue this conversation based on the context above."
TRUNCATION_MARKER = "\n\n[Truncated due to length]"

# Injection
INJECT_MAX_ATTEMPTS = 20
INJECT_RETRY_DELAY = 1.0  # seconds

# Paste detection
PASTE_MIN_LENGTH = 50
INPUT_MIN_LENGTH = 200  # input events are only inspected above this size
PASTE_SOURCE_NAME = "Pasted Conversation"
CONTENT_HASH_LENGTH = 16

# File locking
LOCK_TIMEOUT_SECONDS = 10

# Date/Time Formats
DATE_FORMAT = "%Y-%m-%d"
DATETIME_FORMAT = "%Y-%m-%d %H:%M:%S"

# CLI Output Formatting
CLI_TABLE_ID_WIDTH = 36
CLI_TABLE_SOURCE_WIDTH = 12
CLI_TABLE_TITLE_WIDTH = 40
CLI_TABLE_DATE_WIDTH = 20
