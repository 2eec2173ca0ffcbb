"""Twirl - Capture AI chat conversations and carry them between front ends."""

__version__ = "0.1.0"

from .config import Config, get_config, reset_config
from .constants import Role
from .document import Document, Element, HtmlDocument
from .exceptions import (
    ConfigError,
    ExtractorError,
    HostUnavailableError,
    InvalidPatternError,
    MalformedInputError,
    MalformedRecordError,
    PathTraversalError,
    TwirlError,
)
from .extractor import ConversationExtractor, ExtractionState
from .extractors import PlatformProfile, SelectorStrategy, Turn, detect_platform, get_profile
from .logging_config import get_logger, setup_logging
from .paste import PasteWatcher, is_conversational, parse
from .records import ConversationRecord, TransferSlot
from .scheduler import AsyncioScheduler, Scheduler, VirtualScheduler
from .storage import JsonFileStore, KeyValueStore, MemoryKeyValueStore
from .store import ConversationStore
from .transfer import Injector, InjectionTarget, TransferFormatter, format_record
from .watcher import MutationWatcher

__all__ = [
    # Config
    "Config",
    "get_config",
    "reset_config",
    # Model
    "Role",
    "Turn",
    "ConversationRecord",
    "TransferSlot",
    # Document
    "Document",
    "Element",
    "HtmlDocument",
    # Extraction
    "ConversationExtractor",
    "ExtractionState",
    "MutationWatcher",
    "PlatformProfile",
    "SelectorStrategy",
    "detect_platform",
    "get_profile",
    # Scheduling
    "Scheduler",
    "VirtualScheduler",
    "AsyncioScheduler",
    # Storage
    "KeyValueStore",
    "MemoryKeyValueStore",
    "JsonFileStore",
    "ConversationStore",
    # Paste and transfer
    "PasteWatcher",
    "is_conversational",
    "parse",
    "TransferFormatter",
    "format_record",
    "Injector",
    "InjectionTarget",
    # Exceptions
    "TwirlError",
    "InvalidPatternError",
    "ExtractorError",
    "HostUnavailableError",
    "MalformedInputError",
    "MalformedRecordError",
    "ConfigError",
    "PathTraversalError",
    # Logging
    "setup_logging",
    "get_logger",
]
