"""Detection and parsing of conversation-shaped pasted text.

``is_conversational`` decides whether a block of text looks like a
two-party dialogue; ``parse`` splits such text into turns on speaker
labels. ``PasteWatcher`` applies both to paste and input events and
feeds confirmed conversations into the store.
"""

import hashlib
import re
from typing import Callable, Optional

from .constants import (
    CONTENT_HASH_LENGTH,
    INPUT_MIN_LENGTH,
    PASTE_MIN_LENGTH,
    PASTE_SOURCE_NAME,
    PLATFORM_PASTED,
    TRANSFER_FOOTER,
    TRUNCATION_MARKER,
    Role,
)
from .exceptions import MalformedInputError
from .extractors.base import Turn
from .logging_config import get_logger
from .records import Clock, ConversationRecord, now_ms
from .store import ConversationStore, Notifier

logger = get_logger("paste")

USER_LABELS = ("user", "you", "human")
AI_LABELS = (
    "ai", "assistant", "chatgpt", "gpt", "claude", "gemini", "bard",
    "perplexity", "bot", "model",
)

_USER = "|".join(USER_LABELS)
_AI = "|".join(AI_LABELS)

LABEL_LINE = re.compile(rf"^\s*({_USER}|{_AI})\s*:\s*(.*)$", re.IGNORECASE)

# (earlier labels, later labels): a line labelled with one of the first
# followed on a later line by one of the second
ROLE_PAIRS = (
    (("user",), ("ai", "assistant")),
    (("ai", "assistant"), ("user",)),
    (("human",), ("assistant", "ai")),
    (("assistant", "ai"), ("human",)),
    (("you",), ("chatgpt", "gpt", "claude", "gemini", "bard", "perplexity", "ai", "assistant")),
    (("chatgpt", "gpt", "claude", "gemini", "bard", "perplexity"), ("you", "user")),
)

ENVELOPE_PATTERNS = (
    re.compile(r"^Context from [^\n]+:\s*$", re.MULTILINE),
    re.compile(re.escape(TRANSFER_FOOTER.strip().splitlines()[-1])),
)

AI_PHRASES = (
    re.compile(r"\bas an ai\b", re.IGNORECASE),
    re.compile(r"\b(?:large )?language model\b", re.IGNORECASE),
    re.compile(r"\bi(?:'m| am) an ai\b", re.IGNORECASE),
    re.compile(r"\bi(?:'d| would) be (?:happy|glad) to\b", re.IGNORECASE),
    re.compile(r"\bi can help\b", re.IGNORECASE),
    re.compile(r"\bhope this helps\b", re.IGNORECASE),
    re.compile(r"\bhere(?:'s| is) (?:a|an|the|how)\b", re.IGNORECASE),
)

_ENVELOPE_LINES = (
    re.compile(r"^Context from [^\n]+:$"),
    re.compile(r"^-{3,}$"),
    re.compile(r"^" + re.escape(TRANSFER_FOOTER.strip().splitlines()[-1]) + r"$"),
    re.compile(r"^" + re.escape(TRUNCATION_MARKER.strip()) + r"$"),
)


def label_role(label: str) -> Role:
    """Map a speaker label to a role; anything not user-like is AI."""
    return Role.USER if label.strip().lower() in USER_LABELS else Role.AI


def line_labels(text: str) -> list[str]:
    """Lower-cased speaker label of every labelled line, in order."""
    labels = []
    for line in text.splitlines():
        match = LABEL_LINE.match(line)
        if match:
            labels.append(match.group(1).lower())
    return labels


def has_role_pair(labels: list[str]) -> bool:
    """Whether some label is followed later by its counterpart label."""
    for first, second in ROLE_PAIRS:
        seen_first = False
        for label in labels:
            if seen_first and label in second:
                return True
            if label in first:
                seen_first = True
    return False


def is_conversational(text: str) -> bool:
    """Decide whether text looks like a pasted two-party conversation."""
    if not text or len(text) < PASTE_MIN_LENGTH:
        return False
    labels = line_labels(text)
    if not has_role_pair(labels) and not any(p.search(text) for p in ENVELOPE_PATTERNS):
        return False
    if len(labels) >= 2:
        return True
    return any(p.search(text) for p in AI_PHRASES)


def _is_envelope(line: str) -> bool:
    return any(p.match(line) for p in _ENVELOPE_LINES)


def parse(text: str) -> list[Turn]:
    """Split labelled text into turns.

    A labelled line opens a new turn; unlabelled lines are appended to
    the open turn with a single space. Blank lines, the transfer header
    and footer lines, text before the first label and labels with no
    text are dropped.
    """
    turns: list[Turn] = []
    role: Optional[Role] = None
    parts: list[str] = []

    def flush() -> None:
        joined = " ".join(parts).strip()
        if role is not None and joined:
            turns.append(Turn(role=role, text=joined))

    for raw in text.splitlines():
        line = raw.strip()
        if not line or _is_envelope(line):
            continue
        match = LABEL_LINE.match(line)
        if match:
            flush()
            role = label_role(match.group(1))
            parts = [match.group(2).strip()] if match.group(2).strip() else []
        elif role is not None:
            parts.append(line)

    flush()
    return turns


def content_hash(text: str) -> str:
    """Short SHA-256 digest used to recognise text already processed."""
    return hashlib.sha256(text.encode("utf-8")).hexdigest()[:CONTENT_HASH_LENGTH]


ConfirmCallback = Callable[[str, list[Turn]], bool]


class PasteWatcher:
    """Turn confirmed conversational pastes into stored records.

    Hashes of processed text are remembered for the watcher's lifetime
    so the same content never prompts twice.
    """

    def __init__(
        self,
        store: ConversationStore,
        confirm: ConfirmCallback,
        url: str = "",
        notifier: Optional[Notifier] = None,
        clock: Clock = now_ms,
    ):
        self.store = store
        self.confirm = confirm
        self.url = url
        self.notifier = notifier
        self.clock = clock
        self.processed: set[str] = set()

    def on_paste(self, text: str) -> Optional[ConversationRecord]:
        """Handle a direct paste event on any element."""
        return self._process(text)

    def on_input(self, text: str) -> Optional[ConversationRecord]:
        """Handle an input-change event on an editable surface."""
        if not text or len(text) <= INPUT_MIN_LENGTH:
            return None
        return self._process(text)

    def _notice(self, message: str) -> None:
        if self.notifier is not None:
            self.notifier(message)
        else:
            logger.warning(message)

    def _process(self, text: str) -> Optional[ConversationRecord]:
        if not text:
            return None
        digest = content_hash(text)
        if digest in self.processed:
            logger.debug("Ignoring already processed text %s", digest)
            return None
        if not is_conversational(text):
            return None

        turns = parse(text)
        logger.debug("Conversational text %s parsed into %d turns", digest, len(turns))
        if not self.confirm(text, turns):
            logger.debug("User declined processing of %s", digest)
            return None
        self.processed.add(digest)

        try:
            record = ConversationRecord.create(
                turns,
                platform=PLATFORM_PASTED,
                source=PASTE_SOURCE_NAME,
                url=self.url,
                created_at=self.clock(),
            )
        except MalformedInputError as e:
            logger.error("Pasted text produced no turns: %s", e)
            self._notice("Could not find any messages in the pasted conversation.")
            return None

        if not self.store.merge(record):
            return None
        logger.info("Stored pasted conversation %s (%d turns)", record.id, record.turn_count)
        return record
