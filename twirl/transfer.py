"""Formatting conversations for transfer and injecting them elsewhere."""

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Callable, Optional

from .constants import (
    DEFAULT_MAX_CHAT_LENGTH,
    DEFAULT_MAX_MESSAGES,
    INJECT_MAX_ATTEMPTS,
    INJECT_RETRY_DELAY,
    TRANSFER_FOOTER,
    TRANSFER_HEADER,
    TRUNCATION_MARKER,
)
from .logging_config import get_logger
from .records import ConversationRecord
from .scheduler import Scheduler, TimerHandle
from .store import ConversationStore, Notifier

if TYPE_CHECKING:
    from .config import Config

logger = get_logger("transfer")


def sanitize(text: str) -> str:
    """Remove angle brackets so the receiving surface sees no markup."""
    return text.replace("<", "").replace(">", "")


def format_record(
    record: ConversationRecord,
    max_length: int = DEFAULT_MAX_CHAT_LENGTH,
    max_turns: int = DEFAULT_MAX_MESSAGES,
) -> str:
    """Render a record as one text blob bounded by max_length.

    Args:
        record: Conversation to render
        max_length: Hard cap on the result length, marker included
        max_turns: Only the first max_turns turns are rendered

    Returns:
        Header, turns separated by blank lines, footer; cut and marked
        with the truncation marker when longer than max_length
    """
    if max_length <= len(TRUNCATION_MARKER):
        raise ValueError(f"max_length must exceed {len(TRUNCATION_MARKER)} characters")

    source = sanitize(record.source or "Unknown")
    lines = [
        f"{turn.role.value}: {sanitize(turn.text)}"
        for turn in record.turns
        if turn.text.strip()
    ][:max_turns]

    text = TRANSFER_HEADER.format(source=source) + "\n\n".join(lines) + TRANSFER_FOOTER
    if len(text) <= max_length:
        return text

    logger.debug("Formatted record %s is %d chars, truncating to %d",
                 record.id, len(text), max_length)
    return text[:max_length - len(TRUNCATION_MARKER)] + TRUNCATION_MARKER


class TransferFormatter:
    """Format records using configured length and turn limits."""

    def __init__(
        self,
        max_length: int = DEFAULT_MAX_CHAT_LENGTH,
        max_turns: int = DEFAULT_MAX_MESSAGES,
    ):
        self.max_length = max_length
        self.max_turns = max_turns

    @classmethod
    def from_config(cls, config: "Config") -> "TransferFormatter":
        return cls(max_length=config.max_chat_length, max_turns=config.max_messages)

    def format(self, record: ConversationRecord) -> str:
        return format_record(record, self.max_length, self.max_turns)


def strip_envelope(text: str) -> str:
    """Remove the transfer header and footer if present."""
    if text.startswith("Context from "):
        _, sep, rest = text.partition(":\n\n")
        if sep:
            text = rest
    if text.endswith(TRANSFER_FOOTER):
        text = text[:-len(TRANSFER_FOOTER)]
    return text


class InjectionTarget(ABC):
    """Editable surface on the receiving front end."""

    @abstractmethod
    def get_text(self) -> str:
        pass

    @abstractmethod
    def set_text(self, text: str) -> None:
        pass

    @abstractmethod
    def focus(self) -> None:
        pass

    @abstractmethod
    def move_caret_to_end(self) -> None:
        pass

    @abstractmethod
    def dispatch(self, event: str) -> None:
        """Emit a notification such as ``"input"`` or ``"change"``."""


TargetFinder = Callable[[], Optional[InjectionTarget]]


class Injector:
    """Inject the pending conversation into the receiving surface once.

    The text comes from a valid transfer slot addressed to this platform,
    falling back to the selected record. The surface may not exist yet,
    so it is polled a bounded number of times.
    """

    def __init__(
        self,
        platform: str,
        store: ConversationStore,
        find_target: TargetFinder,
        scheduler: Scheduler,
        formatter: Optional[TransferFormatter] = None,
        max_attempts: int = INJECT_MAX_ATTEMPTS,
        retry_delay: float = INJECT_RETRY_DELAY,
        notifier: Optional[Notifier] = None,
    ):
        self.platform = platform
        self.store = store
        self.find_target = find_target
        self.scheduler = scheduler
        self.formatter = formatter or TransferFormatter()
        self.max_attempts = max_attempts
        self.retry_delay = retry_delay
        self.notifier = notifier

        self.injected = False
        self.attempts = 0
        self.text: Optional[str] = None
        self._pending: Optional[TimerHandle] = None

    def resolve_text(self) -> Optional[str]:
        """Text to inject: transfer slot first, then the selected record."""
        slot = self.store.take_transfer()
        if slot is not None:
            if slot.target_platform == self.platform:
                logger.info("Using transfer from %s", slot.source)
                return slot.text
            logger.debug("Transfer addressed to %s, not %s", slot.target_platform, self.platform)

        record = self.store.get_selected()
        if record is None:
            return None
        logger.info("Using stored record %s (%d turns)", record.id, record.turn_count)
        return self.formatter.format(record)

    def start(self) -> bool:
        """Resolve the text and begin polling for the target.

        Returns:
            False if there is nothing to inject
        """
        if self.injected or self._pending is not None:
            return True
        self.text = self.resolve_text()
        if not self.text:
            logger.info("No conversation available to inject")
            return False
        self._try_inject()
        return True

    def _try_inject(self) -> None:
        self._pending = None
        if self.injected:
            return
        if self.attempts >= self.max_attempts:
            logger.info("Input field not found after %d attempts", self.attempts)
            return
        self.attempts += 1

        target = self.find_target()
        if target is None:
            logger.debug("Input field not found (attempt %d/%d), retrying",
                         self.attempts, self.max_attempts)
            self._pending = self.scheduler.call_later(self.retry_delay, self._try_inject)
            return
        self.inject(target)

    def inject(self, target: InjectionTarget) -> bool:
        """Write the text into target and emit change notifications."""
        if self.injected:
            logger.debug("Already injected, skipping")
            return False
        if not self.text:
            return False

        text = self.text
        max_length = self.formatter.max_length
        if len(text) > max_length:
            text = text[:max_length - len(TRUNCATION_MARKER)] + TRUNCATION_MARKER

        target.set_text(text)
        target.dispatch("input")
        target.dispatch("change")
        target.focus()
        target.move_caret_to_end()

        self.injected = True
        logger.info("Injected %d characters into %s", len(text), self.platform)
        if self.notifier is not None:
            self.notifier(f"Injected conversation into {self.platform}")
        return True

    def cancel(self) -> None:
        if self._pending is not None:
            self._pending.cancel()
            self._pending = None
