"""Platform-aware conversation extraction.

One ``ConversationExtractor`` is owned per page. It moves through

    IDLE -> ATTEMPTING -> SUCCEEDED | RETRY_PENDING | EXHAUSTED

retrying on a fixed delay while the page has not rendered any messages
yet. Once it succeeds, or gives up, a ``MutationWatcher`` takes over
and rescans the whole document whenever nodes are added.
"""

from enum import Enum
from typing import Optional

from .constants import MAX_EXTRACTION_ATTEMPTS, MIN_TURN_LENGTH
from .document import Document, Element
from .exceptions import ExtractorError
from .extractors.base import Turn
from .extractors.platforms import PlatformProfile, detect_platform, get_profile
from .extractors.selectors import safe_query_one
from .logging_config import get_logger
from .records import Clock, ConversationRecord, now_ms
from .scheduler import Scheduler, TimerHandle
from .store import ConversationStore
from .watcher import MutationWatcher

logger = get_logger("extractor")


class ExtractionState(str, Enum):
    IDLE = "idle"
    ATTEMPTING = "attempting"
    RETRY_PENDING = "retry_pending"
    SUCCEEDED = "succeeded"
    EXHAUSTED = "exhausted"

    def __str__(self) -> str:
        return self.value


class ConversationExtractor:
    """Extract role-tagged turns from a document and persist them."""

    def __init__(
        self,
        document: Document,
        store: ConversationStore,
        scheduler: Scheduler,
        profile: Optional[PlatformProfile] = None,
        url: Optional[str] = None,
        max_attempts: int = MAX_EXTRACTION_ATTEMPTS,
        clock: Clock = now_ms,
    ):
        self.document = document
        self.store = store
        self.scheduler = scheduler
        self.url = url if url is not None else document.url
        self.profile = profile or get_profile(detect_platform(self.url))
        self.max_attempts = max_attempts
        self.clock = clock

        self.state = ExtractionState.IDLE
        self.attempts = 0
        self.is_extracting = False
        self.turns: list[Turn] = []
        self.last_record: Optional[ConversationRecord] = None
        self.watcher: Optional[MutationWatcher] = None
        self._pending: Optional[TimerHandle] = None

        logger.debug("Extractor ready for platform %s", self.profile.id)

    def start(self, delay: Optional[float] = None) -> None:
        """Schedule the first attempt after the platform's start delay."""
        if self.state is not ExtractionState.IDLE or self._pending is not None:
            logger.debug("Extractor already started (%s)", self.state)
            return
        if delay is None:
            delay = self.profile.start_delay
        self._pending = self.scheduler.call_later(delay, self._attempt)

    def scan(self) -> list[Turn]:
        """Run one full extraction pass over the document.

        Raises:
            ExtractorError: If a pass is already in flight
        """
        if self.is_extracting:
            raise ExtractorError("Extraction already in progress", platform=self.profile.id)

        self.is_extracting = True
        try:
            elements = self.profile.messages.resolve(self.document)
            logger.debug("Processing %d %s message elements", len(elements), self.profile.id)

            turns: list[Turn] = []
            for ordinal, element in enumerate(elements):
                text = self._element_text(element)
                role = self.profile.classifier.classify(element, ordinal)
                # Only roles and lengths are logged, never message content
                logger.debug("Message %d: role=%s length=%d", ordinal + 1, role, len(text))
                if len(text) > MIN_TURN_LENGTH:
                    turns.append(Turn(role=role, text=text))

            self.turns = turns
            logger.debug("Extracted %d valid %s turns", len(turns), self.profile.id)
            return turns
        finally:
            self.is_extracting = False

    def _element_text(self, element: Element) -> str:
        normalizer = self.profile.normalizer
        for pattern in self.profile.text_selectors:
            found = safe_query_one(element, pattern)
            if found is not None:
                return normalizer.normalize(found.text)
        return normalizer.normalize(element.text)

    def _attempt(self) -> None:
        self._pending = None
        if self.is_extracting:
            logger.debug("Attempt skipped, extraction in flight")
            return

        self.state = ExtractionState.ATTEMPTING
        self.attempts += 1
        logger.debug("Extraction attempt %d/%d", self.attempts, self.max_attempts)

        try:
            turns = self.scan()
        except ExtractorError as e:
            logger.warning("Extraction attempt %d failed: %s", self.attempts, e)
            turns = []
        except Exception:
            logger.exception("Error during %s extraction attempt %d",
                             self.profile.id, self.attempts)
            turns = []

        if turns:
            self.state = ExtractionState.SUCCEEDED
            logger.info("Extracted %d %s turns on attempt %d",
                        len(turns), self.profile.id, self.attempts)
            self.save(turns)
            self.observe()
        elif self.attempts < self.max_attempts:
            self.state = ExtractionState.RETRY_PENDING
            logger.debug("No messages found, retrying in %.1fs", self.profile.retry_delay)
            self._pending = self.scheduler.call_later(self.profile.retry_delay, self._attempt)
        else:
            self.state = ExtractionState.EXHAUSTED
            logger.info("Max attempts reached on %s, observing for new content", self.profile.id)
            self.observe()

    def save(self, turns: list[Turn]) -> Optional[ConversationRecord]:
        """Create a fresh record from turns and merge it into the store."""
        if not turns:
            logger.debug("No turns to save")
            return None
        record = ConversationRecord.create(
            turns,
            platform=self.profile.id,
            source=self.profile.display_name,
            url=self.url,
            created_at=self.clock(),
        )
        if self.store.merge(record):
            self.last_record = record
        return record

    def rescan(self) -> Optional[ConversationRecord]:
        """Full re-extraction requested by the watcher."""
        if self.is_extracting:
            logger.debug("Rescan skipped, extraction in flight")
            return None
        try:
            turns = self.scan()
        except Exception:
            logger.exception("Error during %s rescan", self.profile.id)
            return None
        return self.save(turns)

    def observe(self) -> MutationWatcher:
        """Hand off to a MutationWatcher (created once per extractor)."""
        if self.watcher is None:
            self.watcher = MutationWatcher(
                self.document,
                self.profile.containers,
                on_change=self.rescan,
                scheduler=self.scheduler,
                is_busy=lambda: self.is_extracting,
            )
        self.watcher.start()
        return self.watcher

    def cancel(self) -> None:
        """Stop scheduling further work (page teardown)."""
        if self._pending is not None:
            self._pending.cancel()
            self._pending = None
        if self.watcher is not None:
            self.watcher.stop()
