"""Re-extraction driven by document structural changes."""

from typing import Any, Callable, Optional

from .constants import CONTAINER_RETRY_DELAY
from .document import Document, Element, MutationBatch, Subscription
from .extractors.selectors import SelectorStrategy
from .logging_config import get_logger
from .scheduler import Scheduler, TimerHandle

logger = get_logger("watcher")


class MutationWatcher:
    """Watch the conversation container and trigger full rescans.

    The container is located with the same tiered fallback used for
    messages. Until one is found, discovery is retried on a fixed delay
    for as long as the watcher is running.
    """

    def __init__(
        self,
        document: Document,
        containers: SelectorStrategy,
        on_change: Callable[[], Any],
        scheduler: Scheduler,
        is_busy: Callable[[], bool] = lambda: False,
        retry_delay: float = CONTAINER_RETRY_DELAY,
    ):
        self.document = document
        self.containers = containers
        self.on_change = on_change
        self.scheduler = scheduler
        self.is_busy = is_busy
        self.retry_delay = retry_delay

        self.container: Optional[Element] = None
        self.subscription: Optional[Subscription] = None
        self.discovery_attempts = 0
        self.triggered = 0
        self.stopped = False
        self._pending: Optional[TimerHandle] = None

    @property
    def active(self) -> bool:
        return self.subscription is not None and self.subscription.active

    def start(self) -> None:
        """Find the container and subscribe, or schedule another try."""
        self._pending = None
        if self.stopped or self.active:
            return

        self.discovery_attempts += 1
        container = self.containers.resolve_first(self.document)
        if container is None:
            logger.debug("No conversation container yet (attempt %d), retrying in %.1fs",
                         self.discovery_attempts, self.retry_delay)
            self._pending = self.scheduler.call_later(self.retry_delay, self.start)
            return

        self.container = container
        self.subscription = self.document.observe(container, self._on_mutations)
        logger.info("Observing conversation container %r", container)

    def _on_mutations(self, batch: MutationBatch) -> None:
        if not batch.added:
            return
        if self.is_busy():
            logger.debug("Extraction in flight, ignoring %d added nodes", len(batch.added))
            return
        self.triggered += 1
        logger.debug("%d nodes added, rescanning", len(batch.added))
        self.on_change()

    def stop(self) -> None:
        self.stopped = True
        if self._pending is not None:
            self._pending.cancel()
            self._pending = None
        if self.subscription is not None:
            self.subscription.cancel()
            self.subscription = None
