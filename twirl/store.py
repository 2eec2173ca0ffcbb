"""Bounded multi-conversation store.

Layout inside the key-value backend:

- ``chats``: mapping of record id to serialized record, at most
  ``max_chats`` entries, the most recently created ones
- ``selectedChat``: id of the record chosen for transfer
- ``chatHistory``: last merged record, kept for older readers
- ``transferData``: single-read transfer slot
"""

from typing import Any, Callable, Optional

from .constants import (
    DEFAULT_MAX_CHATS,
    KEY_CHATS,
    KEY_LEGACY,
    KEY_SELECTED,
    KEY_TRANSFER,
)
from .exceptions import HostUnavailableError, MalformedInputError, MalformedRecordError
from .logging_config import get_logger
from .records import Clock, ConversationRecord, TransferSlot, now_ms
from .storage import KeyValueStore

logger = get_logger("store")

Notifier = Callable[[str], None]


def _created_at(data: Any) -> int:
    if isinstance(data, dict) and isinstance(data.get("createdAt"), (int, float)):
        return int(data["createdAt"])
    return 0


class ConversationStore:
    """Persist conversation records with recency-bounded eviction."""

    def __init__(
        self,
        backend: KeyValueStore,
        max_chats: int = DEFAULT_MAX_CHATS,
        notifier: Optional[Notifier] = None,
        clock: Clock = now_ms,
    ):
        if max_chats < 1:
            raise ValueError("max_chats must be at least 1")
        self.backend = backend
        self.max_chats = max_chats
        self.notifier = notifier
        self.clock = clock

    def _notice(self, message: str) -> None:
        if self.notifier is not None:
            self.notifier(message)
        else:
            logger.warning(message)

    def _host_ready(self) -> bool:
        if self.backend.is_available():
            return True
        logger.error("Storage backend unavailable, skipping operation")
        self._notice("Storage is unavailable. Please reload and try again.")
        return False

    def _evict(self, chats: dict[str, Any]) -> dict[str, Any]:
        """Keep the ``max_chats`` newest entries, newest first."""
        ordered = sorted(chats.items(), key=lambda item: _created_at(item[1]), reverse=True)
        return dict(ordered[:self.max_chats])

    def merge(self, record: ConversationRecord) -> bool:
        """Insert or overwrite a record and apply eviction.

        Returns:
            True if the record was written and survived eviction
        """
        try:
            record.validate()
        except MalformedRecordError as e:
            logger.error("Refusing to store malformed record %s: %s", e.record_id or "?", e)
            self._notice(f"Could not save conversation: {e}")
            return False

        if not self._host_ready():
            return False

        try:
            with self.backend.locked():
                state = self.backend.get(KEY_CHATS, KEY_SELECTED)
                chats = state.get(KEY_CHATS)
                if not isinstance(chats, dict):
                    chats = {}
                chats[record.id] = record.to_dict()
                retained = self._evict(chats)

                evicted = len(chats) - len(retained)
                if evicted:
                    logger.debug("Evicted %d records (max %d)", evicted, self.max_chats)

                most_recent = next(iter(retained), None)
                selected = state.get(KEY_SELECTED)
                if not selected:
                    selected = record.id if record.id in retained else most_recent
                elif selected not in retained:
                    logger.info("Selected record %s was evicted, selecting %s", selected, most_recent)
                    selected = most_recent

                self.backend.set({
                    KEY_CHATS: retained,
                    KEY_SELECTED: selected,
                    KEY_LEGACY: record.to_dict(),
                })
        except HostUnavailableError as e:
            logger.error("Failed to save record %s: %s", record.id, e)
            self._notice("Could not save conversation. Please reload and try again.")
            return False

        logger.info("Stored record %s (%d turns, %d records retained)",
                    record.id, record.turn_count, len(retained))
        return record.id in retained

    def _load_chats(self) -> dict[str, Any]:
        chats = self.backend.get(KEY_CHATS).get(KEY_CHATS)
        return chats if isinstance(chats, dict) else {}

    @staticmethod
    def _decode(data: Any) -> Optional[ConversationRecord]:
        try:
            return ConversationRecord.from_dict(data)
        except MalformedRecordError as e:
            logger.warning("Skipping malformed stored record %s: %s", e.record_id or "?", e)
            return None

    def get(self, record_id: str) -> Optional[ConversationRecord]:
        if not self._host_ready():
            return None
        try:
            data = self._load_chats().get(record_id)
        except HostUnavailableError as e:
            logger.error("Failed to read record %s: %s", record_id, e)
            return None
        return self._decode(data) if data is not None else None

    def list_records(self) -> list[ConversationRecord]:
        """All decodable records, newest first."""
        if not self._host_ready():
            return []
        try:
            chats = self._load_chats()
        except HostUnavailableError as e:
            logger.error("Failed to list records: %s", e)
            return []
        records = [self._decode(data) for data in chats.values()]
        valid = [r for r in records if r is not None]
        return sorted(valid, key=lambda r: r.created_at, reverse=True)

    def get_most_recent(self) -> Optional[ConversationRecord]:
        records = self.list_records()
        return records[0] if records else None

    def get_selected(self) -> Optional[ConversationRecord]:
        """Selected record, else most recent, else the legacy slot."""
        if not self._host_ready():
            return None
        try:
            state = self.backend.get(KEY_CHATS, KEY_SELECTED, KEY_LEGACY)
        except HostUnavailableError as e:
            logger.error("Failed to read selection: %s", e)
            return None

        chats = state.get(KEY_CHATS) if isinstance(state.get(KEY_CHATS), dict) else {}
        selected_id = state.get(KEY_SELECTED)
        if selected_id and selected_id in chats:
            record = self._decode(chats[selected_id])
            if record is not None:
                return record

        if chats:
            logger.debug("Selection %r missing, using most recent", selected_id)
            ordered = sorted(chats.values(), key=_created_at, reverse=True)
            for data in ordered:
                record = self._decode(data)
                if record is not None:
                    return record

        legacy = state.get(KEY_LEGACY)
        if legacy:
            logger.debug("Using legacy chat record")
            return self._decode(legacy)
        return None

    def get_selected_id(self) -> Optional[str]:
        if not self._host_ready():
            return None
        try:
            return self.backend.get(KEY_SELECTED).get(KEY_SELECTED)
        except HostUnavailableError as e:
            logger.error("Failed to read selection: %s", e)
            return None

    def select(self, record_id: str) -> bool:
        """Mark record_id as selected; no-op if it is not stored."""
        if not self._host_ready():
            return False
        try:
            with self.backend.locked():
                if record_id not in self._load_chats():
                    logger.debug("Cannot select missing record %s", record_id)
                    return False
                self.backend.set({KEY_SELECTED: record_id})
        except HostUnavailableError as e:
            logger.error("Failed to select record %s: %s", record_id, e)
            self._notice("Could not update selection.")
            return False
        logger.info("Selected record %s", record_id)
        return True

    def clear_all(self) -> bool:
        """Remove every record, the selection and the legacy slot."""
        if not self._host_ready():
            return False
        try:
            self.backend.remove(KEY_CHATS, KEY_SELECTED, KEY_LEGACY)
        except HostUnavailableError as e:
            logger.error("Failed to clear store: %s", e)
            self._notice("Could not clear chat history.")
            return False
        logger.info("Cleared all stored conversations")
        return True

    def put_transfer(self, text: str, target_platform: str, source: str) -> Optional[TransferSlot]:
        """Stage formatted text for pickup by the target platform."""
        if not self._host_ready():
            return None
        slot = TransferSlot(text=text, target_platform=target_platform,
                            source=source, created_at=self.clock())
        try:
            self.backend.set({KEY_TRANSFER: slot.to_dict()})
        except HostUnavailableError as e:
            logger.error("Failed to stage transfer: %s", e)
            self._notice("Could not prepare the conversation for transfer.")
            return None
        logger.info("Staged transfer to %s (%d chars)", target_platform, len(text))
        return slot

    def take_transfer(self) -> Optional[TransferSlot]:
        """Consume the transfer slot.

        The slot is deleted on every read; it is only returned while it is
        still within its validity window.
        """
        if not self._host_ready():
            return None
        try:
            with self.backend.locked():
                data = self.backend.get(KEY_TRANSFER).get(KEY_TRANSFER)
                if data is None:
                    return None
                self.backend.remove(KEY_TRANSFER)
        except HostUnavailableError as e:
            logger.error("Failed to read transfer slot: %s", e)
            return None

        try:
            slot = TransferSlot.from_dict(data)
        except MalformedInputError as e:
            logger.warning("Discarding malformed transfer slot: %s", e)
            return None
        if not slot.is_valid(self.clock()):
            logger.info("Discarding expired transfer slot for %s", slot.target_platform)
            return None
        return slot
