"""Persisted conversation records and the transfer slot."""

import re
import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Optional, Sequence
from urllib.parse import urlparse

from .constants import DATE_FORMAT, TITLE_MAX_LENGTH, TRANSFER_TTL_MS, Role
from .exceptions import MalformedInputError, MalformedRecordError
from .extractors.base import Turn

Clock = Callable[[], int]

_ID_UNSAFE = re.compile(r"[^a-zA-Z0-9_]")


def now_ms() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)


def generate_record_id(platform: str, url: str, created_at: int) -> str:
    """Derive a record id from platform, URL path and creation instant."""
    path = urlparse(url).path if url else ""
    return _ID_UNSAFE.sub("_", f"{platform}_{path}_{created_at}")


def derive_title(turns: Sequence[Turn], source: str, created_at: int) -> str:
    """Title from the first User turn, else a source and date fallback."""
    for turn in turns:
        if turn.role is Role.USER:
            title = turn.text.strip()
            if len(title) > TITLE_MAX_LENGTH:
                return title[:TITLE_MAX_LENGTH] + "..."
            return title
    date = datetime.fromtimestamp(created_at / 1000).strftime(DATE_FORMAT)
    return f"Chat from {source} - {date}"


@dataclass(frozen=True)
class ConversationRecord:
    """A titled collection of turns captured from one page or paste."""

    id: str
    platform: str
    source: str
    url: str
    title: str
    turns: tuple[Turn, ...]
    created_at: int

    @property
    def turn_count(self) -> int:
        return len(self.turns)

    @classmethod
    def create(
        cls,
        turns: Sequence[Turn],
        platform: str,
        source: str,
        url: str = "",
        created_at: Optional[int] = None,
    ) -> "ConversationRecord":
        """Create a new record, deriving its id and title.

        Raises:
            MalformedInputError: If there are no turns
        """
        if not turns:
            raise MalformedInputError("A conversation record needs at least one turn")
        if created_at is None:
            created_at = now_ms()
        return cls(
            id=generate_record_id(platform, url, created_at),
            platform=platform,
            source=source,
            url=url,
            title=derive_title(turns, source, created_at),
            turns=tuple(turns),
            created_at=created_at,
        )

    def validate(self) -> None:
        """Check the invariants a stored record must satisfy.

        Raises:
            MalformedRecordError: If a required field is missing or empty
        """
        if not self.id:
            raise MalformedRecordError("Record has no id")
        if not self.turns:
            raise MalformedRecordError("Record has no turns", record_id=self.id)
        if not isinstance(self.created_at, int):
            raise MalformedRecordError("Record has no creation time", record_id=self.id)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "platform": self.platform,
            "source": self.source,
            "url": self.url,
            "title": self.title,
            "turns": [t.to_dict() for t in self.turns],
            "turnCount": self.turn_count,
            "createdAt": self.created_at,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ConversationRecord":
        """Decode a persisted record.

        Also accepts the legacy layout where turns were stored as
        ``"Role: text"`` strings under ``messages`` with a ``timestamp``.

        Raises:
            MalformedRecordError: If required fields are missing
        """
        if not isinstance(data, dict):
            raise MalformedRecordError("Record data must be a mapping")
        record_id = data.get("id") or ""
        try:
            if "turns" in data:
                turns = tuple(Turn.from_dict(t) for t in data["turns"])
            elif "messages" in data:
                turns = tuple(Turn.from_labelled(m) for m in data["messages"])
            else:
                raise MalformedRecordError("Record has no turns", record_id=record_id)
        except MalformedInputError as e:
            raise MalformedRecordError(str(e), record_id=record_id) from e
        except TypeError as e:
            raise MalformedRecordError(f"Invalid turns: {e}", record_id=record_id) from e

        created_at = data.get("createdAt", data.get("timestamp"))
        if not isinstance(created_at, (int, float)):
            raise MalformedRecordError("Record has no creation time", record_id=record_id)
        created_at = int(created_at)

        platform = data.get("platform") or "unknown"
        source = data.get("source") or "Unknown"
        url = data.get("url") or ""
        if not record_id:
            record_id = generate_record_id(platform, url, created_at)

        record = cls(
            id=record_id,
            platform=platform,
            source=source,
            url=url,
            title=data.get("title") or derive_title(turns, source, created_at),
            turns=turns,
            created_at=created_at,
        )
        record.validate()
        return record


@dataclass(frozen=True)
class TransferSlot:
    """Short-lived handoff of formatted text to another front end."""

    text: str
    target_platform: str
    source: str
    created_at: int = field(default_factory=now_ms)

    def is_valid(self, now: int) -> bool:
        return 0 <= now - self.created_at <= TRANSFER_TTL_MS

    def to_dict(self) -> dict[str, Any]:
        return {
            "text": self.text,
            "targetPlatform": self.target_platform,
            "source": self.source,
            "createdAt": self.created_at,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "TransferSlot":
        """Decode a persisted slot.

        Raises:
            MalformedInputError: If required fields are missing
        """
        try:
            return cls(
                text=str(data["text"]),
                target_platform=str(data["targetPlatform"]),
                source=str(data.get("source") or "Unknown"),
                created_at=int(data["createdAt"]),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise MalformedInputError(f"Invalid transfer data: {e}")
