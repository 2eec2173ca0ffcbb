"""Conversation turn model shared by extraction, paste parsing and transfer."""

from dataclasses import dataclass
from typing import Any

from ..constants import Role
from ..exceptions import MalformedInputError


@dataclass(frozen=True)
class Turn:
    """One role-tagged message of a conversation."""

    role: Role
    text: str

    def render(self) -> str:
        """Render as a labelled line, e.g. ``"User: hello"``."""
        return f"{self.role.value}: {self.text}"

    def to_dict(self) -> dict[str, str]:
        return {"role": self.role.value, "text": self.text}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Turn":
        """Build a Turn from its persisted form.

        Raises:
            MalformedInputError: If role or text is missing or invalid
        """
        try:
            role = Role(data["role"])
            text = data["text"]
        except (KeyError, TypeError, ValueError) as e:
            raise MalformedInputError(f"Invalid turn data: {e}")
        if not isinstance(text, str):
            raise MalformedInputError("Turn text must be a string")
        return cls(role=role, text=text)

    @classmethod
    def from_labelled(cls, line: str) -> "Turn":
        """Parse the legacy ``"Role: text"`` form.

        Raises:
            MalformedInputError: If the line has no known role label
        """
        label, sep, text = line.partition(":")
        if not sep:
            raise MalformedInputError(f"Missing role label in a {len(line)} character line")
        try:
            role = Role(label.strip())
        except ValueError:
            raise MalformedInputError(f"Unknown role label: {label.strip()[:20]!r}")
        return cls(role=role, text=text.strip())
