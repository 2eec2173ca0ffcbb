"""Text cleanup for extracted messages."""

import re
from typing import Iterable

_WHITESPACE = re.compile(r"\s+")

DEFAULT_NOISE = ("Copy code",)


class TextNormalizer:
    """Strip UI noise strings, collapse whitespace and trim."""

    def __init__(self, noise: Iterable[str] = DEFAULT_NOISE):
        self.noise = tuple(noise)

    def normalize(self, text: str) -> str:
        if not text:
            return ""
        for phrase in self.noise:
            text = text.replace(phrase, " ")
        return _WHITESPACE.sub(" ", text).strip()
