"""Ordered selector fallback resolution."""

from dataclasses import dataclass
from typing import Optional, Sequence, Union

from ..document import Document, Element
from ..exceptions import InvalidPatternError
from ..logging_config import get_logger

logger = get_logger("extractors.selectors")

Scope = Union[Document, Element]


@dataclass(frozen=True)
class SelectorTier:
    """A group of query patterns sharing a minimum match count."""

    patterns: tuple[str, ...]
    minimum: int = 1

    def __post_init__(self) -> None:
        if self.minimum < 1:
            raise ValueError("Tier minimum must be at least 1")


def safe_query_all(scope: Scope, pattern: str) -> list[Element]:
    """Query scope, treating an unsupported pattern as zero matches."""
    try:
        return scope.query_all(pattern)
    except InvalidPatternError as e:
        logger.debug("Skipping pattern %r: %s", pattern, e.reason)
        return []


def safe_query_one(scope: Scope, pattern: str) -> Optional[Element]:
    """Single-element variant of ``safe_query_all``."""
    try:
        return scope.query_one(pattern)
    except InvalidPatternError as e:
        logger.debug("Skipping pattern %r: %s", pattern, e.reason)
        return None


class SelectorStrategy:
    """Resolve elements through ordered tiers of query patterns.

    Tiers are tried in order and patterns in order within a tier. The
    first pattern whose match count reaches its tier's minimum wins and
    no further pattern or tier is consulted.
    """

    def __init__(self, tiers: Sequence[SelectorTier]):
        self.tiers = tuple(tiers)

    @classmethod
    def of(cls, *tiers: Union[SelectorTier, Sequence[str]]) -> "SelectorStrategy":
        """Build a strategy from tiers or bare pattern lists (minimum 1)."""
        return cls([
            t if isinstance(t, SelectorTier) else SelectorTier(tuple(t))
            for t in tiers
        ])

    def resolve(self, scope: Scope) -> list[Element]:
        """Return the winning match collection, or an empty list."""
        for tier_num, tier in enumerate(self.tiers, 1):
            for pattern in tier.patterns:
                found = safe_query_all(scope, pattern)
                logger.debug(
                    "Tier %d pattern %r found %d elements (minimum %d)",
                    tier_num, pattern, len(found), tier.minimum
                )
                if found and len(found) >= tier.minimum:
                    return found
        return []

    def resolve_first(self, scope: Scope) -> Optional[Element]:
        """Return the first element of the winning collection."""
        found = self.resolve(scope)
        return found[0] if found else None
