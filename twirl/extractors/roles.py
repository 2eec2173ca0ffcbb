"""Speaker-role classification for extracted message elements.

Rules are grouped in stages of decreasing reliability:

1. role-bearing attributes on the element or an ancestor
2. platform class-name and sub-element markers
3. structural or visual conventions
4. positional alternation (even ordinal is User, odd is AI)

The first rule to return a role decides. Alternation only applies when
every earlier stage is silent, and it can drift out of step when a turn
between two elements was dropped by the length filter.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional, Sequence

from ..constants import Role
from ..document import Element
from ..exceptions import InvalidPatternError
from ..logging_config import get_logger

logger = get_logger("extractors.roles")


class RoleRule(ABC):
    """A single classification test."""

    @abstractmethod
    def match(self, element: Element) -> Optional[Role]:
        """Return a role if this rule recognises the element."""


@dataclass(frozen=True)
class AttributeRule(RoleRule):
    """Map attribute values on the element (or nearest carrier) to roles."""

    attribute: str
    user_values: tuple[str, ...] = ("user",)
    ai_values: tuple[str, ...] = ("assistant",)
    inherit: bool = True

    def match(self, element: Element) -> Optional[Role]:
        value = element.get_attribute(self.attribute)
        if value is None and self.inherit:
            carrier = _closest(element, f"[{self.attribute}]")
            value = carrier.get_attribute(self.attribute) if carrier else None
        if value is None:
            return None
        if value in self.user_values:
            return Role.USER
        if value in self.ai_values:
            return Role.AI
        return None


@dataclass(frozen=True)
class ClosestRule(RoleRule):
    """Element or an ancestor matches pattern."""

    pattern: str
    role: Role

    def match(self, element: Element) -> Optional[Role]:
        return self.role if _closest(element, self.pattern) is not None else None


@dataclass(frozen=True)
class DescendantRule(RoleRule):
    """Element contains a descendant matching pattern."""

    pattern: str
    role: Role

    def match(self, element: Element) -> Optional[Role]:
        try:
            found = element.query_one(self.pattern)
        except InvalidPatternError:
            return None
        return self.role if found is not None else None


@dataclass(frozen=True)
class ClassSubstringRule(RoleRule):
    """Element's class string contains any of the substrings."""

    substrings: tuple[str, ...]
    role: Role

    def match(self, element: Element) -> Optional[Role]:
        classes = element.class_name
        if any(s in classes for s in self.substrings):
            return self.role
        return None


@dataclass(frozen=True)
class AllClassSubstringsRule(RoleRule):
    """Element's class string contains ``required`` and one of ``any_of``."""

    required: str
    any_of: tuple[str, ...]
    role: Role

    def match(self, element: Element) -> Optional[Role]:
        classes = element.class_name
        if self.required in classes and any(s in classes for s in self.any_of):
            return self.role
        return None


@dataclass(frozen=True)
class MarkupSubstringRule(RoleRule):
    """Element's inner markup mentions the substring."""

    substring: str
    role: Role

    def match(self, element: Element) -> Optional[Role]:
        return self.role if self.substring in element.markup else None


def _closest(element: Element, pattern: str) -> Optional[Element]:
    try:
        return element.closest(pattern)
    except InvalidPatternError:
        return None


class RoleClassifier:
    """Assign User or AI to message elements using staged rules."""

    def __init__(self, stages: Sequence[Sequence[RoleRule]]):
        self.stages = tuple(tuple(stage) for stage in stages)

    def classify(self, element: Element, ordinal: int) -> Role:
        """Classify element found at ordinal position in the match list."""
        for stage_num, stage in enumerate(self.stages, 1):
            for rule in stage:
                role = rule.match(element)
                if role is not None:
                    logger.debug("Ordinal %d: %s by stage %d (%s)",
                                 ordinal, role, stage_num, type(rule).__name__)
                    return role
        role = Role.USER if ordinal % 2 == 0 else Role.AI
        logger.debug("Ordinal %d: %s by alternation", ordinal, role)
        return role
