"""Conversation extraction building blocks and platform profiles."""

from .base import Turn
from .platforms import PROFILES, PlatformProfile, detect_platform, display_name, get_profile
from .roles import RoleClassifier, RoleRule
from .selectors import SelectorStrategy, SelectorTier
from .text import TextNormalizer

__all__ = [
    "Turn",
    "PlatformProfile",
    "PROFILES",
    "detect_platform",
    "display_name",
    "get_profile",
    "RoleClassifier",
    "RoleRule",
    "SelectorStrategy",
    "SelectorTier",
    "TextNormalizer",
]
