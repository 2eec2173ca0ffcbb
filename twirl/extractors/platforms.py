"""Per-platform extraction profiles.

Each supported front end is described by data alone: message selector
tiers, text selectors, role rules, container selectors and timings.
Adding a platform means adding a ``PlatformProfile`` to ``PROFILES``.
"""

from dataclasses import dataclass, field
from typing import Optional
from urllib.parse import urlparse

from ..constants import (
    DEFAULT_RETRY_DELAY,
    DEFAULT_START_DELAY,
    PLATFORM_UNKNOWN,
    Role,
)
from .roles import (
    AllClassSubstringsRule,
    AttributeRule,
    ClassSubstringRule,
    ClosestRule,
    DescendantRule,
    MarkupSubstringRule,
    RoleClassifier,
)
from .selectors import SelectorStrategy, SelectorTier
from .text import DEFAULT_NOISE, TextNormalizer

GENERIC_TEXT_SELECTORS = (
    ".whitespace-pre-wrap",
    ".markdown",
    ".prose",
    "p",
    ".text-base",
    ".message-content",
)


@dataclass(frozen=True)
class PlatformProfile:
    """Everything the extraction engine needs to know about one front end."""

    id: str
    display_name: str
    hosts: tuple[str, ...]
    messages: SelectorStrategy
    text_selectors: tuple[str, ...]
    classifier: RoleClassifier
    containers: SelectorStrategy
    normalizer: TextNormalizer = field(default_factory=TextNormalizer)
    start_delay: float = DEFAULT_START_DELAY
    retry_delay: float = DEFAULT_RETRY_DELAY

    def matches_host(self, hostname: str) -> bool:
        return any(host in hostname for host in self.hosts)


CHATGPT = PlatformProfile(
    id="chatgpt",
    display_name="ChatGPT",
    hosts=("openai.com", "chatgpt.com"),
    messages=SelectorStrategy([
        SelectorTier((
            '[data-testid="conversation-turn"]',
            ".group.w-full",
            ".flex.flex-col.items-start.gap-4.whitespace-pre-wrap",
            ".text-base",
            ".prose",
        )),
        SelectorTier((
            "[data-message-author-role]",
            ".whitespace-pre-wrap",
            'div[class*="group"]',
            'div[class*="flex"]',
        ), minimum=3),
    ]),
    text_selectors=(".whitespace-pre-wrap", ".markdown", ".prose", "p", ".text-base"),
    classifier=RoleClassifier([
        [AttributeRule("data-message-author-role")],
        [
            DescendantRule('[data-testid="user-message"]', Role.USER),
            DescendantRule(".bg-gray-50", Role.USER),
            DescendantRule('[data-testid="bot-message"]', Role.AI),
            DescendantRule(".gizmo-bot-avatar", Role.AI),
        ],
        [
            ClassSubstringRule(("user",), Role.USER),
            DescendantRule(".justify-end", Role.USER),
            DescendantRule(".ml-auto", Role.USER),
        ],
    ]),
    containers=SelectorStrategy.of(
        ["main", '[role="presentation"]', '[data-testid="conversation-turn"]', "body"],
    ),
)

CLAUDE = PlatformProfile(
    id="claude",
    display_name="Claude",
    hosts=("claude.ai",),
    messages=SelectorStrategy([
        SelectorTier((
            '[data-testid="conversation"] > div > div',
            ".font-claude-message",
            '[role="article"]',
            r".prose.dark\:prose-invert",
            'div[class*="font-user-message"]',
            'div[class*="font-claude-message"]',
        )),
        SelectorTier((
            'main div[class*="flex"][class*="flex-col"]',
            'div[class*="whitespace-pre-wrap"]',
            'div[class*="prose"]',
        ), minimum=3),
    ]),
    text_selectors=(
        ".prose",
        ".whitespace-pre-wrap",
        "p",
        'div[class*="text-"]',
        ".font-claude-message",
        ".font-user-message",
    ),
    classifier=RoleClassifier([
        [AttributeRule("data-is-author", user_values=("true",), ai_values=("false",))],
        [
            ClassSubstringRule(("font-user-message", "user-message"), Role.USER),
            ClassSubstringRule(("font-claude-message", "claude-message"), Role.AI),
            DescendantRule(".bg-claude-user", Role.USER),
            MarkupSubstringRule("Claude", Role.AI),
        ],
        [AllClassSubstringsRule("bg-", ("slate", "gray"), Role.USER)],
    ]),
    containers=SelectorStrategy.of(
        ['[data-testid="conversation"]', "main", 'div[class*="conversation"]', "body"],
    ),
    start_delay=2.0,
)

GEMINI = PlatformProfile(
    id="gemini",
    display_name="Gemini",
    hosts=("gemini.google.com", "bard.google.com"),
    messages=SelectorStrategy([
        SelectorTier((
            '[data-test-id="message"]',
            '[data-test-id="user-message"]',
            '[data-test-id="model-message"]',
            ".message-content",
            ".conversation-turn",
            ".user-turn",
            ".model-turn",
            "model-response",
            ".response-container",
        )),
        SelectorTier((
            'div[class*="conversation"]',
            'div[class*="message"]',
            'div[class*="turn"]',
            ".ql-editor",
            "div[jsaction]",
            'main div[class*="flex"]',
        ), minimum=3),
    ]),
    text_selectors=(
        ".ql-editor",
        ".message-content",
        'div[class*="text-"]',
        "p",
        "span",
        ".markdown-body",
    ),
    classifier=RoleClassifier([
        [AttributeRule("data-test-id", user_values=("user-message",), ai_values=("model-message",))],
        [
            ClassSubstringRule(("user-turn", "user-message"), Role.USER),
            ClosestRule(".user-turn", Role.USER),
            ClassSubstringRule(("model-turn", "model-response"), Role.AI),
            ClosestRule(".model-turn", Role.AI),
            MarkupSubstringRule("Gemini", Role.AI),
        ],
        [ClassSubstringRule(("bg-blue", "user"), Role.USER)],
    ]),
    containers=SelectorStrategy.of(
        ["main", '[data-test-id="conversation"]', 'div[class*="conversation"]', "div[jscontroller]", "body"],
    ),
    normalizer=TextNormalizer(DEFAULT_NOISE + ("View other drafts",)),
)

PERPLEXITY = PlatformProfile(
    id="perplexity",
    display_name="Perplexity",
    hosts=("perplexity.ai",),
    messages=SelectorStrategy.of(
        [".prose", '[data-testid="message"]', ".message", ".whitespace-pre-wrap"],
    ),
    text_selectors=GENERIC_TEXT_SELECTORS,
    classifier=RoleClassifier([
        [ClosestRule('[data-testid="user-message"]', Role.USER)],
        [ClassSubstringRule(("user",), Role.USER)],
        [ClosestRule(".bg-blue-50", Role.USER)],
    ]),
    containers=SelectorStrategy.of(["main", ".conversation", "body"]),
)

POE = PlatformProfile(
    id="poe",
    display_name="Poe",
    hosts=("poe.com",),
    messages=SelectorStrategy.of(
        [
            '[class*="Message_messageRow"]',
            ".Message_botMessageBubble",
            ".Message_humanMessageBubble",
            ".break-words",
        ],
    ),
    text_selectors=GENERIC_TEXT_SELECTORS,
    classifier=RoleClassifier([
        [
            ClosestRule(".Message_humanMessageBubble", Role.USER),
            DescendantRule(".Message_humanMessageBubble", Role.USER),
            ClosestRule(".Message_botMessageBubble", Role.AI),
            DescendantRule(".Message_botMessageBubble", Role.AI),
        ],
    ]),
    containers=SelectorStrategy.of(["main", ".chat-container", "body"]),
)

CHARACTER = PlatformProfile(
    id="character",
    display_name="Character.AI",
    hosts=("character.ai",),
    messages=SelectorStrategy.of(['[data-testid="message"]', ".msg", ".message"]),
    text_selectors=GENERIC_TEXT_SELECTORS,
    classifier=RoleClassifier([
        [ClosestRule(".user-msg", Role.USER), ClassSubstringRule(("char-msg",), Role.AI)],
    ]),
    containers=SelectorStrategy.of(["main", ".messages-container", "body"]),
)

GENERIC = PlatformProfile(
    id=PLATFORM_UNKNOWN,
    display_name="Unknown Platform",
    hosts=(),
    messages=SelectorStrategy([
        SelectorTier((
            ".message",
            ".chat-message",
            ".conversation-turn",
            ".prose",
            '[role="article"]',
            ".whitespace-pre-wrap",
        ), minimum=3),
    ]),
    text_selectors=GENERIC_TEXT_SELECTORS,
    classifier=RoleClassifier([
        [AttributeRule("data-role", user_values=("user", "human"), ai_values=("assistant", "ai", "bot"))],
        [
            ClassSubstringRule(("user", "human"), Role.USER),
            ClassSubstringRule(("bot", "ai", "assistant"), Role.AI),
        ],
    ]),
    containers=SelectorStrategy.of(
        [
            "main",
            '[data-testid="conversation"]',
            ".conversation",
            ".chat-container",
            ".messages-container",
            "body",
        ],
    ),
)

PROFILES: dict[str, PlatformProfile] = {
    p.id: p for p in (CHATGPT, CLAUDE, GEMINI, PERPLEXITY, POE, CHARACTER, GENERIC)
}


def detect_platform(url: str) -> str:
    """Return the platform id for a page URL, or ``"unknown"``."""
    hostname = urlparse(url).hostname or ""
    for profile in PROFILES.values():
        if profile.hosts and profile.matches_host(hostname):
            return profile.id
    return PLATFORM_UNKNOWN


def get_profile(platform: Optional[str]) -> PlatformProfile:
    """Look up a profile by id, falling back to the generic profile."""
    if platform and platform in PROFILES:
        return PROFILES[platform]
    return GENERIC


def display_name(platform: str) -> str:
    return get_profile(platform).display_name
