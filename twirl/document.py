"""Queryable document tree abstraction.

Extractors never touch a rendering engine directly. They see a
``Document`` of ``Element`` nodes that answer CSS-style queries and can
report structural changes to subscribers. ``HtmlDocument`` is the
concrete implementation backed by BeautifulSoup and soupsieve.
"""

from abc import ABC, abstractmethod
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Callable, Iterator, Optional

import soupsieve
from bs4 import BeautifulSoup, Tag

from .exceptions import InvalidPatternError
from .logging_config import get_logger

logger = get_logger("document")


class Element(ABC):
    """A node of the rendered tree."""

    @property
    @abstractmethod
    def text(self) -> str:
        """Concatenated text content of the element and its descendants."""

    @property
    @abstractmethod
    def markup(self) -> str:
        """Inner markup of the element."""

    @property
    @abstractmethod
    def parent(self) -> Optional["Element"]:
        pass

    @abstractmethod
    def get_attribute(self, name: str) -> Optional[str]:
        pass

    @abstractmethod
    def query_one(self, pattern: str) -> Optional["Element"]:
        """First descendant matching pattern.

        Raises:
            InvalidPatternError: If the pattern cannot be evaluated
        """

    @abstractmethod
    def query_all(self, pattern: str) -> list["Element"]:
        """All descendants matching pattern, in document order.

        Raises:
            InvalidPatternError: If the pattern cannot be evaluated
        """

    @abstractmethod
    def closest(self, pattern: str) -> Optional["Element"]:
        """Nearest ancestor-or-self matching pattern.

        Raises:
            InvalidPatternError: If the pattern cannot be evaluated
        """

    @abstractmethod
    def contains(self, other: "Element") -> bool:
        """True if other is this element or one of its descendants."""

    @property
    def class_name(self) -> str:
        return self.get_attribute("class") or ""


@dataclass
class MutationBatch:
    """Batched notification that descendants of a target changed."""

    target: Element
    added: list[Element] = field(default_factory=list)


MutationCallback = Callable[[MutationBatch], None]


class Subscription:
    """Handle returned by ``Document.observe``."""

    def __init__(self, container: Element, callback: MutationCallback):
        self.container = container
        self.callback = callback
        self.active = True

    def cancel(self) -> None:
        self.active = False


class Document(ABC):
    """A queryable tree with a structural-change subscription."""

    url: str = ""

    @property
    @abstractmethod
    def body(self) -> Element:
        pass

    @abstractmethod
    def query_all(self, pattern: str) -> list[Element]:
        pass

    @abstractmethod
    def query_one(self, pattern: str) -> Optional[Element]:
        pass

    @abstractmethod
    def observe(self, container: Element, callback: MutationCallback) -> Subscription:
        """Subscribe to descendant additions under container."""


class SoupElement(Element):
    """Element backed by a BeautifulSoup tag."""

    def __init__(self, tag: Tag):
        self._tag = tag

    def __eq__(self, other: object) -> bool:
        return isinstance(other, SoupElement) and other._tag is self._tag

    def __hash__(self) -> int:
        return id(self._tag)

    def __repr__(self) -> str:
        return f"<SoupElement {self._tag.name} class={self.class_name!r}>"

    @property
    def tag(self) -> Tag:
        return self._tag

    @property
    def text(self) -> str:
        return self._tag.get_text()

    @property
    def markup(self) -> str:
        return self._tag.decode_contents()

    @property
    def parent(self) -> Optional[Element]:
        parent = self._tag.parent
        if parent is None or isinstance(parent, BeautifulSoup):
            return None
        return SoupElement(parent)

    def get_attribute(self, name: str) -> Optional[str]:
        value = self._tag.get(name)
        if value is None:
            return None
        # bs4 returns multi-valued attributes (class, rel, ...) as lists
        if isinstance(value, list):
            return " ".join(value)
        return value

    def query_one(self, pattern: str) -> Optional[Element]:
        with _pattern_errors(pattern):
            found = self._tag.select_one(pattern)
        return SoupElement(found) if found is not None else None

    def query_all(self, pattern: str) -> list[Element]:
        with _pattern_errors(pattern):
            found = self._tag.select(pattern)
        return [SoupElement(tag) for tag in found]

    def closest(self, pattern: str) -> Optional[Element]:
        with _pattern_errors(pattern):
            found = soupsieve.closest(pattern, self._tag)
        return SoupElement(found) if found is not None else None

    def contains(self, other: Element) -> bool:
        if not isinstance(other, SoupElement):
            return False
        if other._tag is self._tag:
            return True
        return any(parent is self._tag for parent in other._tag.parents)


@contextmanager
def _pattern_errors(pattern: str) -> Iterator[None]:
    """Translate selector engine errors into InvalidPatternError."""
    try:
        yield
    except (soupsieve.SelectorSyntaxError, NotImplementedError) as e:
        raise InvalidPatternError(pattern, str(e)) from e


class HtmlDocument(Document):
    """Document parsed from HTML text.

    Structural changes are made through ``append_html`` and ``update``;
    both notify the subscriptions whose container covers the change.
    """

    def __init__(self, html: str = "", url: str = ""):
        self.url = url
        self._soup = BeautifulSoup(html, "html.parser")
        self._subscriptions: list[Subscription] = []

    @property
    def body(self) -> Element:
        body = self._soup.body
        return SoupElement(body if body is not None else self._soup)

    def query_all(self, pattern: str) -> list[Element]:
        with _pattern_errors(pattern):
            found = self._soup.select(pattern)
        return [SoupElement(tag) for tag in found]

    def query_one(self, pattern: str) -> Optional[Element]:
        with _pattern_errors(pattern):
            found = self._soup.select_one(pattern)
        return SoupElement(found) if found is not None else None

    def observe(self, container: Element, callback: MutationCallback) -> Subscription:
        subscription = Subscription(container, callback)
        self._subscriptions.append(subscription)
        logger.debug("Observing %r (%d subscriptions)", container, len(self._subscriptions))
        return subscription

    def append_html(self, html: str, parent_pattern: Optional[str] = None) -> list[Element]:
        """Append parsed HTML under the first match of parent_pattern (or body).

        Returns:
            The element nodes that were added
        """
        parent = self.query_one(parent_pattern) if parent_pattern else self.body
        if parent is None:
            raise ValueError(f"No element matches {parent_pattern!r}")
        parent_tag = _tag_of(parent)

        fragment = BeautifulSoup(html, "html.parser")
        nodes = list(fragment.contents)
        for node in nodes:
            parent_tag.append(node)

        added: list[Element] = [SoupElement(node) for node in nodes if isinstance(node, Tag)]
        self._notify(MutationBatch(target=parent, added=added))
        return added

    def update(self, html: str) -> None:
        """Replace the whole tree, notifying every live subscription.

        Each subscription is moved to the element at the same position in
        the new tree, or to the new body when that position is gone, so
        later ``append_html`` calls keep reaching it.
        """
        paths = {
            id(s): _tag_path(s.container.tag)
            for s in self._subscriptions
            if s.active and isinstance(s.container, SoupElement)
        }
        self._soup = BeautifulSoup(html, "html.parser")
        body = self.body
        for subscription in self._subscriptions:
            path = paths.get(id(subscription))
            if path is not None:
                found = _follow_path(self._soup, path)
                subscription.container = SoupElement(found) if found is not None else body

        added: list[Element] = [
            SoupElement(node) for node in _tag_of(body).children if isinstance(node, Tag)
        ]
        batch = MutationBatch(target=body, added=added)
        for subscription in list(self._subscriptions):
            if subscription.active:
                subscription.callback(batch)
        self._prune()

    def _notify(self, batch: MutationBatch) -> None:
        for subscription in list(self._subscriptions):
            if subscription.active and subscription.container.contains(batch.target):
                subscription.callback(batch)
        self._prune()

    def _prune(self) -> None:
        self._subscriptions = [s for s in self._subscriptions if s.active]


def _tag_of(element: Element) -> Tag:
    if not isinstance(element, SoupElement):
        raise TypeError(f"Expected an element of this document, got {element!r}")
    return element.tag


def _tag_path(tag: Tag) -> list[tuple[str, int]]:
    """(name, index among same-named siblings) steps from the root to tag."""
    path = []
    while tag.parent is not None:
        siblings = tag.parent.find_all(tag.name, recursive=False)
        index = next(i for i, sibling in enumerate(siblings) if sibling is tag)
        path.append((tag.name, index))
        tag = tag.parent
    path.reverse()
    return path


def _follow_path(root: Tag, path: list[tuple[str, int]]) -> Optional[Tag]:
    node = root
    for name, index in path:
        siblings = node.find_all(name, recursive=False)
        if index >= len(siblings):
            return None
        node = siblings[index]
    return node
