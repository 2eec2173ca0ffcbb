"""Tests for the HTML document abstraction."""

import pytest

from twirl.document import HtmlDocument, MutationBatch
from twirl.exceptions import InvalidPatternError

PAGE = """
<html><body>
<main id="chat">
  <div class="message user-row" data-role="user"><p>First message text</p></div>
  <div class="message"><p>Second message text</p></div>
</main>
<aside><div class="message">Sidebar</div></aside>
</body></html>
"""


class TestHtmlDocumentQueries:
    """Tests for querying HtmlDocument."""

    @pytest.fixture
    def document(self):
        return HtmlDocument(PAGE, url="https://example.com/chat")

    def test_query_all_document_order(self, document):
        """Test matches come back in document order."""
        found = document.query_all(".message")
        assert [e.text.strip() for e in found] == [
            "First message text", "Second message text", "Sidebar"
        ]

    def test_query_one_missing(self, document):
        """Test query_one returns None when nothing matches."""
        assert document.query_one(".nothing-here") is None

    def test_class_attribute_joined(self, document):
        """Test multi-valued class attribute is returned as one string."""
        element = document.query_one("[data-role]")
        assert element.get_attribute("class") == "message user-row"
        assert element.class_name == "message user-row"
        assert element.get_attribute("data-missing") is None

    def test_closest_finds_ancestor(self, document):
        """Test closest walks up to a matching ancestor."""
        paragraph = document.query_one("p")
        main = paragraph.closest("main")
        assert main is not None
        assert main.get_attribute("id") == "chat"
        assert paragraph.closest("aside") is None

    def test_closest_includes_self(self, document):
        """Test closest can match the element itself."""
        element = document.query_one("[data-role]")
        assert element.closest(".message") == element

    def test_contains(self, document):
        """Test descendant containment."""
        main = document.query_one("main")
        paragraph = document.query_one("p")
        sidebar = document.query_one("aside .message")
        assert main.contains(paragraph)
        assert main.contains(main)
        assert not main.contains(sidebar)

    def test_markup(self, document):
        """Test inner markup of an element."""
        element = document.query_one("[data-role]")
        assert element.markup == "<p>First message text</p>"

    def test_parent(self, document):
        """Test parent navigation."""
        paragraph = document.query_one("p")
        assert paragraph.parent == document.query_one("[data-role]")

    def test_invalid_pattern_raises(self, document):
        """Test malformed patterns raise InvalidPatternError."""
        with pytest.raises(InvalidPatternError) as exc_info:
            document.query_all("div[")
        assert exc_info.value.pattern == "div["

    def test_element_invalid_pattern_raises(self, document):
        """Test malformed patterns raise from element queries too."""
        main = document.query_one("main")
        with pytest.raises(InvalidPatternError):
            main.query_one("div[")


class TestHtmlDocumentObserve:
    """Tests for structural change subscriptions."""

    @pytest.fixture
    def document(self):
        return HtmlDocument(PAGE)

    def test_append_notifies_container(self, document):
        """Test appending under an observed container notifies it."""
        batches: list[MutationBatch] = []
        document.observe(document.query_one("main"), batches.append)

        added = document.append_html('<div class="message">New</div>', "main")

        assert len(batches) == 1
        assert batches[0].added == added
        assert len(document.query_all("main .message")) == 3

    def test_append_elsewhere_not_notified(self, document):
        """Test changes outside the container are not delivered."""
        batches = []
        document.observe(document.query_one("main"), batches.append)

        document.append_html('<div class="message">Other</div>', "aside")

        assert batches == []

    def test_cancelled_subscription_not_notified(self, document):
        """Test cancelled subscriptions stop receiving batches."""
        batches = []
        subscription = document.observe(document.query_one("main"), batches.append)
        subscription.cancel()

        document.append_html("<div>New</div>", "main")

        assert batches == []
        assert not subscription.active

    def test_text_only_append_has_no_added_elements(self, document):
        """Test appending bare text reports no added elements."""
        batches = []
        document.observe(document.query_one("main"), batches.append)

        document.append_html("just text", "main")

        assert len(batches) == 1
        assert batches[0].added == []

    def test_append_missing_parent(self, document):
        """Test appending under a missing parent fails."""
        with pytest.raises(ValueError):
            document.append_html("<div>x</div>", ".missing")

    def test_update_notifies_all(self, document):
        """Test replacing the tree notifies every live subscription."""
        batches = []
        document.observe(document.query_one("main"), batches.append)

        document.update("<html><body><main><div class='message'>Only</div></main></body></html>")

        assert len(batches) == 1
        assert len(batches[0].added) == 1
        assert [e.text for e in document.query_all(".message")] == ["Only"]

    def test_append_after_update_reaches_subscription(self, document):
        """Test a subscription follows its container into the replaced tree."""
        batches = []
        subscription = document.observe(document.query_one("main"), batches.append)
        document.update("<html><body><main><div class='message'>Only</div></main></body></html>")

        added = document.append_html('<div class="message">Later</div>', "main")

        assert len(batches) == 2
        assert batches[1].added == added
        assert subscription.container == document.query_one("main")

    def test_update_moves_lost_container_to_body(self, document):
        """Test a container missing from the new tree is replaced by the body."""
        batches = []
        subscription = document.observe(document.query_one("aside"), batches.append)
        document.update("<html><body><main></main></body></html>")

        document.append_html("<div>x</div>", "main")

        assert subscription.container == document.body
        assert len(batches) == 2
