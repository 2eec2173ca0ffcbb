"""Tests for pasted conversation detection and parsing."""

import time

import pytest

from twirl.constants import PLATFORM_PASTED, Role
from twirl.paste import (
    PasteWatcher,
    content_hash,
    has_role_pair,
    is_conversational,
    label_role,
    line_labels,
    parse,
)
from twirl.storage import MemoryKeyValueStore
from twirl.store import ConversationStore

SAMPLE = "User: Hi\nAI: Hello! As an AI I can help.\nUser: Thanks"


class TestIsConversational:
    """Tests for the conversation heuristic."""

    def test_sample_is_conversational(self):
        """Test the basic User/AI exchange."""
        assert is_conversational(SAMPLE)

    def test_short_text_rejected(self):
        """Test text under 50 characters is never conversational."""
        assert not is_conversational("User: Hi\nAI: Hello\nUser: Bye")

    def test_prose_rejected(self):
        """Test ordinary prose without speaker labels."""
        text = "This is an ordinary paragraph of text that talks about nothing in particular at all."
        assert not is_conversational(text)

    def test_human_assistant_labels(self):
        """Test the Human/Assistant convention."""
        text = "Human: Can you summarise this article?\n\nAssistant: Sure, here is a short summary."
        assert is_conversational(text)

    def test_named_assistant(self):
        """Test a You/ChatGPT transcript."""
        text = "You: What's the weather like on Mars?\nChatGPT: Cold, dusty and thin-aired."
        assert is_conversational(text)

    def test_single_label_needs_ai_phrase(self):
        """Test one label line qualifies only with assistant-style phrasing."""
        base = "Context from ChatGPT:\n\nUser: explain recursion to me in a few simple words"
        assert not is_conversational(base)
        assert is_conversational(base + "\nI'd be happy to help with that")

    def test_empty(self):
        """Test empty input."""
        assert not is_conversational("")

    def test_long_transcript_without_ai_label_rejected_quickly(self):
        """Test a large chat log between people is scanned in linear time."""
        lines = []
        for i in range(3000):
            lines.append(f"You: message number {i} about the weekend plans and the weather")
            lines.append(f"Bob: reply number {i} saying that sounds fine to me, see you there")
        text = "\n".join(lines)

        started = time.perf_counter()
        assert not is_conversational(text)
        assert time.perf_counter() - started < 1.0

    def test_line_labels(self):
        """Test labels are collected per line in order, lower-cased."""
        text = "You: hi\nBob: hey\n  ChatGPT : hello\nnot a label: here"
        assert line_labels(text) == ["you", "chatgpt"]

    @pytest.mark.parametrize("labels, expected", [
        (["user", "ai"], True),
        (["ai", "user"], True),
        (["human", "assistant"], True),
        (["you", "claude"], True),
        (["gemini", "you"], True),
        (["you", "you", "you"], False),
        (["claude", "ai"], False),
        (["user"], False),
        ([], False),
    ])
    def test_has_role_pair(self, labels, expected):
        """Test a label must be followed later by its counterpart."""
        assert has_role_pair(labels) is expected


class TestParse:
    """Tests for splitting labelled text into turns."""

    def test_sample(self):
        """Test the three turn sample."""
        turns = parse(SAMPLE)
        assert [(t.role, t.text) for t in turns] == [
            (Role.USER, "Hi"),
            (Role.AI, "Hello! As an AI I can help."),
            (Role.USER, "Thanks"),
        ]

    def test_continuation_lines_joined(self):
        """Test unlabelled lines extend the open turn."""
        turns = parse("User: first line\nsecond line\n\nAssistant: reply\nmore reply")
        assert [t.text for t in turns] == ["first line second line", "reply more reply"]

    def test_text_before_first_label_dropped(self):
        """Test preamble is ignored."""
        turns = parse("Some preamble\nUser: question here\nAI: answer here")
        assert [t.role for t in turns] == [Role.USER, Role.AI]

    def test_envelope_lines_dropped(self):
        """Test transfer header and footer lines are ignored."""
        text = (
            "Context from ChatGPT:\n\nUser: question here\n\nAI: answer here\n\n---\n\n"
            "Please continue this conversation based on the context above."
        )
        turns = parse(text)
        assert [t.text for t in turns] == ["question here", "answer here"]

    def test_label_without_text_dropped(self):
        """Test a bare label line yields no empty turn."""
        turns = parse("User:\nAI: Hello! As an AI I can help you with that.\nUser: thanks a lot")
        assert [(t.role, t.text) for t in turns] == [
            (Role.AI, "Hello! As an AI I can help you with that."),
            (Role.USER, "thanks a lot"),
        ]
        assert all(t.text for t in turns)

    @pytest.mark.parametrize("label,role", [
        ("User", Role.USER),
        ("you", Role.USER),
        ("HUMAN", Role.USER),
        ("Claude", Role.AI),
        ("model", Role.AI),
    ])
    def test_label_role(self, label, role):
        """Test label to role mapping."""
        assert label_role(label) is role

    def test_no_labels(self):
        """Test unlabelled text yields no turns."""
        assert parse("nothing to see here") == []


class TestPasteWatcher:
    """Tests for turning pastes into records."""

    @pytest.fixture
    def store(self):
        return ConversationStore(MemoryKeyValueStore())

    @pytest.fixture
    def prompts(self):
        return []

    @pytest.fixture
    def watcher(self, store, prompts):
        def confirm(text, turns):
            prompts.append(len(turns))
            return True
        return PasteWatcher(store, confirm, url="https://claude.ai/new", clock=lambda: 1234)

    def test_paste_creates_record(self, watcher, store, prompts):
        """Test a confirmed paste is stored."""
        record = watcher.on_paste(SAMPLE)

        assert prompts == [3]
        assert record.platform == PLATFORM_PASTED
        assert record.source == "Pasted Conversation"
        assert record.title == "Hi"
        assert record.created_at == 1234
        assert store.get_selected() == record

    def test_same_text_processed_once(self, watcher, prompts):
        """Test identical content is not prompted twice."""
        watcher.on_paste(SAMPLE)
        assert watcher.on_paste(SAMPLE) is None
        assert prompts == [3]
        assert content_hash(SAMPLE) in watcher.processed

    def test_declined_not_remembered(self, store):
        """Test declined content prompts again next time."""
        prompts = []

        def decline(text, turns):
            prompts.append(text)
            return False

        watcher = PasteWatcher(store, decline)
        assert watcher.on_paste(SAMPLE) is None
        assert watcher.on_paste(SAMPLE) is None
        assert len(prompts) == 2
        assert store.list_records() == []

    def test_non_conversational_ignored(self, watcher, prompts):
        """Test ordinary text never prompts."""
        assert watcher.on_paste("just some text that is long enough to be checked by the heuristic") is None
        assert prompts == []

    def test_input_below_threshold_ignored(self, watcher, prompts):
        """Test input events only look at large values."""
        assert watcher.on_input(SAMPLE) is None
        assert prompts == []

    def test_input_above_threshold(self, watcher, prompts):
        """Test large input values are processed."""
        text = SAMPLE + "\nAI: " + "You are very welcome, happy to help anytime. " * 5
        assert len(text) > 200
        record = watcher.on_input(text)
        assert record.turn_count == 4

    def test_bare_label_line_not_stored(self, watcher, prompts):
        """Test an empty labelled line does not become an empty turn or title."""
        text = "User:\nAI: Hello! As an AI I can help you with that.\nUser: thanks a lot"
        record = watcher.on_paste(text)

        assert prompts == [2]
        assert record.turn_count == 2
        assert record.title == "thanks a lot"
