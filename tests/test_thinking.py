"""Tests for reasoning-section suppression."""

from llm_editor_bridge.llm.thinking import ReasoningGate, filter_thinking


def test_removes_single_span():
    assert filter_thinking("<think>plan</think>Answer", False) == "Answer"


def test_removes_multiple_spans():
    text = "a<think>1</think>b<think>2</think>c"
    assert filter_thinking(text, False) == "abc"


def test_unterminated_span_kept():
    text = "a<think>1</think>b<think>never closed"
    assert filter_thinking(text, False) == "ab<think>never closed"


def test_show_reasoning_returns_input():
    text = "<think>plan</think>Answer"
    assert filter_thinking(text, True) == text


def test_no_tags():
    assert filter_thinking("plain", False) == "plain"


class TestReasoningGate:
    def test_span_across_fragments(self):
        gate = ReasoningGate(show_reasoning=False)

        assert gate.feed("Hi <think>let me") == "Hi "
        assert gate.inside is True
        assert gate.feed(" think more") == ""
        assert gate.feed("</think>there") == "there"
        assert gate.inside is False

    def test_span_within_fragment(self):
        gate = ReasoningGate(show_reasoning=False)
        assert gate.feed("<think>x</think>ok") == "ok"

    def test_show_reasoning_passes_through(self):
        gate = ReasoningGate(show_reasoning=True)
        assert gate.feed("<think>x") == "<think>x"
        assert gate.inside is False

    def test_unterminated_span_flushed_at_end(self):
        gate = ReasoningGate(show_reasoning=False)
        fragments = ["Use the <think> tag", " to mark", " reasoning."]

        shown = "".join(gate.feed(f) for f in fragments) + gate.flush()

        assert shown == filter_thinking("".join(fragments), False)
        assert gate.inside is False

    def test_closed_span_leaves_nothing_to_flush(self):
        gate = ReasoningGate(show_reasoning=False)
        gate.feed("<think>plan")
        gate.feed("</think>done")

        assert gate.flush() == ""
