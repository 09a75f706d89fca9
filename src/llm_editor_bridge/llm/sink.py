"""Collaborator interfaces consumed by the orchestrator, and an in-memory editor."""

from typing import Protocol

from llm_editor_bridge.llm.models import EndpointKind


def question_separator(kind: EndpointKind) -> str:
    """Separator between a kept question and its answer. Ollama output is already padded."""
    return "\n" if kind is EndpointKind.OLLAMA else "\n\n"


class EditorSink(Protocol):
    """The editor widget as seen by an ask."""

    def get_selected_text(self) -> str: ...

    def replace_selection(self, text: str) -> None: ...

    def insert_at_cursor(self, text: str) -> None: ...

    def prepare_for_stream(self, keep_question: bool, kind: EndpointKind) -> None: ...


class ProgressIndicator(Protocol):
    def show(self) -> None: ...

    def dismiss(self) -> None: ...


class Notifier(Protocol):
    def notify_error(self, title: str, message: str) -> None: ...


class BufferEditorSink:
    """Plain-string editor with a selection and a cursor.

    Used by the console entry point and by tests. Positions are character
    offsets into ``text``.
    """

    def __init__(self, text: str = "", selection: tuple[int, int] | None = None) -> None:
        self.text = text
        start, end = selection if selection is not None else (0, len(text))
        self.selection_start = start
        self.selection_end = end
        self.cursor = end

    def get_selected_text(self) -> str:
        return self.text[self.selection_start:self.selection_end]

    def _replace_range(self, start: int, end: int, text: str) -> None:
        self.text = self.text[:start] + text + self.text[end:]
        self.cursor = start + len(text)
        self.selection_start = self.selection_end = self.cursor

    def replace_selection(self, text: str) -> None:
        self._replace_range(self.selection_start, self.selection_end, text)

    def insert_at_cursor(self, text: str) -> None:
        self._replace_range(self.cursor, self.cursor, text)

    def prepare_for_stream(self, keep_question: bool, kind: EndpointKind) -> None:
        """Leave the question (plus separator) or nothing, with the cursor after it."""
        initial = ""
        if keep_question:
            initial = self.get_selected_text() + question_separator(kind)
        self.replace_selection(initial)
