"""Suppression of <think>...</think> reasoning sections."""

THINK_OPEN = "<think>"
THINK_CLOSE = "</think>"


def filter_thinking(text: str, show_reasoning: bool) -> str:
    """Remove reasoning sections unless the user asked to see them.

    Spans are removed left to right, tags included. An opening tag without a
    closing tag stops the scan; the unterminated remainder is kept as is.
    """
    if show_reasoning:
        return text

    parts: list[str] = []
    pos = 0
    while True:
        start = text.find(THINK_OPEN, pos)
        if start == -1:
            break
        end = text.find(THINK_CLOSE, start + len(THINK_OPEN))
        if end == -1:
            break
        parts.append(text[pos:start])
        pos = end + len(THINK_CLOSE)
    parts.append(text[pos:])
    return "".join(parts)


class ReasoningGate:
    """Streaming counterpart of filter_thinking for one ask.

    Remembers whether the stream is currently inside a reasoning section, so an
    opening tag in one fragment and the closing tag in a later fragment still
    hide everything between them. Text after an opening tag is held until the
    closing tag arrives; if the stream ends first, flush() gives back the tag
    and the held text, matching filter_thinking on the whole answer. A tag that
    is itself split across two fragments is not recognised.
    """

    def __init__(self, show_reasoning: bool) -> None:
        self._show = show_reasoning
        self._inside = False
        self._held: list[str] = []

    @property
    def inside(self) -> bool:
        return self._inside

    def feed(self, text: str) -> str:
        if self._show:
            return text

        out: list[str] = []
        pos = 0
        while pos < len(text):
            if self._inside:
                end = text.find(THINK_CLOSE, pos)
                if end == -1:
                    self._held.append(text[pos:])
                    return "".join(out)
                self._inside = False
                self._held = []
                pos = end + len(THINK_CLOSE)
            else:
                start = text.find(THINK_OPEN, pos)
                if start == -1:
                    out.append(text[pos:])
                    break
                out.append(text[pos:start])
                self._inside = True
                pos = start + len(THINK_OPEN)
        return "".join(out)

    def flush(self) -> str:
        """Unterminated section at end of stream: the opening tag and everything held since."""
        if not self._inside:
            return ""
        text = THINK_OPEN + "".join(self._held)
        self._inside = False
        self._held = []
        return text
