"""Named system prompts loaded from an instructions file.

Two file formats are accepted:

* text, where each ``[Prompt:Name]`` line starts a new prompt. Text before
  the first header is ignored; a file without headers is one unnamed prompt::

      [Prompt:Translate]
      Translate the text to French.
      [Prompt:Summarize]
      Summarize the text in one sentence.

* YAML (``.yaml`` / ``.yml``) with a ``prompts`` list of name/content entries.
"""

import re
from collections.abc import Callable, Sequence
from pathlib import Path

import structlog
import yaml
from pydantic import BaseModel, Field

logger = structlog.get_logger()

_HEADER = re.compile(r"\[Prompt:([^\]]+)\]")

PromptChooser = Callable[[Sequence["Prompt"], int | None], int | None]


class PromptSelectionCancelled(Exception):
    """The user dismissed the prompt chooser; the ask must not start."""


class Prompt(BaseModel):
    name: str = Field("", description="Display name; empty for the unnamed leading prompt")
    content: str

    @property
    def label(self) -> str:
        return self.name or "(default)"


class PromptFile(BaseModel):
    """Root of a YAML prompt file."""

    prompts: list[Prompt] = Field(default_factory=list)


def parse_prompt_text(text: str) -> list[Prompt]:
    """Split ``[Prompt:Name]`` sections. Each content line keeps a trailing newline."""
    prompts: list[Prompt] = []
    name = ""
    lines: list[str] = []
    has_header = False

    for line in text.splitlines():
        match = _HEADER.fullmatch(line.rstrip())
        if match:
            if has_header:
                prompts.append(Prompt(name=name, content="".join(lines)))
            name = match.group(1)
            lines = []
            has_header = True
        else:
            lines.append(line + "\n")

    if has_header or lines:
        prompts.append(Prompt(name=name, content="".join(lines)))
    return prompts


class PromptLibrary:
    """System prompts from one instructions file, plus the last choice made."""

    def __init__(self, prompts: Sequence[Prompt] | None = None, path: str | None = None) -> None:
        self._prompts = list(prompts or [])
        self._path = path
        self.last_index: int | None = None

    @classmethod
    def from_file(cls, path: str) -> "PromptLibrary":
        file_path = Path(path)
        if not file_path.exists():
            logger.debug("prompt_file_missing", path=path)
            return cls(path=path)

        raw = file_path.read_text(encoding="utf-8")
        if file_path.suffix.lower() in (".yaml", ".yml"):
            data = yaml.safe_load(raw) or {}
            prompts = PromptFile(**data).prompts
        else:
            prompts = parse_prompt_text(raw)

        logger.info("prompt_file_loaded", path=path, prompt_count=len(prompts))
        return cls(prompts, path=path)

    def reload(self) -> None:
        if self._path is None:
            return
        self._prompts = PromptLibrary.from_file(self._path).prompts

    @property
    def prompts(self) -> list[Prompt]:
        return list(self._prompts)

    def __len__(self) -> int:
        return len(self._prompts)

    def resolve(self, default: str, chooser: PromptChooser | None = None) -> str:
        """Pick the system prompt for the next ask.

        No prompts gives ``default``, a single prompt is used as is, and with
        several the chooser decides (first prompt when there is no chooser).
        A chooser returning None cancels the ask.
        """
        if not self._prompts:
            return default
        if len(self._prompts) == 1:
            return self._prompts[0].content

        if chooser is None:
            index = self.last_index if self.last_index is not None else 0
        else:
            choice = chooser(self.prompts, self.last_index)
            if choice is None:
                logger.info("prompt_selection_cancelled")
                raise PromptSelectionCancelled()
            index = choice

        if not 0 <= index < len(self._prompts):
            logger.warning("prompt_selection_out_of_range", index=index, prompt_count=len(self._prompts))
            return default

        self.last_index = index
        logger.debug("prompt_selected", name=self._prompts[index].label, index=index)
        return self._prompts[index].content
