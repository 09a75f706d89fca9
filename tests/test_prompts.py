"""Tests for named system prompts."""

import pytest

from llm_editor_bridge.llm.prompts import (
    Prompt,
    PromptLibrary,
    PromptSelectionCancelled,
    parse_prompt_text,
)


def test_parse_named_sections():
    text = "[Prompt:French]\nTranslate to French\n[Prompt:Summary]\nSummarize\nbriefly\n"
    prompts = parse_prompt_text(text)

    assert [p.name for p in prompts] == ["French", "Summary"]
    assert prompts[0].content == "Translate to French\n"
    assert prompts[1].content == "Summarize\nbriefly\n"


def test_text_before_first_header_is_ignored():
    prompts = parse_prompt_text("preamble\n[Prompt:A]\na\n")
    assert prompts == [Prompt(name="A", content="a\n")]


def test_file_without_headers_is_one_prompt():
    prompts = parse_prompt_text("Be helpful.\nBe brief.\n")
    assert prompts == [Prompt(name="", content="Be helpful.\nBe brief.\n")]
    assert prompts[0].label == "(default)"


def test_empty_text():
    assert parse_prompt_text("") == []


def test_from_missing_file(tmp_path):
    library = PromptLibrary.from_file(str(tmp_path / "missing.txt"))
    assert len(library) == 0
    assert library.resolve("default") == "default"


def test_from_yaml_file(tmp_path):
    path = tmp_path / "prompts.yaml"
    path.write_text(
        "prompts:\n"
        "  - name: French\n"
        "    content: Translate to French\n"
        "  - name: German\n"
        "    content: Translate to German\n",
        encoding="utf-8",
    )

    library = PromptLibrary.from_file(str(path))

    assert [p.name for p in library.prompts] == ["French", "German"]


def test_reload_picks_up_changes(tmp_path):
    path = tmp_path / "prompts.txt"
    path.write_text("[Prompt:A]\na\n", encoding="utf-8")
    library = PromptLibrary.from_file(str(path))

    path.write_text("[Prompt:A]\na\n[Prompt:B]\nb\n", encoding="utf-8")
    library.reload()

    assert len(library) == 2


def test_single_prompt_used_without_chooser():
    chooser_calls = []
    library = PromptLibrary([Prompt(name="Only", content="only")])

    result = library.resolve("default", lambda prompts, last: chooser_calls.append(1) or 0)

    assert result == "only"
    assert chooser_calls == []


def test_chooser_sees_last_index():
    library = PromptLibrary([Prompt(name="A", content="a"), Prompt(name="B", content="b")])
    seen = []

    def chooser(prompts, last):
        seen.append(last)
        return 1

    assert library.resolve("default", chooser) == "b"
    assert library.resolve("default", chooser) == "b"
    assert seen == [None, 1]
    assert library.last_index == 1


def test_no_chooser_uses_last_choice():
    library = PromptLibrary([Prompt(name="A", content="a"), Prompt(name="B", content="b")])
    assert library.resolve("default") == "a"
    library.last_index = 1
    assert library.resolve("default") == "b"


def test_chooser_cancel():
    library = PromptLibrary([Prompt(name="A", content="a"), Prompt(name="B", content="b")])
    with pytest.raises(PromptSelectionCancelled):
        library.resolve("default", lambda prompts, last: None)


def test_out_of_range_choice_falls_back():
    library = PromptLibrary([Prompt(name="A", content="a"), Prompt(name="B", content="b")])
    assert library.resolve("default", lambda prompts, last: 5) == "default"
    assert library.last_index is None


def test_header_must_be_whole_line():
    prompts = parse_prompt_text("[Prompt:A]\nsee [Prompt:B] below\n[Prompt:C] extra text\n[Prompt:D]  \nd\n")

    assert [p.name for p in prompts] == ["A", "D"]
    assert prompts[0].content == "see [Prompt:B] below\n[Prompt:C] extra text\n"
