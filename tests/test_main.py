"""Tests for the console entrypoint."""

import io
from unittest.mock import AsyncMock, patch

import pytest

from llm_editor_bridge.llm.prompts import Prompt
from llm_editor_bridge.main import build_parser, choose_prompt_from_stdin, main


def test_parser_defaults():
    args = build_parser().parse_args(["hello", "world"])
    assert args.prompt == ["hello", "world"]
    assert args.keep_question is None
    assert args.streaming is None
    assert args.system is None


def test_parser_flags():
    args = build_parser().parse_args(["--replace-question", "--no-stream", "--system", "S", "q"])
    assert args.keep_question is False
    assert args.streaming is False
    assert args.system == "S"


def test_main_prints_edited_text(mock_env_vars, capsys):
    with patch("llm_editor_bridge.main.run_ask", new=AsyncMock(return_value=(True, "Q\n\nA"))) as run_ask:
        code = main(["--system", "Be brief.", "Q"])

    assert code == 0
    assert capsys.readouterr().out == "Q\n\nA\n"
    settings, prompt, system_prompt, keep_question = run_ask.call_args.args
    assert prompt == "Q"
    assert system_prompt == "Be brief."
    assert keep_question is True
    assert settings.streaming is False


def test_main_overrides(mock_env_vars):
    with patch("llm_editor_bridge.main.run_ask", new=AsyncMock(return_value=(True, "A"))) as run_ask:
        main(["--stream", "--replace-question", "Q"])

    settings, _, _, keep_question = run_ask.call_args.args
    assert settings.streaming is True
    assert keep_question is False


def test_main_failure_exit_code(mock_env_vars):
    with patch("llm_editor_bridge.main.run_ask", new=AsyncMock(return_value=(False, "Q"))):
        assert main(["Q"]) == 1


def test_main_reads_stdin(mock_env_vars):
    with (
        patch("llm_editor_bridge.main.run_ask", new=AsyncMock(return_value=(True, "x"))) as run_ask,
        patch("sys.stdin", io.StringIO("from stdin")),
    ):
        main([])

    assert run_ask.call_args.args[1] == "from stdin"


@pytest.mark.parametrize(
    "answer,expected",
    [("2", 1), ("", 0), ("q", None), ("abc", None)],
)
def test_choose_prompt_from_stdin(answer, expected):
    prompts = [Prompt(name="A", content="a"), Prompt(name="B", content="b")]
    with patch("builtins.input", return_value=answer):
        assert choose_prompt_from_stdin(prompts, None) == expected


def test_choose_prompt_eof():
    with patch("builtins.input", side_effect=EOFError):
        assert choose_prompt_from_stdin([Prompt(content="a")], 0) is None
