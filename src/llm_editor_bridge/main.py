"""Console entrypoint - run one ask against an in-memory editor buffer."""

import argparse
import asyncio
import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path

import structlog

from llm_editor_bridge.config import Settings, get_settings
from llm_editor_bridge.llm import CompletionOrchestrator, HttpTransport, Success
from llm_editor_bridge.llm.prompts import Prompt, PromptSelectionCancelled
from llm_editor_bridge.llm.sink import BufferEditorSink


def configure_logging(settings: Settings) -> None:
    """Route structlog through stdlib logging.

    Console output goes to stderr so stdout carries only the edited text.
    Setting LOG_FILE adds a rotating JSON log next to the console output.
    """
    level = logging.getLevelName(settings.log_level.upper())
    if not isinstance(level, int):
        level = logging.INFO

    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    if settings.log_file:
        log_path = Path(settings.log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(
            RotatingFileHandler(
                log_path,
                maxBytes=settings.log_file_max_bytes,
                backupCount=settings.log_file_backup_count,
                encoding="utf-8",
            )
        )
    logging.basicConfig(level=level, format="%(message)s", handlers=handlers, force=True)

    renderer = structlog.processors.JSONRenderer() if settings.log_file else structlog.dev.ConsoleRenderer()
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


logger = structlog.get_logger()


class ConsoleNotifier:
    def notify_error(self, title: str, message: str) -> None:
        print(f"{title}: {message}", file=sys.stderr)


def choose_prompt_from_stdin(prompts: list[Prompt], last_index: int | None) -> int | None:
    """Numbered menu on stderr; empty input keeps the last choice, 'q' cancels."""
    default = last_index if last_index is not None else 0
    for i, prompt in enumerate(prompts):
        marker = "*" if i == default else " "
        print(f"{marker} {i + 1}. {prompt.label}", file=sys.stderr)
    try:
        answer = input("Select a system prompt: ").strip()
    except EOFError:
        return None
    if answer.lower() == "q":
        return None
    if not answer:
        return default
    try:
        return int(answer) - 1
    except ValueError:
        return None


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="llm-editor-bridge",
        description="Send a prompt to the configured LLM endpoint and print the edited text.",
    )
    parser.add_argument("prompt", nargs="*", help="Prompt text. Read from stdin when omitted.")
    parser.add_argument("--system", default=None, help="System prompt; overrides the instructions file.")
    parser.add_argument("--choose-prompt", action="store_true", help="Pick a named prompt interactively.")
    keep = parser.add_mutually_exclusive_group()
    keep.add_argument("--keep-question", dest="keep_question", action="store_true", default=None)
    keep.add_argument("--replace-question", dest="keep_question", action="store_false")
    stream = parser.add_mutually_exclusive_group()
    stream.add_argument("--stream", dest="streaming", action="store_true", default=None)
    stream.add_argument("--no-stream", dest="streaming", action="store_false")
    return parser


async def run_ask(settings: Settings, prompt: str, system_prompt: str, keep_question: bool) -> tuple[bool, str]:
    """Run one ask through the asyncio path and return (succeeded, buffer text)."""
    sink = BufferEditorSink(prompt)
    orchestrator = CompletionOrchestrator(
        sink,
        HttpTransport(timeout=settings.timeout),
        keep_question=keep_question,
        verbose_errors=settings.verbose_errors,
        notifier=ConsoleNotifier(),
    )
    handle = await orchestrator.start_ask_async(
        prompt,
        system_prompt,
        settings.current_profile(),
        settings.current_params(),
    )
    return isinstance(handle.outcome, Success), sink.text


def main(argv: list[str] | None = None) -> int:
    """Run one ask from the command line."""
    args = build_parser().parse_args(argv)
    settings = get_settings()
    configure_logging(settings)

    overrides = {}
    if args.streaming is not None:
        overrides["streaming"] = args.streaming
    if overrides:
        settings = settings.model_copy(update=overrides)
    keep_question = settings.keep_question if args.keep_question is None else args.keep_question

    prompt = " ".join(args.prompt) if args.prompt else sys.stdin.read()

    if args.system is not None:
        system_prompt = args.system
    else:
        try:
            system_prompt = settings.system_prompt(
                chooser=choose_prompt_from_stdin if args.choose_prompt else None,
            )
        except PromptSelectionCancelled:
            return 1

    logger.info(
        "cli_ask",
        response_type=settings.endpoint_kind.value,
        model=settings.model,
        streaming=settings.streaming,
        keep_question=keep_question,
    )

    ok, text = asyncio.run(run_ask(settings, prompt, system_prompt, keep_question))
    sys.stdout.write(text)
    if text and not text.endswith("\n"):
        sys.stdout.write("\n")
    return 0 if ok else 1


if __name__ == "__main__":
    sys.exit(main())
