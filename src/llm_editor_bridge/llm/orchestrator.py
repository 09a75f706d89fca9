"""Drive one "ask": build the request, send it, and apply the answer to the editor."""

from __future__ import annotations

import threading
import time
import uuid
from collections.abc import Callable
from enum import Enum

import structlog

from llm_editor_bridge.llm.formatter import build_headers, format_request
from llm_editor_bridge.llm.models import (
    AskOutcome,
    Cancelled,
    ChatRequest,
    EndpointProfile,
    Failure,
    FailureKind,
    SamplingParams,
    Success,
)
from llm_editor_bridge.llm.parser import extract_error_message, is_parse_failure, parse_response
from llm_editor_bridge.llm.sink import EditorSink, Notifier, ProgressIndicator, question_separator
from llm_editor_bridge.llm.stream import extract_fragments, is_completion_marker
from llm_editor_bridge.llm.thinking import ReasoningGate
from llm_editor_bridge.llm.transport import HttpTransport, Pump, StatusCategory, TransportResult

logger = structlog.get_logger()

ERROR_TITLE = "LLM Error"
EMPTY_ANSWER_MESSAGE = "Failed to parse API response: the answer is empty."


class AskState(str, Enum):
    IDLE = "idle"
    PROMPT_READY = "prompt_ready"
    SYNC_WAITING = "sync_waiting"
    STREAM_WAITING = "stream_waiting"
    APPLYING = "applying"
    DONE = "done"


class AskInProgressError(RuntimeError):
    """Raised when a second ask is started before the first one is done."""


class AskHandle:
    """Tracks one ask from preparation to its terminal outcome."""

    def __init__(self, request: ChatRequest | None = None) -> None:
        self.request_id = uuid.uuid4().hex[:12]
        self.request = request
        self.state = AskState.IDLE
        self.outcome: AskOutcome | None = None
        self.fragments_delivered = 0
        self.inserted_length = 0
        self.elapsed: float | None = None
        self._cancel = threading.Event()
        self._stream_prepared = False
        self._started = time.perf_counter()

    def cancel(self) -> None:
        self._cancel.set()

    @property
    def cancelled(self) -> bool:
        return self._cancel.is_set()

    @property
    def done(self) -> bool:
        return self.state is AskState.DONE


class CompletionOrchestrator:
    """State machine for asks issued from an editor.

    At most one ask runs at a time. ``run`` is for hosts that own a UI loop on
    the calling thread (the loop is pumped while the network call runs on a
    worker thread); ``run_async`` is for asyncio hosts and awaits the call
    directly.
    """

    def __init__(
        self,
        sink: EditorSink,
        transport: HttpTransport | None = None,
        *,
        keep_question: bool = True,
        verbose_errors: bool = False,
        pump: Pump | None = None,
        progress: ProgressIndicator | None = None,
        notifier: Notifier | None = None,
        on_complete: Callable[[AskOutcome], None] | None = None,
    ) -> None:
        self._sink = sink
        self._transport = transport or HttpTransport()
        self._keep_question = keep_question
        self._verbose_errors = verbose_errors
        self._pump = pump
        self._progress = progress
        self._notifier = notifier
        self._on_complete = on_complete
        self._active: AskHandle | None = None

    # -- public API ---------------------------------------------------------

    def prepare(
        self,
        prompt: str,
        system_prompt: str,
        profile: EndpointProfile,
        params: SamplingParams,
    ) -> AskHandle:
        """Create the handle for an ask. An empty prompt finishes it immediately."""
        if self._active is not None:
            raise AskInProgressError(f"ask {self._active.request_id} is still running")

        if not prompt:
            handle = AskHandle()
            self._finish(handle, Failure(FailureKind.EMPTY_INPUT, "No text selected."))
            return handle

        request = ChatRequest(
            user_prompt=prompt,
            system_prompt=system_prompt or "",
            params=params,
            profile=profile,
        )
        handle = AskHandle(request)
        handle.state = AskState.PROMPT_READY
        return handle

    def start_ask(
        self,
        prompt: str,
        system_prompt: str,
        profile: EndpointProfile,
        params: SamplingParams,
    ) -> AskHandle:
        """Prepare and run an ask on the calling thread. Returns the finished handle."""
        handle = self.prepare(prompt, system_prompt, profile, params)
        if not handle.done:
            self.run(handle)
        return handle

    async def start_ask_async(
        self,
        prompt: str,
        system_prompt: str,
        profile: EndpointProfile,
        params: SamplingParams,
    ) -> AskHandle:
        handle = self.prepare(prompt, system_prompt, profile, params)
        if not handle.done:
            await self.run_async(handle)
        return handle

    def cancel(self, handle: AskHandle) -> None:
        """Best effort: stops further edits; the in-flight request is left to finish."""
        logger.info("ask_cancel_requested", request_id=handle.request_id, state=handle.state.value)
        handle.cancel()

    def run(self, handle: AskHandle) -> AskOutcome:
        request = self._begin(handle)
        profile = request.profile
        body = format_request(profile, request.user_prompt, request.system_prompt, request.params)
        headers = build_headers(profile)

        try:
            if profile.streaming:
                gate = ReasoningGate(profile.show_reasoning)
                result = self._transport.perform_streaming(
                    profile.url,
                    body,
                    headers,
                    profile.proxy_url,
                    profile.kind,
                    lambda fragment: self._deliver(handle, request, gate.feed(fragment.text)),
                    pump=self._pump,
                    should_stop=lambda: handle.cancelled,
                )
                return self._complete_stream(handle, request, gate, result)

            result = self._transport.perform(
                profile.url,
                body,
                headers,
                profile.proxy_url,
                pump=self._pump,
                should_stop=lambda: handle.cancelled,
            )
            return self._complete_sync(handle, request, result)
        except Exception as e:
            self._crash(handle, e)
            raise

    async def run_async(self, handle: AskHandle) -> AskOutcome:
        request = self._begin(handle)
        profile = request.profile
        body = format_request(profile, request.user_prompt, request.system_prompt, request.params)
        headers = build_headers(profile)

        try:
            if profile.streaming:
                gate = ReasoningGate(profile.show_reasoning)

                def on_chunk(chunk: str) -> None:
                    if is_completion_marker(chunk):
                        return
                    for fragment in extract_fragments(chunk, profile.kind):
                        self._deliver(handle, request, gate.feed(fragment.text))

                result = await self._transport.request_streaming(
                    profile.url, body, headers, profile.proxy_url, on_chunk
                )
                return self._complete_stream(handle, request, gate, result)

            result = await self._transport.request(profile.url, body, headers, profile.proxy_url)
            return self._complete_sync(handle, request, result)
        except Exception as e:
            self._crash(handle, e)
            raise

    # -- state transitions --------------------------------------------------

    def _begin(self, handle: AskHandle) -> ChatRequest:
        if handle.state is not AskState.PROMPT_READY or handle.request is None:
            raise ValueError(f"ask {handle.request_id} is not ready to run (state={handle.state.value})")
        if self._active is not None:
            raise AskInProgressError(f"ask {self._active.request_id} is still running")

        self._active = handle
        request = handle.request
        profile = request.profile
        handle.state = AskState.STREAM_WAITING if profile.streaming else AskState.SYNC_WAITING

        logger.info(
            "ask_start",
            request_id=handle.request_id,
            kind=profile.kind.value,
            model=request.params.model,
            url=profile.url,
            streaming=profile.streaming,
            prompt_length=len(request.user_prompt),
            has_system_prompt=bool(request.system_prompt),
        )
        if self._progress is not None:
            self._progress.show()
        return request

    def _deliver(self, handle: AskHandle, request: ChatRequest, text: str) -> None:
        if handle.cancelled or not text:
            return
        if not handle._stream_prepared:
            # the selection is only touched once there is something to show
            self._sink.prepare_for_stream(self._keep_question, request.profile.kind)
            handle._stream_prepared = True
        self._sink.insert_at_cursor(text)
        handle.fragments_delivered += 1
        handle.inserted_length += len(text)

    def _complete_sync(self, handle: AskHandle, request: ChatRequest, result: TransportResult) -> AskOutcome:
        handle.state = AskState.APPLYING
        if handle.cancelled:
            return self._finish(handle, Cancelled())
        if not result.ok:
            return self._finish(handle, self._transport_failure(result))

        answer = parse_response(result.body, request.profile)
        if is_parse_failure(answer):
            return self._finish(handle, Failure(FailureKind.PARSE_ERROR, answer))
        if not answer:
            # nothing left after extraction; the selection stays as it was
            return self._finish(handle, Failure(FailureKind.PARSE_ERROR, EMPTY_ANSWER_MESSAGE))

        if self._keep_question:
            separator = question_separator(request.profile.kind)
            self._sink.replace_selection(request.user_prompt + separator + answer)
        else:
            self._sink.replace_selection(answer)
        handle.inserted_length = len(answer)
        return self._finish(handle, Success(inserted_length=len(answer)))

    def _complete_stream(
        self,
        handle: AskHandle,
        request: ChatRequest,
        gate: ReasoningGate,
        result: TransportResult,
    ) -> AskOutcome:
        handle.state = AskState.APPLYING
        if handle.cancelled:
            return self._finish(handle, Cancelled())
        if not result.ok:
            # fragments already inserted stay in the document
            return self._finish(handle, self._transport_failure(result))
        self._deliver(handle, request, gate.flush())
        return self._finish(handle, Success(inserted_length=handle.inserted_length))

    def _crash(self, handle: AskHandle, error: Exception) -> None:
        logger.exception("ask_crashed", request_id=handle.request_id)
        if not handle.done:
            self._finish(handle, Failure(FailureKind.INTERNAL, f"Unexpected error: {error}"))
        else:
            self._release()

    def _transport_failure(self, result: TransportResult) -> Failure:
        if result.category is StatusCategory.HTTP_ERROR:
            detail = extract_error_message(result.body)
            if detail:
                message = f"API Error: {detail}"
            else:
                message = f"Request failed (HTTP {result.status})"
            if self._verbose_errors and result.body:
                message += f"\n\n{result.body}"
            return Failure(FailureKind.HTTP_STATUS, message)
        return Failure(FailureKind.NETWORK, f"Failed to connect to API: {result.error or 'no response'}")

    def _finish(self, handle: AskHandle, outcome: AskOutcome) -> AskOutcome:
        handle.state = AskState.DONE
        handle.outcome = outcome
        handle.elapsed = time.perf_counter() - handle._started

        match outcome:
            case Success(inserted_length=length):
                logger.info(
                    "ask_complete",
                    request_id=handle.request_id,
                    inserted_length=length,
                    fragments=handle.fragments_delivered,
                    elapsed_s=round(handle.elapsed, 1),
                )
            case Failure(kind=kind, message=message):
                logger.warning(
                    "ask_failed",
                    request_id=handle.request_id,
                    failure=kind.value,
                    message=message[:200],
                    fragments=handle.fragments_delivered,
                )
                if self._notifier is not None:
                    self._notifier.notify_error(ERROR_TITLE, message)
            case Cancelled():
                logger.info(
                    "ask_cancelled",
                    request_id=handle.request_id,
                    fragments=handle.fragments_delivered,
                )

        self._release()
        if self._on_complete is not None:
            self._on_complete(outcome)
        return outcome

    def _release(self) -> None:
        self._active = None
        if self._progress is not None:
            self._progress.dismiss()
