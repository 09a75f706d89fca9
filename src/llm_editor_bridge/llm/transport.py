"""HTTP transport for LLM backends.

The coroutines (request, request_streaming) do the actual I/O with aiohttp and
can be awaited directly by asyncio hosts. Editor hosts that own a
single-threaded UI loop use perform / perform_streaming instead: the coroutine
runs on a worker thread with its own event loop, raw chunks are handed back
through a queue, and the calling thread keeps pumping its UI between polls.
"""

from __future__ import annotations

import asyncio
import codecs
import queue
import threading
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from enum import Enum

import aiohttp
import structlog

from llm_editor_bridge.llm.models import EndpointKind, ExtractedFragment
from llm_editor_bridge.llm.stream import extract_fragments, is_completion_marker

logger = structlog.get_logger()

Pump = Callable[[], None]
ChunkSink = Callable[[str], None]
FragmentSink = Callable[[ExtractedFragment], None]

DEFAULT_POLL_INTERVAL = 0.01


class StatusCategory(str, Enum):
    OK = "ok"
    NETWORK_ERROR = "network_error"
    HTTP_ERROR = "http_error"
    ABANDONED = "abandoned"


@dataclass(slots=True)
class TransportResult:
    """Outcome of one HTTP exchange."""

    status: int | None = None
    body: str = ""
    error: str | None = None
    abandoned: bool = False

    @property
    def category(self) -> StatusCategory:
        if self.abandoned:
            return StatusCategory.ABANDONED
        if self.error is not None or self.status is None:
            return StatusCategory.NETWORK_ERROR
        if 200 <= self.status < 300:
            return StatusCategory.OK
        return StatusCategory.HTTP_ERROR

    @property
    def ok(self) -> bool:
        return self.category is StatusCategory.OK


def _proxy_or_none(proxy: str | None) -> str | None:
    if not proxy or proxy == "0":
        return None
    return proxy


class BackgroundCall:
    """Runs one transport coroutine on a worker thread.

    Chunks produced by the coroutine are owned by the queue until the
    foreground drains them; the final result is handed over once, when the
    thread has finished.
    """

    def __init__(self, name: str = "llm-transport") -> None:
        self._name = name
        self._chunks: queue.Queue[str] = queue.Queue()
        self._thread: threading.Thread | None = None
        self._result: TransportResult | None = None
        self._exc: BaseException | None = None

    def start(self, factory: Callable[[ChunkSink], Awaitable[TransportResult]]) -> None:
        def _run() -> None:
            try:
                self._result = asyncio.run(factory(self._chunks.put))
            except BaseException as e:  # re-raised on the foreground thread
                self._exc = e

        self._thread = threading.Thread(target=_run, name=self._name, daemon=True)
        self._thread.start()

    @property
    def done(self) -> bool:
        return self._thread is not None and not self._thread.is_alive()

    def drain(self) -> list[str]:
        chunks = []
        while True:
            try:
                chunks.append(self._chunks.get_nowait())
            except queue.Empty:
                return chunks

    def result(self) -> TransportResult:
        if self._thread is None:
            raise RuntimeError("background call was never started")
        self._thread.join()
        if self._exc is not None:
            raise self._exc
        if self._result is None:
            raise RuntimeError("background call finished without a result")
        return self._result


class HttpTransport:
    """Performs non-streaming and streaming POST requests to an LLM endpoint."""

    def __init__(
        self,
        timeout: float | None = None,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
    ) -> None:
        # None leaves aiohttp without a total timeout
        self._timeout = aiohttp.ClientTimeout(total=timeout)
        self._poll_interval = poll_interval

    async def request(
        self,
        url: str,
        body: str,
        headers: dict[str, str],
        proxy: str | None = None,
    ) -> TransportResult:
        """POST body and return the whole response."""
        logger.debug("transport_request_start", url=url, streaming=False)
        try:
            async with aiohttp.ClientSession(timeout=self._timeout) as session:
                async with session.post(
                    url,
                    data=body.encode("utf-8"),
                    headers=headers,
                    proxy=_proxy_or_none(proxy),
                ) as resp:
                    raw = await resp.read()
                    result = TransportResult(
                        status=resp.status,
                        body=raw.decode("utf-8", errors="replace"),
                    )
        except asyncio.TimeoutError:
            logger.error("transport_timeout", url=url)
            return TransportResult(error="Request timed out.")
        except aiohttp.ClientError as e:
            logger.error("transport_request_failed", url=url, error=str(e))
            return TransportResult(error=str(e) or type(e).__name__)

        logger.debug(
            "transport_request_complete",
            url=url,
            status=result.status,
            body_length=len(result.body),
        )
        return result

    async def request_streaming(
        self,
        url: str,
        body: str,
        headers: dict[str, str],
        proxy: str | None,
        on_chunk: ChunkSink,
    ) -> TransportResult:
        """POST body and hand each decoded network read to on_chunk, in order.

        A non-2xx response is read whole into the result body instead of being
        streamed, so the caller can report the backend's error message.
        """
        logger.debug("transport_request_start", url=url, streaming=True)
        chunk_count = 0
        try:
            async with aiohttp.ClientSession(timeout=self._timeout) as session:
                async with session.post(
                    url,
                    data=body.encode("utf-8"),
                    headers=headers,
                    proxy=_proxy_or_none(proxy),
                ) as resp:
                    if not 200 <= resp.status < 300:
                        raw = await resp.read()
                        return TransportResult(
                            status=resp.status,
                            body=raw.decode("utf-8", errors="replace"),
                        )

                    # incremental so multi-byte characters split across reads survive
                    decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
                    async for data in resp.content.iter_any():
                        text = decoder.decode(data)
                        if text:
                            chunk_count += 1
                            on_chunk(text)
                    tail = decoder.decode(b"", final=True)
                    if tail:
                        chunk_count += 1
                        on_chunk(tail)
                    status = resp.status
        except asyncio.TimeoutError:
            logger.error("transport_timeout", url=url, chunks_received=chunk_count)
            return TransportResult(error="Request timed out.")
        except aiohttp.ClientError as e:
            logger.error(
                "transport_stream_failed",
                url=url,
                error=str(e),
                chunks_received=chunk_count,
            )
            return TransportResult(error=str(e) or type(e).__name__)

        logger.debug("transport_stream_complete", url=url, status=status, chunks_received=chunk_count)
        return TransportResult(status=status)

    def _wait(
        self,
        call: BackgroundCall,
        pump: Pump | None,
        should_stop: Callable[[], bool] | None,
        on_chunk: ChunkSink | None = None,
    ) -> TransportResult:
        while True:
            # read done before draining so chunks queued just before exit are not lost
            finished = call.done
            for chunk in call.drain():
                if should_stop is not None and should_stop():
                    break
                if on_chunk is not None:
                    on_chunk(chunk)
            if finished:
                return call.result()
            if should_stop is not None and should_stop():
                logger.info("transport_abandoned")
                return TransportResult(abandoned=True)
            if pump is not None:
                pump()
            time.sleep(self._poll_interval)

    def perform(
        self,
        url: str,
        body: str,
        headers: dict[str, str],
        proxy: str | None = None,
        pump: Pump | None = None,
        should_stop: Callable[[], bool] | None = None,
    ) -> TransportResult:
        """Non-streaming request that keeps the calling thread's UI responsive."""
        call = BackgroundCall()
        call.start(lambda _sink: self.request(url, body, headers, proxy))
        return self._wait(call, pump, should_stop)

    def perform_streaming(
        self,
        url: str,
        body: str,
        headers: dict[str, str],
        proxy: str | None,
        kind: EndpointKind,
        on_fragment: FragmentSink,
        pump: Pump | None = None,
        should_stop: Callable[[], bool] | None = None,
    ) -> TransportResult:
        """Streaming request; fragments are parsed and delivered on the calling thread."""

        def _deliver(chunk: str) -> None:
            if is_completion_marker(chunk):
                logger.debug("stream_completion_marker")
                return
            for fragment in extract_fragments(chunk, kind):
                if should_stop is not None and should_stop():
                    return
                on_fragment(fragment)

        call = BackgroundCall()
        call.start(lambda sink: self.request_streaming(url, body, headers, proxy, sink))
        return self._wait(call, pump, should_stop, on_chunk=_deliver)
