from __future__ import annotations

import asyncio
import logging
import uuid
from collections.abc import AsyncIterator, Awaitable, Callable, Sequence
from typing import Protocol

from .errors import UpstreamInterrupted, UpstreamUnavailable
from .framing import SSEEventCodec
from .models import ConversationTurn, StreamEvent
from .scanner import EmergencyScanner
from .upstream import ChatCompletionProvider

logger = logging.getLogger(__name__)

DEFAULT_MAX_OUTPUT_TOKENS = 2048
STREAM_FAILURE_MESSAGE = "Failed to get response"

DisconnectProbe = Callable[[], Awaitable[bool]]


class ResponseSink(Protocol):
    @property
    def closed(self) -> bool: ...

    async def write(self, frame: bytes) -> None: ...

    async def close(self) -> None: ...


class RelayStream:
    """One relay activation: upstream fragments, the response buffer and the emergency latch.

    State moves idle -> streaming -> completed | failed, or cancelled when the
    consumer stops reading before the terminal event.
    """

    def __init__(
        self,
        fragments: AsyncIterator[str],
        *,
        scanner: EmergencyScanner,
        codec: SSEEventCodec,
        request_id: str,
    ) -> None:
        self.request_id = request_id
        self.state = "idle"
        self.emergency_sent = False
        self.matched_phrase: str | None = None
        self._fragments = fragments
        self._scanner = scanner
        self._codec = codec
        self._buffer = ""
        self._pending: str | None = None
        self._exhausted = False
        self._upstream_closed = False

    @property
    def accumulated(self) -> str:
        return self._buffer

    async def _next_fragment(self) -> str | None:
        while True:
            try:
                fragment = await self._fragments.__anext__()
            except StopAsyncIteration:
                return None
            if fragment:
                return fragment

    async def _close_upstream(self) -> None:
        if self._upstream_closed:
            return
        self._upstream_closed = True
        aclose = getattr(self._fragments, "aclose", None)
        if aclose is None:
            return
        try:
            # the upstream may still be parked at a yield when the consumer is cancelled
            await asyncio.shield(aclose())
        except Exception as exc:
            logger.warning("relay %s: closing upstream raised %s", self.request_id, exc)

    async def prime(self) -> None:
        """Pull the first fragment so failures surface before anything is committed."""
        if self.state != "idle":
            raise RuntimeError(f"Relay stream already {self.state}.")
        try:
            self._pending = await self._next_fragment()
        except Exception as exc:
            self.state = "failed"
            await self._close_upstream()
            raise UpstreamUnavailable(str(exc) or exc.__class__.__name__) from exc
        self._exhausted = self._pending is None
        self.state = "streaming"

    def _accept(self, fragment: str) -> list[StreamEvent]:
        events = [StreamEvent.content(fragment)]
        self._buffer += fragment
        if not self.emergency_sent:
            phrase = self._scanner.first_match(self._buffer)
            if phrase is not None:
                self.emergency_sent = True
                self.matched_phrase = phrase
                logger.info("relay %s: emergency phrase detected (%s)", self.request_id, phrase)
                events.append(StreamEvent.emergency())
        return events

    async def events(self) -> AsyncIterator[StreamEvent]:
        if self.state == "idle":
            await self.prime()
        if self.state != "streaming":
            raise RuntimeError(f"Relay stream already {self.state}.")
        try:
            fragment, self._pending = self._pending, None
            while fragment is not None:
                for event in self._accept(fragment):
                    yield event
                try:
                    fragment = await self._next_fragment()
                except Exception as exc:
                    interrupted = UpstreamInterrupted(str(exc) or exc.__class__.__name__)
                    logger.warning("relay %s: upstream interrupted mid-stream: %s", self.request_id, interrupted)
                    self.state = "failed"
                    yield StreamEvent.error(STREAM_FAILURE_MESSAGE)
                    return
            self.state = "completed"
            logger.info(
                "relay %s: completed (%d chars, emergency=%s)",
                self.request_id,
                len(self._buffer),
                self.emergency_sent,
            )
            yield StreamEvent.done()
        finally:
            if self.state == "streaming":
                self.state = "cancelled"
                logger.info("relay %s: client went away, releasing upstream", self.request_id)
            await self._close_upstream()

    async def frames(self, is_disconnected: DisconnectProbe | None = None) -> AsyncIterator[bytes]:
        events = self.events()
        try:
            async for event in events:
                if is_disconnected is not None and await is_disconnected():
                    return
                yield self._codec.encode(event)
        finally:
            await events.aclose()


class StreamRelay:
    """Forwards a composed conversation upstream and re-emits it as framed events."""

    def __init__(
        self,
        provider: ChatCompletionProvider,
        *,
        scanner: EmergencyScanner | None = None,
        codec: SSEEventCodec | None = None,
        max_output_tokens: int = DEFAULT_MAX_OUTPUT_TOKENS,
    ) -> None:
        self.provider = provider
        self.scanner = scanner or EmergencyScanner()
        self.codec = codec or SSEEventCodec()
        self.max_output_tokens = max_output_tokens

    async def open(
        self,
        turns: Sequence[ConversationTurn],
        *,
        request_id: str | None = None,
    ) -> RelayStream:
        stream = RelayStream(
            self.provider.stream_completion(turns, max_tokens=self.max_output_tokens),
            scanner=self.scanner,
            codec=self.codec,
            request_id=request_id or uuid.uuid4().hex,
        )
        logger.info("relay %s: opening upstream stream (%d turns)", stream.request_id, len(turns))
        try:
            await stream.prime()
        except UpstreamUnavailable as exc:
            logger.warning("relay %s: upstream unavailable before streaming: %s", stream.request_id, exc)
            raise
        return stream

    async def relay(
        self,
        turns: Sequence[ConversationTurn],
        sink: ResponseSink,
        *,
        request_id: str | None = None,
    ) -> RelayStream:
        try:
            stream = await self.open(turns, request_id=request_id)
        except UpstreamUnavailable:
            await sink.close()
            raise

        async def sink_closed() -> bool:
            return sink.closed

        frames = stream.frames(is_disconnected=sink_closed)
        try:
            async for frame in frames:
                await sink.write(frame)
        finally:
            await frames.aclose()
            if not sink.closed:
                await sink.close()
        return stream
