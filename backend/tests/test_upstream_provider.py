from __future__ import annotations

import asyncio
import json

import httpx
import pytest

from arya_relay import (
    ConversationTurn,
    OpenAICompatibleProvider,
    ProviderError,
    ProviderSettings,
    RelaySettings,
    StreamRelay,
    UpstreamUnavailable,
    iter_sse_data,
)
from sse_utils import decode_frames

SETTINGS = RelaySettings(
    providers=(
        ProviderSettings(
            provider="sarvam",
            base_url="https://api.sarvam.test/v1",
            api_key="test-key",
            model="sarvam-m",
        ),
    ),
)
TURNS = [
    ConversationTurn(role="system", content="be concise"),
    ConversationTurn(role="user", content="I feel dizzy"),
]


def _chunk(content: str | None) -> str:
    delta = {} if content is None else {"content": content}
    return "data: " + json.dumps({"choices": [{"index": 0, "delta": delta}]}) + "\n\n"


def _collect(provider: OpenAICompatibleProvider, max_tokens: int = 2048) -> list[str]:
    async def run():
        return [fragment async for fragment in provider.stream_completion(TURNS, max_tokens=max_tokens)]

    return asyncio.run(run())


def test_streams_delta_content_until_done():
    seen: dict = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["auth"] = request.headers.get("authorization")
        seen["body"] = json.loads(request.content)
        body = (
            _chunk(None)
            + _chunk("Drink")
            + ": keep-alive comment\n\n"
            + _chunk(" water")
            + _chunk("")
            + "data: [DONE]\n\n"
            + _chunk("after done")
        )
        return httpx.Response(200, content=body.encode("utf-8"), headers={"content-type": "text/event-stream"})

    provider = OpenAICompatibleProvider(SETTINGS, transport=httpx.MockTransport(handler))
    fragments = _collect(provider, max_tokens=512)

    assert fragments == ["Drink", " water"]
    assert seen["url"] == "https://api.sarvam.test/v1/chat/completions"
    assert seen["auth"] == "Bearer test-key"
    assert seen["body"] == {
        "model": "sarvam-m",
        "messages": [
            {"role": "system", "content": "be concise"},
            {"role": "user", "content": "I feel dizzy"},
        ],
        "stream": True,
        "max_tokens": 512,
        "temperature": 0.7,
    }


def test_http_error_raises_provider_error_with_message():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(401, json={"error": {"message": "Invalid API key"}})

    provider = OpenAICompatibleProvider(SETTINGS, transport=httpx.MockTransport(handler))
    with pytest.raises(ProviderError, match="Invalid API key") as excinfo:
        _collect(provider)
    assert excinfo.value.status_code == 401


def test_error_chunk_inside_stream_raises():
    def handler(request: httpx.Request) -> httpx.Response:
        body = _chunk("Hel") + "data: " + json.dumps({"error": {"message": "overloaded"}}) + "\n\n"
        return httpx.Response(200, content=body.encode("utf-8"))

    provider = OpenAICompatibleProvider(SETTINGS, transport=httpx.MockTransport(handler))

    async def run():
        received = []
        with pytest.raises(ProviderError, match="overloaded"):
            async for fragment in provider.stream_completion(TURNS, max_tokens=64):
                received.append(fragment)
        return received

    assert asyncio.run(run()) == ["Hel"]


def test_missing_provider_key_fails_before_streaming():
    provider = OpenAICompatibleProvider(RelaySettings())
    with pytest.raises(ProviderError, match="No chat provider"):
        _collect(provider)


def test_relay_over_http_provider_reports_pre_commit_failure():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(503, text="upstream down")

    relay = StreamRelay(OpenAICompatibleProvider(SETTINGS, transport=httpx.MockTransport(handler)))
    with pytest.raises(UpstreamUnavailable, match="upstream down"):
        asyncio.run(relay.open(TURNS))


def test_relay_over_http_provider_flags_emergency():
    def handler(request: httpx.Request) -> httpx.Response:
        body = _chunk("Please call") + _chunk(" 108 now.") + "data: [DONE]\n\n"
        return httpx.Response(200, content=body.encode("utf-8"))

    relay = StreamRelay(OpenAICompatibleProvider(SETTINGS, transport=httpx.MockTransport(handler)))

    async def run():
        stream = await relay.open(TURNS)
        return [frame async for frame in stream.frames()]

    assert decode_frames(asyncio.run(run())) == [
        {"content": "Please call"},
        {"content": " 108 now."},
        {"emergency": True},
        {"done": True},
    ]


def test_iter_sse_data_handles_events_split_across_chunks():
    async def chunks():
        for chunk in ["data: fir", "st\ndata: second\n", "\n: ping\n\ndata:th", "ird\r\n\r\n", "data: tail"]:
            yield chunk

    async def run():
        return [item async for item in iter_sse_data(chunks())]

    assert asyncio.run(run()) == ["first\nsecond", "third", "tail"]


def test_iter_sse_data_handles_crlf_split_between_chunks():
    async def chunks():
        for chunk in ['data: {"a": 1}\r\n\r', '\ndata: {"b": 2}\r', "\n\r", "\n"]:
            yield chunk

    async def run():
        return [item async for item in iter_sse_data(chunks())]

    assert asyncio.run(run()) == ['{"a": 1}', '{"b": 2}']


def test_crlf_stream_split_mid_delimiter_streams_every_delta():
    body = (_chunk("Rest") + _chunk(" well") + "data: [DONE]\n\n").replace("\n", "\r\n").encode("utf-8")
    # cut inside the first "\r\n\r\n" delimiter
    cut = body.index(b"\r\n\r\n") + 3

    class SplitStream(httpx.AsyncByteStream):
        async def __aiter__(self):
            yield body[:cut]
            yield body[cut:]

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, stream=SplitStream())

    provider = OpenAICompatibleProvider(SETTINGS, transport=httpx.MockTransport(handler))
    assert _collect(provider) == ["Rest", " well"]
