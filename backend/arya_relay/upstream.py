from __future__ import annotations

import json
import logging
from collections.abc import AsyncIterator, Sequence
from typing import Any, Protocol

import httpx

from .errors import ProviderError
from .models import ConversationTurn
from .settings import RelaySettings

logger = logging.getLogger(__name__)

_DONE_SENTINEL = "[DONE]"


class ChatCompletionProvider(Protocol):
    def stream_completion(
        self,
        turns: Sequence[ConversationTurn],
        *,
        max_tokens: int,
    ) -> AsyncIterator[str]: ...


def _provider_error_message(response: httpx.Response) -> str:
    message = response.text.strip()
    try:
        payload = response.json()
    except ValueError:
        payload = None
    if isinstance(payload, dict):
        err = payload.get("error")
        if isinstance(err, dict):
            msg = err.get("message")
            if isinstance(msg, str) and msg.strip():
                return msg.strip()
        if isinstance(err, str) and err.strip():
            return err.strip()
        msg = payload.get("message")
        if isinstance(msg, str) and msg.strip():
            return msg.strip()
    return message or f"HTTP {response.status_code}"


def _delta_text(chunk: dict[str, Any]) -> str:
    choices = chunk.get("choices")
    if not isinstance(choices, list) or not choices:
        return ""
    first = choices[0] if isinstance(choices[0], dict) else {}
    delta = first.get("delta") or {}
    content = delta.get("content") if isinstance(delta, dict) else None
    return content if isinstance(content, str) else ""


def _event_data(block: str) -> str | None:
    data_lines: list[str] = []
    for line in block.split("\n"):
        if line.startswith("data:"):
            value = line[5:]
            data_lines.append(value[1:] if value.startswith(" ") else value)
    return "\n".join(data_lines) if data_lines else None


async def iter_sse_data(chunks: AsyncIterator[str]) -> AsyncIterator[str]:
    """Yield the `data:` payload of each event in a text/event-stream body.

    Chunks may split events anywhere; events are delimited by a blank line.
    Comment lines and events without data are skipped.
    """
    buffer = ""
    async for chunk in chunks:
        buffer += chunk
        # a trailing "\r" may be the first half of a "\r\n" split across chunks
        held = "\r" if buffer.endswith("\r") else ""
        if held:
            buffer = buffer[:-1]
        buffer = buffer.replace("\r\n", "\n").replace("\r", "\n")
        while "\n\n" in buffer:
            block, buffer = buffer.split("\n\n", 1)
            data = _event_data(block)
            if data is not None:
                yield data
        buffer += held
    for block in buffer.replace("\r", "\n").split("\n\n"):
        data = _event_data(block)
        if data is not None:
            yield data


class OpenAICompatibleProvider:
    """Streams chat completions from an OpenAI-compatible `/chat/completions` API."""

    def __init__(
        self,
        settings: RelaySettings,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.settings = settings
        self._transport = transport

    def _request_parts(
        self,
        turns: Sequence[ConversationTurn],
        max_tokens: int,
    ) -> tuple[str, dict[str, str], dict[str, Any]]:
        provider = self.settings.provider
        if provider is None:
            raise ProviderError("No chat provider key found in runtime env.")
        headers = {
            "Authorization": f"Bearer {provider.api_key}",
            "Content-Type": "application/json",
            "Accept": "text/event-stream",
        }
        payload = {
            "model": provider.model,
            "messages": [turn.as_message() for turn in turns],
            "stream": True,
            "max_tokens": max_tokens,
            "temperature": self.settings.temperature,
        }
        return f"{provider.base_url}/chat/completions", headers, payload

    async def stream_completion(
        self,
        turns: Sequence[ConversationTurn],
        *,
        max_tokens: int,
    ) -> AsyncIterator[str]:
        url, headers, payload = self._request_parts(turns, max_tokens)
        timeout = httpx.Timeout(
            self.settings.read_timeout_seconds,
            connect=self.settings.connect_timeout_seconds,
        )
        async with httpx.AsyncClient(timeout=timeout, transport=self._transport) as client:
            async with client.stream("POST", url, headers=headers, json=payload) as response:
                if response.status_code >= 400:
                    await response.aread()
                    message = _provider_error_message(response)
                    logger.warning("chat provider rejected request (%s): %s", response.status_code, message)
                    raise ProviderError(message, status_code=response.status_code)
                async for data in iter_sse_data(response.aiter_text()):
                    if data.strip() == _DONE_SENTINEL:
                        return
                    try:
                        chunk = json.loads(data)
                    except json.JSONDecodeError:
                        raise ProviderError("Malformed stream chunk from chat provider.") from None
                    if not isinstance(chunk, dict):
                        continue
                    if chunk.get("error"):
                        err = chunk["error"]
                        message = err.get("message") if isinstance(err, dict) else str(err)
                        raise ProviderError(str(message or "Chat provider stream error."))
                    fragment = _delta_text(chunk)
                    if fragment:
                        yield fragment
