from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


TURN_ROLES = {"user", "assistant", "system"}
FORWARDED_ROLES = {"user", "assistant"}
USER_ROLES = {"layperson", "doctor"}

RELAY_STATES = {"idle", "streaming", "completed", "failed", "cancelled"}
TERMINAL_RELAY_STATES = {"completed", "failed", "cancelled"}

EVENT_KINDS = {"content", "emergency", "done", "error"}


@dataclass(frozen=True)
class ConversationTurn:
    role: str
    content: str

    def as_message(self) -> dict[str, str]:
        return {"role": self.role, "content": self.content}


@dataclass(frozen=True)
class UserContext:
    name: str | None = None
    role: str | None = None
    conditions: tuple[str, ...] = field(default_factory=tuple)
    allergies: tuple[str, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class StreamEvent:
    kind: str
    text: str | None = None

    @classmethod
    def content(cls, fragment: str) -> "StreamEvent":
        return cls("content", fragment)

    @classmethod
    def emergency(cls) -> "StreamEvent":
        return cls("emergency")

    @classmethod
    def done(cls) -> "StreamEvent":
        return cls("done")

    @classmethod
    def error(cls, message: str) -> "StreamEvent":
        return cls("error", message)

    @property
    def terminal(self) -> bool:
        return self.kind in {"done", "error"}

    def as_payload(self) -> dict[str, Any]:
        if self.kind == "content":
            return {"content": self.text or ""}
        if self.kind == "error":
            return {"error": self.text or ""}
        if self.kind in {"emergency", "done"}:
            return {self.kind: True}
        raise ValueError(f"Unknown stream event kind: {self.kind}")
