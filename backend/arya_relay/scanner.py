from __future__ import annotations

from collections.abc import Iterable

DEFAULT_DETECTION_PHRASES = (
    "call 911",
    "call 112",
    "call 108",
    "emergency room",
    "seek immediate",
    "life-threatening",
)


class EmergencyScanner:
    """Looks for emergency-care language in the assistant's own response text.

    The scanner is stateless; callers keep the one-shot latch and always pass
    the full accumulated response so phrases split across fragments match.
    """

    def __init__(self, phrases: Iterable[str] = DEFAULT_DETECTION_PHRASES) -> None:
        normalized: list[str] = []
        for phrase in phrases:
            cleaned = (phrase or "").strip().lower()
            if cleaned and cleaned not in normalized:
                normalized.append(cleaned)
        if not normalized:
            raise ValueError("EmergencyScanner needs at least one detection phrase.")
        self.phrases = tuple(normalized)

    def first_match(self, text: str) -> str | None:
        lowered = (text or "").lower()
        for phrase in self.phrases:
            if phrase in lowered:
                return phrase
        return None

    def scan(self, text: str) -> bool:
        return self.first_match(text) is not None
