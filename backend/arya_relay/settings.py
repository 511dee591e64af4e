from __future__ import annotations

import os
from dataclasses import dataclass, field

_SARVAM_API_BASE = "https://api.sarvam.ai/v1"
_OPENROUTER_API_BASE = "https://openrouter.ai/api/v1"
_OPENAI_API_BASE = "https://api.openai.com/v1"

_PROVIDER_ALIASES = {
    "sarvam": "sarvam",
    "openrouter": "openrouter",
    "openai": "openai",
    "gpt": "openai",
}


@dataclass(frozen=True)
class ProviderSettings:
    provider: str
    base_url: str
    api_key: str
    model: str


@dataclass(frozen=True)
class RelaySettings:
    providers: tuple[ProviderSettings, ...] = ()
    temperature: float = 0.7
    max_output_tokens: int = 2048
    connect_timeout_seconds: float = 8.0
    read_timeout_seconds: float = 60.0
    extra_emergency_phrases: tuple[str, ...] = field(default_factory=tuple)

    @property
    def provider(self) -> ProviderSettings | None:
        return self.providers[0] if self.providers else None


def _env(name: str, default: str = "") -> str:
    return (os.getenv(name) or default).strip()


def _env_float(name: str, default: float) -> float:
    raw = _env(name)
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {raw!r}") from None


def _env_int(name: str, default: int) -> int:
    raw = _env(name)
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from None
    if value <= 0:
        raise ValueError(f"{name} must be positive, got {value}")
    return value


def provider_candidates() -> list[ProviderSettings]:
    preference = _env("ARYA_CHAT_PROVIDER", "auto").lower()
    candidates: list[ProviderSettings] = []

    sarvam_api_key = _env("SARVAM_API_KEY")
    if sarvam_api_key:
        candidates.append(
            ProviderSettings(
                provider="sarvam",
                base_url=_env("SARVAM_BASE_URL", _SARVAM_API_BASE).rstrip("/"),
                api_key=sarvam_api_key,
                model=_env("SARVAM_MODEL", "sarvam-m"),
            )
        )

    openrouter_api_key = _env("OPENROUTER_API_KEY")
    if openrouter_api_key:
        candidates.append(
            ProviderSettings(
                provider="openrouter",
                base_url=_env("OPENROUTER_BASE_URL", _OPENROUTER_API_BASE).rstrip("/"),
                api_key=openrouter_api_key,
                model=_env("OPENROUTER_MODEL", "openai/gpt-4o-mini"),
            )
        )

    openai_api_key = _env("OPENAI_API_KEY")
    if openai_api_key:
        candidates.append(
            ProviderSettings(
                provider="openai",
                base_url=_env("OPENAI_API_BASE_URL", _OPENAI_API_BASE).rstrip("/"),
                api_key=openai_api_key,
                model=_env("ARYA_CHAT_MODEL", "gpt-4o-mini"),
            )
        )

    if preference in {"", "auto"}:
        return candidates
    canonical = _PROVIDER_ALIASES.get(preference)
    if not canonical:
        return candidates
    preferred = [candidate for candidate in candidates if candidate.provider == canonical]
    others = [candidate for candidate in candidates if candidate.provider != canonical]
    return preferred + others


def load_relay_settings() -> RelaySettings:
    extra_phrases = tuple(
        phrase.strip() for phrase in _env("ARYA_EXTRA_EMERGENCY_PHRASES").split(",") if phrase.strip()
    )
    return RelaySettings(
        providers=tuple(provider_candidates()),
        temperature=_env_float("ARYA_CHAT_TEMPERATURE", 0.7),
        max_output_tokens=_env_int("ARYA_MAX_OUTPUT_TOKENS", 2048),
        connect_timeout_seconds=_env_float("ARYA_UPSTREAM_CONNECT_TIMEOUT_SECONDS", 8.0),
        read_timeout_seconds=_env_float("ARYA_UPSTREAM_READ_TIMEOUT_SECONDS", 60.0),
        extra_emergency_phrases=extra_phrases,
    )
