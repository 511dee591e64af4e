from __future__ import annotations

import importlib
import sys
from pathlib import Path
from typing import Callable

import pytest
from fastapi.testclient import TestClient

BACKEND_DIR = Path(__file__).resolve().parents[1]
if str(BACKEND_DIR) not in sys.path:
    sys.path.insert(0, str(BACKEND_DIR))

from fake_upstream import ScriptedProvider  # noqa: E402

_PROVIDER_ENV_KEYS = (
    "ARYA_CHAT_PROVIDER",
    "SARVAM_API_KEY",
    "OPENROUTER_API_KEY",
    "OPENAI_API_KEY",
    "ARYA_EXTRA_EMERGENCY_PHRASES",
    "ARYA_MAX_OUTPUT_TOKENS",
)


@pytest.fixture
def backend_module(tmp_path, monkeypatch):
    db_path = tmp_path / "erprana-test.sqlite"
    monkeypatch.setenv("ERPRANA_DB_PATH", str(db_path))
    # Keep CI offline; chat tests install a scripted provider explicitly.
    for key in _PROVIDER_ENV_KEYS:
        monkeypatch.delenv(key, raising=False)

    if "main" in sys.modules:
        module = importlib.reload(sys.modules["main"])
    else:
        module = importlib.import_module("main")
    return module


@pytest.fixture
def client(backend_module):
    with TestClient(backend_module.app) as test_client:
        yield test_client


@pytest.fixture
def scripted_provider(backend_module, monkeypatch) -> Callable[..., ScriptedProvider]:
    def _install(fragments, **kwargs) -> ScriptedProvider:
        provider = ScriptedProvider(fragments, **kwargs)
        monkeypatch.setattr(backend_module.container.relay, "provider", provider)
        return provider

    return _install
