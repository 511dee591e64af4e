#!/usr/bin/env python3
from __future__ import annotations

import importlib
import json
import os
import sys
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from fastapi.testclient import TestClient


@dataclass
class Scenario:
  name: str
  message: str
  expect_emergency: bool


def parse_sse_payloads(payload_text: str) -> list[dict[str, Any]]:
  payloads: list[dict[str, Any]] = []
  for raw_line in payload_text.splitlines():
    line = raw_line.strip("\r")
    if not line.startswith("data: "):
      continue
    try:
      payloads.append(json.loads(line[6:]))
    except json.JSONDecodeError:
      payloads.append({"raw": line[6:]})
  return payloads


def content_text(payloads: list[dict[str, Any]]) -> str:
  return "".join(item["content"] for item in payloads if isinstance(item.get("content"), str))


def run() -> int:
  repo_root = Path(__file__).resolve().parents[1]
  backend_dir = repo_root / "backend"
  if str(backend_dir) not in sys.path:
    sys.path.insert(0, str(backend_dir))

  backend_module = importlib.import_module("main")
  backend_module = importlib.reload(backend_module)

  provider = backend_module.container.settings.provider
  if provider is None:
    print("No chat provider key configured; set SARVAM_API_KEY, OPENROUTER_API_KEY or OPENAI_API_KEY.")
    return 2

  system_prompt = (
    "You are ARYA, a careful health assistant. Give short, practical guidance. "
    "If symptoms could be life-threatening, tell the user to call 911 or go to the emergency room."
  )
  greeting = {"role": "assistant", "content": "Hello! I'm ARYA, your health assistant."}
  scenarios = [
    Scenario(
      name="Routine Symptom",
      message="I have had a mild headache since this morning after skipping lunch.",
      expect_emergency=False,
    ),
    Scenario(
      name="Possible Cardiac Emergency",
      message="Crushing chest pain spreading to my left arm, sweating, short of breath.",
      expect_emergency=True,
    ),
  ]

  results: list[dict[str, Any]] = []

  with TestClient(backend_module.app) as client:
    for scenario in scenarios:
      response = client.post(
        "/api/arya/chat",
        json={
          "messages": [greeting, {"role": "user", "content": scenario.message}],
          "systemPrompt": system_prompt,
          "userContext": {"name": "Smoke Tester", "role": "layperson"},
        },
      )
      result: dict[str, Any] = {
        "name": scenario.name,
        "status_code": response.status_code,
        "expect_emergency": scenario.expect_emergency,
      }
      if response.status_code != 200:
        result["pass"] = False
        result["error"] = response.text[:500]
        results.append(result)
        continue

      payloads = parse_sse_payloads(response.text)
      emergency = any(item.get("emergency") is True for item in payloads)
      done = bool(payloads) and payloads[-1].get("done") is True
      result["emergency"] = emergency
      result["preview"] = content_text(payloads)[:240]
      result["event_count"] = len(payloads)
      # Model output varies; an emergency miss is reported but only a broken stream fails.
      result["pass"] = done
      if not done:
        result["error"] = f"Stream ended without done: {payloads[-1] if payloads else None}"
      results.append(result)

  passed = sum(1 for item in results if item.get("pass"))
  print(f"Provider: {provider.provider} ({provider.model}) at {datetime.now(timezone.utc).isoformat()}")
  for item in results:
    status = "PASS" if item.get("pass") else "FAIL"
    print(f"[{status}] {item['name']}: status={item['status_code']} emergency={item.get('emergency')} "
          f"(expected {item['expect_emergency']})")
    if item.get("preview"):
      print(f"  preview: {item['preview']}")
    if item.get("error"):
      print(f"  error: {item['error']}")
  print(f"Passed {passed}/{len(results)} scenarios.")

  if os.getenv("ARYA_SMOKE_JSON"):
    print(json.dumps(results, indent=2, ensure_ascii=True))

  return 0 if passed == len(results) else 1


if __name__ == "__main__":
  raise SystemExit(run())
