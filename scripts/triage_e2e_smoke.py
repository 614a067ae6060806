#!/usr/bin/env python3
from __future__ import annotations

import importlib
import json
import os
import sys
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from fastapi.testclient import TestClient


@dataclass
class Turn:
  message: str
  expected_symptoms: list[str] = field(default_factory=list)


@dataclass
class Scenario:
  name: str
  user_id: str
  turns: list[Turn]
  location: dict[str, Any] | None = None
  user_profile: dict[str, Any] | None = None


def check_envelope(body: Any, turn: Turn, conversation_id: str | None) -> str | None:
  if not isinstance(body, dict) or body.get("success") is not True:
    return "Response envelope missing success flag."
  if conversation_id and body.get("conversation_id") != conversation_id:
    return f"Conversation changed mid-scenario: {body.get('conversation_id')!r}"
  response = body.get("response") or {}
  if response.get("message_type") not in {"text", "prediction", "follow_up", "clarification"}:
    return f"Unexpected message_type {response.get('message_type')!r}"
  context = body.get("context") or {}
  tracked = set(context.get("extracted_symptoms") or [])
  missing = [symptom for symptom in turn.expected_symptoms if symptom not in tracked]
  if missing:
    return f"Symptoms not tracked in context: {missing}"
  return None


def run() -> int:
  repo_root = Path(__file__).resolve().parents[1]
  backend_dir = repo_root / "backend"
  if str(backend_dir) not in sys.path:
    sys.path.insert(0, str(backend_dir))

  # Smoke runs never write into the developer's main database.
  os.environ.setdefault("TAIMAKO_DB_PATH", str(repo_root / "triage-smoke.sqlite"))

  backend_module = importlib.import_module("main")
  backend_module = importlib.reload(backend_module)

  run_tag = datetime.now(timezone.utc).strftime("%Y%m%d%H%M%S")
  scenarios = [
    Scenario(
      name="Fever Workup Escalates",
      user_id=f"smoke-fever-{run_tag}",
      location={"state_code": "LA", "lga_code": "IKJ"},
      user_profile={"age_group": "adult", "gender": "female"},
      turns=[
        Turn("I have had a fever since yesterday", ["fever"]),
        Turn("I also have a headache and chills", ["fever", "headache", "chills"]),
        Turn("It gets worse at night"),
      ],
    ),
    Scenario(
      name="Vague Complaint Stays Conversational",
      user_id=f"smoke-vague-{run_tag}",
      turns=[Turn("hello, I just feel off today")],
    ),
    Scenario(
      name="Upper Back Pain Compound Symptoms",
      user_id=f"smoke-back-{run_tag}",
      turns=[Turn("My upper back aches badly", ["upper_back_pain", "back_pain"])],
    ),
  ]

  results: list[dict[str, Any]] = []

  with TestClient(backend_module.app) as client:
    for scenario in scenarios:
      scenario_result: dict[str, Any] = {"name": scenario.name, "turns": []}
      conversation_id: str | None = None
      error: str | None = None

      for turn in scenario.turns:
        payload: dict[str, Any] = {"user_id": scenario.user_id, "message": turn.message}
        if conversation_id:
          payload["conversation_id"] = conversation_id
        if scenario.location:
          payload["location"] = scenario.location
        if scenario.user_profile:
          payload["user_profile"] = scenario.user_profile

        chat_response = client.post("/chat", json=payload)
        try:
          body = chat_response.json()
        except ValueError:
          body = {"raw": chat_response.text[:500]}
        scenario_result["turns"].append(
          {"message": turn.message, "status_code": chat_response.status_code, "body": body}
        )

        if chat_response.status_code != 200:
          error = f"/chat returned {chat_response.status_code}"
          break
        error = check_envelope(body, turn, conversation_id)
        if error:
          break
        conversation_id = body["conversation_id"]

      if error is None and conversation_id:
        snapshot = client.get(f"/conversations/{conversation_id}")
        scenario_result["snapshot_status_code"] = snapshot.status_code
        if snapshot.status_code != 200:
          error = f"/conversations returned {snapshot.status_code}"
        else:
          scenario_result["title"] = snapshot.json().get("title")

      scenario_result["conversation_id"] = conversation_id
      scenario_result["pass"] = error is None
      if error:
        scenario_result["error"] = error
      results.append(scenario_result)

  passed = sum(1 for item in results if item.get("pass"))
  failed = len(results) - passed
  timestamp = datetime.now(timezone.utc).isoformat()

  report_lines = [
    "# Triage E2E Smoke Report",
    "",
    f"- Timestamp (UTC): `{timestamp}`",
    f"- Symptom oracle configured: `{bool(os.getenv('GROQ_API_KEY'))}`",
    f"- Prediction endpoint configured: `{bool(os.getenv('PREDICTION_ENDPOINT_URL'))}`",
    f"- Total scenarios: `{len(results)}`",
    f"- Passed: `{passed}`",
    f"- Failed: `{failed}`",
    "",
    "## Scenario Results",
    "",
  ]

  for item in results:
    status = "PASS" if item.get("pass") else "FAIL"
    report_lines.append(f"### {status} - {item['name']}")
    report_lines.append(f"- Conversation: `{item.get('conversation_id')}`")
    report_lines.append(f"- Title: `{item.get('title')}`")
    if item.get("error"):
      report_lines.append(f"- Error: `{item['error']}`")
    for index, turn in enumerate(item["turns"], start=1):
      report_lines.append(f"- Turn {index} (`{turn['status_code']}`): {turn['message']}")
      report_lines.append("```json")
      report_lines.append(json.dumps(turn["body"], indent=2, ensure_ascii=True))
      report_lines.append("```")
    report_lines.append("")

  report_path = repo_root / "TRIAGE_E2E_SMOKE_REPORT.md"
  report_path.write_text("\n".join(report_lines), encoding="utf-8")
  print(f"Wrote report: {report_path}")
  print(f"Passed {passed}/{len(results)} scenarios.")

  return 0 if failed == 0 else 1


if __name__ == "__main__":
  raise SystemExit(run())
