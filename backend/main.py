from __future__ import annotations

import logging
import os
import re
import uuid
from datetime import datetime
from pathlib import Path
from typing import Any, Literal

from fastapi import FastAPI, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, Response, StreamingResponse
from pydantic import BaseModel, ConfigDict, ValidationError
from pydantic.alias_generators import to_camel

from arya_relay import (
    DEFAULT_DETECTION_PHRASES,
    EVENT_STREAM_HEADERS,
    EVENT_STREAM_MEDIA_TYPE,
    MISSING_MESSAGES_ERROR,
    BadRequest,
    ChatCompletionProvider,
    ConversationTurn,
    EmergencyScanner,
    OpenAICompatibleProvider,
    StreamRelay,
    UpstreamUnavailable,
    UserContext,
    compose,
    load_relay_settings,
)
from erprana_store import (
    CatalogStore,
    RecordConflictError,
    RecordGuard,
    RecordNotFoundError,
    RecordPolicyError,
    SQLiteHealthDB,
    UsageStore,
    WearableReadingStore,
)
from erprana_store.time_utils import period_start

_ENV_KEY_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


def _load_local_env_file(path: Path) -> None:
    try:
        lines = path.read_text(encoding="utf-8").splitlines()
    except OSError:
        return
    for raw in lines:
        line = raw.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, value = line.split("=", 1)
        key = key.strip()
        if not _ENV_KEY_RE.fullmatch(key):
            continue
        value = value.strip()
        if len(value) >= 2 and value[0] == value[-1] and value[0] in {"'", '"'}:
            value = value[1:-1]
        os.environ.setdefault(key, value)


def _bootstrap_local_env() -> None:
    repo_root = Path(__file__).resolve().parents[1]
    for candidate in (repo_root / ".env", repo_root / "backend/.env"):
        if candidate.exists():
            _load_local_env_file(candidate)


_bootstrap_local_env()

logging.basicConfig(
    level=os.getenv("ARYA_LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger("erprana")

CHAT_REQUEST_FAILED = "Failed to process chat request"


class ChatTurnPayload(BaseModel):
    role: Literal["user", "assistant", "system"]
    content: str


class UserContextPayload(BaseModel):
    name: str | None = None
    role: Literal["layperson", "doctor"] | None = None
    conditions: list[str] | None = None
    allergies: list[str] | None = None


class AryaChatRequest(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    messages: list[ChatTurnPayload]
    system_prompt: str | None = None
    user_context: UserContextPayload | None = None

    def conversation(self) -> list[ConversationTurn]:
        return [ConversationTurn(role=turn.role, content=turn.content) for turn in self.messages]

    def context(self) -> UserContext | None:
        if self.user_context is None:
            return None
        return UserContext(
            name=self.user_context.name,
            role=self.user_context.role,
            conditions=tuple(self.user_context.conditions or ()),
            allergies=tuple(self.user_context.allergies or ()),
        )


class _CamelPayload(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class MedicineUsagePayload(_CamelPayload):
    condition_id: int
    medicine_id: int
    is_helping: bool = False
    dosage: str | None = None
    frequency: str | None = None
    notes: str | None = None


class MedicineUsageUpdatePayload(_CamelPayload):
    is_helping: bool | None = None
    dosage: str | None = None
    frequency: str | None = None
    notes: str | None = None


class WearableReadingPayload(_CamelPayload):
    recorded_at: datetime | None = None
    heart_rate: int | None = None
    heart_rate_variability: int | None = None
    resting_heart_rate: int | None = None
    blood_oxygen_saturation: float | None = None
    blood_pressure_systolic: int | None = None
    blood_pressure_diastolic: int | None = None
    respiratory_rate: int | None = None
    body_temperature: float | None = None
    skin_temperature: float | None = None
    steps: int | None = None
    distance: float | None = None
    calories_burned: int | None = None
    active_minutes: int | None = None
    flights_climbed: int | None = None
    sleep_duration: int | None = None
    sleep_quality: int | None = None
    deep_sleep: int | None = None
    light_sleep: int | None = None
    rem_sleep: int | None = None
    sleep_latency: int | None = None
    stress_level: int | None = None
    vo2_max: float | None = None
    recovery_score: int | None = None
    ambient_temperature: float | None = None
    humidity: float | None = None
    uv_exposure: float | None = None
    altitude: float | None = None
    noise_level: float | None = None
    ecg_reading: str | None = None
    afib_detected: bool | None = None
    fall_detected: bool | None = None
    notes: str | None = None
    device_type: str | None = None


class ErPranaApp:
    def __init__(self, provider: ChatCompletionProvider | None = None) -> None:
        db_path = os.getenv(
            "ERPRANA_DB_PATH",
            str((Path(__file__).resolve().parent / "erprana.sqlite")),
        )
        self.db = SQLiteHealthDB(db_path)
        self.guard = RecordGuard()
        self.catalog = CatalogStore(self.db)
        if self.catalog.seed():
            logger.info("alternative medicine catalog seeded")
        self.usage = UsageStore(self.db, self.catalog)
        self.readings = WearableReadingStore(self.db)

        self.settings = load_relay_settings()
        if self.settings.provider is None:
            logger.warning("no chat provider key found in runtime env; /api/arya/chat will fail until one is set")
        self.scanner = EmergencyScanner((*DEFAULT_DETECTION_PHRASES, *self.settings.extra_emergency_phrases))
        self.relay = StreamRelay(
            provider or OpenAICompatibleProvider(self.settings),
            scanner=self.scanner,
            max_output_tokens=self.settings.max_output_tokens,
        )


container = ErPranaApp()
app = FastAPI(title="ErPrana Backend")

allowed_origins = os.getenv("ALLOWED_ORIGINS", "http://localhost:8081").split(",")
app.add_middleware(
    CORSMiddleware,
    allow_origins=[origin.strip() for origin in allowed_origins],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _error_response(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


def _camel_keys(row: dict[str, Any]) -> dict[str, Any]:
    return {to_camel(key): value for key, value in row.items()}


@app.exception_handler(RecordPolicyError)
async def _record_policy_error(_request: Request, exc: RecordPolicyError) -> JSONResponse:
    return _error_response(400, str(exc))


@app.exception_handler(RecordNotFoundError)
async def _record_not_found(_request: Request, exc: RecordNotFoundError) -> JSONResponse:
    return _error_response(404, str(exc))


@app.exception_handler(RecordConflictError)
async def _record_conflict(_request: Request, exc: RecordConflictError) -> JSONResponse:
    return _error_response(409, str(exc))


@app.exception_handler(RequestValidationError)
async def _request_validation_error(_request: Request, exc: RequestValidationError) -> JSONResponse:
    logger.info("rejected request: %d validation errors", len(exc.errors()))
    return _error_response(400, "Invalid request")


@app.post("/api/arya/chat")
async def arya_chat(request: Request):
    try:
        body = await request.json()
    except ValueError:
        body = None
    messages = body.get("messages") if isinstance(body, dict) else None
    if not isinstance(messages, list) or not messages:
        return _error_response(400, MISSING_MESSAGES_ERROR)
    try:
        payload = AryaChatRequest.model_validate(body)
    except ValidationError as exc:
        logger.info("rejected chat request: %d validation errors", exc.error_count())
        return _error_response(400, "Invalid chat request")
    try:
        outbound = compose(payload.conversation(), payload.system_prompt, payload.context())
    except BadRequest as exc:
        return _error_response(400, str(exc))

    request_id = uuid.uuid4().hex
    try:
        stream = await container.relay.open(outbound, request_id=request_id)
    except UpstreamUnavailable:
        return _error_response(500, CHAT_REQUEST_FAILED)
    except Exception:
        logger.exception("relay %s: unexpected error opening chat stream", request_id)
        return _error_response(500, CHAT_REQUEST_FAILED)

    return StreamingResponse(
        stream.frames(),
        media_type=EVENT_STREAM_MEDIA_TYPE,
        headers=EVENT_STREAM_HEADERS,
    )


@app.get("/api/chronic-conditions")
def list_chronic_conditions():
    return [_camel_keys(row) for row in container.catalog.list_conditions()]


@app.get("/api/alternative-medicines")
def list_alternative_medicines():
    return [_camel_keys(row) for row in container.catalog.list_medicines()]


@app.get("/api/alternative-medicines/recommendations/{condition_id}")
def alternative_medicine_recommendations(condition_id: int):
    return [_camel_keys(row) for row in container.catalog.recommendations(condition_id)]


@app.get("/api/user/{user_id}/alternative-medicines")
def list_user_alternative_medicines(user_id: str):
    user_id = container.guard.ensure_user_id(user_id)
    return [_camel_keys(row) for row in container.usage.list_for_user(user_id)]


@app.post("/api/user/{user_id}/alternative-medicines", status_code=201)
def add_user_alternative_medicine(user_id: str, payload: MedicineUsagePayload):
    user_id = container.guard.ensure_user_id(user_id)
    usage = container.usage.add(user_id=user_id, **payload.model_dump())
    return _camel_keys(usage)


@app.patch("/api/user/{user_id}/alternative-medicines/{usage_id}")
def update_user_alternative_medicine(user_id: str, usage_id: int, payload: MedicineUsageUpdatePayload):
    user_id = container.guard.ensure_user_id(user_id)
    usage = container.usage.update(
        user_id=user_id,
        usage_id=usage_id,
        changes=payload.model_dump(exclude_unset=True),
    )
    return _camel_keys(usage)


@app.delete("/api/user/{user_id}/alternative-medicines/{usage_id}", status_code=204)
def delete_user_alternative_medicine(user_id: str, usage_id: int):
    user_id = container.guard.ensure_user_id(user_id)
    container.usage.delete(user_id=user_id, usage_id=usage_id)
    return Response(status_code=204)


@app.get("/api/user/{user_id}/wearable-readings")
def list_wearable_readings(user_id: str, limit: int = Query(default=30), period: str | None = None):
    user_id = container.guard.ensure_user_id(user_id)
    limit = container.guard.normalize_limit(limit)
    normalized_period = container.guard.normalize_period(period)
    since = period_start(normalized_period) if normalized_period else None
    readings = container.readings.list_for_user(user_id=user_id, limit=limit, since=since)
    return [_camel_keys(row) for row in readings]


@app.post("/api/user/{user_id}/wearable-readings", status_code=201)
def add_wearable_reading(user_id: str, payload: WearableReadingPayload):
    user_id = container.guard.ensure_user_id(user_id)
    metrics = payload.model_dump(exclude={"recorded_at"}, exclude_none=True)
    reading = container.readings.add(user_id=user_id, metrics=metrics, recorded_at=payload.recorded_at)
    return _camel_keys(reading)
