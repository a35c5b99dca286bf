from __future__ import annotations

import json
import os
from datetime import datetime

# Settings are read at import time
os.environ.setdefault("SESSION_TOKEN_SECRET", "test-session-secret-0123456789abcdef")
os.environ.setdefault("RELAY_URL", "http://relay.test/relay")
os.environ.setdefault("SUMMARY_URL", "http://summary.test/summarize")
os.environ.pop("TWILIO_ACCOUNT_SID", None)

import httpx
import pytest
from mongomock_motor import AsyncMongoMockClient

from preanesthesia.config.database import Database
from preanesthesia.config.settings import settings
from preanesthesia.services import relay_service, sms_service, summary_service
from preanesthesia.services.identity_service import get_identity_service
from preanesthesia.services.patient_service import get_patient_service
from preanesthesia.services.relay_service import RelayService
from preanesthesia.services.summary_service import SummaryService
from preanesthesia.services.token_service import issue_session_token


class FakeAgent:
    """Stands in for the conversational agent behind the relay URL."""

    def __init__(self) -> None:
        self.requests: list[dict] = []
        self.answer = "Gracias. ¿Toma alguna medicación de forma habitual?"
        self.recommendations: str | None = None
        self.fail_status: int | None = None

    def __call__(self, request: httpx.Request) -> httpx.Response:
        payload = json.loads(request.content)
        self.requests.append(payload)
        if self.fail_status is not None:
            return httpx.Response(self.fail_status, json={"error": "agent unavailable"})
        body = {"answer": self.answer}
        if self.recommendations:
            body["recommendations"] = self.recommendations
        return httpx.Response(200, json={"body": body})


class FakeSummarizer:
    def __init__(self) -> None:
        self.requests: list[dict] = []
        self.fail_status: int | None = None

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(json.loads(request.content))
        if self.fail_status is not None:
            return httpx.Response(self.fail_status, json={"error": "summary failed"})
        return httpx.Response(200, json={"success": True})


class RecordingSms:
    def __init__(self) -> None:
        self.sent: list[tuple[str, str]] = []
        self.fail = False

    async def send_sms(self, phone_number: str, body: str) -> dict:
        self.sent.append((phone_number, body))
        if self.fail:
            return {"success": False, "error": "Twilio Error: 503 - unavailable"}
        return {"success": True, "message_id": f"SM{len(self.sent):04d}"}


@pytest.fixture
async def database(monkeypatch):
    client = AsyncMongoMockClient()
    monkeypatch.setattr(Database, "client", client)
    monkeypatch.setattr(Database, "database", client[settings.mongodb_database])
    await Database.ensure_indexes()
    yield Database.database


@pytest.fixture
def agent(monkeypatch) -> FakeAgent:
    fake = FakeAgent()
    monkeypatch.setattr(
        relay_service,
        "_relay_service",
        RelayService(transport=httpx.MockTransport(fake)),
    )
    return fake


@pytest.fixture
def summarizer(monkeypatch) -> FakeSummarizer:
    fake = FakeSummarizer()
    monkeypatch.setattr(
        summary_service,
        "_summary_service",
        SummaryService(transport=httpx.MockTransport(fake)),
    )
    return fake


@pytest.fixture
def sms(monkeypatch) -> RecordingSms:
    fake = RecordingSms()
    monkeypatch.setattr(sms_service, "_sms_service", fake)
    return fake


@pytest.fixture
async def patient(database):
    return await get_patient_service().create_patient(
        national_id="12345678z",
        name="María García",
        phone="+34 600 111 222",
        procedure="Colecistectomía laparoscópica",
        procedure_date=datetime(2024, 3, 5),
    )


@pytest.fixture
async def security_code(patient) -> str:
    return await get_identity_service().issue_security_code(patient.patient_id)


@pytest.fixture
def token(patient) -> str:
    return issue_session_token(patient.session_key)


@pytest.fixture
async def consented_token(patient, token) -> str:
    await get_patient_service().record_consent(patient.session_key, "2024-01")
    return token


@pytest.fixture
async def api_client(database, agent, summarizer, sms):
    from main import app

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
