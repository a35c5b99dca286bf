from __future__ import annotations

from datetime import datetime, timedelta, timezone

import jwt
import pytest

from preanesthesia.api.dependencies import resolve_patient
from preanesthesia.config.settings import settings
from preanesthesia.services.token_service import (
    decode_session_token,
    issue_session_token,
    session_key_from_token,
)


def _sign(payload: dict, secret: str | None = None) -> str:
    return jwt.encode(
        payload,
        secret or settings.session_token_secret,
        algorithm=settings.session_token_algorithm,
    )


def _claims(**overrides) -> dict:
    now = datetime.now(timezone.utc)
    claims = {
        "sid": "session-key-abc",
        "tokenType": "PATIENT_SESSION",
        "iss": settings.session_token_issuer,
        "iat": now,
        "exp": now + timedelta(minutes=5),
    }
    claims.update(overrides)
    return claims


def test_issued_token_carries_session_key_and_expiry():
    token = issue_session_token("session-key-abc")

    payload = decode_session_token(token)

    assert payload["sid"] == "session-key-abc"
    assert payload["tokenType"] == "PATIENT_SESSION"
    lifetime = payload["exp"] - payload["iat"]
    assert lifetime == settings.session_token_ttl_minutes * 60


@pytest.mark.parametrize(
    "token",
    [
        "",
        "not-a-token",
        "a.b.c",
        "Bearer something",
        "' OR 1=1 --",
        "ñandú.🙂.token",
        "x" * 5000,
    ],
)
def test_malformed_tokens_do_not_resolve(token):
    assert session_key_from_token(token) is None


def test_expired_token_is_rejected():
    past = datetime.now(timezone.utc) - timedelta(hours=2)
    token = _sign(_claims(iat=past, exp=past + timedelta(minutes=1)))

    assert decode_session_token(token) is None


def test_token_signed_with_another_secret_is_rejected():
    token = _sign(_claims(), secret="some-other-secret-0123456789abcdef")

    assert decode_session_token(token) is None


def test_tampered_payload_is_rejected():
    header, _, signature = issue_session_token("session-key-abc").split(".")
    forged_payload = _sign(_claims(sid="someone-else")).split(".")[1]

    assert decode_session_token(f"{header}.{forged_payload}.{signature}") is None


@pytest.mark.parametrize(
    "overrides",
    [
        {"tokenType": "ACCESS"},
        {"iss": "another-service"},
        {"sid": ""},
        {"sid": 42},
    ],
)
def test_token_with_wrong_claims_is_rejected(overrides):
    assert decode_session_token(_sign(_claims(**overrides))) is None


def test_token_without_session_key_is_rejected():
    claims = _claims()
    del claims["sid"]

    assert decode_session_token(_sign(claims)) is None


async def test_resolve_returns_the_single_matching_patient(patient, token):
    resolved = await resolve_patient(token)

    assert resolved is not None
    assert resolved.patient_id == patient.patient_id


async def test_resolve_unknown_session_key_is_invalid(database):
    token = issue_session_token("no-patient-has-this-key")

    assert await resolve_patient(token) is None


async def test_resolve_malformed_token_is_invalid(patient):
    assert await resolve_patient(patient.session_key) is None
