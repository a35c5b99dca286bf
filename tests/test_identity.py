from __future__ import annotations

from datetime import timedelta

import pytest

from preanesthesia.config.database import get_patients_collection
from preanesthesia.config.settings import settings
from preanesthesia.services.identity_service import (
    get_identity_service,
    hash_security_code,
)
from preanesthesia.services.patient_service import get_patient_service
from preanesthesia.services.sms_service import build_resend_message
from preanesthesia.services.token_service import session_key_from_token
from preanesthesia.utils.time_utils import utc_now


def _verify(client, national_id: str, code: str):
    return client.post(
        "/api/v1/identity/verify",
        json={"national_id": national_id, "security_code": code},
    )


def _resend(client, national_id: str, phone: str):
    return client.post(
        "/api/v1/identity/resend-code",
        json={"national_id": national_id, "phone": phone},
    )


def _wrong(code: str) -> str:
    return "".join(str((int(c) + 1) % 10) for c in code)


async def test_verify_issues_token_for_the_patient(api_client, patient, security_code):
    response = await _verify(api_client, "12345678Z", security_code)

    assert response.status_code == 200
    body = response.json()
    assert body["token_type"] == "bearer"
    assert body["expires_in"] > 0
    assert session_key_from_token(body["token"]) == patient.session_key


async def test_verify_normalizes_typed_input(api_client, patient, security_code):
    response = await _verify(api_client, " 1234 5678z ", f" {security_code} ")

    assert response.status_code == 200


async def test_wrong_id_and_wrong_code_are_indistinguishable(
    api_client, patient, security_code
):
    unknown_id = await _verify(api_client, "99999999R", security_code)
    wrong_code = await _verify(api_client, "12345678Z", _wrong(security_code))
    empty_code = await _verify(api_client, "12345678Z", "")

    assert unknown_id.status_code == wrong_code.status_code == empty_code.status_code == 401
    assert unknown_id.json() == wrong_code.json() == empty_code.json()


async def test_security_code_is_single_use(api_client, patient, security_code):
    first = await _verify(api_client, "12345678Z", security_code)
    second = await _verify(api_client, "12345678Z", security_code)

    assert first.status_code == 200
    assert second.status_code == 401
    assert second.json() == (await _verify(api_client, "00000000T", "123456")).json()


async def test_expired_security_code_is_rejected(api_client, patient, security_code):
    collection = await get_patients_collection()
    await collection.update_one(
        {"patient_id": patient.patient_id},
        {"$set": {"security_code.expires_at": utc_now() - timedelta(minutes=1)}},
    )

    response = await _verify(api_client, "12345678Z", security_code)

    assert response.status_code == 401


@pytest.mark.parametrize(
    "national_id, code",
    [
        ("9" * 21, "123456"),
        ("12345678Z", "1" * 13),
        ("12345678Z" * 50, "9" * 200),
    ],
)
async def test_oversized_input_gets_the_same_rejection(
    api_client, patient, security_code, national_id, code
):
    oversized = await _verify(api_client, national_id, code)
    wrong_code = await _verify(api_client, "12345678Z", _wrong(security_code))

    assert oversized.status_code == wrong_code.status_code == 401
    assert oversized.json() == wrong_code.json()


async def test_code_stops_working_after_too_many_failures(
    api_client, patient, security_code
):
    for _ in range(settings.security_code_max_attempts):
        failed = await _verify(api_client, "12345678Z", _wrong(security_code))
        assert failed.status_code == 401

    locked = await _verify(api_client, "12345678Z", security_code)

    assert locked.status_code == 401
    assert locked.json() == failed.json()


async def test_failures_below_the_limit_keep_the_code(api_client, patient, security_code):
    for _ in range(settings.security_code_max_attempts - 1):
        await _verify(api_client, "12345678Z", _wrong(security_code))

    assert (await _verify(api_client, "12345678Z", security_code)).status_code == 200


async def test_resend_resets_failed_attempts(api_client, patient, security_code, sms):
    for _ in range(settings.security_code_max_attempts):
        await _verify(api_client, "12345678Z", _wrong(security_code))

    await _resend(api_client, "12345678Z", "+34600111222")
    new_code = sms.sent[0][1].split("Tu código de seguridad es: ")[1].split()[0]

    assert (await _verify(api_client, "12345678Z", new_code)).status_code == 200


async def test_failures_for_unknown_id_touch_nothing(api_client, patient, security_code):
    await _verify(api_client, "99999999R", security_code)

    doc = await (await get_patients_collection()).find_one(
        {"patient_id": patient.patient_id}
    )
    assert doc["security_code"]["failed_attempts"] == 0


async def test_plain_code_is_never_stored(patient, security_code):
    collection = await get_patients_collection()
    doc = await collection.find_one({"patient_id": patient.patient_id})

    stored = doc["security_code"]
    assert set(stored) == {
        "code_hash", "issued_at", "expires_at", "consumed_at", "failed_attempts"
    }
    assert stored["code_hash"] != security_code
    assert stored["code_hash"] == hash_security_code(security_code)


async def test_resend_invalidates_previous_code(api_client, patient, security_code, sms):
    response = await _resend(api_client, "12345678Z", "+34600111222")

    assert response.status_code == 200
    assert response.json()["accepted"] is True
    assert response.json()["delivered"] is True

    old = await _verify(api_client, "12345678Z", security_code)
    assert old.status_code == 401

    assert len(sms.sent) == 1
    phone, body = sms.sent[0]
    assert phone == "+34600111222"
    new_code = body.split("Tu código de seguridad es: ")[1].split()[0]
    new = await _verify(api_client, "12345678Z", new_code)
    assert new.status_code == 200


async def test_resend_accepts_phone_with_spaces(api_client, patient, sms):
    response = await _resend(api_client, "12345678z", "+34 600 11 12 22")

    assert response.status_code == 200
    assert len(sms.sent) == 1


@pytest.mark.parametrize(
    "national_id, phone",
    [
        ("12345678Z", "+34600999999"),
        ("99999999R", "+34600111222"),
        ("12345678Z", ""),
    ],
)
async def test_resend_rejections_look_the_same(
    api_client, patient, security_code, sms, national_id, phone
):
    response = await _resend(api_client, national_id, phone)

    assert response.status_code == 400
    assert response.json()["detail"] == "No patient was found with that national ID and phone."
    assert sms.sent == []

    # The current code keeps working after a rejected resend
    assert (await _verify(api_client, "12345678Z", security_code)).status_code == 200


async def test_resend_rejected_for_patient_without_phone(api_client, database, sms):
    await get_patient_service().create_patient(national_id="87654321X", name="Sin Teléfono")

    response = await _resend(api_client, "87654321X", "+34600111222")

    assert response.status_code == 400
    assert sms.sent == []


async def test_resend_reports_undelivered_sms(api_client, patient, security_code, sms):
    sms.fail = True

    response = await _resend(api_client, "12345678Z", "+34600111222")

    assert response.status_code == 200
    assert response.json()["accepted"] is True
    assert response.json()["delivered"] is False
    # A new code was still issued, so the old one is gone
    assert (await _verify(api_client, "12345678Z", security_code)).status_code == 401


async def test_at_most_one_valid_code_per_patient(patient):
    service = get_identity_service()
    first = await service.issue_security_code(patient.patient_id)
    second = await service.issue_security_code(patient.patient_id)

    assert await service.verify("12345678Z", first) is None
    assert await service.verify("12345678Z", second) is not None


async def test_issue_code_for_unknown_patient(database):
    assert await get_identity_service().issue_security_code("missing") is None


def test_resend_message_mentions_procedure_date_and_code(patient):
    body = build_resend_message(patient, "482913")

    assert body.startswith("¡Hola María García!")
    assert "Colecistectomía laparoscópica" in body
    assert "Cirugía programada: martes, 5 de marzo de 2024" in body
    assert "482913" in body


def test_resend_message_without_procedure(patient):
    bare = patient.model_copy(update={"procedure": None, "procedure_date": None})

    body = build_resend_message(bare, "000111")

    assert "de tu procedimiento." in body
    assert "Cirugía programada" not in body
