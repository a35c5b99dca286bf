from __future__ import annotations

from datetime import datetime
from types import SimpleNamespace

from twilio.base.exceptions import TwilioRestException

from preanesthesia.services.sms_service import SmsService, format_procedure_date


class FakeMessages:
    def __init__(self, error: Exception | None = None) -> None:
        self.created: list[dict] = []
        self.error = error

    def create(self, **kwargs):
        if self.error is not None:
            raise self.error
        self.created.append(kwargs)
        return SimpleNamespace(sid="SM123")


def _client(messages: FakeMessages):
    return SimpleNamespace(messages=messages)


async def test_send_sms_through_twilio_client():
    messages = FakeMessages()
    service = SmsService(client=_client(messages))

    result = await service.send_sms("+34600111222", "Tu código de seguridad es: 123456")

    assert result == {"success": True, "message_id": "SM123"}
    assert messages.created[0]["to"] == "+34600111222"
    assert messages.created[0]["body"].endswith("123456")


async def test_twilio_error_is_reported():
    error = TwilioRestException(status=400, uri="/Messages", msg="Invalid 'To' number")
    service = SmsService(client=_client(FakeMessages(error)))

    result = await service.send_sms("+34600111222", "hola")

    assert result["success"] is False
    assert "400" in result["error"]


async def test_unconfigured_service_simulates_delivery():
    service = SmsService()

    result = await service.send_sms("+34600111222", "hola")

    assert service.enabled is False
    assert result["success"] is True
    assert result["message_id"].startswith("sim_")


def test_procedure_date_in_spanish():
    assert format_procedure_date(datetime(2024, 12, 1)) == "domingo, 1 de diciembre de 2024"
