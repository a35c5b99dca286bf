"""Twilio-based SMS delivery of security codes."""

import asyncio
import logging
from datetime import datetime
from typing import Any, Dict, Optional

from twilio.rest import Client
from twilio.base.exceptions import TwilioRestException

from preanesthesia.config.settings import settings
from preanesthesia.models.patient import Patient

logger = logging.getLogger(__name__)

_WEEKDAYS = ["lunes", "martes", "miércoles", "jueves", "viernes", "sábado", "domingo"]
_MONTHS = [
    "enero", "febrero", "marzo", "abril", "mayo", "junio",
    "julio", "agosto", "septiembre", "octubre", "noviembre", "diciembre",
]


def format_procedure_date(value: datetime) -> str:
    """Long Spanish date, e.g. 'martes, 5 de marzo de 2024'."""
    return (
        f"{_WEEKDAYS[value.weekday()]}, {value.day} de "
        f"{_MONTHS[value.month - 1]} de {value.year}"
    )


def build_resend_message(patient: Patient, code: str) -> str:
    """Body of the SMS sent when a patient asks for a new code."""
    procedure = patient.procedure or "tu procedimiento"
    procedure_date_text = ""
    if patient.procedure_date:
        procedure_date_text = (
            f"\nCirugía programada: {format_procedure_date(patient.procedure_date)}"
        )

    return (
        f"¡Hola {patient.name}!\n\n"
        f"Has solicitado un nuevo código para acceder a tu evaluación "
        f"pre-anestésica de {procedure}.{procedure_date_text}\n\n"
        f"Tu código de seguridad es: {code}\n\n"
        f"Si tienes dudas, contáctanos. Este SMS es un reenvío automático por tu solicitud.\n\n"
        f"Equipo Médico"
    )


class SmsService:
    """Sends SMS through a Twilio Messaging Service."""

    def __init__(self, client: Optional[Client] = None):
        self.messaging_service_sid = settings.twilio_messaging_service_sid
        self.enabled = client is not None or settings.sms_enabled

        if client is not None:
            self.client = client
        elif self.enabled:
            self.client = Client(settings.twilio_account_sid, settings.twilio_auth_token)
            logger.info("Twilio SMS service enabled")
        else:
            logger.warning("Twilio SMS not configured - messages will be simulated")
            self.client = None

    async def send_sms(self, phone_number: str, body: str) -> Dict[str, Any]:
        """
        Send one SMS.

        Args:
            phone_number: Destination phone, whitespace already removed
            body: Message text

        Returns:
            {"success": True, "message_id": ...} or {"success": False, "error": ...}
        """
        if not self.enabled:
            logger.info(f"[SIMULATED] SMS to {_mask(phone_number)} ({len(body)} chars)")
            return {
                "success": True,
                "message_id": "sim_" + str(datetime.now().timestamp()),
            }

        try:
            # The Twilio client is blocking; keep it off the event loop
            sent_message = await asyncio.to_thread(
                self.client.messages.create,
                to=phone_number,
                messaging_service_sid=self.messaging_service_sid,
                body=body,
            )
            logger.info(f"SMS sent to {_mask(phone_number)} - sid {sent_message.sid}")
            return {"success": True, "message_id": sent_message.sid}

        except TwilioRestException as e:
            logger.error(f"Twilio API error sending SMS to {_mask(phone_number)}: {e}")
            return {"success": False, "error": f"Twilio Error: {e.status} - {e.msg}"}
        except Exception as e:
            logger.error(
                f"Error sending SMS to {_mask(phone_number)}: {e}", exc_info=True
            )
            return {"success": False, "error": str(e)}


def _mask(phone_number: str) -> str:
    if len(phone_number) <= 4:
        return "****"
    return "*" * (len(phone_number) - 4) + phone_number[-4:]


# Global service instance
_sms_service: Optional[SmsService] = None


def get_sms_service() -> SmsService:
    """Get or create SmsService instance."""
    global _sms_service
    if _sms_service is None:
        _sms_service = SmsService()
    return _sms_service
