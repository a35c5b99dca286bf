"""Application configuration and settings."""

from pydantic_settings import BaseSettings
from typing import List, Optional


DEFAULT_GREETING = (
    "Le damos la bienvenida a la plataforma de VALORACIÓN PREANESTÉSICA. "
    "A continuación nuestro agente de IA le someterá a un cuestionario destinado "
    "a recabar información crucial para el procedimiento al que se va a someter.\n"
    "Le recomendamos que prepare:\n"
    "- Su medicación habitual si toma (nombres y dosis).\n"
    "- Los informes del médico que deriva para valoración (el informe de consulta "
    "y el consentimiento informado).\n"
    "- Localice los informes previos de especialistas si es su caso (informe de "
    "cardiología, neumología, neurología, etc.).\n\n"
    "Al final del cuestionario podrá subir archivos o fotos con la información que "
    "se le solicite (por ejemplo: una foto de un informe de algún especialista en "
    "concreto).\n\n"
    "¿Empezamos?"
)

DEFAULT_RECOMMENDATION_DIRECTIVE = (
    "Basándome en toda la información recopilada durante nuestra evaluación "
    "preanestésica, por favor genera recomendaciones médicas específicas para "
    "este paciente."
)


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Service Configuration
    service_name: str = "preanesthesia-portal"
    portal_port: int = 8010
    environment: str = "development"
    cors_origins: List[str] = ["http://localhost:5173"]

    # MongoDB Configuration
    mongodb_uri: str = "mongodb://localhost:27017"
    mongodb_database: str = "preanesthesia"
    mongodb_collection_patients: str = "patients"
    mongodb_collection_conversations: str = "conversations"
    mongodb_collection_recommendations: str = "recommendations"

    # Session tokens (signed, time-bounded bearer capabilities)
    session_token_secret: str
    session_token_issuer: str = "preanesthesia-portal"
    session_token_algorithm: str = "HS256"
    session_token_ttl_minutes: int = 720

    # Security codes delivered by SMS
    security_code_length: int = 6
    security_code_ttl_minutes: int = 1440
    security_code_max_attempts: int = 5

    # Data-processing consent
    require_consent: bool = True
    consent_terms_version: str = "2024-01"

    # Twilio SMS
    twilio_account_sid: Optional[str] = None
    twilio_auth_token: Optional[str] = None
    twilio_messaging_service_sid: Optional[str] = None

    # Conversational agent relay
    relay_url: str = "http://localhost:8020/relay"
    relay_timeout_seconds: float = 60.0

    # Conversation summarization
    summary_url: Optional[str] = None
    summary_timeout_seconds: float = 30.0

    # Clinician-authored conversation texts
    greeting_message: str = DEFAULT_GREETING
    recommendation_directive: str = DEFAULT_RECOMMENDATION_DIRECTIVE

    # Logging
    log_level: str = "INFO"
    log_file: Optional[str] = None

    class Config:
        env_file = ".env"
        case_sensitive = False

    @property
    def sms_enabled(self) -> bool:
        return bool(
            self.twilio_account_sid
            and self.twilio_auth_token
            and self.twilio_messaging_service_sid
        )


# Global settings instance
settings = Settings()
