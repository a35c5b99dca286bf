"""Signed session tokens for verified patients.

After identity verification the patient holds a single bearer credential: an
HS256 JWT whose ``sid`` claim carries the patient's stable session key. The
session key scopes the conversation, the recommendations and every
collaborator call, so a patient who verifies again gets a fresh token over
the same conversation.

JWT claims:
  - sid        : patient session key
  - tokenType  : "PATIENT_SESSION"
  - iss        : settings.session_token_issuer
  - iat / exp  : issue time and expiry (settings.session_token_ttl_minutes)
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Optional, Dict, Any

import jwt
from jwt.exceptions import ExpiredSignatureError, InvalidTokenError

from preanesthesia.config.settings import settings

logger = logging.getLogger(__name__)

TOKEN_TYPE = "PATIENT_SESSION"


def issue_session_token(session_key: str) -> str:
    """Sign a time-bounded token for the given session key."""
    now = datetime.now(timezone.utc)
    payload = {
        "sid": session_key,
        "tokenType": TOKEN_TYPE,
        "iss": settings.session_token_issuer,
        "iat": now,
        "exp": now + timedelta(minutes=settings.session_token_ttl_minutes),
    }
    return jwt.encode(
        payload,
        settings.session_token_secret,
        algorithm=settings.session_token_algorithm,
    )


def token_lifetime_seconds() -> int:
    return settings.session_token_ttl_minutes * 60


def decode_session_token(token: str) -> Optional[Dict[str, Any]]:
    """Decode and verify a session token.

    Returns the full payload dict, or None if the token is invalid / expired.
    """
    if not token or not isinstance(token, str):
        return None

    try:
        payload: Dict[str, Any] = jwt.decode(
            token,
            settings.session_token_secret,
            algorithms=[settings.session_token_algorithm],
            issuer=settings.session_token_issuer,
            options={
                "require": ["exp", "iss", "sid"],
                "verify_exp": True,
                "verify_iss": True,
            },
        )
    except ExpiredSignatureError:
        logger.debug("Session token has expired")
        return None
    except InvalidTokenError as exc:
        logger.debug("Invalid session token: %s", exc)
        return None

    if payload.get("tokenType") != TOKEN_TYPE:
        logger.debug("Session token has unexpected type %r", payload.get("tokenType"))
        return None
    if not isinstance(payload.get("sid"), str) or not payload["sid"]:
        return None
    return payload


def session_key_from_token(token: str) -> Optional[str]:
    """Return the session key a token stands for, or None."""
    payload = decode_session_token(token)
    if payload is None:
        return None
    return payload["sid"]
