"""Relay to the external conversational agent.

The agent keeps its own conversation state keyed by the session identity we
send, so each call carries only the session key and the new message text.

Request:   {"sessionId": <session key>, "message": <text>}
Response:  {"body": {"answer": <text>}}  or  {"answer": <text>}
           optionally with a non-empty "recommendations" field
"""

from dataclasses import dataclass
from typing import Any, Dict, Optional
import logging

import httpx

from preanesthesia.config.settings import settings

logger = logging.getLogger(__name__)


class RelayError(Exception):
    """The agent could not produce a reply; the patient may retry."""


@dataclass
class RelayReply:
    """Normalized agent reply."""

    answer: str
    recommendations: Optional[str] = None


def normalize_reply(payload: Any) -> RelayReply:
    """Extract the answer (and recommendations, if any) from a relay payload."""
    if not isinstance(payload, dict):
        raise RelayError("Relay returned an unexpected payload")

    body = payload.get("body")
    if isinstance(body, dict):
        payload = body

    answer = payload.get("answer")
    if not isinstance(answer, str) or not answer.strip():
        raise RelayError("Relay reply carries no answer")

    recommendations = payload.get("recommendations")
    if isinstance(recommendations, list):
        recommendations = "\n".join(str(item) for item in recommendations if item)
    if not isinstance(recommendations, str) or not recommendations.strip():
        recommendations = None

    return RelayReply(answer=answer.strip(), recommendations=recommendations)


class RelayService:
    """Client for the conversational agent relay."""

    def __init__(
        self,
        url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize relay client.

        Args:
            url: Relay endpoint (overrides settings)
            timeout: Request timeout in seconds (overrides settings)
            transport: httpx transport, for tests
        """
        self.url = url or settings.relay_url
        self.timeout = timeout if timeout is not None else settings.relay_timeout_seconds
        self.transport = transport

    async def relay(self, session_key: str, message: str) -> RelayReply:
        """
        Forward a message to the agent under the given session identity.

        Args:
            session_key: Session identity for the agent
            message: Raw message text

        Returns:
            RelayReply

        Raises:
            RelayError: On timeout, transport failure, bad status or bad reply
        """
        request_body: Dict[str, str] = {"sessionId": session_key, "message": message}

        try:
            async with httpx.AsyncClient(
                timeout=self.timeout, transport=self.transport
            ) as client:
                response = await client.post(self.url, json=request_body)
                response.raise_for_status()
                payload = response.json()

        except httpx.TimeoutException as e:
            logger.warning(f"Relay request timed out after {self.timeout}s")
            raise RelayError("The assistant took too long to answer") from e
        except httpx.HTTPStatusError as e:
            logger.warning(f"Relay request failed: {e.response.status_code}")
            raise RelayError("The assistant is unavailable") from e
        except httpx.HTTPError as e:
            logger.error(f"Relay request error: {str(e)}")
            raise RelayError("The assistant is unreachable") from e
        except ValueError as e:
            logger.warning("Relay returned a non-JSON body")
            raise RelayError("The assistant returned an invalid reply") from e

        reply = normalize_reply(payload)
        logger.info(
            f"Relay answered ({len(reply.answer)} chars, "
            f"recommendations={'yes' if reply.recommendations else 'no'})"
        )
        return reply


# Global service instance
_relay_service: Optional[RelayService] = None


def get_relay_service() -> RelayService:
    """Get or create RelayService instance."""
    global _relay_service
    if _relay_service is None:
        _relay_service = RelayService()
    return _relay_service
