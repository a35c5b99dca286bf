"""Best-effort trigger of the conversation summarization service."""

from typing import Optional
import logging

import httpx

from preanesthesia.config.settings import settings

logger = logging.getLogger(__name__)


class SummaryService:
    """Client for the external summarization service."""

    def __init__(
        self,
        url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.url = url if url is not None else settings.summary_url
        self.timeout = (
            timeout if timeout is not None else settings.summary_timeout_seconds
        )
        self.transport = transport

    async def request_summary(self, session_key: str) -> bool:
        """
        Ask the summarization service to summarize a conversation.

        Never raises: any failure is logged and reported as False.

        Args:
            session_key: Session identity of the conversation

        Returns:
            True if the service accepted the request
        """
        if not self.url:
            logger.warning("Summary service not configured - skipping summary")
            return False

        try:
            async with httpx.AsyncClient(
                timeout=self.timeout, transport=self.transport
            ) as client:
                response = await client.post(
                    self.url, json={"patientToken": session_key}
                )
                response.raise_for_status()
                return True

        except httpx.TimeoutException:
            logger.warning(f"Summary request timed out after {self.timeout}s")
            return False
        except httpx.HTTPStatusError as e:
            logger.warning(f"Summary request failed: {e.response.status_code}")
            return False
        except Exception as e:
            logger.warning(f"Summary request error: {str(e)}")
            return False


# Global service instance
_summary_service: Optional[SummaryService] = None


def get_summary_service() -> SummaryService:
    """Get or create SummaryService instance."""
    global _summary_service
    if _summary_service is None:
        _summary_service = SummaryService()
    return _summary_service
