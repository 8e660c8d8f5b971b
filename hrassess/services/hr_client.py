import logging
from typing import Any, Dict, List, Optional

import httpx

from hrassess.core.config import settings
from hrassess.core.errors import ExternalSourceError, ValidationError

logger = logging.getLogger(__name__)


class HRRosterClient:
    """Reads the personnel roster from the external HR system.

    The endpoint answers ``{"data": [{"empName": ..., "empNumber": ...}, ...]}``.
    """

    def __init__(
        self,
        url: str = settings.HR_API_URL,
        timeout: float = settings.HR_API_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.url = url
        self.timeout = timeout
        self.transport = transport

    async def fetch(self) -> List[Dict[str, Any]]:
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.get(self.url)
                response.raise_for_status()
        except httpx.TimeoutException as exc:
            logger.error("HR roster request timed out after %ss", self.timeout)
            raise ExternalSourceError("External HR source timed out") from exc
        except httpx.HTTPStatusError as exc:
            logger.error("HR roster request failed with status %s", exc.response.status_code)
            raise ExternalSourceError(
                "External HR source returned an error",
                details={"status_code": exc.response.status_code},
            ) from exc
        except httpx.HTTPError as exc:
            logger.error("HR roster request failed: %s", exc)
            raise ExternalSourceError() from exc

        try:
            payload = response.json()
        except ValueError as exc:
            raise ValidationError("Invalid data format from external API") from exc

        records = payload.get("data") if isinstance(payload, dict) else None
        if not isinstance(records, list):
            raise ValidationError("Invalid data format from external API")
        return records
