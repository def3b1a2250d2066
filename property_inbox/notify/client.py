"""
Communication gateway client (email / SMS / push).
Used as a best-effort side channel: callers log failures and carry on.
"""
import logging
from typing import Any, Dict, List, Optional

import httpx

from property_inbox.core.config import settings

logger = logging.getLogger(__name__)


class CommunicationClientError(Exception):
    def __init__(self, message: str, status_code: Optional[int] = None, body: Optional[Any] = None):
        self.status_code = status_code
        self.body = body
        super().__init__(message)


class CommunicationClient:
    def __init__(
        self,
        base_url: Optional[str] = None,
        api_key: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = (base_url or settings.COMMUNICATION_API_URL or "").rstrip("/")
        self.api_key = api_key or settings.COMMUNICATION_API_KEY
        self.timeout = timeout or settings.COMMUNICATION_TIMEOUT
        self._transport = transport

    @property
    def configured(self) -> bool:
        return bool(self.base_url and self.api_key)

    def _headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
            "Accept": "application/json",
        }

    def _url(self, path: str) -> str:
        return f"{self.base_url}/{path.lstrip('/')}"

    async def send_communication(
        self,
        *,
        recipients: List[Dict[str, Any]],
        content: str,
        channels: List[str],
        subject: Optional[str] = None,
        conversation_id: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        POST /send with a manual communication. Raises CommunicationClientError when the
        request fails or its answer cannot be read.
        """
        if not self.configured:
            raise CommunicationClientError("Communication API URL and API key must be set")

        body: Dict[str, Any] = {
            "recipients": recipients,
            "subject": subject,
            "content": content,
            "channels": channels,
            "type": "manual",
            "conversation_id": conversation_id,
        }
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                r = await client.post(self._url("send"), headers=self._headers(), json=body)
        except httpx.HTTPError as e:
            logger.warning("Communication gateway request error: %s", e)
            raise CommunicationClientError(str(e))

        if r.status_code >= 400:
            logger.warning("Communication gateway error %s: %s", r.status_code, r.text[:500] if r.text else "")
            raise CommunicationClientError(
                f"Communication send failed: {r.status_code}", status_code=r.status_code, body=r.text
            )

        try:
            data = r.json() if r.content else {}
        except ValueError:
            logger.warning("Communication gateway returned a non-JSON body: %s", r.text[:200])
            raise CommunicationClientError(
                "Communication gateway returned an unreadable response", status_code=r.status_code, body=r.text
            )
        if isinstance(data, dict) and isinstance(data.get("data"), dict):
            data = data["data"]
        return data if isinstance(data, dict) else {}


communication_client = CommunicationClient()
