from typing import Any, Dict, Optional

import httpx
import structlog

from chatcore.core.config import settings
from chatcore.schemas import ChatResponse
from chatcore.services.notifications import ChatObserver

logger = structlog.get_logger()


def usage_payload(response: ChatResponse) -> Dict[str, Any]:
    return {
        "model": response.model_id,
        "stream": response.used_settings.use_streaming,
        "input_tokens": response.usage.input_tokens,
        "output_tokens": response.usage.output_tokens,
        "total_tokens": response.usage.total_tokens,
        "elapsed_ms": int(response.usage.time * 1000),
    }


class UsageCallbackObserver(ChatObserver):
    """
    POSTs the usage of every completed call to an external service (deduct
    points, quotas). Configure USAGE_CALLBACK_URL and USAGE_CALLBACK_AUTH.
    Failures are logged and ignored.
    """

    def __init__(
        self,
        url: Optional[str] = None,
        auth: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.url = url or settings.USAGE_CALLBACK_URL
        self.auth = auth or settings.USAGE_CALLBACK_AUTH
        self.timeout = timeout or settings.USAGE_CALLBACK_TIMEOUT_SECONDS
        self._transport = transport

    async def on_response(self, response: ChatResponse) -> None:
        if not self.url:
            return
        headers = {"Content-Type": "application/json"}
        if self.auth:
            headers["Authorization"] = self.auth
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                resp = await client.post(self.url, json=usage_payload(response), headers=headers)
                resp.raise_for_status()
        except httpx.HTTPError as e:
            logger.warning("usage_callback_failed", err=str(e), model=response.model_id)
