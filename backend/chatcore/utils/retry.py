from typing import Optional

import structlog
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential_jitter,
)
from tenacity.wait import wait_base

from chatcore.errors import TransportError
from chatcore.schemas import ChatRequest, ChatResponse, ChatSettings
from chatcore.utils.cancellation import CancellationToken

logger = structlog.get_logger()


async def complete_with_retry(
    model,
    request: ChatRequest,
    settings: Optional[ChatSettings] = None,
    cancellation: Optional[CancellationToken] = None,
    *,
    attempts: int = 4,
    wait: Optional[wait_base] = None,
) -> ChatResponse:
    """
    Run model.complete, retrying on TransportError only.

    Each attempt is a brand new call: observers see a fresh run of deltas,
    and only the successful attempt adds usage.
    """
    async for attempt in AsyncRetrying(
        wait=wait or wait_exponential_jitter(initial=0.5, max=6),
        stop=stop_after_attempt(attempts),
        retry=retry_if_exception_type(TransportError),
        before_sleep=lambda state: logger.warning(
            "chat_generation_retry",
            model=getattr(model, "id", None),
            attempt=state.attempt_number,
            err=str(state.outcome.exception()),
        ),
        reraise=True,
    ):
        with attempt:
            return await model.complete(request, settings, cancellation)
