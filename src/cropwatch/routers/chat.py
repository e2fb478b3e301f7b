"""
Crop advisor router.

Forwards the conversation to the configured OpenAI-compatible model
endpoint and relays its server-sent-event stream unchanged.
"""
from fastapi import APIRouter, Depends
from fastapi.responses import StreamingResponse
from starlette.background import BackgroundTask
import httpx
import logging

from cropwatch import config
from cropwatch.dependencies import get_http_client
from cropwatch.errors import ExternalServiceError
from cropwatch.models import AdvisorRequest
from cropwatch.utils.http_utils import error_message

logger = logging.getLogger(__name__)

router = APIRouter()

SYSTEM_PROMPT = """You are CropAdvisor, an agronomy assistant for farmers who monitor their fields with satellite NDVI readings.

Keep answers concise and practical: 2-4 short paragraphs or a brief list.

NDVI INTERPRETATION:
- 0.70 and above: Excellent, dense healthy vegetation
- 0.50-0.70: Good
- 0.30-0.50: Moderate, monitor closely
- 0.20-0.30: Poor, check irrigation, nutrients and pests
- below 0.20: Critical, inspect the field immediately

When answering:
1. Tie recommendations to crop type, growth stage and weather when the user gives them
2. Prefer actionable steps over background theory
3. Say so plainly when a field visit or local extension service is needed
"""


@router.post("/crop-advisor")
async def crop_advisor(
    request: AdvisorRequest,
    client: httpx.AsyncClient = Depends(get_http_client),
):
    """
    Stream a CropAdvisor reply.

    Args:
        request: AdvisorRequest with the conversation so far

    Returns:
        text/event-stream of ``data: <json>`` frames ending with ``data: [DONE]``
    """
    if not config.CHAT_API_KEY:
        raise ExternalServiceError("Chat model is not configured", status_code=503)

    logger.info(f"Crop advisor request with {len(request.messages)} messages")
    payload = {
        "model": config.CHAT_MODEL,
        "stream": True,
        "messages": [{"role": "system", "content": SYSTEM_PROMPT}]
        + [m.model_dump(include={"role", "content"}) for m in request.messages],
    }
    upstream_request = client.build_request(
        "POST",
        config.CHAT_API_URL,
        json=payload,
        headers={"Authorization": f"Bearer {config.CHAT_API_KEY}"},
        timeout=httpx.Timeout(config.HTTP_TIMEOUT, read=None),
    )

    try:
        upstream = await client.send(upstream_request, stream=True)
    except httpx.HTTPError as e:
        logger.error(f"Chat model request failed: {e}")
        raise ExternalServiceError("Chat model unavailable") from e

    if upstream.is_error:
        await upstream.aread()
        await upstream.aclose()
        logger.error(f"Chat model returned {upstream.status_code}: {error_message(upstream)}")
        if upstream.status_code == 429:
            raise ExternalServiceError("Rate limit exceeded, please try again later.", status_code=429)
        if upstream.status_code == 402:
            raise ExternalServiceError("Usage credits exhausted for the chat model.", status_code=402)
        raise ExternalServiceError("Chat model error")

    return StreamingResponse(
        upstream.aiter_bytes(),
        media_type="text/event-stream",
        background=BackgroundTask(upstream.aclose),
    )
