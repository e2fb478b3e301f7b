"""
Client for the crop advisor chat endpoint.

Posts the conversation, then feeds the streamed reply through the
reassembler so the transcript always holds the reply received so far.
"""
from typing import Callable, Optional
import logging

import httpx

from cropwatch import config
from cropwatch.errors import ExternalServiceError
from cropwatch.streaming import ChatTranscript, reassemble_stream
from cropwatch.utils.http_utils import error_message

logger = logging.getLogger(__name__)


class AdvisorClient:
    """Streams assistant replies into a ChatTranscript."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        url: str = config.ADVISOR_URL,
        access_token: Optional[str] = None,
    ):
        self.client = client
        self.url = url
        self.access_token = access_token

    def _headers(self):
        headers = {"Content-Type": "application/json"}
        if self.access_token:
            headers["Authorization"] = f"Bearer {self.access_token}"
        return headers

    async def stream_chat(
        self,
        transcript: ChatTranscript,
        on_update: Optional[Callable[[str], None]] = None,
    ) -> str:
        """
        Request a reply to the transcript and stream it in.

        Args:
            transcript: Conversation so far; receives the assistant entry
            on_update: Called with the content so far after every fragment

        Returns:
            Final assistant content

        Raises:
            ExternalServiceError: Non-2xx response or a response without a body
        """
        payload = {
            "messages": [m.model_dump(include={"role", "content"}) for m in transcript.messages]
        }

        def publish(response_id, content):
            transcript.publish(response_id, content)
            if on_update is not None:
                on_update(content)

        received = 0

        try:
            async with self.client.stream(
                "POST", self.url, json=payload, headers=self._headers(),
                timeout=httpx.Timeout(config.HTTP_TIMEOUT, read=None),
            ) as response:
                if response.is_error:
                    await response.aread()
                    raise ExternalServiceError(error_message(response), status_code=response.status_code)

                async def body():
                    nonlocal received
                    async for chunk in response.aiter_bytes():
                        received += len(chunk)
                        yield chunk

                accumulator = await reassemble_stream(body(), publish)
        except httpx.HTTPError as e:
            logger.error(f"Advisor request failed: {e}")
            raise ExternalServiceError("Failed to get response") from e

        if not received:
            raise ExternalServiceError("No response body")
        return accumulator.content

    async def ask(
        self,
        transcript: ChatTranscript,
        question: str,
        on_update: Optional[Callable[[str], None]] = None,
    ) -> str:
        """Add a user question and stream the reply; the transcript is rolled back on failure."""
        snapshot = list(transcript.messages)
        transcript.add_user_message(question)
        try:
            return await self.stream_chat(transcript, on_update)
        except ExternalServiceError:
            transcript.messages = snapshot
            raise
