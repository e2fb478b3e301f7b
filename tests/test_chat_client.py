"""
Unit tests for the crop advisor chat client
"""

import asyncio
import json

import httpx
import pytest

from cropwatch.chat import AdvisorClient
from cropwatch.errors import ExternalServiceError
from cropwatch.streaming import ChatTranscript


ADVISOR_URL = "http://advisor.test/crop-advisor"


def run_with(handler, coro_factory):
    """Run ``coro_factory(advisor)`` against a mocked advisor endpoint."""
    async def main():
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            advisor = AdvisorClient(client, url=ADVISOR_URL, access_token="token-abc")
            return await coro_factory(advisor)
    return asyncio.run(main())


@pytest.mark.unit
class TestStreamChat:
    """Test streaming a reply into the transcript"""

    def test_reply_is_reassembled(self, sample_stream_frames):
        """Test request shape, final content and transcript entry"""
        seen = {}

        def handler(request):
            seen["body"] = json.loads(request.content)
            seen["auth"] = request.headers.get("Authorization")
            return httpx.Response(200, content=b"".join(sample_stream_frames))

        transcript = ChatTranscript()
        transcript.add_user_message("Why is my NDVI dropping?")
        updates = []

        content = run_with(handler, lambda a: a.stream_chat(transcript, updates.append))

        assert content == "Hello"
        assert updates == ["Hel", "Hello"]
        assert seen["auth"] == "Bearer token-abc"
        assert seen["body"] == {
            "messages": [{"role": "user", "content": "Why is my NDVI dropping?"}]
        }
        assert [m.role for m in transcript.messages] == ["user", "assistant"]
        assert transcript.messages[-1].content == "Hello"

    def test_error_body_message_is_used(self):
        """Test that the JSON error field becomes the error message"""
        def handler(request):
            return httpx.Response(429, json={"error": "Rate limit exceeded, please try again later."})

        with pytest.raises(ExternalServiceError) as exc_info:
            run_with(handler, lambda a: a.stream_chat(ChatTranscript()))

        assert exc_info.value.message == "Rate limit exceeded, please try again later."
        assert exc_info.value.status_code == 429

    def test_generic_status_message(self):
        """Test the fallback message for an error without a JSON body"""
        def handler(request):
            return httpx.Response(500, text="Internal Server Error")

        with pytest.raises(ExternalServiceError) as exc_info:
            run_with(handler, lambda a: a.stream_chat(ChatTranscript()))

        assert exc_info.value.message == "Request failed with status 500"

    def test_empty_body(self):
        """Test that a successful response without a body is an error"""
        def handler(request):
            return httpx.Response(200, content=b"")

        with pytest.raises(ExternalServiceError) as exc_info:
            run_with(handler, lambda a: a.stream_chat(ChatTranscript()))

        assert exc_info.value.message == "No response body"

    def test_transport_failure(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(ExternalServiceError) as exc_info:
            run_with(handler, lambda a: a.stream_chat(ChatTranscript()))

        assert exc_info.value.message == "Failed to get response"


@pytest.mark.unit
class TestAsk:
    """Test the question/answer round"""

    def test_ask_appends_question_and_answer(self, sample_stream_frames):
        def handler(request):
            return httpx.Response(200, content=b"".join(sample_stream_frames))

        transcript = ChatTranscript()
        answer = run_with(handler, lambda a: a.ask(transcript, "Hi?"))

        assert answer == "Hello"
        assert [(m.role, m.content) for m in transcript.messages] == [
            ("user", "Hi?"),
            ("assistant", "Hello"),
        ]

    def test_failed_ask_rolls_back(self):
        """Test that the transcript returns to its state before the question"""
        def handler(request):
            return httpx.Response(402, json={"error": "Usage credits exhausted for the chat model."})

        transcript = ChatTranscript()
        transcript.add_user_message("earlier question")
        transcript.publish("r0", "earlier answer")
        before = list(transcript.messages)

        with pytest.raises(ExternalServiceError):
            run_with(handler, lambda a: a.ask(transcript, "new question"))

        assert transcript.messages == before
