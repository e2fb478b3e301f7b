"""
Reassembly of streamed chat completions.

The model endpoint answers with newline-delimited server-sent-event frames::

    data: {"choices":[{"delta":{"content":"Hel"}}]}
    data: {"choices":[{"delta":{"content":"lo"}}]}
    data: [DONE]

Chunks arrive with arbitrary boundaries. SSEFrameParser buffers text across
chunks and yields the content fragments of complete lines;
ResponseAccumulator and ChatTranscript turn those fragments into one growing
assistant message.
"""
from typing import AsyncIterator, Callable, List, Optional
import codecs
import logging
import uuid

from pydantic import BaseModel, Field, ValidationError

from cropwatch.errors import ParseError
from cropwatch.models import ChatMessage

logger = logging.getLogger(__name__)

DATA_PREFIX = "data: "
DONE_SENTINEL = "[DONE]"
SSE_FIELDS = ("data", "event", "id", "retry")


class _Delta(BaseModel):
    content: Optional[str] = None


class _Choice(BaseModel):
    delta: _Delta = Field(default_factory=_Delta)


class ChatCompletionChunk(BaseModel):
    """Schema of one streamed completion frame."""
    choices: List[_Choice]


def extract_fragment(payload: str) -> Optional[str]:
    """
    Return the text fragment carried by a frame payload.

    Raises:
        ParseError: Payload is not JSON or does not match ChatCompletionChunk
    """
    try:
        chunk = ChatCompletionChunk.model_validate_json(payload)
    except ValidationError as e:
        raise ParseError(f"Malformed stream frame: {e.errors()[0]['msg']}") from e
    if not chunk.choices:
        return None
    return chunk.choices[0].delta.content


def _frame_payload(line: str) -> Optional[str]:
    """Payload of a data line, or None for lines that carry nothing."""
    if not line.strip() or line.startswith(":"):
        return None
    if not line.startswith(DATA_PREFIX):
        return None
    return line[len(DATA_PREFIX):].strip()


def _starts_frame(line: str) -> bool:
    if not line.strip() or line.startswith(":"):
        return True
    field, sep, _ = line.partition(":")
    return bool(sep) and field in SSE_FIELDS


def _inside_string(text: str) -> bool:
    """True when ``text`` ends inside an open JSON string literal."""
    inside = False
    escaped = False
    for ch in text:
        if escaped:
            escaped = False
        elif ch == "\\" and inside:
            escaped = True
        elif ch == '"':
            inside = not inside
    return inside


class SSEFrameParser:
    """
    Incremental parser: bytes in, content fragments out.

    A line is only processed once its terminator has arrived. A line whose
    payload fails to parse is pushed back onto the buffer and processing
    stops until more bytes arrive. When the next line shows up it decides
    the broken line's fate: a line that is not a frame of its own is the
    rest of a payload split by a raw newline and is joined onto it, while a
    new frame means the broken line was garbage and it is dropped.
    """

    def __init__(self):
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._buffer = ""
        self.done = False

    def feed(self, chunk: bytes) -> List[str]:
        if self.done:
            return []
        self._buffer += self._decoder.decode(chunk)
        return self._drain()

    def close(self) -> None:
        self._buffer += self._decoder.decode(b"", final=True)
        if self._buffer.strip() and not self.done:
            logger.debug(f"Stream ended with {len(self._buffer)} unterminated characters")
        self._buffer = ""

    def _pop_line(self) -> Optional[str]:
        newline = self._buffer.find("\n")
        if newline == -1:
            return None
        line = self._buffer[:newline]
        self._buffer = self._buffer[newline + 1:]
        if line.endswith("\r"):
            line = line[:-1]
        return line

    def _drain(self) -> List[str]:
        fragments = []
        while not self.done:
            line = self._pop_line()
            if line is None:
                break
            payload = _frame_payload(line)
            if payload is None:
                continue
            if payload == DONE_SENTINEL:
                self.done = True
                break
            try:
                fragment = extract_fragment(payload)
            except ParseError as e:
                if self._resolve_broken(line, e):
                    continue
                self._buffer = line + "\n" + self._buffer
                break
            if fragment:
                fragments.append(fragment)
        return fragments

    def _resolve_broken(self, line: str, error: ParseError) -> bool:
        """Join or drop a broken line; False while the following line is incomplete."""
        newline = self._buffer.find("\n")
        if newline == -1:
            return False
        following = self._buffer[:newline]
        if following.endswith("\r"):
            following = following[:-1]
        if _starts_frame(following):
            logger.warning(f"Dropping stream frame: {error.message}")
            return True
        # inside a string the newline must be escaped; between tokens it is whitespace
        separator = "\\n" if _inside_string(line) else " "
        self._buffer = line + separator + following + self._buffer[newline:]
        return True


class ResponseAccumulator:
    """Content of one in-flight assistant response."""

    def __init__(self, response_id: Optional[str] = None):
        self.response_id = response_id or uuid.uuid4().hex
        self._parts: List[str] = []

    def append(self, fragment: str) -> str:
        self._parts.append(fragment)
        return self.content

    @property
    def content(self) -> str:
        return "".join(self._parts)


class ChatTranscript:
    """Ordered conversation; assistant entries are keyed by response id."""

    def __init__(self, messages: Optional[List[ChatMessage]] = None):
        self.messages: List[ChatMessage] = list(messages or [])

    def add_user_message(self, content: str) -> ChatMessage:
        message = ChatMessage(role="user", content=content, message_id=uuid.uuid4().hex)
        self.messages.append(message)
        return message

    def publish(self, response_id: str, content: str) -> None:
        last = self.messages[-1] if self.messages else None
        if last is not None and last.role == "assistant" and last.message_id == response_id:
            self.messages[-1] = last.model_copy(update={"content": content})
        else:
            self.messages.append(ChatMessage(role="assistant", content=content, message_id=response_id))


async def reassemble_stream(
    chunks: AsyncIterator[bytes],
    on_update: Optional[Callable[[str, str], None]] = None,
    response_id: Optional[str] = None,
) -> ResponseAccumulator:
    """
    Consume a byte stream and build the assistant response.

    Args:
        chunks: Async iterator of raw body chunks
        on_update: Called with (response_id, content so far) after every fragment
        response_id: Id of the in-flight response; generated when omitted

    Returns:
        The accumulator holding the final content
    """
    parser = SSEFrameParser()
    accumulator = ResponseAccumulator(response_id)
    async for chunk in chunks:
        for fragment in parser.feed(chunk):
            content = accumulator.append(fragment)
            if on_update is not None:
                on_update(accumulator.response_id, content)
        if parser.done:
            break
    parser.close()
    return accumulator
