"""Request and response types for the chat completion contract."""

from dataclasses import dataclass, field
from typing import Any, Optional, Protocol, Union

ResponseFormat = Union[str, dict[str, Any], None]


@dataclass
class ChatRequest:
    """A chat completion request.

    ``response_format`` may be "json", "json_object" or
    ``{"type": "json_object"}``; in JSON mode the response content is the
    parsed JSON value rather than a string.
    """

    provider: str
    messages: list[dict[str, Any]]
    model: Optional[str] = None
    temperature: Optional[float] = None
    response_format: ResponseFormat = None
    max_tokens: Optional[int] = None


@dataclass
class ChatResponse:
    content: Any
    usage: dict[str, int] = field(default_factory=dict)
    raw: Optional[dict[str, Any]] = None


class ChatClient(Protocol):
    """Anything that can complete a ChatRequest."""

    async def chat(self, request: ChatRequest) -> ChatResponse: ...


class LLMError(Exception):
    """LLM transport or response failure.

    Not an AnalysisError: callers treat it according to their own policy.
    """

    def __init__(self, message: str, status: Optional[int] = None, retryable: bool = False):
        super().__init__(message)
        self.status = status
        self.retryable = retryable


def is_json_format(response_format: ResponseFormat) -> bool:
    if isinstance(response_format, str):
        return response_format in ("json", "json_object")
    if isinstance(response_format, dict):
        return response_format.get("type") == "json_object"
    return False
