"""LLM completion clients.

All analysis code talks to LLMs through one contract:

    response = await client.chat(ChatRequest(...))

LLMClient is the HTTP implementation; tests substitute any object with an
async ``chat`` method.
"""

from .clients import LLMClient, parse_json_content
from .defaults import DEFAULT_MODEL, DEFAULT_PROVIDER, PROVIDERS, ProviderSpec
from .types import ChatClient, ChatRequest, ChatResponse, LLMError, is_json_format

__all__ = [
    "LLMClient",
    "ChatClient",
    "ChatRequest",
    "ChatResponse",
    "LLMError",
    "ProviderSpec",
    "PROVIDERS",
    "DEFAULT_PROVIDER",
    "DEFAULT_MODEL",
    "is_json_format",
    "parse_json_content",
]
