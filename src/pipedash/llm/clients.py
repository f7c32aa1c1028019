"""LLM completion client.

Provides LLMClient, which speaks the OpenAI-compatible chat completions wire
format (DeepSeek, OpenAI) over httpx:

    client = LLMClient()
    response = await client.chat(ChatRequest(
        provider="deepseek",
        messages=[{"role": "user", "content": "Reply with JSON"}],
        temperature=0,
        response_format="json_object",
    ))
    response.content  # parsed JSON value
"""

import asyncio
import json
import logging
import os
import re
from typing import Any, Optional

import httpx

from .defaults import (
    DEFAULT_MAX_RETRIES,
    DEFAULT_RETRY_DELAY,
    DEFAULT_TIMEOUT,
    PROVIDERS,
    RETRYABLE_STATUSES,
    ProviderSpec,
)
from .types import ChatRequest, ChatResponse, LLMError, is_json_format

logger = logging.getLogger(__name__)

_CODE_FENCE = re.compile(r"```(?:json)?\s*\n?|\n?```")


def parse_json_content(text: str) -> Any:
    """Parse a JSON reply, tolerating code fences and surrounding prose.

    Raises:
        ValueError: If no JSON value can be recovered
    """
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        pass

    cleaned = _CODE_FENCE.sub("", text).strip()
    try:
        return json.loads(cleaned)
    except json.JSONDecodeError:
        pass

    # Fall back to the outermost object, then the outermost array
    for open_char, close_char in (("{", "}"), ("[", "]")):
        start = cleaned.find(open_char)
        end = cleaned.rfind(close_char)
        if start != -1 and end > start:
            try:
                return json.loads(cleaned[start : end + 1])
            except json.JSONDecodeError:
                continue

    raise ValueError(f"Failed to parse JSON response: {text[:200]!r}")


def _normalize_usage(usage: Optional[dict]) -> dict[str, int]:
    if not isinstance(usage, dict):
        return {}
    return {
        "promptTokens": usage.get("prompt_tokens", 0),
        "completionTokens": usage.get("completion_tokens", 0),
        "totalTokens": usage.get("total_tokens", 0),
    }


def _error_detail(response: httpx.Response) -> str:
    try:
        data = response.json()
    except ValueError:
        return response.text[:200] or response.reason_phrase
    error = data.get("error") if isinstance(data, dict) else None
    if isinstance(error, dict):
        return error.get("message", str(error))
    return str(error or data)


class LLMClient:
    """Chat completion client for OpenAI-compatible providers.

    Retries network errors, HTTP 429/5xx and unparseable JSON replies with
    exponential backoff. Authentication failures are raised immediately.
    """

    def __init__(
        self,
        providers: Optional[dict[str, ProviderSpec]] = None,
        timeout: float = DEFAULT_TIMEOUT,
        max_retries: int = DEFAULT_MAX_RETRIES,
        retry_delay: float = DEFAULT_RETRY_DELAY,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initialize the client.

        Args:
            providers: Provider table (default: PROVIDERS)
            timeout: Request timeout in seconds
            max_retries: Retries after the first attempt
            retry_delay: Base delay for exponential backoff, in seconds
            transport: Optional httpx transport (used by tests)
        """
        self.providers = dict(PROVIDERS if providers is None else providers)
        self.timeout = timeout
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self._transport = transport

    def available_providers(self) -> dict[str, bool]:
        """Which providers have an API key configured."""
        return {
            name: bool(os.environ.get(spec.api_key_env))
            for name, spec in self.providers.items()
        }

    async def chat(self, request: ChatRequest) -> ChatResponse:
        """Complete a chat request.

        Raises:
            LLMError: Unknown provider, missing API key, or failure after
                all retries
        """
        spec = self.providers.get(request.provider)
        if spec is None:
            raise LLMError(f"Provider {request.provider} not available")

        api_key = os.environ.get(spec.api_key_env)
        if not api_key:
            raise LLMError(
                f"{request.provider} API key not configured (set {spec.api_key_env})"
            )

        payload = self._build_payload(request, spec)
        json_mode = is_json_format(request.response_format)
        logger.debug(
            f"chat: provider={request.provider} model={payload['model']} "
            f"messages={len(request.messages)} json={json_mode}"
        )

        headers = {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {api_key}",
        }
        last_error: Optional[LLMError] = None

        async with httpx.AsyncClient(
            base_url=spec.base_url,
            timeout=httpx.Timeout(self.timeout, connect=10.0),
            headers=headers,
            transport=self._transport,
        ) as client:
            for attempt in range(self.max_retries + 1):
                if attempt > 0:
                    logger.warning(
                        f"{request.provider} attempt {attempt} failed ({last_error}), retrying"
                    )
                    await asyncio.sleep(self.retry_delay * 2 ** (attempt - 1))

                try:
                    resp = await client.post("/chat/completions", json=payload)
                except httpx.TransportError as e:
                    last_error = LLMError(f"{request.provider} request failed: {e}", retryable=True)
                    continue

                if resp.status_code >= 400:
                    error = LLMError(
                        f"{request.provider} API error (HTTP {resp.status_code}): {_error_detail(resp)}",
                        status=resp.status_code,
                        retryable=resp.status_code in RETRYABLE_STATUSES,
                    )
                    if not error.retryable:
                        raise error
                    last_error = error
                    continue

                data = resp.json()
                try:
                    text = data["choices"][0]["message"]["content"]
                except (KeyError, IndexError, TypeError):
                    last_error = LLMError(f"{request.provider} returned no choices", retryable=True)
                    continue

                content: Any = text
                if json_mode:
                    try:
                        content = parse_json_content(text or "")
                    except ValueError as e:
                        last_error = LLMError(str(e), retryable=True)
                        continue

                return ChatResponse(content=content, usage=_normalize_usage(data.get("usage")), raw=data)

        raise last_error or LLMError(
            f"{request.provider} request failed after {self.max_retries + 1} attempts"
        )

    def _build_payload(self, request: ChatRequest, spec: ProviderSpec) -> dict[str, Any]:
        """Build the chat completions request body."""
        payload: dict[str, Any] = {
            "model": request.model or spec.default_model,
            "messages": [
                {"role": m["role"], "content": m["content"]} for m in request.messages
            ],
        }
        if request.temperature is not None:
            payload["temperature"] = request.temperature
        if request.max_tokens is not None:
            payload["max_tokens"] = request.max_tokens
        if is_json_format(request.response_format):
            payload["response_format"] = {"type": "json_object"}
        return payload
