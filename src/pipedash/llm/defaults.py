"""Shared defaults for LLM completion clients.

Analysis callers (artifact resolver, schema deducer) use these unless the
project's pipedash.yaml overrides them.
"""

from dataclasses import dataclass


@dataclass(frozen=True)
class ProviderSpec:
    """Connection details for an OpenAI-compatible chat completions API."""

    base_url: str
    api_key_env: str
    default_model: str


PROVIDERS = {
    "deepseek": ProviderSpec(
        base_url="https://api.deepseek.com",
        api_key_env="DEEPSEEK_API_KEY",
        default_model="deepseek-chat",
    ),
    "openai": ProviderSpec(
        base_url="https://api.openai.com/v1",
        api_key_env="OPENAI_API_KEY",
        default_model="gpt-4o-mini",
    ),
}

# Provider and model used for analysis requests
DEFAULT_PROVIDER = "deepseek"
DEFAULT_MODEL = "deepseek-chat"

# Transport defaults
DEFAULT_TIMEOUT = 120.0
DEFAULT_MAX_RETRIES = 3
DEFAULT_RETRY_DELAY = 1.0

# HTTP statuses worth retrying
RETRYABLE_STATUSES = frozenset({429, 500, 502, 503, 504})
