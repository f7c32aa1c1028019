"""LLM-assisted resolution of dynamic artifact references.

Best effort: any failure (transport error, unparseable reply, wrong shape)
comes back as a zero-confidence ArtifactResolution instead of raising.
Whether a resolution is adopted is the caller's decision, see
ArtifactResolution.is_adoptable.
"""

import json
import logging
from typing import Any, Iterable

from ...llm import DEFAULT_MODEL, DEFAULT_PROVIDER, ChatClient, ChatRequest
from ..types import ArtifactResolution, UnresolvedRef

logger = logging.getLogger(__name__)

FAILED_RESOLUTION_REASONING = "Failed to analyze artifact reference"

SYSTEM_PROMPT = """You are an expert code analyzer. Your task is to match a dynamic artifact reference in JavaScript code to one of the known artifact filenames.

Given:
1. The full task source code
2. A dynamic expression used as the filename argument of io.readArtifact() or io.writeArtifact()
3. The code surrounding the call
4. A list of known artifact filenames

Work out what the dynamic expression most likely evaluates to, then match it against the known artifacts.

Respond with JSON of this shape:
{
  "resolvedFileName": "matched-artifact.json" or null if nothing matches,
  "confidence": number between 0.0 and 1.0,
  "reasoning": "brief explanation of your analysis"
}

Guidelines:
- Follow variable assignments, function return values and naming patterns
- Use the stage name and surrounding code as clues
- Return confidence 0 when no reasonable match exists
- Only return high confidence (>= 0.7) when the evidence is strong
- If several artifacts could match, pick the most likely one and lower the confidence"""


def build_user_prompt(
    task_code: str, unresolved: UnresolvedRef, available_artifacts: Iterable[str]
) -> str:
    artifact_list = "\n".join(f"- {name}" for name in available_artifacts)
    return f"""Task source code:
```javascript
{task_code}
```

Dynamic expression: {unresolved.expression}
Stage: {unresolved.stage}
Code context:
```javascript
{unresolved.code_context}
```

Known artifact filenames:
{artifact_list}

Determine which artifact this expression most likely refers to."""


async def resolve_artifact_reference(
    client: ChatClient,
    task_code: str,
    unresolved: UnresolvedRef,
    available_artifacts: Iterable[str],
    provider: str = DEFAULT_PROVIDER,
    model: str = DEFAULT_MODEL,
) -> ArtifactResolution:
    """Ask the LLM which known artifact a dynamic expression refers to.

    Args:
        client: Chat completion client
        task_code: Full source of the task file
        unresolved: The dynamic reference to resolve
        available_artifacts: Known artifact filenames across the pipeline
        provider: LLM provider name
        model: Model name

    Returns:
        ArtifactResolution; on any failure resolved_file_name is None and
        confidence is 0.
    """
    request = ChatRequest(
        provider=provider,
        model=model,
        temperature=0,
        response_format="json_object",
        messages=[
            {"role": "system", "content": SYSTEM_PROMPT},
            {
                "role": "user",
                "content": build_user_prompt(task_code, unresolved, available_artifacts),
            },
        ],
    )

    try:
        response = await client.chat(request)
        resolution = _parse_resolution(response.content)
    except Exception as e:
        logger.warning(
            f"Could not resolve artifact expression {unresolved.expression!r} "
            f"in stage '{unresolved.stage}': {e}"
        )
        return ArtifactResolution(
            resolved_file_name=None,
            confidence=0.0,
            reasoning=FAILED_RESOLUTION_REASONING,
        )

    logger.debug(
        f"Resolved {unresolved.expression!r} -> {resolution.resolved_file_name!r} "
        f"(confidence {resolution.confidence:.2f})"
    )
    return resolution


def _parse_resolution(content: Any) -> ArtifactResolution:
    if isinstance(content, str):
        content = json.loads(content)
    if not isinstance(content, dict):
        raise ValueError(f"expected a JSON object, got {type(content).__name__}")

    file_name = content.get("resolvedFileName")
    if not isinstance(file_name, str) or not file_name:
        file_name = None

    confidence = content.get("confidence")
    if isinstance(confidence, bool) or not isinstance(confidence, (int, float)):
        confidence = 0.0
    confidence = min(max(float(confidence), 0.0), 1.0)

    reasoning = content.get("reasoning")
    if not isinstance(reasoning, str):
        reasoning = ""

    return ArtifactResolution(
        resolved_file_name=file_name, confidence=confidence, reasoning=reasoning
    )
