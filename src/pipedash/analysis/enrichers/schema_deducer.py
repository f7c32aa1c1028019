"""LLM-assisted JSON Schema deduction for artifacts.

The LLM returns ``{schema, example, reasoning}``; the example must validate
against the schema (JSON Schema Draft-07) before the result is accepted.
"""

import json
import logging
from typing import Any, Optional

from jsonschema import Draft7Validator
from jsonschema.exceptions import SchemaError, ValidationError

from ...llm import DEFAULT_MODEL, DEFAULT_PROVIDER, ChatClient, ChatRequest
from ..errors import SchemaDeductionError, SchemaValidationError
from ..types import ArtifactWrite, DeducedSchema

logger = logging.getLogger(__name__)

DRAFT_07 = "http://json-schema.org/draft-07/schema#"


class ValidatorRegistry:
    """Compiled Draft-07 validators, keyed by ``$id`` when a schema has one.

    Compiling a schema whose ``$id`` is already registered replaces the old
    entry.
    """

    def __init__(self):
        self._by_id: dict[str, Draft7Validator] = {}

    def compile(self, schema: dict[str, Any]) -> Draft7Validator:
        schema_id = schema.get("$id")
        if isinstance(schema_id, str):
            self._by_id.pop(schema_id, None)

        Draft7Validator.check_schema(schema)
        validator = Draft7Validator(schema, format_checker=Draft7Validator.FORMAT_CHECKER)

        if isinstance(schema_id, str):
            self._by_id[schema_id] = validator
        return validator

    def get(self, schema_id: str) -> Optional[Draft7Validator]:
        return self._by_id.get(schema_id)


_registry = ValidatorRegistry()


def validation_errors(validator: Draft7Validator, instance: Any) -> list[dict[str, Any]]:
    """Structured validation errors, one dict per violation."""
    errors = sorted(
        validator.iter_errors(instance), key=lambda e: [str(part) for part in e.absolute_path]
    )
    return [_error_to_dict(error) for error in errors]


def _error_to_dict(error: ValidationError) -> dict[str, Any]:
    return {
        "instancePath": "".join(f"/{part}" for part in error.absolute_path),
        "schemaPath": "#" + "".join(f"/{part}" for part in error.absolute_schema_path),
        "keyword": error.validator,
        "message": error.message,
    }


async def deduce_artifact_schema(
    client: ChatClient,
    task_code: str,
    artifact: ArtifactWrite,
    provider: str = DEFAULT_PROVIDER,
    model: str = DEFAULT_MODEL,
) -> DeducedSchema:
    """Deduce a JSON Schema and example for an artifact a task writes.

    Args:
        client: Chat completion client
        task_code: Full source of the task file
        artifact: The artifact write (file name and stage)
        provider: LLM provider name
        model: Model name

    Returns:
        DeducedSchema whose example validates against its schema

    Raises:
        SchemaDeductionError: If the response has the wrong shape or the
            schema is not a valid Draft-07 schema
        SchemaValidationError: If the example does not validate
        LLMError: If the completion request fails
    """
    file_name = artifact.file_name
    response = await client.chat(
        ChatRequest(
            provider=provider,
            model=model,
            temperature=0,
            response_format={"type": "json_object"},
            messages=[
                {"role": "system", "content": build_system_prompt()},
                {"role": "user", "content": build_user_prompt(task_code, artifact)},
            ],
        )
    )

    if response is None or not hasattr(response, "content"):
        raise SchemaDeductionError(
            f"LLM response is missing or not an object when deducing artifact schema for {file_name!r}",
            file_name=file_name,
        )

    result = response.content
    if not isinstance(result, dict):
        raise SchemaDeductionError(
            f"LLM response content is missing or not an object when deducing artifact "
            f"schema for {file_name!r}",
            file_name=file_name,
        )

    schema = result.get("schema")
    example = result.get("example")
    reasoning = result.get("reasoning")

    if (
        not isinstance(schema, dict)
        or not isinstance(example, (dict, list))
        or not isinstance(reasoning, str)
    ):
        raise SchemaDeductionError(
            f"LLM returned invalid structured output when deducing artifact schema for "
            f"{file_name!r}. Expected properties: {{schema: object, example: object, "
            f"reasoning: string}}.",
            file_name=file_name,
        )

    try:
        validator = _registry.compile(schema)
    except SchemaError as e:
        raise SchemaDeductionError(
            f"LLM returned an invalid JSON Schema for {file_name!r}: {e.message}",
            file_name=file_name,
        ) from e

    errors = validation_errors(validator, example)
    if errors:
        raise SchemaValidationError(file_name, errors)

    logger.debug(f"Deduced schema for {file_name} ({len(schema.get('properties', {}))} properties)")
    return DeducedSchema(schema=schema, example=example, reasoning=reasoning)


def build_system_prompt() -> str:
    return f"""You are a code analysis expert who deduces JSON schemas from JavaScript source code.

Your task: given a pipeline task's source code and a target artifact filename, produce the JSON Schema describing that artifact's structure.

ANALYSIS STRATEGY (in this order):
1. FIRST: Look for an exported schema constant (e.g. `export const <name>Schema = {{...}}`) that matches the artifact
2. SECOND: Find the io.writeArtifact() call for this artifact and trace the data being written
3. THIRD: Look for JSON structure hints in LLM prompts, JSON.parse usage or data transformations
4. FOURTH: If the artifact is read and validated elsewhere, check the validation code for schema hints

OUTPUT REQUIREMENTS:
- The schema must be valid JSON Schema Draft-07
- The schema must include "$schema": "{DRAFT_07}"
- The schema must include "type", "properties" and "required"
- The example must be realistic data that validates against the schema
- The reasoning must explain your analysis steps

Respond with a JSON object of exactly this structure:
{{
  "schema": {{ <valid JSON Schema Draft-07> }},
  "example": {{ <realistic example data> }},
  "reasoning": "<step-by-step explanation of how you determined the schema>"
}}"""


FEW_SHOT_OUTPUT = {
    "schema": {
        "$schema": DRAFT_07,
        "type": "object",
        "required": ["name", "email", "preferences"],
        "properties": {
            "name": {"type": "string"},
            "email": {"type": "string", "format": "email"},
            "preferences": {
                "type": "object",
                "properties": {"theme": {"type": "string", "enum": ["light", "dark"]}},
            },
        },
    },
    "example": {
        "name": "Jane Doe",
        "email": "jane@example.com",
        "preferences": {"theme": "dark"},
    },
    "reasoning": (
        "Found the io.writeArtifact call with an inline object literal. Traced property "
        "types from the object structure. Added format: email based on the property name."
    ),
}


def build_user_prompt(task_code: str, artifact: ArtifactWrite) -> str:
    return f"""## Task Source Code

```javascript
{task_code}
```

## Target Artifact
- Filename: {artifact.file_name}
- Written in stage: {artifact.stage}

## Worked Example

For a task that writes "user-profile.json" with code like:
```javascript
await io.writeArtifact("user-profile.json", JSON.stringify({{
  name: user.name,
  email: user.email,
  preferences: {{ theme: "dark" }}
}}));
```

The correct output is:
{json.dumps(FEW_SHOT_OUTPUT, indent=2)}

## Your Task

Analyze the source code and produce the schema, example and reasoning for the artifact "{artifact.file_name}" written in stage "{artifact.stage}"."""
