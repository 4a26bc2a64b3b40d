"""Claude client utilities.

``invoke_claude`` is the single LLM collaborator used by the generation
chains: ``invoke(prompt, max_tokens) -> LLMResponse``. It has no retry
semantics of its own; callers layer ``app.core.retry.with_retry`` on top.
"""

import json
import re
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from functools import lru_cache
from typing import TypeVar

from anthropic import (
    AsyncAnthropic,
    AsyncAnthropicBedrock,
    AuthenticationError,
    BadRequestError,
    PermissionDeniedError,
)
from pydantic import BaseModel

from app.core.config import get_settings
from app.core.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T", bound=BaseModel)

# SDK errors a retry cannot fix
NON_RETRYABLE_LLM_ERRORS: tuple[type[Exception], ...] = (
    AuthenticationError,
    BadRequestError,
    PermissionDeniedError,
)


@dataclass
class LLMResponse:
    """Text returned by one LLM call."""

    text: str
    truncated: bool = False
    input_tokens: int = 0
    output_tokens: int = 0


InvokeFn = Callable[[str, int], Awaitable[LLMResponse]]


@lru_cache
def get_client() -> AsyncAnthropic | AsyncAnthropicBedrock:
    """
    Get the configured async Claude client.

    Returns:
        AsyncAnthropicBedrock when LLM_PROVIDER is "bedrock", else AsyncAnthropic
    """
    settings = get_settings()
    if settings.LLM_PROVIDER == "bedrock":
        return AsyncAnthropicBedrock(aws_region=settings.AWS_REGION)
    return AsyncAnthropic(api_key=settings.ANTHROPIC_API_KEY)


def _model_name() -> str:
    settings = get_settings()
    if settings.LLM_PROVIDER == "bedrock":
        return settings.BEDROCK_MODEL_ID
    return settings.ANTHROPIC_MODEL


async def invoke_claude(prompt: str, max_tokens: int) -> LLMResponse:
    """
    Send a single-turn prompt to Claude.

    Args:
        prompt: Full user prompt
        max_tokens: Output token budget

    Returns:
        LLMResponse with the concatenated text blocks; ``truncated`` is set
        when the model stopped on the token budget
    """
    settings = get_settings()
    client = get_client()

    response = await client.messages.create(
        model=_model_name(),
        max_tokens=max_tokens,
        temperature=settings.LLM_TEMPERATURE,
        messages=[{"role": "user", "content": prompt}],
    )

    text = "".join(block.text for block in response.content if getattr(block, "type", "") == "text")
    truncated = response.stop_reason == "max_tokens"
    if truncated:
        logger.warning(f"LLM response truncated at max_tokens={max_tokens} ({len(text)} chars)")

    usage = getattr(response, "usage", None)
    return LLMResponse(
        text=text,
        truncated=truncated,
        input_tokens=getattr(usage, "input_tokens", 0) or 0,
        output_tokens=getattr(usage, "output_tokens", 0) or 0,
    )


def strip_llm_fences(raw_output: str) -> str:
    """Strip markdown code fences from LLM output.

    Handles: ```json ... ```, ``` ... ```, leading/trailing whitespace.
    """
    cleaned = raw_output.strip()

    fence_match = re.search(r"```(?:json|markdown|text)?\s*\n?(.*?)```", cleaned, re.DOTALL)
    if fence_match:
        return fence_match.group(1).strip()

    # Unterminated fence
    cleaned = re.sub(r"^```(?:json|markdown|text)?\s*\n?", "", cleaned)
    if cleaned.endswith("```"):
        cleaned = cleaned[:-3]
    return cleaned.strip()


def parse_llm_json(raw_output: str, model: type[T]) -> T:
    """
    Parse LLM output as JSON and validate against a Pydantic model.

    Raises:
        json.JSONDecodeError: If JSON parsing fails after cleanup
        pydantic.ValidationError: If parsed JSON doesn't match schema
    """
    cleaned = strip_llm_fences(raw_output)
    # Tolerate prose around a single JSON object
    brace_match = re.search(r"\{.*\}", cleaned, re.DOTALL)
    if brace_match:
        cleaned = brace_match.group(0)
    return model.model_validate(json.loads(cleaned))
