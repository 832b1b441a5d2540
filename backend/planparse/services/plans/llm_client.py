"""
AI Service Boundary

Thin async wrapper around OpenAI chat completions in JSON mode. This is the
only place that talks to the hosted model: classification, room extraction,
vision analysis and line item scaffolds all go through `complete_json`, so
tests can substitute a fake client without touching pipeline logic.

Every failure (HTTP error, timeout, empty content, unparseable JSON) surfaces
as PlanLLMError; callers decide how to degrade.
"""

import json
import logging
import re
from functools import lru_cache
from typing import Any, Dict, List, Optional, Union

import json5  # Lenient JSON parser for LLM output
from openai import AsyncOpenAI, OpenAIError

from ...core.config import settings

logger = logging.getLogger(__name__)


UserContent = Union[str, List[Dict[str, Any]]]


class PlanLLMError(Exception):
    """Raised when the hosted model call fails or returns unusable output."""


def parse_json_content(content: str) -> Any:
    """
    Parse a JSON document returned by the model.

    Tries strict JSON first, then strips markdown fences and falls back to
    json5 for trailing commas and similar LLM quirks.
    """
    try:
        return json.loads(content)
    except json.JSONDecodeError as e:
        logger.warning(f"Standard JSON parse failed: {e}")

    stripped = re.sub(r"^```(?:json)?\s*", "", content.strip())
    stripped = re.sub(r"\s*```$", "", stripped)

    try:
        return json5.loads(stripped)
    except ValueError as e:
        raise PlanLLMError(f"Malformed JSON in model response: {e}") from e


class PlanLLMClient:
    """Async JSON-mode chat client for the plan parsing pipeline."""

    def __init__(
        self,
        api_key: str,
        timeout: float = 90.0,
        client: Optional[AsyncOpenAI] = None,
    ):
        self._client = client or AsyncOpenAI(api_key=api_key, timeout=timeout)

    async def complete_json(
        self,
        model: str,
        system_prompt: str,
        user_content: UserContent,
        temperature: float = 0.2,
        max_tokens: int = 4000,
    ) -> Any:
        """
        Run one chat completion and return the parsed JSON payload.

        Raises:
            PlanLLMError: On any transport, API or parsing failure
        """
        try:
            response = await self._client.chat.completions.create(
                model=model,
                messages=[
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": user_content},
                ],
                temperature=temperature,
                max_tokens=max_tokens,
                response_format={"type": "json_object"},
            )
        except OpenAIError as e:
            raise PlanLLMError(f"OpenAI request failed: {e}") from e

        content = response.choices[0].message.content if response.choices else None
        if not content:
            raise PlanLLMError("OpenAI response contained no content")

        if response.usage:
            logger.debug(f"{model}: {response.usage.total_tokens} tokens")

        return parse_json_content(content)


@lru_cache(maxsize=1)
def get_plan_llm_client() -> PlanLLMClient:
    """Get the process-wide client, created on first use from settings."""
    if not settings.ai_enabled:
        raise ValueError("PLANPARSE_OPENAI_API_KEY (or OPENAI_API_KEY) not set in environment")

    return PlanLLMClient(
        api_key=settings.openai_api_key,
        timeout=settings.openai_timeout_seconds,
    )
