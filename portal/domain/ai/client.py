"""
Anthropic Messages API client

Thin httpx wrapper; callers fall back to heuristics whenever the model is
unavailable or returns something unusable.
"""

import json
import logging
from typing import Optional

import httpx

from ...config import AI_MODEL, AI_TIMEOUT_SECONDS, ANTHROPIC_API_KEY

logger = logging.getLogger(__name__)

ANTHROPIC_API_URL = "https://api.anthropic.com/v1/messages"
ANTHROPIC_VERSION = "2023-06-01"


class AIUnavailableError(Exception):
    """Raised when the model cannot be reached or its output cannot be used"""


def is_available() -> bool:
    return bool(ANTHROPIC_API_KEY)


def _strip_code_fences(text: str) -> str:
    cleaned = text.strip()
    if cleaned.startswith("```json"):
        cleaned = cleaned[7:]
    elif cleaned.startswith("```"):
        cleaned = cleaned[3:]
    if cleaned.endswith("```"):
        cleaned = cleaned[:-3]
    return cleaned.strip()


async def complete(
    system_prompt: str,
    user_prompt: str,
    max_tokens: int = 1024,
    temperature: float = 0.3,
    model: Optional[str] = None,
) -> str:
    """Send a single-turn prompt and return the text of the first content block"""
    if not is_available():
        raise AIUnavailableError("AI unavailable: ANTHROPIC_API_KEY not configured")

    try:
        async with httpx.AsyncClient(timeout=AI_TIMEOUT_SECONDS) as client:
            response = await client.post(
                ANTHROPIC_API_URL,
                headers={
                    "x-api-key": ANTHROPIC_API_KEY,
                    "anthropic-version": ANTHROPIC_VERSION,
                    "content-type": "application/json",
                },
                json={
                    "model": model or AI_MODEL,
                    "max_tokens": max_tokens,
                    "temperature": temperature,
                    "system": system_prompt,
                    "messages": [{"role": "user", "content": user_prompt}],
                },
            )
            response.raise_for_status()
    except httpx.HTTPError as e:
        logger.error(f"❌ AI request failed: {e}")
        raise AIUnavailableError(str(e)) from e

    content = response.json().get("content") or []
    return content[0].get("text", "") if content else ""


async def complete_json(system_prompt: str, user_prompt: str, **kwargs) -> dict:
    text = await complete(
        system_prompt,
        f"{user_prompt}\n\nRespond with valid JSON only, no markdown or explanation.",
        **kwargs,
    )
    try:
        data = json.loads(_strip_code_fences(text))
    except json.JSONDecodeError as e:
        logger.warning(f"⚠️ AI returned invalid JSON: {text[:200]}")
        raise AIUnavailableError("AI returned invalid JSON") from e
    if not isinstance(data, dict):
        raise AIUnavailableError("AI returned a non-object JSON value")
    return data
