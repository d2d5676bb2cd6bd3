"""Anthropic client factory and JSON-returning completion helper.

Only the optional match narrative talks to the model; nothing in scoring or
contract formation depends on it.
"""

from __future__ import annotations

import json
import logging
import re

from anthropic import Anthropic

from src.marketplace.config import settings

logger = logging.getLogger(__name__)

_FENCE_RE = re.compile(r"```(?:json)?\s*\n?(.*?)```", re.DOTALL)


def _strip_fences(text: str) -> str:
    m = _FENCE_RE.search(text)
    return m.group(1).strip() if m else text.strip()


def make_client() -> Anthropic | None:
    """Client from settings, or None when no API key is configured."""
    if not settings.anthropic_api_key:
        return None
    return Anthropic(api_key=settings.anthropic_api_key)


def _first_text(resp) -> str:
    for block in resp.content or []:
        text = getattr(block, "text", None)
        if text:
            return text
    return ""


def call_llm_json(
    client: Anthropic,
    system: str,
    user: str,
    *,
    fast: bool = True,
    max_tokens: int = 512,
) -> dict:
    """Single-turn completion parsed as a JSON object; ``{}`` on anything else."""
    model = settings.anthropic_fast_model if fast else settings.anthropic_model
    resp = client.messages.create(
        model=model,
        max_tokens=max_tokens,
        system=system,
        messages=[{"role": "user", "content": user}],
    )
    raw = _first_text(resp)
    try:
        data = json.loads(_strip_fences(raw))
    except json.JSONDecodeError:
        logger.warning("%s returned non-JSON output: %.200s", model, raw)
        return {}
    if not isinstance(data, dict):
        logger.warning("%s returned %s instead of an object", model, type(data).__name__)
        return {}
    return data
