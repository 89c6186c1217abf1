"""Server-Sent-Events body parsing shared by all transports."""

from __future__ import annotations

import json
import logging
from collections.abc import AsyncIterator
from typing import Any

from aicore_llm.errors import StreamParseError

DATA_PREFIX = "data: "
DONE_SENTINEL = "[DONE]"

logger = logging.getLogger(__name__)


def decode_payload(payload: str) -> dict[str, Any]:
    """Decode one ``data:`` payload into a JSON object."""
    try:
        event = json.loads(payload)
    except json.JSONDecodeError as exc:
        raise StreamParseError(payload) from exc
    if not isinstance(event, dict):
        raise StreamParseError(payload)
    return event


async def iter_sse_events(lines: AsyncIterator[str]) -> AsyncIterator[dict[str, Any]]:
    """Yield decoded JSON events from SSE ``lines`` until ``[DONE]`` or EOF.

    Lines without the ``data: `` prefix (comments, ``event:`` fields, blank
    separators) are ignored. A payload that fails to decode is logged and
    skipped so one garbled chunk does not end the stream.
    """
    async for line in lines:
        if not line.startswith(DATA_PREFIX):
            continue

        payload = line[len(DATA_PREFIX) :].strip()
        if payload == DONE_SENTINEL:
            return

        try:
            event = decode_payload(payload)
        except StreamParseError as exc:
            logger.warning("Skipping malformed streaming chunk: %s", exc)
            continue
        yield event


def extract_delta_text(event: dict[str, Any]) -> str:
    """Extract the OpenAI-style streaming text delta (``choices[0].delta.content``)."""
    choices = event.get("choices") or []
    if not choices or not isinstance(choices[0], dict):
        return ""
    delta = choices[0].get("delta") or {}
    content = delta.get("content")
    return content if isinstance(content, str) else ""
