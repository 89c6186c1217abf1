"""Backend-agnostic transport interface and shared HTTP streaming helper."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator
from contextlib import aclosing
from typing import Any

import httpx

from aicore_llm.errors import TransportError
from aicore_llm.normalizer import Dialect
from aicore_llm.sse import iter_sse_events
from aicore_llm.types import ModelDescriptor, ModelSelection

# Model ids whose chat API names the completion limit differently.
MAX_TOKENS_PARAM: dict[str, str] = {
    "o1": "max_completion_tokens",
    "o3-mini": "max_completion_tokens",
}
DEFAULT_MAX_TOKENS_PARAM = "max_tokens"


def max_tokens_param(model_id: str) -> str:
    return MAX_TOKENS_PARAM.get(model_id, DEFAULT_MAX_TOKENS_PARAM)


class BaseTransport(ABC):
    """One way of reaching a model: initiate a stream, parse its native chunks."""

    name: str
    dialect: Dialect
    _logger = logging.getLogger(__name__)

    def __init__(self, client: httpx.AsyncClient, *, max_tokens: int | None = None) -> None:
        self._client = client
        self._max_tokens = max_tokens

    @abstractmethod
    def open_stream(
        self,
        messages: list[dict[str, Any]],
        model: ModelSelection,
        capabilities: ModelDescriptor | None,
    ) -> AsyncIterator[dict[str, Any]]:
        """Send already normalized ``messages`` and yield native chunks."""
        raise NotImplementedError

    @abstractmethod
    def parse_chunk(self, chunk: dict[str, Any]) -> str | None:
        """Return the text carried by one native chunk, if any."""
        raise NotImplementedError

    async def warm(self) -> None:
        """Prefetch whatever the first request would otherwise wait for."""

    def _limit(self, model: ModelSelection) -> dict[str, int]:
        return {max_tokens_param(model.id): self._max_tokens or model.info.max_tokens}

    def _on_unauthorized(self) -> None:
        """Hook for transports holding cached credentials."""

    async def _post_sse(
        self, url: str, headers: dict[str, str], payload: dict[str, Any]
    ) -> AsyncIterator[dict[str, Any]]:
        """POST ``payload`` and yield decoded SSE events.

        The connection is held by ``client.stream`` and released on every
        exit path, including a consumer that stops iterating early.
        """
        self._logger.debug("POST %s", url)
        try:
            async with self._client.stream("POST", url, headers=headers, json=payload) as response:
                if response.status_code >= 400:
                    body = await response.aread()
                    if response.status_code == 401:
                        self._on_unauthorized()
                    raise TransportError(
                        self.name,
                        body.decode(errors="replace") or response.reason_phrase,
                        status_code=response.status_code,
                    )
                async with aclosing(iter_sse_events(response.aiter_lines())) as events:
                    async for event in events:
                        yield event
        except httpx.HTTPError as exc:
            raise TransportError(self.name, str(exc) or type(exc).__name__) from exc

    async def _post_json(
        self, url: str, headers: dict[str, str], payload: dict[str, Any]
    ) -> dict[str, Any]:
        self._logger.debug("POST %s", url)
        try:
            response = await self._client.post(url, headers=headers, json=payload)
        except httpx.HTTPError as exc:
            raise TransportError(self.name, str(exc) or type(exc).__name__) from exc
        if response.status_code >= 400:
            if response.status_code == 401:
                self._on_unauthorized()
            raise TransportError(
                self.name,
                response.text or response.reason_phrase,
                status_code=response.status_code,
            )
        try:
            return response.json()
        except ValueError as exc:
            raise TransportError(self.name, f"invalid JSON response: {exc}") from exc
