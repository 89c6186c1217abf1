"""Direct foundation-model deployment transport."""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import aclosing
from typing import Any

import httpx

from aicore_llm.auth import TokenProvider
from aicore_llm.deployments import DeploymentCatalog
from aicore_llm.normalizer import AZURE_OPENAI
from aicore_llm.sse import extract_delta_text
from aicore_llm.transports.base import BaseTransport
from aicore_llm.types import ModelDescriptor, ModelSelection


class DirectTransport(BaseTransport):
    """Streams chat completions straight from the model's own deployment."""

    name = "aicore-direct"
    dialect = AZURE_OPENAI

    def __init__(
        self,
        client: httpx.AsyncClient,
        deployments: DeploymentCatalog,
        tokens: TokenProvider,
        *,
        resource_group: str = "default",
        model_version: str | None = None,
        max_tokens: int | None = None,
    ) -> None:
        super().__init__(client, max_tokens=max_tokens)
        self._deployments = deployments
        self._tokens = tokens
        self._resource_group = resource_group
        self._model_version = model_version

    async def open_stream(
        self,
        messages: list[dict[str, Any]],
        model: ModelSelection,
        capabilities: ModelDescriptor | None,
    ) -> AsyncIterator[dict[str, Any]]:
        url = await self._deployments.completion_url(model.id, self._model_version)
        headers = {
            **await self._tokens.headers(self._resource_group),
            "Content-Type": "application/json",
        }
        payload: dict[str, Any] = {"messages": messages, "stream": True, **self._limit(model)}

        async with aclosing(self._post_sse(url, headers, payload)) as events:
            async for event in events:
                yield event

    def parse_chunk(self, chunk: dict[str, Any]) -> str | None:
        return extract_delta_text(chunk) or None

    def _on_unauthorized(self) -> None:
        self._tokens.invalidate()
