"""Business Application Studio LLM proxy transport."""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import aclosing
from typing import Any

import httpx

from aicore_llm.deployments import DeploymentCatalog
from aicore_llm.errors import TransportError
from aicore_llm.normalizer import BAS_PROXY
from aicore_llm.sse import extract_delta_text
from aicore_llm.transports.base import BaseTransport
from aicore_llm.types import ModelDescriptor, ModelSelection


class ProxyTransport(BaseTransport):
    """Plain HTTP access through the BAS proxy; it authenticates on our behalf."""

    name = "bas-proxy"
    dialect = BAS_PROXY

    def __init__(
        self,
        client: httpx.AsyncClient,
        deployments: DeploymentCatalog,
        *,
        resource_group: str = "default",
        model_version: str | None = None,
        max_tokens: int | None = None,
    ) -> None:
        super().__init__(client, max_tokens=max_tokens)
        self._deployments = deployments
        self._resource_group = resource_group
        self._model_version = model_version

    def headers(self) -> dict[str, str]:
        return {
            "Content-Type": "application/json",
            "AI-Resource-Group": self._resource_group,
        }

    async def warm(self) -> None:
        try:
            deployments = await self._deployments.get_deployments()
        except TransportError as exc:
            self._logger.warning("Could not prefetch BAS deployments: %s", exc)
            return
        self._logger.info("Prefetched %d BAS deployments", len(deployments))

    async def open_stream(
        self,
        messages: list[dict[str, Any]],
        model: ModelSelection,
        capabilities: ModelDescriptor | None,
    ) -> AsyncIterator[dict[str, Any]]:
        url = await self._deployments.completion_url(model.id, self._model_version)
        payload: dict[str, Any] = {"messages": messages, "stream": True, **self._limit(model)}
        self._logger.debug("Requesting completion from URL: %s", url)

        async with aclosing(self._post_sse(url, self.headers(), payload)) as events:
            async for event in events:
                yield event

    def parse_chunk(self, chunk: dict[str, Any]) -> str | None:
        return extract_delta_text(chunk) or None
