"""SAP AI Core orchestration service transport."""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import aclosing
from typing import Any

import httpx

from aicore_llm.auth import TokenProvider
from aicore_llm.deployments import ORCHESTRATION_SCENARIO, DeploymentCatalog
from aicore_llm.errors import TransportError
from aicore_llm.normalizer import ORCHESTRATION
from aicore_llm.transports.base import BaseTransport
from aicore_llm.types import ModelDescriptor, ModelSelection

_COMPLETION_PATH = "/completion"


class OrchestrationTransport(BaseTransport):
    """Templating + LLM module pipeline, streamed when the model allows it.

    Models the capability cache does not mark as streaming are called once,
    buffered, and their whole answer is returned as a single chunk.
    """

    name = "aicore-orchestration"
    dialect = ORCHESTRATION

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
        streaming = capabilities is not None and capabilities.streaming_supported
        url = await self._deployments.scenario_url(ORCHESTRATION_SCENARIO) + _COMPLETION_PATH
        headers = {
            **await self._tokens.headers(self._resource_group),
            "Content-Type": "application/json",
        }
        payload = self.build_payload(messages, model, streaming=streaming)

        if streaming:
            async with aclosing(self._post_sse(url, headers, payload)) as events:
                async for event in events:
                    yield event
        else:
            self._logger.debug("Model %s does not stream, using a buffered call", model.id)
            yield await self._post_json(url, headers, payload)

    def build_payload(
        self, messages: list[dict[str, Any]], model: ModelSelection, *, streaming: bool
    ) -> dict[str, Any]:
        """Split the leading system message into the template, the rest into history."""
        system, history = messages[0], messages[1:]

        model_params: dict[str, Any] = dict(self._limit(model))
        if streaming:
            model_params["stream_options"] = {"include_usage": True}

        llm: dict[str, Any] = {"model_name": model.id, "model_params": model_params}
        if self._model_version:
            llm["model_version"] = self._model_version

        config: dict[str, Any] = {
            "module_configurations": {
                "templating_module_config": {"template": [system]},
                "llm_module_config": llm,
            },
        }
        if streaming:
            config["stream"] = True

        return {
            "orchestration_config": config,
            "input_params": {},
            "messages_history": history,
        }

    def parse_chunk(self, chunk: dict[str, Any]) -> str | None:
        if "orchestration_result" not in chunk and "message" in chunk:
            code = chunk.get("code")
            raise TransportError(
                self.name,
                str(chunk.get("message")),
                status_code=code if isinstance(code, int) else None,
            )
        result = chunk.get("orchestration_result") or {}
        choices = result.get("choices") or []
        if not choices:
            return None
        choice = choices[0]
        body = choice.get("delta") if "delta" in choice else choice.get("message")
        content = (body or {}).get("content")
        return content if isinstance(content, str) and content else None

    def _on_unauthorized(self) -> None:
        self._tokens.invalidate()
