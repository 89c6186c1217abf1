"""Public streaming adapter for SAP AI Core backends."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncGenerator, AsyncIterator, Mapping, MutableMapping, Sequence
from contextlib import aclosing
from functools import partial
from typing import Any

import httpx
from pydantic import ValidationError

from aicore_llm.auth import TokenProvider
from aicore_llm.catalog import ModelCatalog
from aicore_llm.config import Settings, get_settings
from aicore_llm.credentials import BackendResolution, resolve_backend
from aicore_llm.deployments import DeploymentCatalog, HeadersFactory
from aicore_llm.errors import ConfigurationError, MappingError
from aicore_llm.models import select_model
from aicore_llm.normalizer import normalize_messages
from aicore_llm.retry import RetryPolicy, stream_with_retry
from aicore_llm.transports import (
    BaseTransport,
    DirectTransport,
    OrchestrationTransport,
    ProxyTransport,
)
from aicore_llm.types import (
    BackendSelection,
    ChatMessage,
    ModelDescriptor,
    ModelSelection,
    StreamRequest,
    TextDeltaEvent,
)

logger = logging.getLogger(__name__)


class SapAiCoreAdapter:
    """Streams chat completions from whichever SAP AI Core backend is reachable.

    The backend is chosen once, when the adapter is built: a service key
    (file or ``AICORE_SERVICE_KEY``) selects the orchestration service, or
    the direct deployment route when ``use_orchestration`` is off; inside
    Business Application Studio the LLM proxy is used. Without any of those
    the adapter is still built, and every ``create_message`` call fails with
    :class:`ConfigurationError`.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        *,
        client: httpx.AsyncClient | None = None,
        environ: MutableMapping[str, str] | None = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._client = client or httpx.AsyncClient(timeout=self._settings.request_timeout_s)
        self._owns_client = client is None
        self._retry = RetryPolicy.from_settings(self._settings)
        self._config_error: ConfigurationError | None = None
        self._warmup: asyncio.Future[None] | None = None

        try:
            resolution = resolve_backend(self._settings, environ)
        except ConfigurationError as exc:
            logger.error("Invalid SAP AI Core credentials: %s", exc)
            self._config_error = exc
            resolution = BackendResolution(None)

        self._backend = resolution.selection
        self._transport, discovery_base, discovery_headers = self._build_transport(resolution)
        self._catalog = ModelCatalog(
            self._client,
            discovery_base,
            discovery_headers,
            resource_group=self._settings.resource_group,
        )
        self._catalog.start()
        if self._transport is not None and self._backend is BackendSelection.PROXY:
            self._start_warmup(self._transport)

    @property
    def backend(self) -> BackendSelection | None:
        return self._backend

    def get_model(self) -> ModelSelection:
        """Return the configured model id and its static limits."""
        return select_model(self._settings.model)

    async def list_models(self) -> list[ModelDescriptor]:
        """Return the orchestration-capable models from the capability cache."""
        return await self._catalog.fetch_models()

    async def create_message(
        self,
        system_prompt: str,
        messages: Sequence[ChatMessage | Mapping[str, Any]],
    ) -> AsyncIterator[TextDeltaEvent]:
        """Yield text deltas for one chat turn.

        Setup and mapping problems are raised before anything is sent;
        transport failures are retried until the first delta arrives.
        """
        transport = self._require_transport()
        try:
            request = StreamRequest(system_prompt=system_prompt, messages=list(messages))
        except ValidationError as exc:
            raise MappingError(f"Invalid chat request: {exc}") from exc

        model = self.get_model()
        capabilities = await self._catalog.lookup(model.id)
        normalized = normalize_messages(request.system_prompt, request.messages, transport.dialect)

        open_stream = partial(_iter_text, transport, normalized, model, capabilities)
        async with aclosing(stream_with_retry(open_stream, self._retry)) as texts:
            async for text in texts:
                yield TextDeltaEvent(text=text)

    async def aclose(self) -> None:
        """Cancel background prefetching and close the owned HTTP client."""
        if self._warmup is not None and not self._warmup.done():
            self._warmup.cancel()
        await self._catalog.aclose()
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> SapAiCoreAdapter:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    def _require_transport(self) -> BaseTransport:
        if self._transport is not None:
            return self._transport
        if self._config_error is not None:
            raise self._config_error
        raise ConfigurationError(
            "No SAP AI Core backend configured: provide a service key file, "
            "set AICORE_SERVICE_KEY, or run inside Business Application Studio"
        )

    def _build_transport(
        self, resolution: BackendResolution
    ) -> tuple[BaseTransport | None, str | None, HeadersFactory]:
        settings = self._settings
        options: dict[str, Any] = {
            "resource_group": settings.resource_group,
            "model_version": settings.model_version,
            "max_tokens": settings.max_tokens,
        }

        if resolution.service_key is not None:
            key = resolution.service_key
            tokens = TokenProvider(self._client, key)
            headers = partial(tokens.headers, settings.resource_group)
            deployments = DeploymentCatalog(self._client, key.api_base, headers, backend="aicore")
            transport_cls = (
                OrchestrationTransport
                if resolution.selection is BackendSelection.ORCHESTRATION
                else DirectTransport
            )
            return transport_cls(self._client, deployments, tokens, **options), key.api_base, headers

        if resolution.proxy_base is not None:
            headers = partial(_plain_headers, settings.resource_group)
            deployments = DeploymentCatalog(
                self._client, resolution.proxy_base, headers, backend="bas-proxy"
            )
            return ProxyTransport(self._client, deployments, **options), resolution.proxy_base, headers

        return None, None, partial(_plain_headers, settings.resource_group)

    def _start_warmup(self, transport: BaseTransport) -> None:
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            return
        self._warmup = asyncio.ensure_future(transport.warm())


async def _plain_headers(resource_group: str) -> dict[str, str]:
    return {"Content-Type": "application/json", "AI-Resource-Group": resource_group}


async def _iter_text(
    transport: BaseTransport,
    messages: list[dict[str, Any]],
    model: ModelSelection,
    capabilities: ModelDescriptor | None,
) -> AsyncGenerator[str, None]:
    async with aclosing(transport.open_stream(messages, model, capabilities)) as chunks:
        async for chunk in chunks:
            text = transport.parse_chunk(chunk)
            if text:
                yield text
