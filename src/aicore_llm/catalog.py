"""Model capability cache backed by the foundation-models discovery endpoint."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Any

import httpx

from aicore_llm.errors import DiscoveryError, TransportError
from aicore_llm.types import ModelDescriptor

DISCOVERY_SCENARIO = "foundation-models"
REQUIRED_SCENARIO = "orchestration"
TEXT_GENERATION_CAPABILITY = "text-generation"
IMAGE_CAPABILITY = "image"

# Model families the backend refuses to stream, whatever the version metadata says.
STREAMING_DENYLIST: tuple[str, ...] = ("o1", "o3-mini")

HeadersFactory = Callable[[], Awaitable[dict[str, str]]]

logger = logging.getLogger(__name__)


def latest_version(versions: list[dict[str, Any]]) -> dict[str, Any] | None:
    """Return the version flagged ``isLatest``, else the first one listed."""
    if not versions:
        return None
    for version in versions:
        if version.get("isLatest"):
            return version
    return versions[0]


def is_streaming_supported(model_id: str, version: dict[str, Any]) -> bool:
    if any(family in model_id for family in STREAMING_DENYLIST):
        return False
    return bool(version.get("streamingSupported", False))


def parse_models(data: Any) -> list[ModelDescriptor]:
    """Filter and convert a discovery response into sorted descriptors."""
    resources = data.get("resources") if isinstance(data, dict) else None
    if not isinstance(resources, list):
        raise DiscoveryError("discovery response has no 'resources' list")

    descriptors: list[ModelDescriptor] = []
    try:
        for resource in resources:
            if REQUIRED_SCENARIO not in _scenario_ids(resource):
                continue
            version = latest_version(resource.get("versions") or [])
            if version is None:
                continue
            capabilities = frozenset(version.get("capabilities") or ())
            if TEXT_GENERATION_CAPABILITY not in capabilities:
                continue

            model_id = resource["model"]
            descriptors.append(
                ModelDescriptor(
                    id=model_id,
                    provider=resource.get("provider") or "",
                    display_name=resource.get("displayName") or model_id,
                    capabilities=capabilities,
                    streaming_supported=is_streaming_supported(model_id, version),
                    # orchestration accepts messages_history for every retained model
                    history_supported=True,
                    image_supported=IMAGE_CAPABILITY in capabilities,
                )
            )
    except (AttributeError, KeyError, TypeError, ValueError) as exc:
        raise DiscoveryError(f"unexpected discovery schema: {exc!r}") from exc

    return sorted(descriptors, key=lambda model: model.provider)


def _scenario_ids(resource: dict[str, Any]) -> set[str]:
    ids = set()
    for scenario in resource.get("allowedScenarios") or ():
        ids.add(scenario if isinstance(scenario, str) else scenario.get("scenarioId"))
    return ids


class ModelCatalog:
    """One-shot, memoized cache of the models available for orchestration.

    Exactly one discovery request is issued per catalog. Every caller awaits
    the same task, and any failure resolves the cache to an empty list.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        api_base: str | None,
        headers: HeadersFactory,
        *,
        resource_group: str = "default",
    ) -> None:
        self._client = client
        self._api_base = api_base.rstrip("/") if api_base else None
        self._headers = headers
        self._resource_group = resource_group
        self._task: asyncio.Task[list[ModelDescriptor]] | None = None
        self._by_id: dict[str, ModelDescriptor] = {}

    def start(self) -> None:
        """Begin the fetch now if an event loop is running; otherwise on first use."""
        if self._task is not None:
            return
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            return
        self._task = asyncio.ensure_future(self._load())

    async def fetch_models(self) -> list[ModelDescriptor]:
        if self._task is None:
            self._task = asyncio.ensure_future(self._load())
        if self._task.cancelled():
            return []
        return list(await asyncio.shield(self._task))

    async def lookup(self, model_id: str) -> ModelDescriptor | None:
        await self.fetch_models()
        return self._by_id.get(model_id)

    async def supports_streaming(self, model_id: str) -> bool:
        """Unknown models and an empty cache fall back to the buffered path."""
        descriptor = await self.lookup(model_id)
        return descriptor is not None and descriptor.streaming_supported

    async def aclose(self) -> None:
        """Cancel a discovery request that is still in flight."""
        if self._task is None or self._task.done():
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass

    async def _load(self) -> list[ModelDescriptor]:
        try:
            models = parse_models(await self._request())
        except (DiscoveryError, TransportError) as exc:
            logger.warning("Model discovery failed, continuing without capabilities: %s", exc)
            return []
        except Exception:
            logger.exception("Model discovery crashed, continuing without capabilities")
            return []
        self._by_id = {model.id: model for model in models}
        logger.info("Discovered %d orchestration models", len(models))
        return models

    async def _request(self) -> Any:
        if self._api_base is None:
            raise DiscoveryError("no discovery endpoint configured")

        url = f"{self._api_base}/lm/scenarios/{DISCOVERY_SCENARIO}/models"
        headers = {**await self._headers(), "AI-Resource-Group": self._resource_group}
        try:
            response = await self._client.get(url, headers=headers)
        except httpx.HTTPError as exc:
            raise DiscoveryError(f"request failed: {exc}") from exc
        if response.status_code >= 400:
            raise DiscoveryError(f"status {response.status_code}: {response.text}")
        try:
            return response.json()
        except ValueError as exc:
            raise DiscoveryError(f"invalid JSON: {exc}") from exc
