"""Deployment lookup against the AI Core ``/lm/deployments`` API."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Any

import httpx

from aicore_llm.errors import TransportError

COMPLETION_API_VERSION = "2023-05-15"
ORCHESTRATION_SCENARIO = "orchestration"

HeadersFactory = Callable[[], Awaitable[dict[str, str]]]

logger = logging.getLogger(__name__)


class DeploymentCatalog:
    """Caches the deployment list of one AI Core API base.

    The list is fetched once and kept for the lifetime of the catalog; an
    empty answer is not cached so a later call tries again.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        api_base: str,
        headers: HeadersFactory,
        *,
        backend: str,
    ) -> None:
        self._client = client
        self._api_base = api_base.rstrip("/")
        self._headers = headers
        self._backend = backend
        self._deployments: list[dict[str, Any]] = []
        self._lock = asyncio.Lock()

    @property
    def api_base(self) -> str:
        return self._api_base

    async def get_deployments(self) -> list[dict[str, Any]]:
        async with self._lock:
            if not self._deployments:
                self._deployments = await self._fetch()
            return self._deployments

    async def deployment_url(self, model_name: str, model_version: str | None = None) -> str | None:
        """Return the inference URL serving ``model_name``.

        A deployment matching both name and version wins; otherwise the first
        deployment with a matching name is used.
        """
        deployments = await self.get_deployments()
        found = None
        if model_version:
            found = next(
                (
                    d
                    for d in deployments
                    if _model_detail(d).get("name") == model_name
                    and _model_detail(d).get("version") == model_version
                ),
                None,
            )
        if found is None:
            found = next((d for d in deployments if _model_detail(d).get("name") == model_name), None)
        if found is None:
            logger.info("Cannot find the deployment URL for the model %s", model_name)
            return None
        return self._inference_url(found)

    async def completion_url(self, model_name: str, model_version: str | None = None) -> str:
        """Return the chat-completions URL for ``model_name`` or raise."""
        deployment_url = await self.deployment_url(model_name, model_version)
        if not deployment_url:
            raise TransportError(self._backend, f"no deployment found for model '{model_name}'")
        url = f"{deployment_url}/chat/completions?api-version={COMPLETION_API_VERSION}"
        logger.info("Deployment URL: %s", url)
        return url

    async def scenario_url(self, scenario_id: str = ORCHESTRATION_SCENARIO) -> str:
        """Return the URL of the first running deployment of ``scenario_id``."""
        deployments = await self.get_deployments()
        for deployment in deployments:
            if deployment.get("scenarioId") != scenario_id:
                continue
            if deployment.get("status", "RUNNING") != "RUNNING":
                continue
            return self._inference_url(deployment)
        raise TransportError(self._backend, f"no running deployment for scenario '{scenario_id}'")

    async def _fetch(self) -> list[dict[str, Any]]:
        url = f"{self._api_base}/lm/deployments"
        try:
            response = await self._client.get(url, headers=await self._headers())
        except httpx.HTTPError as exc:
            raise TransportError(self._backend, f"deployment listing failed: {exc}") from exc
        if response.status_code >= 400:
            raise TransportError(
                self._backend,
                response.text or response.reason_phrase,
                status_code=response.status_code,
            )
        try:
            data = response.json()
        except ValueError as exc:
            raise TransportError(self._backend, f"invalid deployment listing: {exc}") from exc
        if not isinstance(data, dict):
            raise TransportError(self._backend, "deployment listing is not a JSON object")
        resources = data.get("resources") or []
        if not isinstance(resources, list):
            raise TransportError(self._backend, "deployment listing has no 'resources' list")
        return [d for d in resources if isinstance(d, dict)]

    def _inference_url(self, deployment: dict[str, Any]) -> str:
        deployment_id = deployment.get("id")
        if not deployment_id:
            raise TransportError(self._backend, "deployment entry has no id")
        return f"{self._api_base}/inference/deployments/{deployment_id}"


def _model_detail(deployment: dict[str, Any]) -> dict[str, Any]:
    details = deployment.get("details") or {}
    resources = details.get("resources") or {}
    backend_details = resources.get("backend_details") or {}
    return backend_details.get("model") or {}
