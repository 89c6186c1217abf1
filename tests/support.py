"""Shared fixtures for the aicore_llm tests."""

from __future__ import annotations

import json
from collections.abc import AsyncIterator
from pathlib import Path
from typing import Any, TypeVar

from aicore_llm.config import Settings

T = TypeVar("T")

AUTH_URL = "https://auth.example.com"
API_URL = "https://api.example.com"
API_BASE = f"{API_URL}/v2"
TOKEN_URL = f"{AUTH_URL}/oauth/token"
DISCOVERY_URL = f"{API_BASE}/lm/scenarios/foundation-models/models"
DEPLOYMENTS_URL = f"{API_BASE}/lm/deployments"

BAS_URL = "http://bas.example.com"
BAS_BASE = f"{BAS_URL}/llm/v2"

SERVICE_KEY: dict[str, Any] = {
    "clientid": "client-id",
    "clientsecret": "client-secret",
    "url": AUTH_URL,
    "serviceurls": {"AI_API_URL": API_URL},
}

TOKEN_RESPONSE = {"access_token": "test-token", "token_type": "bearer", "expires_in": 3600}


def make_settings(directory: str | Path = "/nonexistent", **overrides: Any) -> Settings:
    values: dict[str, Any] = {
        "credentials_path": Path(directory) / "service-key.json",
        "max_attempts": 3,
        "retry_min_wait_s": 0,
        "retry_max_wait_s": 0,
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


def service_key_env(**extra: str) -> dict[str, str]:
    return {"AICORE_SERVICE_KEY": json.dumps(SERVICE_KEY), **extra}


def sse_body(*payloads: str) -> bytes:
    return "".join(f"data: {payload}\n\n" for payload in payloads).encode()


def delta(text: str) -> str:
    return json.dumps({"choices": [{"index": 0, "delta": {"content": text}}]})


def model_deployment(deployment_id: str, name: str, version: str | None = None) -> dict[str, Any]:
    model: dict[str, Any] = {"name": name}
    if version:
        model["version"] = version
    return {
        "id": deployment_id,
        "scenarioId": "foundation-models",
        "status": "RUNNING",
        "details": {"resources": {"backend_details": {"model": model}}},
    }


def discovery_resource(
    model: str,
    provider: str,
    *,
    streaming: bool = True,
    capabilities: tuple[str, ...] = ("text-generation",),
    scenarios: tuple[str, ...] = ("foundation-models", "orchestration"),
) -> dict[str, Any]:
    return {
        "model": model,
        "provider": provider,
        "displayName": model.upper(),
        "allowedScenarios": [{"scenarioId": s, "executableId": s} for s in scenarios],
        "versions": [
            {
                "name": "latest",
                "isLatest": True,
                "capabilities": list(capabilities),
                "streamingSupported": streaming,
            }
        ],
    }


async def collect(stream: AsyncIterator[T]) -> list[T]:
    items: list[T] = []
    async for item in stream:
        items.append(item)
    return items


async def aiter_of(*items: T) -> AsyncIterator[T]:
    for item in items:
        yield item
