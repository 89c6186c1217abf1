"""Credential discovery and backend selection."""

from __future__ import annotations

import json
import logging
import os
from collections.abc import Mapping, MutableMapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from aicore_llm.config import BAS_URL_ENV_NAME, SERVICE_KEY_ENV_NAME, Settings
from aicore_llm.errors import ConfigurationError
from aicore_llm.types import BackendSelection, ServiceKey

REQUIRED_FIELDS: tuple[str, ...] = ("clientid", "clientsecret", "url", "serviceurls.AI_API_URL")

BAS_LLM_SERVICE_NAME = "llm"

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BackendResolution:
    """Outcome of credential resolution; ``selection`` is None when nothing is usable."""

    selection: BackendSelection | None
    service_key: ServiceKey | None = None
    proxy_base: str | None = None
    source: str | None = None


def missing_fields(blob: Mapping[str, Any]) -> list[str]:
    """Return every required dotted field that is absent or empty in ``blob``."""
    missing = []
    for dotted in REQUIRED_FIELDS:
        value: Any = blob
        for key in dotted.split("."):
            value = value.get(key) if isinstance(value, Mapping) else None
        if not value:
            missing.append(dotted)
    return missing


def parse_service_key(raw: str, source: str) -> ServiceKey:
    """Parse and validate a serialized service key; raise ConfigurationError on any defect."""
    try:
        blob = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise ConfigurationError(f"{source}: invalid JSON: {exc}") from exc
    if not isinstance(blob, dict):
        raise ConfigurationError(f"{source}: expected a JSON object")

    missing = missing_fields(blob)
    if missing:
        raise ConfigurationError.missing(source, missing)

    try:
        return ServiceKey.model_validate(blob)
    except ValidationError as exc:
        raise ConfigurationError(f"{source}: {exc}") from exc


def load_service_key_file(path: Path) -> ServiceKey | None:
    """Return the service key stored at ``path``, or None if there is no file."""
    if not path.is_file():
        return None
    try:
        raw = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise ConfigurationError(f"{path}: unreadable: {exc}") from exc
    return parse_service_key(raw, str(path))


def install_service_key(
    service_key: ServiceKey, environ: MutableMapping[str, str] | None = None
) -> None:
    """Publish ``service_key`` in the process-wide ``AICORE_SERVICE_KEY`` slot."""
    environ = os.environ if environ is None else environ
    environ[SERVICE_KEY_ENV_NAME] = service_key.model_dump_json(by_alias=True)


def bas_llm_base(bas_url: str) -> str:
    return f"{bas_url.rstrip('/')}/{BAS_LLM_SERVICE_NAME}/v2"


def resolve_backend(
    settings: Settings, environ: MutableMapping[str, str] | None = None
) -> BackendResolution:
    """Choose the transport in fixed priority order.

    1. service key file at ``settings.credentials_path`` (invalid file raises)
    2. service key injected through ``AICORE_SERVICE_KEY``
    3. BAS LLM proxy when running inside Business Application Studio
    4. nothing; logged, and left for the first request to report
    """
    environ = os.environ if environ is None else environ

    source = str(settings.credentials_path)
    service_key = load_service_key_file(settings.credentials_path)
    if service_key is not None:
        install_service_key(service_key, environ)
    elif environ.get(SERVICE_KEY_ENV_NAME):
        source = SERVICE_KEY_ENV_NAME
        service_key = parse_service_key(environ[SERVICE_KEY_ENV_NAME], source)

    if service_key is not None:
        selection = (
            BackendSelection.ORCHESTRATION if settings.use_orchestration else BackendSelection.DIRECT
        )
        logger.info("Using SAP AI Core %s backend with credentials from %s", selection.value, source)
        return BackendResolution(selection, service_key=service_key, source=source)

    bas_url = environ.get(BAS_URL_ENV_NAME)
    if bas_url:
        logger.info("No service key found, using the BAS LLM proxy at %s", bas_url)
        return BackendResolution(
            BackendSelection.PROXY, proxy_base=bas_llm_base(bas_url), source=BAS_URL_ENV_NAME
        )

    logger.warning(
        "No SAP AI Core credentials found at %s, in %s or %s; requests will fail",
        settings.credentials_path,
        SERVICE_KEY_ENV_NAME,
        BAS_URL_ENV_NAME,
    )
    return BackendResolution(None)
