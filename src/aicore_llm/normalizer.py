"""Conversion of chat messages into each backend's message dialect."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import Any

from aicore_llm.errors import MappingError
from aicore_llm.types import ChatMessage, ImagePart, TextPart

_DEFAULT_IMAGE_DETAIL = "auto"
_IMAGE_DETAILS = ("auto", "low", "high")


@dataclass(frozen=True)
class Dialect:
    """Role policy of one backend message schema.

    Roles in ``passthrough_roles`` are forwarded unchanged, roles in
    ``dropped_roles`` are removed because the backend has no such role, and
    anything else raises :class:`MappingError`.
    """

    name: str
    passthrough_roles: frozenset[str]
    dropped_roles: frozenset[str] = frozenset()


ORCHESTRATION = Dialect(
    name="orchestration",
    passthrough_roles=frozenset({"system", "user", "assistant", "tool", "function"}),
)

AZURE_OPENAI = Dialect(
    name="azure-openai",
    passthrough_roles=frozenset({"system", "user", "assistant", "tool"}),
)

BAS_PROXY = Dialect(
    name="bas-proxy",
    passthrough_roles=frozenset({"system", "user", "assistant"}),
    dropped_roles=frozenset({"tool", "function"}),
)


def normalize_messages(
    system_prompt: str,
    messages: Iterable[ChatMessage | Mapping[str, Any]],
    dialect: Dialect,
) -> list[dict[str, Any]]:
    """Return ``messages`` in ``dialect`` form with the system prompt prepended once."""

    normalized: list[dict[str, Any]] = [{"role": "system", "content": system_prompt}]
    for message in messages:
        role, content = _unpack(message)
        if role in dialect.dropped_roles:
            continue
        if role not in dialect.passthrough_roles:
            raise MappingError(f"{dialect.name}: role '{role}' has no lossless mapping")
        normalized.append({"role": role, "content": _serialize_content(content)})
    return normalized


def _unpack(message: ChatMessage | Mapping[str, Any]) -> tuple[str, Any]:
    if isinstance(message, ChatMessage):
        return message.role, message.content
    if not isinstance(message, Mapping) or "role" not in message:
        raise MappingError(f"Not a chat message: {message!r}")
    return str(message["role"]), message.get("content")


def _serialize_content(content: Any) -> str | list[dict[str, Any]] | None:
    if content is None or isinstance(content, str):
        return content
    if isinstance(content, (list, tuple)):
        return [_serialize_part(part) for part in content]
    raise MappingError(f"Unsupported message content: {type(content).__name__}")


def _serialize_part(part: Any) -> dict[str, Any]:
    if isinstance(part, TextPart):
        return {"type": "text", "text": part.text}
    if isinstance(part, ImagePart):
        return _image_url(part.url, part.detail)
    if not isinstance(part, Mapping):
        raise MappingError(f"Unsupported content part: {part!r}")

    part_type = part.get("type")
    if part_type == "text":
        return {"type": "text", "text": part.get("text", "")}
    if part_type == "image":
        return _image_url(_image_source(part), _image_detail(part))
    raise MappingError(f"Unsupported message type: {part_type}")


def _image_url(url: str, detail: str | None) -> dict[str, Any]:
    return {
        "type": "image_url",
        "image_url": {"url": url, "detail": detail or _DEFAULT_IMAGE_DETAIL},
    }


def _image_source(part: Mapping[str, Any]) -> str:
    image_url = part.get("image_url")
    if isinstance(image_url, Mapping) and image_url.get("url"):
        return str(image_url["url"])
    for key in ("url", "image"):
        if isinstance(part.get(key), str):
            return part[key]

    # Anthropic style image block
    source = part.get("source")
    if isinstance(source, Mapping):
        if source.get("type") == "url" and source.get("url"):
            return str(source["url"])
        if source.get("type") == "base64" and source.get("data"):
            media_type = source.get("media_type", "image/png")
            return f"data:{media_type};base64,{source['data']}"
    raise MappingError("Image content part has no URL or data")


def _image_detail(part: Mapping[str, Any]) -> str | None:
    image_url = part.get("image_url")
    detail = image_url.get("detail") if isinstance(image_url, Mapping) else part.get("detail")
    if detail is not None and detail not in _IMAGE_DETAILS:
        raise MappingError(f"Unsupported image detail: {detail}")
    return detail
