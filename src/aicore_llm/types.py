"""Backend-agnostic request, response and catalog models."""

from __future__ import annotations

from enum import Enum
from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field

Role = Literal["system", "user", "assistant", "tool", "function"]
ImageDetail = Literal["auto", "low", "high"]


class TextPart(BaseModel):
    """Plain text content part."""

    model_config = ConfigDict(frozen=True)

    type: Literal["text"] = "text"
    text: str


class ImagePart(BaseModel):
    """Image reference content part."""

    model_config = ConfigDict(frozen=True)

    type: Literal["image"] = "image"
    url: str
    detail: ImageDetail | None = None


ContentPart = Annotated[Union[TextPart, ImagePart], Field(discriminator="type")]


class ChatMessage(BaseModel):
    """Single chat message; content may be plain text or ordered parts."""

    model_config = ConfigDict(frozen=True)

    role: Role
    content: str | list[ContentPart] | None = None


class StreamRequest(BaseModel):
    """Normalized request built for one ``create_message`` call."""

    system_prompt: str
    messages: list[ChatMessage | dict]


class TextDeltaEvent(BaseModel):
    """The only event type emitted by the adapter."""

    type: Literal["text"] = "text"
    text: str


class BackendSelection(str, Enum):
    """Transport chosen once when the adapter is built."""

    DIRECT = "direct"
    ORCHESTRATION = "orchestration"
    PROXY = "proxy"


class ModelDescriptor(BaseModel):
    """Capabilities of one model as reported by the discovery endpoint."""

    model_config = ConfigDict(frozen=True)

    id: str
    provider: str
    display_name: str
    capabilities: frozenset[str] = frozenset()
    streaming_supported: bool = False
    history_supported: bool = False
    image_supported: bool = False


class ServiceUrls(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    ai_api_url: str = Field(alias="AI_API_URL")


class ServiceKey(BaseModel):
    """SAP AI Core service key (the credential blob)."""

    clientid: str
    clientsecret: str
    url: str
    serviceurls: ServiceUrls

    @property
    def api_base(self) -> str:
        return self.serviceurls.ai_api_url.rstrip("/") + "/v2"

    @property
    def token_url(self) -> str:
        return self.url.rstrip("/") + "/oauth/token"


class ModelInfo(BaseModel):
    """Static, per-model limits used for request shaping and introspection."""

    max_tokens: int
    context_window: int
    supports_images: bool = False
    supports_prompt_cache: bool = False
    description: str | None = None


class ModelSelection(BaseModel):
    """Result of ``get_model``."""

    id: str
    info: ModelInfo
