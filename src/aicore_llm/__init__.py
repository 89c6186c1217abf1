"""Streaming chat adapter for SAP AI Core orchestration, deployments and the BAS proxy."""

from .adapter import SapAiCoreAdapter
from .config import Settings
from .errors import (
    AICoreLLMError,
    ConfigurationError,
    DiscoveryError,
    MappingError,
    MidStreamError,
    StreamParseError,
    TransportError,
)
from .types import (
    BackendSelection,
    ChatMessage,
    ImagePart,
    ModelDescriptor,
    ModelSelection,
    TextDeltaEvent,
    TextPart,
)

__all__ = [
    "SapAiCoreAdapter",
    "Settings",
    "AICoreLLMError",
    "ConfigurationError",
    "DiscoveryError",
    "MappingError",
    "MidStreamError",
    "StreamParseError",
    "TransportError",
    "BackendSelection",
    "ChatMessage",
    "ImagePart",
    "ModelDescriptor",
    "ModelSelection",
    "TextDeltaEvent",
    "TextPart",
]
