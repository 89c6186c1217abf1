"""Package specific exception hierarchy."""

from __future__ import annotations

from collections.abc import Sequence


class AICoreLLMError(Exception):
    """Base exception for aicore_llm package."""


class ConfigurationError(AICoreLLMError):
    """Raised when credentials are missing or invalid."""

    def __init__(self, message: str, missing_fields: Sequence[str] = ()) -> None:
        super().__init__(message)
        self.missing_fields = tuple(missing_fields)

    @classmethod
    def missing(cls, source: str, fields: Sequence[str]) -> ConfigurationError:
        joined = ", ".join(fields)
        return cls(f"{source}: missing required field(s): {joined}", missing_fields=fields)


class DiscoveryError(AICoreLLMError):
    """Raised when the model discovery endpoint cannot be read."""


class MappingError(AICoreLLMError):
    """Raised when a message has no lossless representation in a backend dialect."""


class TransportError(AICoreLLMError):
    """Represents network, auth or backend failures before streaming starts."""

    def __init__(self, backend: str, message: str, status_code: int | None = None) -> None:
        suffix = f" (status {status_code})" if status_code is not None else ""
        super().__init__(f"{backend}: {message}{suffix}")
        self.backend = backend
        self.status_code = status_code


class StreamParseError(AICoreLLMError):
    """Raised when a single SSE line cannot be decoded."""

    def __init__(self, line: str) -> None:
        super().__init__(f"Malformed stream payload: {line[:200]}")
        self.line = line


class MidStreamError(AICoreLLMError):
    """Raised when a stream fails after at least one event was delivered."""
