"""Backend transports for aicore_llm."""

from .base import BaseTransport
from .direct import DirectTransport
from .orchestration import OrchestrationTransport
from .proxy import ProxyTransport

__all__ = [
    "BaseTransport",
    "DirectTransport",
    "OrchestrationTransport",
    "ProxyTransport",
]
