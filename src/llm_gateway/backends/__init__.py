"""llm-gateway: Completion backend implementations."""

from llm_gateway.backends.base import Backend, BaseBackend
from llm_gateway.backends.ollama import OllamaBackend
from llm_gateway.backends.openai import (
    PRESETS,
    LMStudioBackend,
    ModelPricing,
    OpenAICompatibleBackend,
)

__all__ = [
    "Backend",
    "BaseBackend",
    "LMStudioBackend",
    "ModelPricing",
    "OllamaBackend",
    "OpenAICompatibleBackend",
    "PRESETS",
]
