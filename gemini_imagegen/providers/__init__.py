from .base import ProviderAdapter
from .config import read_provider_adapter_config
from .factory import build_provider_adapter
from .gemini import GeminiAdapter

__all__ = [
    "GeminiAdapter",
    "ProviderAdapter",
    "build_provider_adapter",
    "read_provider_adapter_config",
]
