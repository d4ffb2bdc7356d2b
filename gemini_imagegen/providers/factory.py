from __future__ import annotations

from collections.abc import Callable

from .base import ProviderAdapter
from .gemini import GeminiAdapter
from .schema import ProviderAdapterConfig

AdapterBuilder = Callable[[ProviderAdapterConfig], ProviderAdapter]


def _build_gemini(config: ProviderAdapterConfig) -> ProviderAdapter:
    return GeminiAdapter(
        base_url=config.base_url,
        api_key=config.api_key,
        image_model=config.image_model,
        timeout_sec=config.timeout_sec,
    )


_ADAPTER_BUILDERS: dict[str, AdapterBuilder] = {
    "gemini": _build_gemini,
}


def build_provider_adapter(config: ProviderAdapterConfig) -> ProviderAdapter:
    provider = config.provider.strip().lower()
    builder = _ADAPTER_BUILDERS.get(provider)
    if builder is not None:
        return builder(config)
    raise ValueError(f"Unsupported provider: {config.provider}")
