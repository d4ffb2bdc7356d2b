from __future__ import annotations

from abc import ABC, abstractmethod

from .schema import GenerateContentResponse, ImageGenerateInput, ModelInfo


class ProviderAdapter(ABC):
    provider: str
    image_model: str

    @abstractmethod
    async def list_models(self) -> list[ModelInfo]: ...

    @abstractmethod
    async def image_generate(
        self, payload: ImageGenerateInput
    ) -> GenerateContentResponse: ...
