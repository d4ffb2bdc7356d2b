"""Gemini generateContent 供应商适配器"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from ..images.codec import encode_base64_payload
from ..utils.errors import ImageGenErrorCode, ImageGenException
from ..utils.http import JsonSuccessResponse, get_json, post_json
from ..utils.log import logger
from .base import ProviderAdapter
from .schema import (
    ContentPart,
    GenerateContentRequest,
    GenerateContentResponse,
    ImageGenerateInput,
    InlineData,
    ModelInfo,
)

GEMINI_DEFAULT_BASE_URL = "https://generativelanguage.googleapis.com/v1beta/models"
GEMINI_DEFAULT_TIMEOUT_SEC = 300


def build_generate_content_request(
    payload: ImageGenerateInput,
) -> GenerateContentRequest:
    """构造生图请求：文本 part 永远在前，参考图存在时追加 inlineData part。"""
    parts = [ContentPart(text=payload.prompt)]
    if payload.input_image is not None:
        parts.append(
            ContentPart(
                inline_data=InlineData(
                    mime_type=payload.input_image.mime,
                    data=encode_base64_payload(payload.input_image.data),
                )
            )
        )
    return GenerateContentRequest(parts=parts)


@dataclass(slots=True)
class GeminiAdapter(ProviderAdapter):
    base_url: str
    api_key: str
    image_model: str = ""
    timeout_sec: int = GEMINI_DEFAULT_TIMEOUT_SEC
    provider: str = "gemini"

    def __post_init__(self) -> None:
        normalized = self.base_url.strip().rstrip("/")
        self.base_url = normalized or GEMINI_DEFAULT_BASE_URL

    def _auth_params(self) -> dict[str, str]:
        if not self.api_key.strip():
            raise ImageGenException(
                code=ImageGenErrorCode.CREDENTIAL_MISSING,
                message="Gemini API key is not configured.",
                detail={"provider": self.provider, "base_url": self.base_url},
            )
        return {"key": self.api_key}

    async def _request_list_models(self) -> JsonSuccessResponse:
        return await get_json(
            url=self.base_url,
            params=self._auth_params(),
            timeout_sec=self.timeout_sec,
            source="Gemini",
        )

    async def _request_generate_content(
        self, model: str, body: dict[str, Any]
    ) -> JsonSuccessResponse:
        return await post_json(
            url=f"{self.base_url}/{model}:generateContent",
            payload=body,
            params=self._auth_params(),
            timeout_sec=self.timeout_sec,
            source="Gemini",
        )

    async def list_models(self) -> list[ModelInfo]:
        """拉取完整模型目录（不做过滤）。"""
        response = await self._request_list_models()
        models = response["data"].get("models")
        if not isinstance(models, list):
            return []
        return [ModelInfo.from_dict(item) for item in models if isinstance(item, dict)]

    async def image_generate(
        self, payload: ImageGenerateInput
    ) -> GenerateContentResponse:
        """发送一次 generateContent 请求并返回解析后的响应。"""
        image_model = self.image_model.strip()
        if not image_model:
            raise ImageGenException(
                code=ImageGenErrorCode.INVALID_ARGUMENT,
                message="Gemini image model is not selected.",
                detail={"provider": self.provider},
            )

        request = build_generate_content_request(payload)
        response = await self._request_generate_content(image_model, request.to_dict())
        result = GenerateContentResponse.from_dict(
            response["data"],
            raw_text=response["text"],
            model=image_model,
            elapsed_ms=response["elapsed_ms"],
        )
        logger.info(
            "gemini.generate_content",
            {
                "model": image_model,
                "elapsed_ms": response["elapsed_ms"],
                "candidates": len(result.candidates),
                "with_input_image": payload.input_image is not None,
            },
        )
        return result
