from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

DEFAULT_RESPONSE_MODALITIES = ("image", "text")


@dataclass(slots=True)
class ProviderAdapterConfig:
    provider: str
    """供应商标识"""
    base_url: str
    """模型 API 基础地址（到 `/models` 为止）"""
    api_key: str
    """供应商 API 密钥"""
    timeout_sec: int
    """HTTP 请求超时时间（秒）"""
    image_model: str
    """图像生成模型名称"""


@dataclass(slots=True)
class ModelInfo:
    name: str
    """模型标识，已去掉 `models/` 前缀。"""
    display_name: str = ""
    description: str = ""
    supported_generation_methods: list[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> ModelInfo:
        methods = raw.get("supportedGenerationMethods")
        return cls(
            name=str(raw.get("name") or "").removeprefix("models/"),
            display_name=str(raw.get("displayName") or ""),
            description=str(raw.get("description") or ""),
            supported_generation_methods=(
                [str(item) for item in methods] if isinstance(methods, list) else []
            ),
        )


@dataclass(slots=True)
class InputImage:
    data: bytes
    """参考图原始字节"""
    mime: str
    """参考图 MIME，由扩展名推断"""
    path: Path | None = None
    """参考图来源路径，仅用于日志"""


@dataclass(slots=True)
class ImageGenerateInput:
    prompt: str
    """生图提示词（调用方保证非空）"""
    input_image: InputImage | None = None
    """可选的参考图，提供时作为第二个 part 发送。"""


@dataclass(slots=True)
class InlineData:
    mime_type: str
    data: str
    """base64 编码的二进制内容"""

    def to_dict(self) -> dict[str, str]:
        return {"mimeType": self.mime_type, "data": self.data}

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> InlineData:
        return cls(
            mime_type=str(raw.get("mimeType") or ""),
            data=str(raw.get("data") or ""),
        )


@dataclass(slots=True)
class ContentPart:
    """内容片段：`text` 与 `inline_data` 二选一。"""

    text: str | None = None
    inline_data: InlineData | None = None

    def to_dict(self) -> dict[str, Any]:
        if self.inline_data is not None:
            return {"inlineData": self.inline_data.to_dict()}
        return {"text": self.text or ""}

    @classmethod
    def from_dict(cls, raw: Any) -> ContentPart:
        if not isinstance(raw, dict):
            return cls()
        inline_data = raw.get("inlineData")
        text = raw.get("text")
        return cls(
            text=text if isinstance(text, str) else None,
            inline_data=(
                InlineData.from_dict(inline_data)
                if isinstance(inline_data, dict)
                else None
            ),
        )


@dataclass(slots=True)
class GenerateContentRequest:
    parts: list[ContentPart]
    response_modalities: list[str] = field(
        default_factory=lambda: list(DEFAULT_RESPONSE_MODALITIES)
    )

    def to_dict(self) -> dict[str, Any]:
        return {
            "contents": [{"parts": [part.to_dict() for part in self.parts]}],
            "generationConfig": {"responseModalities": list(self.response_modalities)},
        }


@dataclass(slots=True)
class Candidate:
    parts: list[ContentPart] = field(default_factory=list)

    @classmethod
    def from_dict(cls, raw: Any) -> Candidate:
        content = raw.get("content") if isinstance(raw, dict) else None
        parts = content.get("parts") if isinstance(content, dict) else None
        if not isinstance(parts, list):
            return cls()
        return cls(parts=[ContentPart.from_dict(item) for item in parts])


@dataclass(slots=True)
class GenerateContentResponse:
    candidates: list[Candidate]
    raw_text: str = ""
    """上游原始响应体，找不到图片时用于排查。"""
    model: str = ""
    elapsed_ms: int | None = None

    @classmethod
    def from_dict(
        cls,
        raw: dict[str, Any],
        *,
        raw_text: str = "",
        model: str = "",
        elapsed_ms: int | None = None,
    ) -> GenerateContentResponse:
        candidates = raw.get("candidates")
        return cls(
            candidates=(
                [Candidate.from_dict(item) for item in candidates]
                if isinstance(candidates, list)
                else []
            ),
            raw_text=raw_text,
            model=model,
            elapsed_ms=elapsed_ms,
        )
