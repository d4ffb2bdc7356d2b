from __future__ import annotations

import json
from collections.abc import Mapping
from enum import Enum
from typing import Any

from .log import summarize_log_value


class ImageGenErrorCode(str, Enum):
    CREDENTIAL_MISSING = "CREDENTIAL_MISSING"
    SELECTION_INVALID = "SELECTION_INVALID"
    CATALOG_EMPTY = "CATALOG_EMPTY"
    API_ERROR = "API_ERROR"
    TRANSPORT_ERROR = "TRANSPORT_ERROR"
    DECODE_ERROR = "DECODE_ERROR"
    NO_IMAGE_IN_RESPONSE = "NO_IMAGE_IN_RESPONSE"
    FILE_IO_ERROR = "FILE_IO_ERROR"
    INVALID_ARGUMENT = "INVALID_ARGUMENT"


class ImageGenException(Exception):
    """统一的错误对象：code 决定 CLI 的提示方式，detail 携带上游状态码与响应体。

    `retryable` 只是分类信息（超时、5xx、429 为 True），CLI 本身不重试。
    """

    def __init__(
        self,
        code: ImageGenErrorCode,
        message: str,
        retryable: bool = False,
        detail: Mapping[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.retryable = retryable
        self.detail = dict(detail) if detail else {}

    @property
    def status_code(self) -> int | None:
        """API_ERROR 时的 HTTP 状态码，其余情况为 None。"""
        value = self.detail.get("status_code")
        return value if isinstance(value, int) else None

    @property
    def body(self) -> str:
        """上游原始响应体（若有）。"""
        value = self.detail.get("body")
        return value if isinstance(value, str) else ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "code": self.code.value,
            "message": self.message,
            "retryable": self.retryable,
            "detail": self.detail,
        }

    def __str__(self) -> str:
        base = f"[{self.code.value}] {self.message} (retryable={self.retryable})"
        if not self.detail:
            return base
        detail_json = json.dumps(
            summarize_log_value(self.detail), ensure_ascii=False, default=str
        )
        return f"{base} detail={detail_json}"
