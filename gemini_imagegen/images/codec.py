from __future__ import annotations

import base64
import binascii

from .normalize import compact_whitespace, normalize_text


def encode_base64_payload(data: bytes) -> str:
    """将原始字节编码为标准 base64 字符串。"""
    return base64.b64encode(data).decode("ascii")


def decode_base64_payload(value: str) -> bytes:
    """规范化并校验 base64 负载，返回原始字节。"""
    # 上游可能按行折断 base64，这里先去掉所有空白。
    normalized = compact_whitespace(normalize_text(value))
    if not normalized:
        raise ValueError("base64 payload is empty.")
    try:
        return base64.b64decode(normalized, validate=True)
    except (ValueError, binascii.Error) as exc:
        raise ValueError("base64 payload is invalid.") from exc
