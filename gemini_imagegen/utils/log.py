from __future__ import annotations

import json
import logging
import sys
from dataclasses import dataclass
from typing import Any

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"

# 这些键下的 `data` 字段是 base64 图片，日志里只保留长度。
INLINE_DATA_KEYS = frozenset({"inlineData", "inline_data"})
TEXT_PREVIEW_CHARS = 400
LIST_PREVIEW_ITEMS = 5


def _summarize_inline_data(value: dict[str, Any]) -> dict[str, Any]:
    summary: dict[str, Any] = {}
    for key, item in value.items():
        if key == "data" and isinstance(item, str):
            summary[key] = f"<base64 len={len(item)}>"
        else:
            summary[key] = summarize_log_value(item)
    return summary


def summarize_log_value(value: Any) -> Any:
    """压缩日志字段：内联图片只留 base64 长度，长列表与长文本截断。

    请求体 `contents[].parts[].inlineData.data` 与响应
    `candidates[].content.parts[].inlineData.data` 都会被折叠。
    """
    if isinstance(value, dict):
        return {
            key: _summarize_inline_data(item)
            if key in INLINE_DATA_KEYS and isinstance(item, dict)
            else summarize_log_value(item)
            for key, item in value.items()
        }
    if isinstance(value, list):
        head = [summarize_log_value(item) for item in value[:LIST_PREVIEW_ITEMS]]
        hidden = len(value) - LIST_PREVIEW_ITEMS
        return head + [f"<+{hidden} items>"] if hidden > 0 else head
    if isinstance(value, str) and len(value) > TEXT_PREVIEW_CHARS:
        return f"{value[:TEXT_PREVIEW_CHARS]}...(truncated, len={len(value)})"
    return value


def configure_logging(*, verbose: bool = False) -> None:
    """CLI 入口调用：日志统一输出到 stderr，stdout 只留给结果路径。"""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format=LOG_FORMAT,
        stream=sys.stderr,
        force=True,
    )


def get_structured_logger(name: str) -> StructuredLogEmitter:
    return StructuredLogEmitter(logger=logging.getLogger(name))


@dataclass(slots=True)
class StructuredLogEmitter:
    """把事件名与 detail 写成一行 JSON，detail 先经过 `summarize_log_value`。"""

    logger: logging.Logger

    def _emit(self, level: int, event: str, detail: dict[str, Any]) -> None:
        if not self.logger.isEnabledFor(level):
            return
        line = json.dumps(
            {"event": event, "detail": summarize_log_value(detail)},
            ensure_ascii=False,
            default=str,
        )
        self.logger.log(level, "%s", line, stacklevel=3)

    def debug(self, event: str, detail: dict[str, Any]) -> None:
        self._emit(logging.DEBUG, event, detail)

    def info(self, event: str, detail: dict[str, Any]) -> None:
        self._emit(logging.INFO, event, detail)

    def warning(self, event: str, detail: dict[str, Any]) -> None:
        self._emit(logging.WARNING, event, detail)

    def exception(self, message: str, *args: Any, **kwargs: Any) -> None:
        kwargs.setdefault("stacklevel", 3)
        self.logger.exception(message, *args, **kwargs)


logger = get_structured_logger("gemini_imagegen")
