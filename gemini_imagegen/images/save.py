from __future__ import annotations

import os
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path

from ..providers.schema import GenerateContentResponse, InlineData
from ..storage import ConfigStateStore
from ..utils.errors import ImageGenErrorCode, ImageGenException
from ..utils.log import logger
from .codec import decode_base64_payload
from .mime import guess_image_mime_from_path, sniff_image_mime

TextCallback = Callable[[str], None]


@dataclass(slots=True)
class SaveImageResult:
    path: Path
    """写入的绝对路径"""
    mime: str
    """按写入字节嗅探出的 MIME，无法识别时为空字符串"""
    size: int
    texts: list[str]
    """响应中的全部文本 part（按出现顺序）"""

    def to_metadata_dict(self) -> dict[str, object]:
        return {
            "path": str(self.path),
            "mime": self.mime,
            "size": self.size,
            "texts": len(self.texts),
        }


def resolve_output_path(output: str | Path) -> Path:
    """把输出路径解析为绝对路径（不解析符号链接）。"""
    return Path(os.path.abspath(os.path.expanduser(str(output))))


def _decode_inline_image(inline_data: InlineData) -> bytes:
    try:
        return decode_base64_payload(inline_data.data)
    except ValueError as exc:
        raise ImageGenException(
            code=ImageGenErrorCode.DECODE_ERROR,
            message=f"Failed to decode image: {exc}",
            detail={"mime_type": inline_data.mime_type, "data": inline_data.data},
        ) from exc


def _write_image(path: Path, content: bytes) -> None:
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(content)
    except OSError as exc:
        raise ImageGenException(
            code=ImageGenErrorCode.FILE_IO_ERROR,
            message=f"Failed to write output '{path}': {exc}",
            detail={"path": str(path)},
        ) from exc


def save_first_image(
    response: GenerateContentResponse,
    *,
    output_path: str | Path,
    store: ConfigStateStore,
    on_text: TextCallback | None = None,
) -> SaveImageResult:
    """按顺序扫描 candidates/parts，保存遇到的第一张图片并记录为 last-output。

    - 文本 part 逐个交给 `on_text`，不影响结果
    - 第一张图片之后的图片 part 忽略
    - 整个响应没有图片时抛 NO_IMAGE_IN_RESPONSE，且不会创建任何文件
    """
    target = resolve_output_path(output_path)
    texts: list[str] = []
    saved: SaveImageResult | None = None
    ignored_images = 0

    for candidate_index, candidate in enumerate(response.candidates):
        for part_index, part in enumerate(candidate.parts):
            if part.text:
                texts.append(part.text)
                if on_text is not None:
                    on_text(part.text)
            if part.inline_data is None:
                continue
            if saved is not None:
                ignored_images += 1
                continue

            content = _decode_inline_image(part.inline_data)
            _write_image(target, content)
            store.set_last_output(target)
            saved = SaveImageResult(
                path=target,
                mime=sniff_image_mime(content),
                size=len(content),
                texts=texts,
            )
            logger.debug(
                "images.saved",
                {
                    "candidate": candidate_index,
                    "part": part_index,
                    **saved.to_metadata_dict(),
                },
            )

    if saved is None:
        raise ImageGenException(
            code=ImageGenErrorCode.NO_IMAGE_IN_RESPONSE,
            message="No image in response.",
            detail={"model": response.model, "body": response.raw_text},
        )

    expected_mime = guess_image_mime_from_path(target, default_mime="")
    if saved.mime and expected_mime and saved.mime != expected_mime:
        logger.warning(
            "images.suffix_mismatch",
            {"path": str(target), "expected": expected_mime, "actual": saved.mime},
        )
    if ignored_images:
        logger.debug("images.extra_ignored", {"count": ignored_images})
    return saved
