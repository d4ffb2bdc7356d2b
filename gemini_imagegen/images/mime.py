from __future__ import annotations

from pathlib import PurePath

import filetype

from .normalize import normalize_mime

DEFAULT_IMAGE_MIME = "image/jpeg"

IMAGE_SUFFIX_MIME_MAP: dict[str, str] = {
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".png": "image/png",
    ".gif": "image/gif",
    ".webp": "image/webp",
    ".heic": "image/heic",
}


def guess_image_mime_from_path(
    path: str | PurePath,
    default_mime: str = DEFAULT_IMAGE_MIME,
) -> str:
    """根据文件扩展名（不区分大小写）推断图片 MIME，未知扩展名回退默认值。"""
    suffix = PurePath(path).suffix.lower()
    return IMAGE_SUFFIX_MIME_MAP.get(suffix, default_mime)


def sniff_image_mime(data: bytes, default_mime: str = "") -> str:
    """根据字节内容嗅探 MIME，非图片或无法识别时返回默认值。"""
    guessed = filetype.guess(data)
    mime = normalize_mime(getattr(guessed, "mime", "") or "")
    if mime.startswith("image/"):
        return mime
    return default_mime
