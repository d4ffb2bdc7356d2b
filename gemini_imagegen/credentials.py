from __future__ import annotations

import os
from collections.abc import MutableMapping
from pathlib import Path

from dotenv import dotenv_values

from .storage.keys import API_KEY_ENV_NAMES
from .utils.errors import ImageGenErrorCode, ImageGenException
from .utils.log import logger


def find_env_file(start_dir: Path | None = None) -> Path | None:
    """从 start_dir（默认当前目录）向上查找 `.env`，找到第一个即返回。"""
    current = (start_dir or Path.cwd()).resolve()
    for directory in (current, *current.parents):
        candidate = directory / ".env"
        if candidate.is_file():
            return candidate
    return None


def load_env_file(
    environ: MutableMapping[str, str] | None = None,
    *,
    start_dir: Path | None = None,
) -> Path | None:
    """加载发现的 `.env`，只补充尚未设置（或为空）的变量，返回加载的文件路径。"""
    env = os.environ if environ is None else environ
    env_path = find_env_file(start_dir)
    if env_path is None:
        return None

    loaded: list[str] = []
    for key, value in dotenv_values(env_path, interpolate=False).items():
        if value is None or env.get(key):
            continue
        env[key] = value
        loaded.append(key)

    logger.debug("credentials.env_file_loaded", {"path": str(env_path), "keys": loaded})
    return env_path


def resolve_api_key(
    environ: MutableMapping[str, str] | None = None,
    *,
    start_dir: Path | None = None,
) -> str:
    """按 `GEMINI_API_KEY` → `GOOGLE_API_KEY` 的顺序返回第一个非空密钥。"""
    env = os.environ if environ is None else environ
    load_env_file(env, start_dir=start_dir)

    for name in API_KEY_ENV_NAMES:
        value = (env.get(name) or "").strip()
        if value:
            logger.debug("credentials.api_key_resolved", {"source": name})
            return value

    raise ImageGenException(
        code=ImageGenErrorCode.CREDENTIAL_MISSING,
        message=(
            "No API key found. Set GEMINI_API_KEY or GOOGLE_API_KEY environment "
            "variable, or create a .env file."
        ),
        detail={"env_names": list(API_KEY_ENV_NAMES)},
    )
