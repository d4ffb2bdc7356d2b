from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any

from .providers.gemini import GEMINI_DEFAULT_BASE_URL, GEMINI_DEFAULT_TIMEOUT_SEC
from .storage.keys import (
    CONFIG_BASE_URL_KEY,
    CONFIG_DIR_KEY,
    CONFIG_TIMEOUT_SEC_KEY,
    ENV_BASE_URL,
    ENV_CONFIG_DIR,
    ENV_TIMEOUT_SEC,
)


def default_config_dir() -> Path:
    return Path.home() / ".config" / "gemini-image"


@dataclass(slots=True)
class AppConfig:
    config_dir: Path
    """本地状态目录，存放 `model` 与 `last-output` 两个文件"""
    base_url: str
    """模型 API 基础地址"""
    timeout_sec: int
    """单次 HTTP 请求总超时（秒）"""


def read_app_config(raw_config: Any) -> AppConfig:
    """从键值映射读取运行配置，缺少字段时抛 KeyError。"""
    if not isinstance(raw_config, Mapping):
        raise TypeError("App config must be a mapping object.")
    required = tuple(f.name for f in fields(AppConfig))
    missing = [key for key in required if key not in raw_config]
    if missing:
        raise KeyError(f"Missing required app config keys: {', '.join(missing)}")

    try:
        timeout_sec = int(raw_config[CONFIG_TIMEOUT_SEC_KEY])
    except (TypeError, ValueError) as exc:
        raise ValueError(
            f"timeout_sec must be an integer: {raw_config[CONFIG_TIMEOUT_SEC_KEY]!r}"
        ) from exc
    if timeout_sec <= 0:
        raise ValueError("timeout_sec must be > 0.")

    return AppConfig(
        config_dir=Path(raw_config[CONFIG_DIR_KEY]).expanduser(),
        base_url=str(raw_config[CONFIG_BASE_URL_KEY]).strip() or GEMINI_DEFAULT_BASE_URL,
        timeout_sec=timeout_sec,
    )


def load_app_config(environ: Mapping[str, str] | None = None) -> AppConfig:
    """把环境变量映射为 AppConfig，未设置的项使用默认值。"""
    env = os.environ if environ is None else environ
    return read_app_config(
        {
            CONFIG_DIR_KEY: env.get(ENV_CONFIG_DIR) or default_config_dir(),
            CONFIG_BASE_URL_KEY: env.get(ENV_BASE_URL) or GEMINI_DEFAULT_BASE_URL,
            CONFIG_TIMEOUT_SEC_KEY: env.get(ENV_TIMEOUT_SEC)
            or GEMINI_DEFAULT_TIMEOUT_SEC,
        }
    )
