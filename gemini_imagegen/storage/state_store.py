from __future__ import annotations

import shutil
from collections.abc import Callable
from pathlib import Path

from ..utils.errors import ImageGenErrorCode, ImageGenException
from ..utils.log import get_structured_logger
from .keys import LAST_OUTPUT_KEY, MODEL_KEY

structured_log = get_structured_logger(__name__)

StateValueValidator = Callable[[str], str]


def _validate_model(value: str) -> str:
    if not value:
        raise ValueError("Model id must not be empty.")
    return value


def _validate_last_output(value: str) -> str:
    if not Path(value).is_absolute():
        raise ValueError(f"Last output path must be absolute: {value}")
    return value


class ConfigStateStore:
    """本地状态存储：每个 key 对应配置目录下的一个文本文件。

    目录在首次写入时创建；`reset()` 删除整个目录。
    单进程使用，不加锁。
    """

    def __init__(self, config_dir: Path) -> None:
        self._config_dir = Path(config_dir)
        self._validators: dict[str, StateValueValidator] = {
            MODEL_KEY: _validate_model,
            LAST_OUTPUT_KEY: _validate_last_output,
        }

    @property
    def config_dir(self) -> Path:
        return self._config_dir

    def _path_for(self, key: str) -> Path:
        return self._config_dir / key

    def get_value(self, key: str, default: str = "") -> str:
        """读取状态值；文件不存在或内容为空白时返回 default。"""
        try:
            value = self._path_for(key).read_text(encoding="utf-8").strip()
        except FileNotFoundError:
            return default
        except OSError as exc:
            raise ImageGenException(
                code=ImageGenErrorCode.FILE_IO_ERROR,
                message=f"Cannot read config value '{key}': {exc}",
                detail={"path": str(self._path_for(key))},
            ) from exc
        return value or default

    def set_value(self, key: str, value: str) -> str:
        """规范化、校验后写入状态值，返回实际写入的值。"""
        normalized_value = value.strip()
        validator = self._validators.get(key)
        if validator is not None:
            normalized_value = validator(normalized_value)

        path = self._path_for(key)
        try:
            self._config_dir.mkdir(parents=True, exist_ok=True)
            path.write_text(normalized_value, encoding="utf-8")
            path.chmod(0o600)
        except OSError as exc:
            raise ImageGenException(
                code=ImageGenErrorCode.FILE_IO_ERROR,
                message=f"Cannot write config value '{key}': {exc}",
                detail={"path": str(path)},
            ) from exc

        structured_log.debug(
            "storage.set_value", {"key": key, "value": normalized_value}
        )
        return normalized_value

    def reset(self) -> bool:
        """删除整个配置目录，目录原本不存在时返回 False。"""
        if not self._config_dir.exists():
            return False
        try:
            shutil.rmtree(self._config_dir)
        except OSError as exc:
            raise ImageGenException(
                code=ImageGenErrorCode.FILE_IO_ERROR,
                message=f"Cannot remove config directory: {exc}",
                detail={"path": str(self._config_dir)},
            ) from exc
        structured_log.info("storage.reset", {"config_dir": str(self._config_dir)})
        return True

    def get_model(self) -> str:
        return self.get_value(MODEL_KEY)

    def set_model(self, model: str) -> str:
        return self.set_value(MODEL_KEY, model)

    def get_last_output(self) -> Path | None:
        """读取上一次输出路径；记录的文件已不存在时返回 None。"""
        value = self.get_value(LAST_OUTPUT_KEY)
        if not value:
            return None
        path = Path(value)
        if not path.is_file():
            structured_log.info("storage.last_output_missing", {"path": value})
            return None
        return path

    def set_last_output(self, path: Path) -> str:
        return self.set_value(LAST_OUTPUT_KEY, str(path))
