from __future__ import annotations

import sys
from collections.abc import Awaitable, Callable, Sequence

from .providers.schema import ModelInfo
from .storage import ConfigStateStore
from .utils.errors import ImageGenErrorCode, ImageGenException
from .utils.log import logger

# 交互选择通过函数注入：接收候选列表，返回用户的原始输入文本。
# 默认实现读 stdin，测试可直接注入固定返回值。
Chooser = Callable[[Sequence[ModelInfo]], str]
ListModels = Callable[[], Awaitable[list[ModelInfo]]]

IMAGE_DESCRIPTION_KEYWORDS = ("image generation", "generate images")


def is_image_model(model: ModelInfo) -> bool:
    """名称含 `image`，或描述提到生图能力（均不区分大小写）。"""
    name = model.name.lower()
    description = model.description.lower()
    return "image" in name or any(
        keyword in description for keyword in IMAGE_DESCRIPTION_KEYWORDS
    )


def filter_image_models(models: Sequence[ModelInfo]) -> list[ModelInfo]:
    """筛选生图模型（丢弃没有名称的条目），并按模型标识升序排列。"""
    return sorted(
        (model for model in models if model.name and is_image_model(model)),
        key=lambda model: model.name,
    )


async def list_image_models(list_models: ListModels) -> list[ModelInfo]:
    return filter_image_models(await list_models())


def parse_selection(raw: str, count: int) -> int:
    """把 1-based 序号解析为 0-based 下标，非法输入抛 SELECTION_INVALID。"""
    normalized = raw.strip()
    try:
        choice = int(normalized)
    except ValueError:
        choice = 0
    if choice < 1 or choice > count:
        raise ImageGenException(
            code=ImageGenErrorCode.SELECTION_INVALID,
            message=f"Invalid selection: {normalized!r} (expected 1-{count}).",
            detail={"input": normalized, "count": count},
        )
    return choice - 1


def prompt_model_choice(models: Sequence[ModelInfo]) -> str:
    """在 stderr 打印编号列表并从 stdin 读取一行。"""
    print("\nAvailable image generation models:", file=sys.stderr)
    for index, model in enumerate(models, start=1):
        print(f"  [{index}] {model.name}", file=sys.stderr)
    print("\nSelect model number: ", end="", file=sys.stderr, flush=True)
    return sys.stdin.readline()


async def select_model(
    *,
    list_models: ListModels,
    store: ConfigStateStore,
    explicit_model: str = "",
    chooser: Chooser = prompt_model_choice,
) -> str:
    """解析本次使用的模型：显式指定 > 本地缓存 > 交互选择。

    显式指定与交互选择的结果都会写入缓存。
    """
    explicit = explicit_model.strip()
    if explicit:
        store.set_model(explicit)
        logger.debug("selection.explicit", {"model": explicit})
        return explicit

    cached = store.get_model()
    if cached:
        logger.debug("selection.cached", {"model": cached})
        return cached

    print("Fetching available image models...", file=sys.stderr)
    models = await list_image_models(list_models)
    if not models:
        raise ImageGenException(
            code=ImageGenErrorCode.CATALOG_EMPTY,
            message="No image generation models found.",
        )

    index = parse_selection(chooser(models), len(models))
    selected = models[index].name
    store.set_model(selected)
    logger.debug("selection.interactive", {"model": selected, "index": index})
    return selected
