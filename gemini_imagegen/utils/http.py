from __future__ import annotations

import asyncio
import json
import time
from typing import Any, TypedDict

import aiohttp

from .errors import ImageGenErrorCode, ImageGenException
from .log import get_structured_logger

structured_log = get_structured_logger(__name__)

SECRET_PARAM_KEYS = {"key", "api_key", "access_token"}


class JsonSuccessResponse(TypedDict):
    data: dict[str, Any]
    text: str
    elapsed_ms: int


def mask_params(params: dict[str, str]) -> dict[str, str]:
    """屏蔽查询参数中的密钥，仅用于日志与错误详情。"""
    masked: dict[str, str] = {}
    for key, value in params.items():
        if key.lower() in SECRET_PARAM_KEYS:
            masked[key] = "<redacted>"
            continue
        masked[key] = value
    return masked


def _elapsed_ms(started_at: float) -> int:
    return int((time.perf_counter() - started_at) * 1000)


async def request_json(
    method: str,
    *,
    url: str,
    params: dict[str, str] | None = None,
    payload: dict[str, Any] | None = None,
    timeout_sec: int = 300,
    source: str = "Upstream",
) -> JsonSuccessResponse:
    """发送单次 HTTP 请求并把响应体解析为 JSON object。

    约定：
    - 传输层错误（含超时）映射为 `TRANSPORT_ERROR`
    - 非 200 响应映射为 `API_ERROR`，detail 带 `status_code` 与 `body`
    - 响应体不是 UTF-8 JSON object 时映射为 `DECODE_ERROR`
    - 不做重试；`retryable` 只作为错误分类信息，供调用方参考
    """
    if timeout_sec <= 0:
        raise ImageGenException(
            code=ImageGenErrorCode.INVALID_ARGUMENT,
            message="timeout_sec must be > 0.",
            detail={"source": source, "url": url, "timeout_sec": timeout_sec},
        )

    params = params or {}
    started_at = time.perf_counter()
    request_detail: dict[str, Any] = {
        "source": source,
        "method": method,
        "url": url,
        "params": mask_params(params),
        "timeout_sec": timeout_sec,
    }
    structured_log.debug("http.request", {**request_detail, "payload": payload})

    timeout = aiohttp.ClientTimeout(total=timeout_sec)
    try:
        async with aiohttp.ClientSession(timeout=timeout) as session:
            async with session.request(
                method, url, params=params, json=payload
            ) as response:
                raw_body = await response.read()
                status = response.status
    except asyncio.TimeoutError as exc:
        raise ImageGenException(
            code=ImageGenErrorCode.TRANSPORT_ERROR,
            message=f"{source} request timed out after {timeout_sec}s.",
            retryable=True,
            detail={**request_detail, "elapsed_ms": _elapsed_ms(started_at)},
        ) from exc
    except aiohttp.ClientError as exc:
        raise ImageGenException(
            code=ImageGenErrorCode.TRANSPORT_ERROR,
            message=f"{source} request failed: {exc}",
            retryable=True,
            detail={
                **request_detail,
                "elapsed_ms": _elapsed_ms(started_at),
                "client_error": str(exc),
                "client_error_type": type(exc).__name__,
            },
        ) from exc

    elapsed_ms = _elapsed_ms(started_at)
    # 错误详情与日志使用宽松解码，非 UTF-8 字节不会让状态码检查失效。
    raw_text = raw_body.decode("utf-8", errors="replace")
    structured_log.debug(
        "http.response",
        {"elapsed_ms": elapsed_ms, "status_code": status, "bytes": len(raw_body)},
    )

    if status != 200:
        raise ImageGenException(
            code=ImageGenErrorCode.API_ERROR,
            message=f"{source} API error {status}",
            retryable=(status >= 500 or status == 429),
            detail={
                **request_detail,
                "elapsed_ms": elapsed_ms,
                "status_code": status,
                "body": raw_text,
            },
        )

    # 传输成功后再解析 JSON，区分“传输错误”与“响应格式错误”。
    try:
        data = json.loads(raw_body.decode("utf-8"))
    except UnicodeDecodeError as exc:
        raise ImageGenException(
            code=ImageGenErrorCode.DECODE_ERROR,
            message=f"{source} returned a body that is not valid UTF-8: {exc.reason}",
            detail={**request_detail, "elapsed_ms": elapsed_ms, "body": raw_text},
        ) from exc
    except json.JSONDecodeError as exc:
        raise ImageGenException(
            code=ImageGenErrorCode.DECODE_ERROR,
            message=f"{source} returned invalid JSON: {exc.msg}",
            detail={**request_detail, "elapsed_ms": elapsed_ms, "body": raw_text},
        ) from exc

    if not isinstance(data, dict):
        raise ImageGenException(
            code=ImageGenErrorCode.DECODE_ERROR,
            message=f"{source} response must be a JSON object.",
            detail={
                **request_detail,
                "elapsed_ms": elapsed_ms,
                "response_type": type(data).__name__,
                "body": raw_text,
            },
        )

    structured_log.debug("http.response_json", {"data": data})
    return {"data": data, "text": raw_text, "elapsed_ms": elapsed_ms}


async def get_json(
    *,
    url: str,
    params: dict[str, str] | None = None,
    timeout_sec: int = 300,
    source: str = "Upstream",
) -> JsonSuccessResponse:
    return await request_json(
        "GET", url=url, params=params, timeout_sec=timeout_sec, source=source
    )


async def post_json(
    *,
    url: str,
    payload: dict[str, Any],
    params: dict[str, str] | None = None,
    timeout_sec: int = 300,
    source: str = "Upstream",
) -> JsonSuccessResponse:
    return await request_json(
        "POST",
        url=url,
        params=params,
        payload=payload,
        timeout_sec=timeout_sec,
        source=source,
    )
