# -*- coding: utf-8 -*-
# @Author: yaccii
# @Description:

"""handler 包装: context 构造 -> 请求记录 -> 登录校验 -> handler -> 响应记录 -> 输出

handler 签名: async def handler(ctx) -> Any, 返回值不为 None 时作为 data;
同步 handler 在线程池中执行。
"""

from __future__ import annotations

import inspect
from urllib.parse import quote
from typing import Any, Awaitable, Callable, Dict, Optional, Type, Union

from fastapi.encoders import jsonable_encoder
from starlette.concurrency import run_in_threadpool
from starlette.exceptions import HTTPException
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from api_component.api.login import get_login_checker
from api_component.api.option import Option, default_option
from api_component.common.errors import AppError
from api_component.common.trace import TRACE_ID_HEADER, set_span_id, set_trace_id
from api_component.context import decode as decoder
from api_component.context.base import Contexts
from api_component.context.starlette_context import StarletteContext
from api_component.infra.config import settings

REQUEST_ID = TRACE_ID_HEADER
FAIL_CODE = -1

Handler = Callable[[Contexts], Union[Any, Awaitable[Any]]]
Endpoint = Callable[[Request], Awaitable[Response]]


def ok_response(message: str, data: Any, code_key: str = "retcode") -> Dict[str, Any]:
    return {code_key: 0, "message": message, "data": data}


def ok_response_extra(message: str, data: Any, extra: Dict[str, Any], code_key: str = "retcode") -> Dict[str, Any]:
    result = dict(extra)
    result.update(ok_response(message, data, code_key))
    return result


def fail_response(code: int, message: str, data: Any, code_key: str = "retcode") -> Dict[str, Any]:
    return {code_key: code, "message": message, "data": data}


def wrapper(h: Handler, context_cls: Type[Contexts] = StarletteContext) -> Endpoint:
    return wrapper_options(h, default_option(), context_cls)


def wrapper_options(
    h: Handler,
    option: Option,
    context_cls: Type[Contexts] = StarletteContext,
    route_path: str = "",
) -> Endpoint:
    async def endpoint(request: Request) -> Response:
        ctx = context_cls(request, route_path=route_path)
        set_trace_id(ctx.get_request_id())
        set_span_id(ctx.span_id)
        headers = {TRACE_ID_HEADER: ctx.get_request_id()}
        code_key = ctx.envelope_code_key

        try:
            await request_records(ctx)

            checker = get_login_checker()
            if not option.is_no_login() and checker is not None:
                await _call(checker, ctx)

            result = await _call(h, ctx)
            if result is not None:
                ctx.set_data(result)
            response_records(ctx, ctx.get_data(), None)
        except HTTPException as e:
            err = ctx.error().from_http_exception(e)
            response_records(ctx, ctx.get_data(), err)
            return _json(fail_response(err.code, err.message, ctx.get_data(), code_key), err.status_code, headers)
        except AppError as e:
            response_records(ctx, ctx.get_data(), e)
            return _json(fail_response(e.code, e.message, ctx.get_data(), code_key), e.status_code, headers)
        except Exception as e:  # noqa: BLE001
            ctx.log().exception("panic. err: %r", e)
            return _json(fail_response(FAIL_CODE, str(e), ctx.get_data(), code_key), 500, headers)

        file_name, file_content, exists = ctx.get_response_file()
        if exists:
            # 文件下载
            headers["Content-Disposition"] = content_disposition(file_name or "")
            return Response(file_content, media_type="application/octet-stream", headers=headers)

        typ, body, exists = ctx.get_raw_response()
        if exists:
            return Response(body, media_type=typ or None, headers=headers)

        extra = ctx.get_extra_response()
        if extra:
            return _json(ok_response_extra("", ctx.get_data(), extra, code_key), 200, headers)
        return _json(ok_response("", ctx.get_data(), code_key), 200, headers)

    endpoint.__name__ = getattr(h, "__name__", "endpoint")
    endpoint.__doc__ = getattr(h, "__doc__", None)
    return endpoint


async def _call(fn: Callable[[Contexts], Any], ctx: Contexts) -> Any:
    if inspect.iscoroutinefunction(fn) or inspect.iscoroutinefunction(getattr(fn, "__call__", None)):
        return await fn(ctx)
    result = await run_in_threadpool(fn, ctx)
    if inspect.isawaitable(result):
        result = await result
    return result


def content_disposition(file_name: str) -> str:
    """非 ascii 文件名按 RFC 5987 用 filename* 输出, header 只能是 latin-1"""
    quoted = quote(file_name)
    if quoted != file_name:
        return "attachment; filename*=utf-8''" + quoted
    return 'attachment; filename="' + file_name + '"'


def _json(content: Dict[str, Any], status_code: int, headers: Dict[str, str]) -> JSONResponse:
    return JSONResponse(jsonable_encoder(content), status_code=status_code, headers=headers)


def response_records(ctx: Contexts, data: Any, err: Optional[BaseException]) -> None:
    log = ctx.log()
    if err is None:
        log.info_json("response record. data: %s", data)
    elif isinstance(err, AppError):
        log.error_json(
            "response record, response error. err code: %s, err message: %s, raw msg: %s, caller: %s",
            err.code,
            err.message,
            err.raw_error_string(),
            err.caller(),
        )
    else:
        log.error_json("response record, response error. err: %s", err)


async def request_records(ctx: Contexts) -> None:
    """记录 content-type 为 application/json 且小于 RECORD_BODY_LIMIT 的请求 body"""
    request = ctx.request
    if request is None:
        return
    log = ctx.log()

    parent_req_id = request.headers.get(REQUEST_ID, "")
    uri = request.url.path
    if request.url.query:
        uri += "?" + request.url.query

    try:
        content_length = int(request.headers.get("content-length") or 0)
    except ValueError:
        content_length = 0

    if content_length >= settings.RECORD_BODY_LIMIT:
        log.infof(
            "middleware: record body. method: %s, uri: %s, parent request id: %s, request body more than %d bytes",
            request.method, uri, parent_req_id, settings.RECORD_BODY_LIMIT,
        )
        return

    ct = request.headers.get("content-type", "")
    if decoder.media_type(ct) != decoder.MIME_JSON:
        log.infof(
            "middleware: record body. method: %s, uri: %s, parent request id: %s, body: not support Content-Type=%s",
            request.method, uri, parent_req_id, ct,
        )
        return

    body = await ctx.http_body()
    # 去除换行符，避免日志换行
    str_body = body.decode("utf-8", errors="replace").replace("\n", "")
    log.infof(
        "middleware: record body. method: %s, uri: %s, parent request id: %s, body: %s",
        request.method, uri, parent_req_id, str_body,
    )
