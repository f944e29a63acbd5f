# -*- coding: utf-8 -*-
# @Author: yaccii
# @Description:

"""app 级兜底: 未经过 wrapper 的路由(原生 FastAPI / starlette 路由、404 等)也输出统一信封"""

from __future__ import annotations

import logging
from typing import Any, Dict

from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from starlette.applications import Starlette
from starlette.exceptions import HTTPException
from starlette.requests import Request
from starlette.responses import JSONResponse

from api_component.common import codes
from api_component.common.errors import AppError
from api_component.common.trace import TRACE_ID_HEADER, get_trace_id

logger = logging.getLogger(__name__)


def _err_payload(code_key: str, code: int, message: str, data: Any = None) -> Dict[str, Any]:
    return {
        code_key: code,
        "message": message,
        "data": jsonable_encoder(data),
    }


def _headers() -> Dict[str, str]:
    trace_id = get_trace_id()
    if trace_id == "-":
        return {}
    return {TRACE_ID_HEADER: trace_id}


def register_error_handlers(app: Starlette, code_key: str = "retcode") -> None:
    async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:  # noqa: ARG001
        logger.error("app error. code: %s, message: %s, caller: %s", exc.code, exc.message, exc.caller())
        return JSONResponse(
            status_code=exc.status_code,
            content=_err_payload(code_key, exc.code, exc.message, exc.detail),
            headers=_headers(),
        )

    async def http_error_handler(request: Request, exc: HTTPException) -> JSONResponse:  # noqa: ARG001
        return JSONResponse(
            status_code=exc.status_code,
            content=_err_payload(code_key, exc.status_code, str(exc.detail)),
            headers=_headers(),
        )

    async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:  # noqa: ARG001
        return JSONResponse(
            status_code=200,
            content=_err_payload(
                code_key,
                codes.JSON_DECODE_ERR_CODE,
                "invalid request",
                data=exc.errors(),
            ),
            headers=_headers(),
        )

    async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:  # noqa: ARG001
        logger.exception("Unhandled error")
        return JSONResponse(
            status_code=500,
            content=_err_payload(code_key, -1, "internal server error"),
            headers=_headers(),
        )

    app.add_exception_handler(AppError, app_error_handler)
    app.add_exception_handler(HTTPException, http_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
