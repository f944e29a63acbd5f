# -*- coding: utf-8 -*-
# @Author: yaccii
# @Description:

from __future__ import annotations

import time
from typing import Callable

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from api_component.common.trace import TRACE_ID_HEADER, new_trace_id, set_trace_id
from api_component.infra.alogger import alogger


class TraceIdMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        trace_id = request.headers.get(TRACE_ID_HEADER) or new_trace_id()
        set_trace_id(trace_id)
        response: Response = await call_next(request)
        if TRACE_ID_HEADER not in response.headers:
            response.headers[TRACE_ID_HEADER] = trace_id
        return response


class RequestLogMiddleware(BaseHTTPMiddleware):
    """记录请求方法 / 路径 / 来源 / 状态码 / 耗时"""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        start = time.perf_counter()
        client = request.client.host if request.client else "-"
        alogger.info("[REQUEST] %s %s %s", request.method, request.url.path, client)

        response: Response = await call_next(request)

        cost_ms = (time.perf_counter() - start) * 1000
        alogger.info(
            "[RESPONSE] %s %s %s %s %.2fms",
            request.method, request.url.path, client, response.status_code, cost_ms,
        )
        return response
