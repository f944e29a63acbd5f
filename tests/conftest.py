from __future__ import annotations

from typing import Dict, List, Optional, Tuple

import pytest
from starlette.requests import Request

from api_component.api import login
from api_component.common import trace
from api_component.server import router


@pytest.fixture(autouse=True)
def _reset_globals():
    """登录校验 / 路由注册 / trace id 都是进程级状态, 每个用例后还原"""
    yield
    login.set_login_checker(None)
    router.reset()
    trace.set_trace_id("")
    trace.set_span_id("")


def make_request(
    method: str = "GET",
    path: str = "/",
    query: str = "",
    headers: Optional[Dict[str, str]] = None,
    body: bytes = b"",
    path_params: Optional[Dict[str, str]] = None,
) -> Request:
    raw_headers: List[Tuple[bytes, bytes]] = [
        (k.lower().encode("latin-1"), v.encode("latin-1")) for k, v in (headers or {}).items()
    ]
    scope = {
        "type": "http",
        "method": method,
        "path": path,
        "query_string": query.encode("latin-1"),
        "headers": raw_headers,
        "path_params": path_params or {},
    }

    async def receive():
        return {"type": "http.request", "body": body, "more_body": False}

    return Request(scope, receive)
