# -*- coding: utf-8 -*-
# @Author: yaccii
# @Description:

"""声明式路由表

    web = Web("/api/v1")
    web.route(web.get("/users/{id}").no_login().handler(get_user))
    web.route(web.post("/users").handler(create_user))

    app.routes.append(web.routes())        # starlette
    web.register_fastapi_routes(fastapi)   # FastAPI

路由默认需要登录; gin 风格的 ":id" / "*path" 路径段会转换为 "{id}" / "{path:path}"。
"""

from __future__ import annotations

import posixpath
import re
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, List, Optional, Tuple, Union

from fastapi import APIRouter, FastAPI
from starlette.routing import Mount, Route as StarletteRoute

from api_component.api.option import Option, default_option
from api_component.api.wrapper import Handler, wrapper_options
from api_component.context.fastapi_context import FastAPIContext
from api_component.context.starlette_context import StarletteContext

METHOD_GET = "GET"
METHOD_POST = "POST"
METHOD_PUT = "PUT"
METHOD_DELETE = "DELETE"
METHOD_PATCH = "PATCH"
METHOD_HEAD = "HEAD"
METHOD_OPTIONS = "OPTIONS"

_GIN_PARAM = re.compile(r"^:(\w+)$")
_GIN_WILDCARD = re.compile(r"^\*(\w+)$")


class ContentType(str, Enum):
    JSON = "application/json"
    XML = "application/xml"
    ZIP = "application/zip"
    OCTET_STREAM = "application/octet-stream"
    PROTOBUF = "application/x-protobuf"
    MSGPACK = "application/x-msgpack"
    YAML = "application/x-yaml"
    TOML = "application/toml"


def convert_path(path: str) -> str:
    segments = []
    for segment in path.split("/"):
        m = _GIN_PARAM.match(segment)
        if m:
            segment = "{%s}" % m.group(1)
        else:
            m = _GIN_WILDCARD.match(segment)
            if m:
                segment = "{%s:path}" % m.group(1)
        segments.append(segment)
    return "/".join(segments)


def join_path(root: str, path: str) -> str:
    if not root:
        return convert_path(path)
    joined = posixpath.normpath(posixpath.join(root, path.lstrip("/")))
    return convert_path(joined)


def _normalize_root(root: str) -> str:
    root = root.rstrip("/")
    if root and not root.startswith("/"):
        root = "/" + root
    return root


def _relative_path(path: str) -> str:
    path = convert_path(path)
    if not path.startswith("/"):
        path = "/" + path
    return path


@dataclass(frozen=True)
class Route:
    """不可变的路由描述, 每次链式调用都返回新对象"""

    method: str = ""
    path: str = ""
    login_required: bool = True
    handler_fn: Optional[Handler] = None
    content_type: Optional[str] = None

    def get(self, path: str) -> "Route":
        return replace(self, method=METHOD_GET, path=path)

    def post(self, path: str) -> "Route":
        return replace(self, method=METHOD_POST, path=path)

    def put(self, path: str) -> "Route":
        return replace(self, method=METHOD_PUT, path=path)

    def delete(self, path: str) -> "Route":
        return replace(self, method=METHOD_DELETE, path=path)

    def patch(self, path: str) -> "Route":
        return replace(self, method=METHOD_PATCH, path=path)

    def head(self, path: str) -> "Route":
        return replace(self, method=METHOD_HEAD, path=path)

    def options(self, path: str) -> "Route":
        return replace(self, method=METHOD_OPTIONS, path=path)

    def no_login(self) -> "Route":
        return replace(self, login_required=False)

    def need_login(self) -> "Route":
        return replace(self, login_required=True)

    def handler(self, h: Handler) -> "Route":
        return replace(self, handler_fn=h)

    def produces(self, content_type: Union[ContentType, str]) -> "Route":
        return replace(self, content_type=str(getattr(content_type, "value", content_type)))

    def is_login_required(self) -> bool:
        return self.login_required

    def get_handler(self) -> Optional[Handler]:
        return self.handler_fn

    def option(self) -> Option:
        o = default_option()
        if not self.login_required:
            o = o.with_no_login()
        return o

    def produces_type(self) -> str:
        return self.content_type or ContentType.JSON.value

    def starlette_route(self, root: str = "") -> StarletteRoute:
        self._check()
        endpoint = wrapper_options(self.handler_fn, self.option(), StarletteContext, route_path=join_path(root, self.path))
        return StarletteRoute(_relative_path(self.path), endpoint=endpoint, methods=[self.method])

    def add_to_fastapi(self, router: APIRouter, root: str = "") -> None:
        self._check()
        endpoint = wrapper_options(self.handler_fn, self.option(), FastAPIContext, route_path=join_path(root, self.path))
        router.add_api_route(
            _relative_path(self.path),
            endpoint,
            methods=[self.method],
            name=f"{self.method} {join_path(root, self.path)}",
            responses={200: {"content": {self.produces_type(): {}}}},
        )

    def _check(self) -> None:
        if not self.method:
            raise ValueError(f"route {self.path!r} has no http method")
        if self.handler_fn is None:
            raise ValueError(f"route {self.method} {self.path} has no handler")


class Web:
    def __init__(self, root: str = "") -> None:
        self._root = root
        self._routers: List[Route] = []

    def get(self, path: str) -> Route:
        return Route().get(path)

    def post(self, path: str) -> Route:
        return Route().post(path)

    def put(self, path: str) -> Route:
        return Route().put(path)

    def delete(self, path: str) -> Route:
        return Route().delete(path)

    def patch(self, path: str) -> Route:
        return Route().patch(path)

    def head(self, path: str) -> Route:
        return Route().head(path)

    def options(self, path: str) -> Route:
        return Route().options(path)

    def root(self, root: str) -> None:
        self._root = root

    def get_root(self) -> str:
        return self._root

    def route(self, r: Route) -> None:
        self._routers.append(r)

    def registered(self) -> Tuple[Route, ...]:
        return tuple(self._routers)

    def routes(self) -> Mount:
        root = _normalize_root(self._root)
        return Mount(root, routes=[r.starlette_route(root) for r in self._routers])

    def register_fastapi_routes(self, app: Union[FastAPI, APIRouter]) -> None:
        root = _normalize_root(self._root)
        router = APIRouter(prefix=root)
        for r in self._routers:
            r.add_to_fastapi(router, root)
        app.include_router(router)

    def register_routes(self, app: Any) -> None:
        """FastAPI / APIRouter 走 FastAPI 适配, 其余按 starlette 挂载"""
        if isinstance(app, (FastAPI, APIRouter)):
            self.register_fastapi_routes(app)
        else:
            app.router.routes.append(self.routes())
