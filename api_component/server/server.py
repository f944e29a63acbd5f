# -*- coding: utf-8 -*-
# @Author: yaccii
# @Description:

from __future__ import annotations

from typing import Iterable, Iterator, List, Literal, Optional, Tuple

import uvicorn
from fastapi import FastAPI
from pydantic import BaseModel, Field
from starlette.applications import Starlette
from starlette.middleware.cors import CORSMiddleware
from starlette.routing import BaseRoute, Mount

from api_component.common.exception_handlers import register_error_handlers
from api_component.common.logging import LogConfig, configure, setup_logging, to_level
from api_component.common.middlewares import RequestLogMiddleware, TraceIdMiddleware
from api_component.infra.alogger import alogger
from api_component.infra.config import settings
from api_component.server import router as router_registry
from api_component.server.router import Router, RouterRegistry

DEFAULT_SERVER_NAME = "default-py-api-server"

BACKEND_FASTAPI = "fastapi"
BACKEND_STARLETTE = "starlette"


class CorsConfig(BaseModel):
    allowed_headers: List[str] = Field(default_factory=list)
    allowed_methods: List[str] = Field(default_factory=list)
    allowed_domains: List[str] = Field(default_factory=list)
    cookies_allowed: bool = False
    enable_cors: bool = False


class ServerConfig(BaseModel):
    """http 服务配置, 超时单位为秒"""

    host: str = "0.0.0.0"
    port: int = 8080
    read_timeout: float = 10
    write_timeout: float = 10
    shutdown_timeout: float = 5
    backend: Literal["fastapi", "starlette"] = BACKEND_FASTAPI
    cors: CorsConfig = Field(default_factory=CorsConfig)


class HttpServer:
    def __init__(
        self,
        name: str,
        server_config: Optional[ServerConfig] = None,
        log_config: Optional[LogConfig] = None,
        registry: Optional[RouterRegistry] = None,
    ) -> None:
        self.name = name or DEFAULT_SERVER_NAME
        self.server_config = server_config or ServerConfig()
        self.log_config = log_config
        self._registry = registry

    def set_log_config(self, log_config: Optional[LogConfig]) -> None:
        self.log_config = log_config

    def set_server_config(self, server_config: ServerConfig) -> None:
        self.server_config = server_config

    def set_name(self, name: str) -> None:
        self.name = name

    def routers(self) -> Tuple[Router, ...]:
        if self._registry is not None:
            return self._registry.get()
        return router_registry.get()

    def init_routes(self) -> Starlette:
        cfg = self.server_config
        if cfg.backend == BACKEND_STARLETTE:
            app: Starlette = Starlette()
            code_key = "retcode"
        else:
            app = FastAPI(title=self.name)
            code_key = "code"

        # add_middleware 后添加的在外层
        app.add_middleware(RequestLogMiddleware)
        app.add_middleware(TraceIdMiddleware)
        if cfg.cors.enable_cors:
            app.add_middleware(
                CORSMiddleware,
                allow_origins=cfg.cors.allowed_domains,
                allow_methods=cfg.cors.allowed_methods,
                allow_headers=cfg.cors.allowed_headers,
                allow_credentials=cfg.cors.cookies_allowed,
            )

        register_error_handlers(app, code_key)
        register_routes(app, self.routers())
        return app

    def run(self) -> None:
        if self.log_config is not None:
            configure(self.name, self.log_config)
        else:
            setup_logging(to_level(settings.LOG_LEVEL))

        app = self.init_routes()
        cfg = self.server_config
        config = uvicorn.Config(
            app,
            host=cfg.host,
            port=cfg.port,
            timeout_keep_alive=int(cfg.read_timeout),
            timeout_graceful_shutdown=int(cfg.shutdown_timeout),
            log_config=None,
        )
        alogger.info("%s listening on %s:%s", self.name, cfg.host, cfg.port)
        # uvicorn 自己处理 SIGINT / SIGTERM 并优雅退出
        uvicorn.Server(config).run()
        alogger.info("%s shut down", self.name)


def new(name: str = "") -> HttpServer:
    return HttpServer(name or DEFAULT_SERVER_NAME)


def register_routes(app: Starlette, routers: Iterable[Router]) -> None:
    for r in routers:
        r.register_routes(app)
    for method, path in iter_routes(app.routes):
        alogger.info("Registered route: %s %s", method, path)


def iter_routes(routes: Iterable[BaseRoute], prefix: str = "") -> Iterator[Tuple[str, str]]:
    for route in routes:
        if isinstance(route, Mount):
            yield from iter_routes(route.routes, prefix + route.path)
            continue
        path = getattr(route, "path", "")
        methods = getattr(route, "methods", None) or {"*"}
        for method in sorted(methods):
            yield method, prefix + path
