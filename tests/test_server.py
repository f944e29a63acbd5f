"""
Tests for the router registry and HttpServer app assembly.
"""

import logging

import uvicorn
from fastapi import FastAPI
from fastapi.testclient import TestClient
from starlette.applications import Starlette

from api_component.api.route import Web
from api_component.infra.config import settings
from api_component.server import router
from api_component.server.router import RouterRegistry
from api_component.server.server import (
    DEFAULT_SERVER_NAME,
    CorsConfig,
    HttpServer,
    ServerConfig,
    iter_routes,
    new,
)


async def ping(ctx):
    return "pong"


def ping_web() -> Web:
    web = Web("/api")
    web.route(web.get("/ping").no_login().handler(ping))
    return web


class TestRouterRegistry:
    """Module level registry used by HttpServer by default."""

    def test_register_and_reset(self) -> None:
        web = ping_web()
        router.register(None)
        router.register(web)
        assert router.get() == (web,)
        router.reset()
        assert router.get() == ()

    def test_order_preserved(self) -> None:
        registry = RouterRegistry()
        first, second = ping_web(), ping_web()
        registry.register(first)
        registry.register(second)
        assert registry.get() == (first, second)


class TestHttpServer:
    """init_routes builds a ready to serve ASGI app."""

    def test_new_defaults(self) -> None:
        server = new()
        assert server.name == DEFAULT_SERVER_NAME
        assert server.server_config.port == 8080
        assert server.server_config.read_timeout == 10
        assert server.server_config.shutdown_timeout == 5
        assert new("svc").name == "svc"

    def test_setters(self) -> None:
        server = new("svc")
        server.set_name("other")
        server.set_server_config(ServerConfig(port=9000))
        server.set_log_config(None)
        assert server.name == "other"
        assert server.server_config.port == 9000
        assert server.log_config is None

    def test_fastapi_backend(self) -> None:
        router.register(ping_web())
        app = new("svc").init_routes()
        assert isinstance(app, FastAPI)

        client = TestClient(app)
        resp = client.get("/api/ping", headers={"trace-Id": "abc"})
        assert resp.json() == {"code": 0, "message": "", "data": "pong"}
        assert resp.headers["trace-Id"] == "abc"

    def test_starlette_backend(self) -> None:
        registry = RouterRegistry()
        registry.register(ping_web())
        server = HttpServer("svc", ServerConfig(backend="starlette"), registry=registry)
        app = server.init_routes()
        assert isinstance(app, Starlette)
        assert not isinstance(app, FastAPI)

        resp = TestClient(app).get("/api/ping")
        assert resp.json() == {"retcode": 0, "message": "", "data": "pong"}

    def test_not_found_uses_envelope(self) -> None:
        app = HttpServer("svc", ServerConfig(backend="starlette"), registry=RouterRegistry()).init_routes()
        resp = TestClient(app).get("/nope", headers={"trace-Id": "abc"})
        assert resp.status_code == 404
        assert resp.json() == {"retcode": 404, "message": "Not Found", "data": None}
        assert resp.headers["trace-Id"] == "abc"

    def test_cors(self) -> None:
        cors = CorsConfig(
            allowed_domains=["http://a.example"],
            allowed_methods=["GET"],
            allowed_headers=["*"],
            enable_cors=True,
        )
        router.register(ping_web())
        app = HttpServer("svc", ServerConfig(cors=cors)).init_routes()
        resp = TestClient(app).options(
            "/api/ping",
            headers={"Origin": "http://a.example", "Access-Control-Request-Method": "GET"},
        )
        assert resp.status_code == 200
        assert resp.headers["access-control-allow-origin"] == "http://a.example"

    def test_cors_disabled(self) -> None:
        router.register(ping_web())
        app = new("svc").init_routes()
        resp = TestClient(app).get("/api/ping", headers={"Origin": "http://a.example"})
        assert "access-control-allow-origin" not in resp.headers

    def test_iter_routes(self) -> None:
        app = Starlette()
        ping_web().register_routes(app)
        assert ("GET", "/api/ping") in list(iter_routes(app.routes))

    def test_run_uses_server_config(self, monkeypatch) -> None:
        captured = {}

        def fake_run(self, sockets=None):
            captured["config"] = self.config

        monkeypatch.setattr(uvicorn.Server, "run", fake_run)
        HttpServer("svc", ServerConfig(port=9001, shutdown_timeout=3), registry=RouterRegistry()).run()

        config = captured["config"]
        assert config.port == 9001
        assert config.timeout_graceful_shutdown == 3
        assert config.timeout_keep_alive == 10

    def test_run_with_unknown_log_level(self, monkeypatch) -> None:
        monkeypatch.setattr(uvicorn.Server, "run", lambda self, sockets=None: None)
        monkeypatch.setattr(settings, "LOG_LEVEL", "verbose")
        HttpServer("svc", registry=RouterRegistry()).run()
        assert logging.getLogger().level == logging.INFO
