# -*- coding: utf-8 -*-
# @Author: yaccii
# @Description:

from __future__ import annotations

from typing import Any, List, Optional, Protocol, Tuple, runtime_checkable


@runtime_checkable
class Router(Protocol):
    def register_routes(self, app: Any) -> None:
        ...


class RouterRegistry:
    def __init__(self) -> None:
        self._routers: List[Router] = []

    def register(self, router: Optional[Router]) -> None:
        if router is None:
            return
        self._routers.append(router)

    def get(self) -> Tuple[Router, ...]:
        return tuple(self._routers)

    def reset(self) -> None:
        self._routers.clear()


_default_registry = RouterRegistry()


def register(router: Optional[Router]) -> None:
    """注册路由, 不支持并发, 建议在模块导入时完成"""
    _default_registry.register(router)


def get() -> Tuple[Router, ...]:
    return _default_registry.get()


def reset() -> None:
    _default_registry.reset()
