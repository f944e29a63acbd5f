# -*- coding: utf-8 -*-
# @Author: yaccii
# @Description:

from __future__ import annotations

from api_component.context.base import CTX_LOG_ID_KEY, SPAN_ID_KEY, Contexts
from api_component.context.fastapi_context import FastAPIContext
from api_component.context.log import ContextLog
from api_component.context.starlette_context import StarletteContext


def todo() -> Contexts:
    """没有请求时(后台任务/脚本)使用的 context"""
    return StarletteContext(None)


__all__ = [
    "CTX_LOG_ID_KEY",
    "SPAN_ID_KEY",
    "ContextLog",
    "Contexts",
    "FastAPIContext",
    "StarletteContext",
    "todo",
]
