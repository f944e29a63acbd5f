# -*- coding: utf-8 -*-
# @Author: yaccii
# @Description:

from __future__ import annotations

import uuid
from contextvars import ContextVar

from api_component.infra.config import settings

TRACE_ID_HEADER = settings.REQUEST_ID_HEADER
LOG_ID_PREFIX = "svc:"

_trace_id_ctx: ContextVar[str] = ContextVar("trace_id", default="-")
_span_id_ctx: ContextVar[str] = ContextVar("span_id", default="-")


def new_trace_id() -> str:
    return LOG_ID_PREFIX + str(uuid.uuid4())


def sub_trace_id(trace_id: str, suffix: str) -> str:
    return f"{trace_id}:{suffix}"


def set_trace_id(trace_id: str) -> None:
    _trace_id_ctx.set(trace_id or "-")


def get_trace_id() -> str:
    return _trace_id_ctx.get() or "-"


def set_span_id(span_id: str) -> None:
    _span_id_ctx.set(span_id or "-")


def get_span_id() -> str:
    return _span_id_ctx.get() or "-"


def current_or_new_trace_id() -> str:
    trace_id = get_trace_id()
    if trace_id == "-":
        return new_trace_id()
    return trace_id
