# -*- coding: utf-8 -*-
# @Author: yaccii
# @Description:

from __future__ import annotations

import dataclasses
import json
import logging
import traceback
from typing import Any, List, Optional

from pydantic import BaseModel

from api_component.common.errors import format_message
from api_component.common.trace import new_trace_id, sub_trace_id

_logger = logging.getLogger("api_component.context")

# 用户调用 -> 公开方法 -> _log -> logger.log
_STACK_LEVEL = 3


class ContextLog:
    """带 trace_id / span_id 的请求日志

    *_json 系列方法会把复杂结构(dict/list/pydantic model/dataclass)转成 json 再格式化。
    """

    def __init__(self, trace_id: Optional[str] = None, span_id: Optional[str] = None, logger: Optional[logging.Logger] = None) -> None:
        self.trace_id = trace_id or new_trace_id()
        self.span_id = span_id or "-"
        self._logger = logger or _logger

    def sub_log(self, suffix: str) -> "ContextLog":
        return ContextLog(sub_trace_id(self.trace_id, suffix), self.span_id, self._logger)

    def errorf(self, fmt: str, *args: Any) -> None:
        self._log(logging.ERROR, fmt, args)

    def error(self, message: str) -> None:
        self._log(logging.ERROR, message, ())

    def error_json(self, fmt: str, *args: Any) -> None:
        self._log(logging.ERROR, fmt, args_json(*args))

    def infof(self, fmt: str, *args: Any) -> None:
        self._log(logging.INFO, fmt, args)

    def info(self, message: str) -> None:
        self._log(logging.INFO, message, ())

    def info_json(self, fmt: str, *args: Any) -> None:
        self._log(logging.INFO, fmt, args_json(*args))

    def debugf(self, fmt: str, *args: Any) -> None:
        self._log(logging.DEBUG, fmt, args)

    def debug(self, message: str) -> None:
        self._log(logging.DEBUG, message, ())

    def debug_json(self, fmt: str, *args: Any) -> None:
        self._log(logging.DEBUG, fmt, args_json(*args))

    def exception(self, fmt: str, *args: Any) -> None:
        self._log(logging.ERROR, fmt, args, exc_info=True)

    def log_and_return_err(self, fmt: str, *args: Any) -> Exception:
        err = Exception(format_message(fmt, args_json(*args)))
        self._log(logging.ERROR, "%s", (str(err),))
        return err

    def panic(self, message: str) -> None:
        stack = "".join(traceback.format_stack())
        self._log(logging.CRITICAL, "%s, panic stack: %s", (message, stack))
        raise RuntimeError(message)

    def panicf(self, fmt: str, *args: Any) -> None:
        message = format_message(fmt, args)
        stack = "".join(traceback.format_stack())
        self._log(logging.CRITICAL, "%s, panic stack: %s", (message, stack))
        raise RuntimeError(message)

    def _log(self, level: int, msg: str, args: tuple, exc_info: bool = False) -> None:
        if not self._logger.isEnabledFor(level):
            return
        self._logger.log(
            level,
            msg,
            *args,
            exc_info=exc_info,
            extra={"trace_id": self.trace_id, "span_id": self.span_id},
            stacklevel=_STACK_LEVEL,
        )


def args_json(*args: Any) -> tuple:
    """异常取 str(); 复杂结构转 json; None 输出 null"""
    params: List[Any] = []
    for arg in args:
        if isinstance(arg, BaseException):
            params.append(str(arg))
        elif arg is None:
            params.append("null")
        elif isinstance(arg, BaseModel):
            params.append(arg.model_dump_json())
        elif dataclasses.is_dataclass(arg) and not isinstance(arg, type):
            params.append(_dumps(dataclasses.asdict(arg), arg))
        elif isinstance(arg, (dict, list, tuple, set)):
            params.append(_dumps(list(arg) if isinstance(arg, set) else arg, arg))
        else:
            params.append(arg)
    return tuple(params)


def _dumps(value: Any, fallback: Any) -> Any:
    try:
        return json.dumps(value, ensure_ascii=False, default=_json_default)
    except (TypeError, ValueError):
        return fallback


def _json_default(value: Any) -> Any:
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json")
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    return str(value)
