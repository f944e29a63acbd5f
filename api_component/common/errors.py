# -*- coding: utf-8 -*-
# @Author: yaccii
# @Description:

from __future__ import annotations

import os
import traceback
from typing import Any, List, Optional, Tuple

from api_component.common import codes, register

LOG_SPLIT_FLAG = "|"
_STACK_DEPTH = 32


class AppError(Exception):
    """异常统一

    code/message 返回给调用方, error 为原始错误, 只用于日志排查。
    构造时记录调用栈, 通过 caller() 获取。
    """

    def __init__(
        self,
        code: int,
        message: str,
        error: Optional[BaseException] = None,
        status_code: int = 200,
        detail: Optional[Any] = None,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.error = error
        self.status_code = status_code
        self.detail = detail
        # 去掉 __init__ 自身所在帧, 最内层在前
        self._stack = list(reversed(traceback.extract_stack(limit=_STACK_DEPTH + 1)[:-1]))

    def __str__(self) -> str:
        message = self.message
        if self.error is not None:
            message += LOG_SPLIT_FLAG + "raw_error:" + str(self.error)
        return message

    def __repr__(self) -> str:
        return f"{type(self).__name__}(code={self.code!r}, message={self.message!r})"

    def set_error(self, err: Optional[BaseException]) -> "AppError":
        self.error = err
        return self

    def raw_error_string(self) -> str:
        if self.error is None:
            return ""
        return str(self.error)

    def caller(self) -> List[str]:
        return [f"{_short_path(frame.filename)}:{frame.lineno}" for frame in self._stack]


class UnauthorizedError(AppError):
    def __init__(self, message: str = "unauthorized", error: Optional[BaseException] = None) -> None:
        super().__init__(codes.UNAUTHORIZED_ERR_CODE, message, error=error, status_code=401)


def format_message(fmt: str, args: Tuple[Any, ...]) -> str:
    if not args:
        return fmt
    try:
        return fmt % args
    except (TypeError, ValueError):
        extra = " ".join(str(arg) for arg in args)
        return f"{fmt} {extra}".strip()


def new(err: Optional[BaseException], code: int, *args: Any, lang: str = register.DEFAULT_LANG) -> AppError:
    """按错误码注册的模板生成错误信息, err 为空时用错误信息构造原始错误"""
    message = format_message(register.get(lang, code), args)
    if err is None:
        err = Exception(message)
    return AppError(code, message, error=err)


def new_error(code: int, message: str) -> AppError:
    return AppError(code, message, error=Exception(message))


def new_error_of(code: int, fmt: str, *args: Any) -> AppError:
    message = format_message(fmt, args)
    return AppError(code, message, error=Exception(message))


def is_error(err: Optional[BaseException], target: Any) -> bool:
    """沿 AppError.error / __cause__ 逐层查找"""
    seen = set()
    while err is not None and id(err) not in seen:
        if err is target:
            return True
        if isinstance(target, type) and isinstance(err, target):
            return True
        seen.add(id(err))
        nxt = err.error if isinstance(err, AppError) else None
        err = nxt if nxt is not None else err.__cause__
    return False


def _short_path(filename: str) -> str:
    parts = filename.split(os.sep)
    return os.sep.join(parts[-4:])
