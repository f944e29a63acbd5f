# -*- coding: utf-8 -*-
# @Author: yaccii
# @Description:

from __future__ import annotations

from typing import Any, Optional

from starlette.exceptions import HTTPException

from api_component.common import codes, errors
from api_component.common.errors import AppError


class ErrorFactory:
    """context 上的错误构造入口, 通过 ctx.error() 获取"""

    def error(self, code: int, err: Optional[BaseException]) -> AppError:
        """err 不会出现在返回给调用方的错误信息中"""
        return errors.new(err, code)

    def errorf(self, code: int, *args: Any) -> AppError:
        """args 是错误码对应模板的参数, 其中最后一个异常作为原始错误"""
        err = None
        for arg in args:
            if isinstance(arg, BaseException):
                err = arg
        return errors.new(err, code, *args)

    def new_error(self, code: int, message: str) -> AppError:
        return errors.new_error(code, message)

    def legacy_wrap(self, err: BaseException) -> AppError:
        """已经是 AppError 直接返回; 带 code/message 的错误转换; 其余用 1004 包装"""
        if isinstance(err, AppError):
            return err
        if isinstance(err, HTTPException):
            return self.from_http_exception(err)

        code = getattr(err, "code", None)
        message = getattr(err, "message", None)
        if isinstance(code, int) and not isinstance(code, bool) and isinstance(message, str):
            return errors.new_error(code, message).set_error(err)

        return errors.new(err, codes.RAW_ERR_WRAP_ERR_CODE, err)

    def legacy_wrap_code(self, code: int, err: BaseException) -> AppError:
        if isinstance(err, AppError):
            return err
        return errors.new(err, code, err)

    def from_http_exception(self, exc: HTTPException) -> AppError:
        return AppError(exc.status_code, str(exc.detail), error=exc, status_code=exc.status_code)
