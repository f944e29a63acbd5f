# -*- coding: utf-8 -*-
# @Author: yaccii
# @Description:

from __future__ import annotations

import time
from typing import Any, Awaitable, Callable, Dict, Optional, Union

import jwt

from api_component.common.errors import UnauthorizedError
from api_component.context.base import Contexts
from api_component.infra.config import settings

CLAIMS_KEY = "claims"

LoginChecker = Callable[[Contexts], Union[None, Awaitable[None]]]

_login_checker: Optional[LoginChecker] = None


def set_login_checker(checker: Optional[LoginChecker]) -> None:
    """全局登录校验, 路由未标记 no_login 时调用, 校验失败抛出 AppError"""
    global _login_checker
    _login_checker = checker


def get_login_checker() -> Optional[LoginChecker]:
    return _login_checker


class JWTLoginChecker:
    """Authorization: Bearer <jwt> 校验, claims 写入 ctx.value("claims")"""

    def __init__(self, secret: Optional[str] = None, algorithm: Optional[str] = None, claims_key: str = CLAIMS_KEY) -> None:
        self._jwt_secret = secret or settings.JWT_SECRET_KEY
        self._jwt_alg = algorithm or settings.JWT_ALGORITHM
        self._claims_key = claims_key

    def __call__(self, ctx: Contexts) -> None:
        auth = ctx.header().get("authorization", "")
        scheme, _, token = auth.partition(" ")
        if scheme.lower() != "bearer" or not token.strip():
            raise UnauthorizedError("missing access token")

        ctx.with_value(self._claims_key, self.decode_token(token.strip()))

    def decode_token(self, token: str) -> Dict[str, Any]:
        try:
            return jwt.decode(token, self._jwt_secret, algorithms=[self._jwt_alg])
        except jwt.PyJWTError as e:
            raise UnauthorizedError("invalid access token", error=e) from e

    def make_token(self, subject: str, expires_in: int = 1800, **claims: Any) -> str:
        now = int(time.time())
        payload: Dict[str, Any] = {
            "sub": subject,
            "iat": now,
            "exp": now + expires_in,
        }
        payload.update(claims)
        return jwt.encode(payload, self._jwt_secret, algorithm=self._jwt_alg)
