# -*- coding: utf-8 -*-
# @Author: yaccii
# @Description:

"""请求上下文抽象

Contexts 只依赖 starlette 的 Request, 两个适配器(StarletteContext / FastAPIContext)
只实现与具体框架相关的部分: query / path 参数 / 路由路径 / 响应信封字段名。
"""

from __future__ import annotations

import copy
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple, Type, TypeVar

from pydantic import BaseModel
from starlette.datastructures import FormData, Headers, UploadFile
from starlette.requests import Request

from api_component.common import codes
from api_component.common.errors import AppError
from api_component.common.trace import TRACE_ID_HEADER, get_trace_id, new_trace_id, sub_trace_id
from api_component.context import decode as decoder
from api_component.context.err import ErrorFactory
from api_component.context.log import ContextLog

M = TypeVar("M", bound=BaseModel)

CTX_LOG_ID_KEY = "trace-id"
SPAN_ID_KEY = "span-id"
PAGE_KEY = "page"


@dataclass
class ResponseState:
    """同一个请求派生出的所有 context 共享"""

    data: Any = None
    extra: Dict[str, Any] = field(default_factory=dict)
    file_name: Optional[str] = None
    file_content: Optional[bytes] = None
    raw_type: Optional[str] = None
    raw_body: Optional[bytes] = None
    body: Optional[bytes] = None
    form: Optional[FormData] = None


class Lifetime:
    """超时 / 取消, 父级结束时子级同时结束"""

    def __init__(self, parent: Optional["Lifetime"] = None, timeout: Optional[float] = None) -> None:
        self.parent = parent
        self.expires_at = time.monotonic() + timeout if timeout is not None else None
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True

    def deadline(self) -> Optional[float]:
        candidates = []
        node: Optional[Lifetime] = self
        while node is not None:
            if node.expires_at is not None:
                candidates.append(node.expires_at)
            node = node.parent
        return min(candidates) if candidates else None

    def done(self) -> bool:
        node: Optional[Lifetime] = self
        while node is not None:
            if node.cancelled:
                return True
            node = node.parent
        deadline = self.deadline()
        return deadline is not None and time.monotonic() >= deadline


class Contexts(ABC):
    envelope_code_key = "retcode"

    def __init__(
        self,
        request: Optional[Request],
        request_id: Optional[str] = None,
        route_path: str = "",
    ) -> None:
        self._request = request
        self.request_id = request_id or _request_id(request)
        self.span_id = "-"
        self._route_path = route_path
        self._values: Dict[Any, Any] = {}
        self._state = ResponseState()
        self._lifetime = Lifetime()
        self._err = ErrorFactory()

    # ---------- 框架相关 ----------

    @abstractmethod
    def query(self, name: str) -> List[str]:
        raise NotImplementedError

    @abstractmethod
    def path_parameters(self) -> Dict[str, str]:
        raise NotImplementedError

    @abstractmethod
    def selected_route_path(self) -> str:
        raise NotImplementedError

    # ---------- 请求 ----------

    @property
    def request(self) -> Optional[Request]:
        return self._request

    def header(self) -> Headers:
        if self._request is None:
            return Headers()
        return self._request.headers

    def cookie(self) -> Dict[str, str]:
        if self._request is None:
            return {}
        return dict(self._request.cookies)

    def path_parameter(self, name: str) -> str:
        return self.path_parameters().get(name, "")

    def get_request_id(self) -> str:
        return self.request_id

    async def http_body(self) -> bytes:
        """读取 body, 可重复读取"""
        if self._state.body is not None:
            return self._state.body
        if self._request is None:
            return b""
        try:
            self._state.body = await self._request.body()
        except Exception as e:  # noqa: BLE001
            self.log().errorf("read request body fail, %s", e)
            raise self._err.legacy_wrap_code(codes.JSON_DECODE_ERR_CODE, e) from e
        return self._state.body

    async def form(self) -> FormData:
        if self._state.form is not None:
            return self._state.form
        if self._request is None:
            return FormData()
        self._state.form = await self._request.form()
        return self._state.form

    async def form_file(self, name: str) -> UploadFile:
        item = None
        if self._request is not None:
            item = (await self.form()).get(name)
        if not isinstance(item, UploadFile):
            raise self._err.errorf(codes.FILE_NOT_FOUND_ERR_CODE, name)
        return item

    # ---------- 解析 ----------

    async def json_decode(self, model: Type[M]) -> M:
        """按 json 解析 body, 校验规则见 pydantic Field 约束"""
        decoder.ensure_model(model)
        body = await self.http_body()
        try:
            return decoder.decode_json(body, model)
        except AppError:
            raise
        except Exception as e:  # noqa: BLE001
            raise self._err.legacy_wrap_code(codes.JSON_DECODE_ERR_CODE, e) from e

    async def decode(self, model: Type[M]) -> M:
        """query -> body(form/json) -> header -> uri 合并解析"""
        decoder.ensure_model(model)
        content_type = self.header().get("content-type", "")
        mt = decoder.media_type(content_type)
        try:
            body = b""
            form = None
            if mt == decoder.MIME_JSON:
                body = await self.http_body()
            elif mt in (decoder.MIME_POST_FORM, decoder.MIME_MULTIPART_POST_FORM):
                form = await self.form()
            return decoder.auto_decode(
                model,
                query=self._query_params(),
                content_type=content_type,
                body=body,
                form=form,
                headers=self.header(),
                uri_params=self.path_parameters(),
            )
        except AppError:
            raise
        except Exception as e:  # noqa: BLE001
            raise self._err.legacy_wrap_code(codes.JSON_DECODE_ERR_CODE, e) from e

    def _query_params(self) -> Any:
        if self._request is None:
            return None
        return self._request.query_params

    # ---------- 响应 ----------

    def set_data(self, data: Any) -> None:
        self._state.data = data

    def get_data(self) -> Any:
        return self._state.data

    def set_extra_response(self, key: str, val: Any) -> None:
        """与 data 同级返回给调用方"""
        self._state.extra[key] = val

    def set_page_response(self, val: Any) -> None:
        self._state.extra[PAGE_KEY] = val

    def get_extra_response(self) -> Dict[str, Any]:
        return self._state.extra

    def set_response_file(self, file_name: str, content: bytes) -> None:
        self._state.file_name = file_name
        self._state.file_content = content

    def get_response_file(self) -> Tuple[Optional[str], Optional[bytes], bool]:
        exists = self._state.file_content is not None
        return self._state.file_name, self._state.file_content, exists

    def set_raw_response(self, typ: str, body: bytes) -> None:
        self._state.raw_type = typ
        self._state.raw_body = body

    def get_raw_response(self) -> Tuple[Optional[str], Optional[bytes], bool]:
        exists = self._state.raw_body is not None
        return self._state.raw_type, self._state.raw_body, exists

    # ---------- 日志 / 错误 ----------

    def log(self) -> ContextLog:
        return ContextLog(self.request_id, self.span_id)

    def error(self) -> ErrorFactory:
        return self._err

    # ---------- 派生 / 生命周期 ----------

    def with_value(self, key: Any, value: Any) -> None:
        self._values[key] = value

    def value(self, key: Any) -> Any:
        if key in self._values:
            return self._values[key]
        if key == CTX_LOG_ID_KEY:
            return self.request_id
        if key == SPAN_ID_KEY:
            return self.span_id
        return None

    def with_timeout(self, timeout: float) -> None:
        """设置超时时间(秒)"""
        self._lifetime = Lifetime(self._lifetime, timeout)

    def with_timeout_ctx(self, timeout: float) -> "Contexts":
        new_ctx = self._clone()
        new_ctx._lifetime = Lifetime(self._lifetime, timeout)
        return new_ctx

    def cancel(self) -> Callable[[], None]:
        return self._lifetime.cancel

    def is_done(self) -> bool:
        return self._lifetime.done()

    def deadline(self) -> Optional[float]:
        return self._lifetime.deadline()

    def sub_context(self, suffix: str) -> "Contexts":
        new_ctx = self._clone()
        new_ctx.request_id = sub_trace_id(self.request_id, suffix)
        return new_ctx

    def with_span(self) -> "Contexts":
        return self.with_span_id(new_trace_id())

    def with_span_prefix(self, prefix: str) -> "Contexts":
        return self.with_span_id(prefix + "-" + new_trace_id())

    def with_span_id(self, span_id: str) -> "Contexts":
        new_ctx = self._clone()
        new_ctx.span_id = span_id
        return new_ctx

    def _clone(self) -> "Contexts":
        new_ctx = copy.copy(self)
        new_ctx._values = dict(self._values)
        return new_ctx

    # ---------- 结构转换 ----------

    def mapper(self, action: str, src: Any, dst: Type[M]) -> Optional[M]:
        """按字段名把 src 转为 dst"""
        if src is None:
            return None
        try:
            if isinstance(src, BaseModel):
                return dst.model_validate(src.model_dump())
            if isinstance(src, Mapping):
                return dst.model_validate(dict(src))
            return dst.model_validate(src, from_attributes=True)
        except Exception as e:  # noqa: BLE001
            self.log().error_json("action: %s, src: %s, err: %s", action, src, e)
            raise self._err.errorf(codes.MAPPER_ACTION_ERR_CODE, action, str(e)) from e

    def all_mapper(self, action: str, src: Any, dst: Type[M]) -> Optional[M]:
        """同 mapper, 额外读取 _ 开头的私有属性"""
        if src is None:
            return None
        try:
            return dst.model_validate(_all_attrs(src))
        except Exception as e:  # noqa: BLE001
            self.log().error_json("action: %s, src: %s, err: %s", action, src, e)
            raise self._err.errorf(codes.MAPPER_ACTION_ERR_CODE, action, str(e)) from e


def _request_id(request: Optional[Request]) -> str:
    trace_id = get_trace_id()
    if trace_id != "-":
        return trace_id
    if request is not None:
        header_id = request.headers.get(TRACE_ID_HEADER)
        if header_id:
            return header_id
    return new_trace_id()


def _all_attrs(src: Any) -> Dict[str, Any]:
    if isinstance(src, Mapping):
        return dict(src)

    private: Dict[str, Any] = {}
    public: Dict[str, Any] = {}
    if isinstance(src, BaseModel):
        public = src.model_dump()
        private = dict(src.__pydantic_private__ or {})
    else:
        for key, value in vars(src).items():
            if key.startswith("_"):
                private[key] = value
            else:
                public[key] = value

    data = {key.lstrip("_"): value for key, value in private.items()}
    data.update(public)
    return data
