# -*- coding: utf-8 -*-
# @Author: yaccii
# @Description:

"""请求参数自动解析

合并顺序(后者覆盖前者):
1. query string  -> 字段的 form 名(默认为字段 alias/名称) 与 query 名
2. body          -> 按 Content-Type: 表单按 form 名, json 按字段 alias/名称, 其他类型忽略
3. header        -> 字段的 header 名(小写比较)
4. uri path 参数 -> 字段的 uri 名

合并完成后依次: pydantic 校验 -> default() -> validate_request()

字段名通过 Field(json_schema_extra={"form": ..., "query": ..., "header": ..., "uri": ...}) 声明。
"""

from __future__ import annotations

import json
import types
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple, Type, TypeVar, Union, get_args, get_origin
from urllib.parse import parse_qs

from pydantic import BaseModel

from api_component.infra.config import settings

M = TypeVar("M", bound=BaseModel)

# Content-Type MIME of the most common data formats.
MIME_JSON = "application/json"
MIME_HTML = "text/html"
MIME_XML = "application/xml"
MIME_XML2 = "text/xml"
MIME_PLAIN = "text/plain"
MIME_POST_FORM = "application/x-www-form-urlencoded"
MIME_MULTIPART_POST_FORM = "multipart/form-data"
MIME_PROTOBUF = "application/x-protobuf"
MIME_MSGPACK = "application/x-msgpack"
MIME_MSGPACK2 = "application/msgpack"
MIME_YAML = "application/x-yaml"
MIME_TOML = "application/toml"

MultiValues = Mapping[str, Sequence[Any]]


@dataclass(frozen=True)
class _FieldTags:
    key: str
    form: str
    query: Optional[str]
    header: Optional[str]
    uri: Optional[str]
    is_list: bool
    is_str: bool

    def names(self, kind: str) -> Optional[str]:
        return getattr(self, kind)


def ensure_model(model: Any) -> None:
    if not (isinstance(model, type) and issubclass(model, BaseModel)):
        raise TypeError(f"decode target must be a pydantic model class, got {model!r}")


def media_type(content_type: Optional[str]) -> str:
    return (content_type or "").split(";")[0].strip().lower()


def to_multi(values: Any) -> Dict[str, List[Any]]:
    """QueryParams / Headers / FormData / dict 统一转成 {key: [values]}"""
    if not values:
        return {}
    result: Dict[str, List[Any]] = {}
    if hasattr(values, "multi_items"):
        for key, value in values.multi_items():
            result.setdefault(key, []).append(value)
        return result
    for key, value in values.items():
        if isinstance(value, (list, tuple)):
            result.setdefault(key, []).extend(value)
        else:
            result.setdefault(key, []).append(value)
    return result


def auto_decode(
    model: Type[M],
    *,
    query: Any = None,
    content_type: Optional[str] = None,
    body: bytes = b"",
    form: Any = None,
    headers: Any = None,
    uri_params: Any = None,
) -> M:
    ensure_model(model)
    tags = _field_tags(model)
    data: Dict[str, Any] = {}

    _merge_by_tag(data, tags, to_multi(query), ("form", "query"))

    mt = media_type(content_type)
    if mt == MIME_POST_FORM:
        values = to_multi(form) if form is not None else _parse_urlencoded(body)
        _merge_by_tag(data, tags, values, ("form",))
    elif mt == MIME_MULTIPART_POST_FORM:
        _merge_by_tag(data, tags, to_multi(form), ("form",))
    elif mt == MIME_JSON:
        if body:
            for key, value in _load_json(body, model).items():
                # json 中的 null 不覆盖前面来源已经解析出的值
                if value is None and key in data:
                    continue
                data[key] = value

    lowered = {k.lower(): v for k, v in to_multi(headers).items()}
    _merge_by_tag(data, tags, lowered, ("header",))
    _merge_by_tag(data, tags, to_multi(uri_params), ("uri",))

    return _finish(model, data)


def decode_json(body: bytes, model: Type[M]) -> M:
    ensure_model(model)
    data: Dict[str, Any] = {}
    if body:
        data = _load_json(body, model)
    return _finish(model, data)


def _finish(model: Type[M], data: Dict[str, Any]) -> M:
    target = model.model_validate(data)

    default = getattr(target, "default", None)
    if callable(default):
        default()

    validate_request = getattr(target, "validate_request", None)
    if callable(validate_request):
        validate_request()

    return target


def _load_json(body: Union[bytes, str], model: Type[BaseModel]) -> Dict[str, Any]:
    if settings.DECODER_USE_NUMBER:
        obj = json.loads(body, parse_float=Decimal)
    else:
        obj = json.loads(body)
    if not isinstance(obj, dict):
        raise ValueError(f"json: cannot unmarshal {type(obj).__name__} into object")

    if settings.DECODER_DISALLOW_UNKNOWN_FIELDS:
        _check_unknown_fields(obj, model)
    return obj


def _check_unknown_fields(obj: Mapping[str, Any], model: Type[BaseModel]) -> None:
    """逐层检查, 嵌套的 model / list[model] / dict[str, model] 也不允许出现未知字段"""
    fields = {field.alias or name: field for name, field in model.model_fields.items()}
    for key, value in obj.items():
        field = fields.get(key)
        if field is None:
            raise ValueError(f'json: unknown field "{key}"')
        _check_nested(value, field.annotation)


def _check_nested(value: Any, annotation: Any) -> None:
    annotation = _unwrap_optional(annotation)
    origin = get_origin(annotation)
    if origin is None:
        if isinstance(annotation, type) and issubclass(annotation, BaseModel) and isinstance(value, dict):
            _check_unknown_fields(value, annotation)
        return

    args = get_args(annotation)
    if origin in (list, set, tuple) and isinstance(value, list) and args:
        for item in value:
            _check_nested(item, args[0])
    elif origin is dict and isinstance(value, dict) and len(args) == 2:
        for item in value.values():
            _check_nested(item, args[1])


def _parse_urlencoded(body: bytes) -> Dict[str, List[Any]]:
    if not body:
        return {}
    return parse_qs(body.decode("utf-8"), keep_blank_values=True)


def _merge_by_tag(data: Dict[str, Any], tags: Sequence[_FieldTags], values: MultiValues, kinds: Tuple[str, ...]) -> None:
    if not values:
        return
    for kind in kinds:
        for tag in tags:
            name = tag.names(kind)
            if not name:
                continue
            if kind == "header":
                name = name.lower()
            found = values.get(name)
            if not found:
                continue
            if tag.is_list:
                data[tag.key] = list(found)
                continue
            value = found[0]
            # 空字符串对非字符串字段视为未传
            if value == "" and not tag.is_str:
                continue
            data[tag.key] = value


def _field_tags(model: Type[BaseModel]) -> List[_FieldTags]:
    tags = []
    for name, field in model.model_fields.items():
        extra = field.json_schema_extra if isinstance(field.json_schema_extra, dict) else {}
        key = field.alias or name
        tags.append(
            _FieldTags(
                key=key,
                form=str(extra.get("form") or key),
                query=_opt_str(extra.get("query")),
                header=_opt_str(extra.get("header")),
                uri=_opt_str(extra.get("uri")),
                is_list=_is_list(field.annotation),
                is_str=_is_str(field.annotation),
            )
        )
    return tags


def _opt_str(value: Any) -> Optional[str]:
    if value is None or value == "":
        return None
    return str(value)


def _unwrap_optional(annotation: Any) -> Any:
    if get_origin(annotation) in (Union, types.UnionType):
        args = [a for a in get_args(annotation) if a is not type(None)]
        if len(args) == 1:
            return args[0]
    return annotation


def _is_list(annotation: Any) -> bool:
    annotation = _unwrap_optional(annotation)
    return annotation in (list, set, tuple) or get_origin(annotation) in (list, set, tuple)


def _is_str(annotation: Any) -> bool:
    annotation = _unwrap_optional(annotation)
    return annotation is str or annotation is Any
