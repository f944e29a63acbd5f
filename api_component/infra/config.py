# -*- coding: utf-8 -*-
# @Author: yaccii
# @Description:

from __future__ import annotations

import os
from typing import Any, Dict, Iterable, List, Mapping, Optional, Type, TypeVar, get_args, get_origin

import yaml
from pydantic import AliasChoices, BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

M = TypeVar("M", bound=BaseModel)

DEFAULT_CONFIG_DIRS = [".", "config"]


class Settings(BaseSettings):
    """组件全局配置，从 .env / 环境变量读取"""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    LOG_LEVEL: str = Field(
        "INFO",
        description="日志级别: DEBUG / INFO / WARNING / ERROR",
        validation_alias=AliasChoices("LOG_LEVEL", "log_level"),
    )

    # 请求解析
    DECODER_USE_NUMBER: bool = Field(
        False,
        description="JSON 中的小数解析为 Decimal 而不是 float",
        validation_alias=AliasChoices("DECODER_USE_NUMBER", "decoder_use_number"),
    )
    DECODER_DISALLOW_UNKNOWN_FIELDS: bool = Field(
        False,
        description="JSON 中出现目标结构不存在的字段时报错",
        validation_alias=AliasChoices("DECODER_DISALLOW_UNKNOWN_FIELDS", "decoder_disallow_unknown_fields"),
    )

    REQUEST_ID_HEADER: str = Field(
        "trace-Id",
        description="请求链路 id 所在的 header",
        validation_alias=AliasChoices("REQUEST_ID_HEADER", "request_id_header"),
    )

    # 请求记录
    RECORD_BODY_LIMIT: int = Field(
        1024 * 1024,
        description="小于该大小的 JSON 请求体会被记录到日志（字节）",
        validation_alias=AliasChoices("RECORD_BODY_LIMIT", "record_body_limit"),
    )

    # 登录校验
    JWT_SECRET_KEY: str = Field(
        "dev-secret-change-me",
        description="JWT 签名密钥（生产务必更换）",
        validation_alias=AliasChoices("JWT_SECRET_KEY", "jwt_secret_key"),
    )
    JWT_ALGORITHM: str = Field(
        "HS256",
        description="JWT 签名算法",
        validation_alias=AliasChoices("JWT_ALGORITHM", "jwt_algorithm"),
    )


settings = Settings()


class ConfigLoader:
    """业务配置加载: <name>.yaml + 默认值 + 环境变量

    环境变量优先级最高, key 中的 "." 对应环境变量中的 "_", 例如 app.port -> APP_PORT。
    """

    def __init__(
        self,
        name: str,
        dirs: Optional[List[str]] = None,
        bind_env: Optional[Dict[str, List[str]]] = None,
        defaults: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.name = name
        self.dirs = list(dirs) if dirs is not None else list(DEFAULT_CONFIG_DIRS)
        self.bind_env_kv: Dict[str, List[str]] = dict(bind_env or {})
        self.default_kv: Dict[str, Any] = dict(defaults or {})

    @classmethod
    def with_defaults(cls, name: str) -> "ConfigLoader":
        return cls(name)

    def set_dirs(self, dirs: List[str]) -> None:
        self.dirs = list(dirs)

    def set_bind_env(self, bind_env: Dict[str, List[str]]) -> None:
        self.bind_env_kv = dict(bind_env)

    def set_default(self, defaults: Dict[str, Any]) -> None:
        self.default_kv = dict(defaults)

    def bind_env(self, key: str, *env_keys: str) -> None:
        self.bind_env_kv[key] = list(env_keys)

    def default_value(self, key: str, value: Any) -> None:
        self.default_kv[key] = value

    def load(self, model: Type[M], environ: Optional[Mapping[str, str]] = None) -> M:
        if not self.name:
            raise ValueError("config name cannot be empty")
        env = os.environ if environ is None else environ

        data: Dict[str, Any] = {}
        for key, value in self.default_kv.items():
            _set_path(data, key, value)
        _deep_merge(data, self._read_file())

        field_types = dict(_model_paths(model))
        keys = set(field_types) | set(_flatten(data)) | set(self.bind_env_kv)
        for key in sorted(keys):
            env_names = self.bind_env_kv.get(key) or [key.replace(".", "_").upper()]
            for env_name in env_names:
                if env_name in env:
                    _set_path(data, key, _env_value(env[env_name], field_types.get(key)))
                    break

        return model.model_validate(data)

    def _read_file(self) -> Dict[str, Any]:
        for d in self.dirs:
            for ext in (".yaml", ".yml"):
                path = os.path.join(d, self.name + ext)
                if not os.path.isfile(path):
                    continue
                try:
                    with open(path, "r", encoding="utf-8") as f:
                        loaded = yaml.safe_load(f)
                except (OSError, yaml.YAMLError) as e:
                    raise ValueError(f"failed to read config file: {e}") from e
                if loaded is None:
                    return {}
                if not isinstance(loaded, dict):
                    raise ValueError(f"failed to read config file: {path} is not a mapping")
                return loaded
        return {}


def _set_path(data: Dict[str, Any], key: str, value: Any) -> None:
    parts = key.split(".")
    node = data
    for part in parts[:-1]:
        child = node.get(part)
        if not isinstance(child, dict):
            child = {}
            node[part] = child
        node = child
    node[parts[-1]] = value


def _deep_merge(dst: Dict[str, Any], src: Mapping[str, Any]) -> None:
    for key, value in src.items():
        if isinstance(value, Mapping) and isinstance(dst.get(key), dict):
            _deep_merge(dst[key], value)
        else:
            dst[key] = value


def _flatten(data: Mapping[str, Any], prefix: str = "") -> Iterable[str]:
    for key, value in data.items():
        path = f"{prefix}{key}"
        if isinstance(value, Mapping):
            yield from _flatten(value, path + ".")
        else:
            yield path


def _model_paths(model: Type[BaseModel], prefix: str = "") -> Iterable[tuple]:
    for name, field in model.model_fields.items():
        key = f"{prefix}{field.alias or name}"
        annotation = field.annotation
        if isinstance(annotation, type) and issubclass(annotation, BaseModel):
            yield from _model_paths(annotation, key + ".")
        else:
            yield key, annotation


def _env_value(raw: str, annotation: Any) -> Any:
    # 列表类型的环境变量用逗号分隔
    if get_origin(annotation) in (list, set, tuple) or annotation in (list, set, tuple):
        return [item.strip() for item in raw.split(",") if item.strip()]
    if get_origin(annotation) is not None and any(get_origin(a) in (list, set, tuple) for a in get_args(annotation)):
        return [item.strip() for item in raw.split(",") if item.strip()]
    return raw
