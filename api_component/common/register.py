# -*- coding: utf-8 -*-
# @Author: yaccii
# @Description:

"""错误码 -> 错误信息模板 注册表

- 按语言分组, 找不到时回退到 default 语言
- 不支持并发注册, 建议在模块导入时完成
"""

from __future__ import annotations

from typing import Dict, Mapping

DEFAULT_LANG = "default"

_codes: Dict[str, Dict[int, str]] = {}


def register(lang: str, part_codes: Mapping[int, str]) -> None:
    lang_codes = _codes.setdefault(lang, {})
    for code, message in part_codes.items():
        if code in lang_codes:
            raise ValueError(f"error code duplicate. code: {code}, message: {message}")
        lang_codes[code] = message


def get(lang: str, code: int) -> str:
    message = _codes.get(lang, {}).get(code)
    if message is not None:
        return message

    message = _codes.get(DEFAULT_LANG, {}).get(code)
    if message is not None:
        return message

    return ""
