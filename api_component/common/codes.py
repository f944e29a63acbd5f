# -*- coding: utf-8 -*-
# @Author: yaccii
# @Description:

from __future__ import annotations

from typing import Dict

from api_component.common import register

# request body decode error. err: %s
JSON_DECODE_ERR_CODE = 1000
# mapper error. action: %s, err: %s
MAPPER_ACTION_ERR_CODE = 1002
# file not found. file name: %s
FILE_NOT_FOUND_ERR_CODE = 1003
# raw error wrap: %s
RAW_ERR_WRAP_ERR_CODE = 1004
# unauthorized. %s
UNAUTHORIZED_ERR_CODE = 1005

_default_messages: Dict[int, str] = {
    JSON_DECODE_ERR_CODE: "request body decode error. err: %s",
    MAPPER_ACTION_ERR_CODE: "mapper error. action: %s, err: %s",
    FILE_NOT_FOUND_ERR_CODE: "file not found. file name: %s",
    RAW_ERR_WRAP_ERR_CODE: "raw error wrap: %s",
    UNAUTHORIZED_ERR_CODE: "unauthorized. %s",
}

register.register(register.DEFAULT_LANG, _default_messages)
