# -*- coding: utf-8 -*-
# @Author: yaccii
# @Description:

"""通用基础设施（错误码/日志/trace 等）

约定：
- handler 不直接拼响应: 业务错误统一抛出 AppError, 由 wrapper 转为标准 JSON 信封
- trace_id 通过 middleware / context 注入, 并写入日志, 便于线上排障
"""

from __future__ import annotations
