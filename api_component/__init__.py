# -*- coding: utf-8 -*-
# @Author: yaccii
# @Description:

"""api_component: FastAPI / Starlette 之上的统一 http 接口层

路由表声明 + handler 包装 + 统一响应信封 + 请求参数自动解析 + 带 trace id 的日志。
"""

__version__ = "0.1.0"
