# -*- coding: utf-8 -*-
# @Author: yaccii
# @Description:

import logging


"""统一日志出口

日志初始化由 api_component.common.logging.setup_logging() / configure() 负责。
这里仅返回一个命名 logger，避免重复添加 handler。
"""


alogger = logging.getLogger("api_component")
