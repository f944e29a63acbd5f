# -*- coding: utf-8 -*-
# @Author: yaccii
# @Description:

from __future__ import annotations

import glob
import gzip
import logging
import os
import shutil
import time
from logging.handlers import RotatingFileHandler
from typing import Optional

from pydantic import BaseModel

from api_component.common.trace import get_span_id, get_trace_id

LOG_FORMAT = "[%(asctime)s - %(levelname)s - trace=%(trace_id)s - span=%(span_id)s - %(name)s - %(filename)s:%(lineno)d - %(message)s]"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


class LogConfig(BaseModel):
    """日志文件配置"""

    level: str = "INFO"
    dir: str = "logs"
    max_file_mb: int = 100
    max_backups: int = 5
    max_age_days: int = 30
    compress: bool = False


class TraceIdFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:  # noqa: A003
        # context logger 通过 extra 显式带上的 id 优先
        if not getattr(record, "trace_id", None):
            setattr(record, "trace_id", get_trace_id())
        if not getattr(record, "span_id", None):
            setattr(record, "span_id", get_span_id())
        return True


class RotatingLogFileHandler(RotatingFileHandler):
    """按大小切分, 可选 gzip 压缩旧文件, 清理超过 max_age_days 的旧文件"""

    def __init__(
        self,
        filename: str,
        max_bytes: int,
        backup_count: int,
        max_age_days: int = 0,
        compress: bool = False,
    ) -> None:
        super().__init__(filename, maxBytes=max_bytes, backupCount=backup_count, encoding="utf-8")
        self.max_age_days = max_age_days
        if compress:
            self.namer = _gzip_namer
            self.rotator = _gzip_rotator

    def doRollover(self) -> None:  # noqa: N802
        super().doRollover()
        self.prune_expired()

    def prune_expired(self, now: Optional[float] = None) -> None:
        if self.max_age_days <= 0:
            return
        deadline = (now or time.time()) - self.max_age_days * 86400
        for path in glob.glob(glob.escape(self.baseFilename) + ".*"):
            if os.path.getmtime(path) < deadline:
                os.remove(path)


def _gzip_namer(name: str) -> str:
    return name + ".gz"


def _gzip_rotator(source: str, dest: str) -> None:
    with open(source, "rb") as sf, gzip.open(dest, "wb") as df:
        shutil.copyfileobj(sf, df)
    os.remove(source)


def _formatter() -> logging.Formatter:
    return logging.Formatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT)


def to_level(level: str) -> int:
    """未知的级别名按 INFO 处理"""
    value = logging.getLevelName(str(level).upper())
    return value if isinstance(value, int) else logging.INFO


def setup_logging(level: int = logging.INFO) -> None:
    """初始化全局日志"""

    root = logging.getLogger()
    root.setLevel(level)

    if not root.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(_formatter())
        root.addHandler(handler)

    # 给现有 handler 全部加 filter
    for h in root.handlers:
        has_filter = any(isinstance(f, TraceIdFilter) for f in getattr(h, "filters", []))
        if not has_filter:
            h.addFilter(TraceIdFilter())


def configure(name: str, cfg: LogConfig) -> RotatingLogFileHandler:
    """控制台 + 滚动文件 <dir>/<name>.log"""

    os.makedirs(cfg.dir, exist_ok=True)
    setup_logging(to_level(cfg.level))

    file_handler = RotatingLogFileHandler(
        os.path.join(cfg.dir, name + ".log"),
        max_bytes=cfg.max_file_mb * 1024 * 1024,
        backup_count=cfg.max_backups,
        max_age_days=cfg.max_age_days,
        compress=cfg.compress,
    )
    file_handler.setFormatter(_formatter())
    file_handler.addFilter(TraceIdFilter())
    logging.getLogger().addHandler(file_handler)
    return file_handler
