"""Gunicorn 生产配置（目录查询 API）

用法:
  TLCATALOG_CONFIG=configs/default.yml \
    gunicorn --config deploy/gunicorn.conf.py tlcatalog.web.app:app
"""

import os

# ---------- 网络 ----------
bind = os.getenv("GUNICORN_BIND", "0.0.0.0:8888")

# ---------- 并发 ----------
# 目录只读且常驻内存：master 预加载一次，worker fork 后共享
preload_app = True
workers = int(os.getenv("GUNICORN_WORKERS", "2"))
threads = int(os.getenv("GUNICORN_THREADS", "8"))
worker_class = "gthread"
timeout = 60

# ---------- 日志 ----------
accesslog = os.getenv("GUNICORN_ACCESS_LOG", "-")
errorlog = os.getenv("GUNICORN_ERROR_LOG", "-")
loglevel = os.getenv("GUNICORN_LOG_LEVEL", "info")

# ---------- 进程管理 ----------
graceful_timeout = 30
keepalive = 5


def on_starting(server):
    """加载配置并预热目录，覆盖层或依赖环错误在启动时即暴露"""
    from tlcatalog.core.config import init_config
    from tlcatalog.services.container import get_container, reset_container
    from tlcatalog.utils.logger import setup_logging

    setup_logging(level=loglevel, json_output=os.getenv("TLCATALOG_LOG_JSON", "") == "1")
    path = os.getenv("TLCATALOG_CONFIG")
    if path:
        init_config(path)
        reset_container()
    catalog = get_container().catalog.catalog
    server.log.info("目录已加载: %d 个条目", len(catalog))
