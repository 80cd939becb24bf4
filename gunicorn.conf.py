"""
Gunicorn configuration for the spend analytics API.

Uvicorn workers under Gunicorn. With CACHE_BACKEND=memory every worker
keeps its own query cache; use CACHE_BACKEND=redis to share it.
"""

import multiprocessing
import os

bind = os.getenv("BIND", "0.0.0.0:8000")

# Reports are IO-bound against the hosted store, so a modest worker count is enough
workers = int(os.getenv("WORKERS", min(multiprocessing.cpu_count() * 2 + 1, 8)))
worker_class = "uvicorn.workers.UvicornWorker"
max_requests = 5000
max_requests_jitter = 500

# Batched line fetches for wide date ranges can take a while
timeout = int(os.getenv("GUNICORN_TIMEOUT", 120))
graceful_timeout = 30
keepalive = 5

proc_name = "spend-analytics-api"

# Application logs go through structlog; gunicorn only writes its own
errorlog = "-"
accesslog = None
loglevel = os.getenv("LOG_LEVEL", "info").lower()


def post_fork(server, worker):
    server.log.info("Worker spawned (pid: %s)", worker.pid)
