"""Gunicorn configuration for serving leakwatch.server:app.

Run with: gunicorn -c gunicorn_conf.py leakwatch.server:app
The hosting platform provides PORT; everything else has a GUNICORN_* override.
"""

import multiprocessing
import os

port = os.environ.get("PORT", "8080")
bind = f"0.0.0.0:{port}"

# Investigations are I/O bound on the AI endpoint; a couple of async workers suffice
workers = int(os.environ.get("GUNICORN_WORKERS", min(2, multiprocessing.cpu_count())))
worker_class = "uvicorn.workers.UvicornWorker"

# Must exceed the 600 s SSE ceiling so streams end on their own terms
timeout = int(os.environ.get("GUNICORN_TIMEOUT", "660"))
graceful_timeout = int(os.environ.get("GUNICORN_GRACEFUL_TIMEOUT", "30"))
keepalive = int(os.environ.get("GUNICORN_KEEPALIVE", "5"))

loglevel = os.environ.get("GUNICORN_LOG_LEVEL", "info")
accesslog = "-"
errorlog = "-"

preload_app = True
backlog = 2048

max_requests = int(os.environ.get("GUNICORN_MAX_REQUESTS", "500"))
max_requests_jitter = int(os.environ.get("GUNICORN_MAX_REQUESTS_JITTER", "50"))
