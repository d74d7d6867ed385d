"""Gunicorn configuration for production deployment.

Reads the same environment variables as core/config.py.

Usage:
    gunicorn main:app -c gunicorn.conf.py

Every worker runs its own scheduler when SCHEDULER_ENABLED is true.
Execution and lead claims keep ticks from double-sending, but a
dedicated scheduler process (WORKERS=1) keeps the logs readable.
"""
import os

host = os.getenv("HOST", "0.0.0.0")
port = os.getenv("PORT", "3010")
log_level = os.getenv("LOG_LEVEL", "INFO").lower()
debug = os.getenv("DEBUG", "false").lower() == "true"

bind = f"{host}:{port}"

workers = max(1, int(os.getenv("WORKERS", "1")))
worker_class = "uvicorn.workers.UvicornWorker"

# A batch tick can hold a request open while providers respond
timeout = int(os.getenv("GUNICORN_TIMEOUT", "180"))
graceful_timeout = int(os.getenv("GUNICORN_GRACEFUL_TIMEOUT", "60"))
keepalive = int(os.getenv("GUNICORN_KEEPALIVE", "5"))

accesslog = "-" if not debug else None
errorlog = "-"
loglevel = log_level

proc_name = "prospecting-workflows"

# Preloading would share one scheduler and one httpx client across forks
preload_app = False
