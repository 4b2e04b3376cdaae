"""
Gunicorn configuration for the weekly coaching API.

Env vars that override defaults:
  PORT     — TCP port to bind
  WORKERS  — number of worker processes (default: 2)
"""
import os

bind = f"0.0.0.0:{os.environ.get('PORT', '8000')}"

# Requests block on the text generator; 2 workers keep a 512 MB container safe.
workers = int(os.environ.get("WORKERS", "2"))

worker_class = "uvicorn.workers.UvicornWorker"

keepalive = 5

# Must exceed MAX_GENERATION_ATTEMPTS × GENERATION_TIMEOUT_S (3 × 60 s).
timeout = 210

# stdout only; the container runtime captures it.
loglevel = "info"
accesslog = "-"
errorlog = "-"
access_log_format = '%(h)s "%(r)s" %(s)s %(b)sB %(D)sµs'

# Wait up to 30 s for in-flight requests to finish on restart.
graceful_timeout = 30
