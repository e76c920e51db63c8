"""Gunicorn production configuration.

Run from ``backend/``: ``gunicorn -c ../gunicorn.conf.py app.main:app``
"""
import multiprocessing
import os

bind = f"0.0.0.0:{os.environ.get('PORT', '8000')}"
workers = int(os.environ.get("WEB_CONCURRENCY", multiprocessing.cpu_count() * 2 + 1))
worker_class = "uvicorn.workers.UvicornWorker"
# Uploads are capped at 10 MB and parsed in-process; allow time for large imports
timeout = 120
keepalive = 5
max_requests = 1000
max_requests_jitter = 100
# Each worker opens its own DB pool and MinIO client
preload_app = False
accesslog = "-"
errorlog = "-"
loglevel = os.environ.get("LOG_LEVEL", "info").lower()
