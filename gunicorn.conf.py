"""Gunicorn configuration for the Mirage POS service."""
import os

bind = os.getenv("GUNICORN_BIND", "0.0.0.0:5000")

# One worker: the refresh bus and the backup scheduler live in-process.
workers = int(os.getenv("GUNICORN_WORKERS", "1"))
threads = int(os.getenv("GUNICORN_THREADS", "4"))

accesslog = os.getenv("GUNICORN_ACCESS_LOGFILE", "-")
errorlog = os.getenv("GUNICORN_ERROR_LOGFILE", "-")

forwarded_allow_ips = os.getenv("GUNICORN_FORWARDED_ALLOW_IPS", "*")
