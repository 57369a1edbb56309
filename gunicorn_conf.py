# Gunicorn settings for the ID verification service, all overridable from the environment
import multiprocessing
import os


def env_int(name: str, default: int) -> int:
    value = os.environ.get(name)
    if value is None or value.strip() == "":
        return default
    try:
        return int(value)
    except ValueError:
        return default


def env_str(name: str, default: str) -> str:
    value = os.environ.get(name)
    return value if value is not None and value.strip() != "" else default


wsgi_app = "main:app"
bind = f"0.0.0.0:{env_int('PORT', 5051)}"

# The local record store rewrites one document per change; keep the worker count modest
cores = multiprocessing.cpu_count() or 1
workers = env_int("GUNICORN_WORKERS", min(2 * cores + 1, 4))
worker_class = env_str("GUNICORN_WORKER_CLASS", "sync")

keepalive = env_int("GUNICORN_KEEPALIVE", 5)

# Must exceed ADVISOR_TIMEOUT plus store round trips on the verification page
timeout = env_int("GUNICORN_TIMEOUT", 30)
graceful_timeout = env_int("GUNICORN_GRACEFUL_TIMEOUT", 30)

accesslog = "-"
errorlog = "-"
loglevel = env_str("GUNICORN_LOGLEVEL", env_str("LOG_LEVEL", "info").lower())

# Photo uploads arrive as multipart bodies; headers stay small
limit_request_line = 8190
limit_request_fields = 100
limit_request_field_size = 8190
