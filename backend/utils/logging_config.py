import contextvars
import logging
import logging.handlers
import re
import time
from pathlib import Path
from typing import Dict, List, Optional

from core.config import settings
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

APP_LOGGER_NAME = "yb_news"
LOG_FORMAT = "%(levelname)s - %(asctime)s - %(user_id)s - %(api)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# logger name -> handler keys it writes to
LOGGER_ROUTES = {
    "": ("app", "error", "console"),
    "uvicorn": ("app", "error", "console"),
    "uvicorn.error": ("app", "error", "console"),
    "fastapi": ("app", "error", "console"),
    "uvicorn.access": ("access", "console"),
    f"{APP_LOGGER_NAME}.access": ("access", "console"),
}

# Compact JWTs and "otp=1234" style fragments never reach a log file
_JWT_RE = re.compile(r"eyJ[\w-]+\.[\w-]+\.[\w-]+")
_OTP_RE = re.compile(r"(otp[\"']?\s*[:=]\s*[\"']?)\d{4}", re.IGNORECASE)

user_id_var = contextvars.ContextVar("user_id", default="-")
api_var = contextvars.ContextVar("api", default="-")

access_logger = logging.getLogger(f"{APP_LOGGER_NAME}.access")


def map_log_level(level_name: str) -> int:
    level = logging.getLevelName((level_name or "INFO").upper())
    return level if isinstance(level, int) else logging.INFO


def bind_user_id(user_id: str) -> None:
    """Attach the authenticated user to log records of the current request."""
    user_id_var.set(user_id or "-")


def redact(message: str) -> str:
    message = _JWT_RE.sub("[token]", message)
    return _OTP_RE.sub(r"\1****", message)


class ContextFilter(logging.Filter):
    """Stamps user_id/api on every record and masks credentials in the message."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.user_id = user_id_var.get()
        record.api = api_var.get()
        if isinstance(record.msg, str) and not record.args:
            record.msg = redact(record.msg)
        return True


def _daily_file(filename: str, level: int, log_dir: Path) -> logging.Handler:
    handler = logging.handlers.TimedRotatingFileHandler(
        filename=str(log_dir / filename),
        when="midnight",
        backupCount=max(int(settings.LOG_TTL_DAYS), 0),
        encoding="utf-8",
        utc=True,
    )
    handler.suffix = "%Y-%m-%d"
    handler.setLevel(level)
    return handler


def _build_handlers(level: int, log_dir: Path) -> Dict[str, logging.Handler]:
    handlers = {
        "app": _daily_file("app.log", level, log_dir),
        "access": _daily_file("access.log", level, log_dir),
        "error": _daily_file("error.log", logging.WARNING, log_dir),
        "console": logging.StreamHandler(),
    }
    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt=DATE_FORMAT)
    for handler in handlers.values():
        if handler.level == logging.NOTSET:
            handler.setLevel(level)
        handler.setFormatter(formatter)
        handler.addFilter(ContextFilter())
    return handlers


def _attach(target: logging.Logger, handlers: List[logging.Handler], level: int) -> None:
    for old in list(target.handlers):
        target.removeHandler(old)
        old.close()
    for handler in handlers:
        target.addHandler(handler)
    target.setLevel(level)


def configure_logging(app_logger_name: Optional[str] = None) -> logging.Logger:
    """Daily-rotated app/access/error files plus console.

    Files rotate at midnight UTC and LOG_TTL_DAYS of them are kept. Calling
    this again replaces the handlers instead of stacking them.
    """
    log_dir = Path(settings.LOG_DIR)
    log_dir.mkdir(parents=True, exist_ok=True)

    level = map_log_level(settings.LOG_LEVEL)
    handlers = _build_handlers(level, log_dir)

    routes = dict(LOGGER_ROUTES)
    routes[app_logger_name or APP_LOGGER_NAME] = ("app", "error", "console")
    for name, keys in routes.items():
        target = logging.getLogger(name)
        if name:
            target.propagate = False
        _attach(target, [handlers[k] for k in keys], level)

    return logging.getLogger(app_logger_name or APP_LOGGER_NAME)


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Binds the api to the log context and writes one access line per request.

    The user id on the access line is the one the session guard stored on
    request.state; unauthenticated requests log "-".
    """

    async def dispatch(self, request: Request, call_next):
        state = request.state
        token_user = user_id_var.set("-")
        token_api = api_var.set(f"{request.method} {request.url.path}")
        start = time.perf_counter()
        status = 500
        try:
            response = await call_next(request)
            status = response.status_code
            return response
        finally:
            elapsed_ms = (time.perf_counter() - start) * 1000.0
            user_id_var.set(getattr(state, "user_id", "-"))
            access_logger.info(f"{status} in {elapsed_ms:.1f} ms")
            user_id_var.reset(token_user)
            api_var.reset(token_api)
