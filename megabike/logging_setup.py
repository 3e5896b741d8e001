"""
Loguru configuration for the API process.
Bearer tokens and access codes are masked before a record reaches a sink.
"""
from __future__ import annotations

import logging
import re
import sys
from typing import Any

from loguru import logger

from megabike.config import JWT_SECRET_KEY, LOG_LEVEL

# JWTs are three base64url segments separated by dots
_JWT_RE = re.compile(r"eyJ[\w-]+\.[\w-]+\.[\w-]+")
_SENSITIVE_EXTRA_KEYS = ("token", "code", "secret", "password")


def _mask(value: str) -> str:
    if len(value) > 8:
        return value[:4] + "****" + value[-4:]
    return "********"


def sensitive_data_filter(record: dict[str, Any]) -> bool:
    """Mask tokens in the message and sensitive keys in `extra`. Never drops a record."""
    message = _JWT_RE.sub(lambda m: _mask(m.group(0)), record["message"])
    if JWT_SECRET_KEY and JWT_SECRET_KEY in message:
        message = message.replace(JWT_SECRET_KEY, "********")
    record["message"] = message
    extra = record.get("extra")
    if isinstance(extra, dict):
        for key, val in extra.items():
            if isinstance(val, str) and any(s in key.lower() for s in _SENSITIVE_EXTRA_KEYS):
                extra[key] = _mask(val)
    return True


class InterceptHandler(logging.Handler):
    """Route stdlib logging (uvicorn, fastapi) into loguru."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            level: str | int = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno
        frame, depth = logging.currentframe(), 2
        while frame is not None and frame.f_code.co_filename == logging.__file__:
            frame = frame.f_back
            depth += 1
        logger.opt(depth=depth, exception=record.exc_info).log(level, record.getMessage())


def setup_logging(level: str | None = None) -> None:
    """Replace loguru's default handler with a filtered stderr sink."""
    logger.remove()
    logger.add(
        sys.stderr,
        level=(level or LOG_LEVEL).upper(),
        format=(
            "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
            "<level>{level: <8}</level> | "
            "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - "
            "<level>{message}</level>"
        ),
        backtrace=True,
        diagnose=False,
        filter=sensitive_data_filter,
    )
    logging.basicConfig(handlers=[InterceptHandler()], level=0, force=True)
    logger.debug(f"Logging initialized with level: {(level or LOG_LEVEL).upper()}")
