# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_gateway

import logging
import os
import sys
from typing import Any

from loguru import logger
from opentelemetry import trace

__all__ = ["logger", "configure_logging", "add_file_sink"]

TEXT_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - "
    "<level>{message}</level>"
)


class InterceptHandler(logging.Handler):
    """
    Redirects standard logging messages to Loguru.
    Ensures libraries using standard logging (httpx, authlib) are captured uniformly.
    """

    def emit(self, record: logging.LogRecord) -> None:
        # Get corresponding Loguru level if it exists
        try:
            level = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno  # type: ignore[assignment]

        # Find caller from where originated the logged message
        frame = logging.currentframe()
        depth = 2
        while frame and (frame.f_code.co_filename == logging.__file__ or frame.f_code.co_filename == __file__):
            frame = frame.f_back
            depth += 1

        logger.opt(depth=depth, exception=record.exc_info).log(level, record.getMessage())


def trace_id_injector(record: dict[str, Any]) -> None:
    """
    Injects OpenTelemetry trace_id and span_id into the log record.
    Used as a patcher for Loguru.
    """
    ctx = trace.get_current_span().get_span_context()
    if ctx.is_valid:
        record["extra"]["trace_id"] = format(ctx.trace_id, "032x")
        record["extra"]["span_id"] = format(ctx.span_id, "016x")


def _resolve_level() -> str:
    log_level = os.getenv("COREASON_GATEWAY_LOG_LEVEL", "INFO").upper()
    try:
        logger.level(log_level)
    except ValueError:
        log_level = "INFO"
    return log_level


def configure_logging() -> None:
    """
    Configures the console logger based on environment variables.
    Call this to reload configuration if env vars change.
    """
    log_level = _resolve_level()
    log_json = os.getenv("COREASON_GATEWAY_LOG_JSON", "false").lower() == "true"

    # Remove default handler and any previously added handlers
    logger.configure(handlers=[], patcher=trace_id_injector)

    if log_json:
        # JSON logs to stdout are preferred for containerized environments
        logger.add(sys.stdout, level=log_level, serialize=True)
    else:
        logger.add(sys.stderr, level=log_level, format=TEXT_FORMAT)

    # Intercept standard logging
    logging.basicConfig(handlers=[InterceptHandler()], level=0, force=True)

    numeric_level = logging.getLevelName(log_level)
    if isinstance(numeric_level, int):
        logging.getLogger().setLevel(numeric_level)
    else:
        logging.getLogger().setLevel(logging.INFO)


def add_file_sink(
    path: str,
    max_size_mb: int,
    max_age_days: int,
    compress: bool = False,
    local_time: bool = True,
) -> int:
    """
    Adds a rotating file sink.

    Args:
        path: The log file.
        max_size_mb: Rotate once the file reaches this size. Zero disables rotation.
        max_age_days: Delete rotated files older than this. Zero keeps them forever.
        compress: Zip rotated files.
        local_time: Timestamp with local time instead of UTC.

    Returns:
        int: The loguru handler id.
    """
    time_token = "{time:YYYY-MM-DD HH:mm:ss}" if local_time else "{time:YYYY-MM-DD HH:mm:ss!UTC}"
    file_format = f"{time_token} | {{level: <8}} | {{name}}:{{function}}:{{line}} - {{message}}"

    return logger.add(
        path,
        level=_resolve_level(),
        format=file_format,
        rotation=f"{max_size_mb} MB" if max_size_mb > 0 else None,
        retention=f"{max_age_days} days" if max_age_days > 0 else None,
        compression="zip" if compress else None,
        enqueue=True,
    )


# Initialize on import
configure_logging()
