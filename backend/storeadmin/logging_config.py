"""
Logging configuration

Sets up:
- Console output
- Rotating file logs (when a log directory is configured)
- Optional JSON formatting for log aggregation
- Request/response logging middleware
"""
import json
import logging
import logging.handlers
import sys
import time
import uuid
from datetime import datetime
from pathlib import Path
from typing import Optional

TEXT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Attributes passed via `extra=` that are copied into JSON records
EXTRA_FIELDS = (
    "request_id",
    "method",
    "path",
    "status_code",
    "duration_ms",
    "mail_to",
)


class JSONFormatter(logging.Formatter):
    """Formats records as one JSON object per line"""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.utcnow().isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        for field in EXTRA_FIELDS:
            if hasattr(record, field):
                log_data[field] = getattr(record, field)

        return json.dumps(log_data, default=str)


def _make_formatter(enable_json: bool) -> logging.Formatter:
    if enable_json:
        return JSONFormatter()
    return logging.Formatter(TEXT_FORMAT, datefmt=DATE_FORMAT)


def setup_logging(
    log_level: str = "INFO",
    log_dir: Optional[str] = None,
    app_name: str = "storeadmin",
    enable_json: bool = False
):
    """
    Configure application logging

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_dir: Directory for log files. If empty, only console logging is enabled.
        app_name: Application name for log files
        enable_json: Enable JSON formatting for structured logging
    """
    level = getattr(logging, log_level.upper())

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(_make_formatter(enable_json))
    root_logger.addHandler(console_handler)

    if log_dir:
        log_path = Path(log_dir)
        log_path.mkdir(parents=True, exist_ok=True)

        # Main log plus an errors-only log, both rotated at 10MB
        for suffix, handler_level in (("", level), ("-error", logging.ERROR)):
            handler = logging.handlers.RotatingFileHandler(
                log_path / f"{app_name}{suffix}.log",
                maxBytes=10 * 1024 * 1024,
                backupCount=5,
                encoding="utf-8"
            )
            handler.setLevel(handler_level)
            handler.setFormatter(_make_formatter(enable_json))
            root_logger.addHandler(handler)

        logging.info(f"File logging enabled: {log_path / f'{app_name}.log'}")

    # Reduce noise from third-party libraries
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)

    logging.info(f"Logging configured: level={log_level}, json={enable_json}")


async def log_requests_middleware(request, call_next):
    """
    Log each HTTP request and its outcome, and tag the response with X-Request-ID
    """
    request_id = str(uuid.uuid4())[:8]
    request.state.request_id = request_id

    logger = logging.getLogger("storeadmin.requests")
    context = {
        "request_id": request_id,
        "method": request.method,
        "path": request.url.path,
    }
    logger.info(f"Request started: {request.method} {request.url.path}", extra=context)

    start_time = time.time()
    try:
        response = await call_next(request)
    except Exception as e:
        duration_ms = round((time.time() - start_time) * 1000, 2)
        logger.error(
            f"Request failed: {request.method} {request.url.path} - {str(e)}",
            extra={**context, "duration_ms": duration_ms},
            exc_info=True
        )
        raise

    duration_ms = round((time.time() - start_time) * 1000, 2)
    logger.info(
        f"Request completed: {request.method} {request.url.path} - {response.status_code}",
        extra={**context, "status_code": response.status_code, "duration_ms": duration_ms}
    )

    response.headers["X-Request-ID"] = request_id
    return response
