"""
Logging configuration for the TLS-RPT notifier

Sets up:
- Console output (plain or JSON)
- Optional rotating file logs (application + errors)
- Request logging middleware with a short request ID
"""
import logging
import logging.handlers
import sys
import time
import uuid
import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


class JSONFormatter(logging.Formatter):
    """JSON formatter for log aggregation"""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        # Request middleware extras
        for field in ("request_id", "duration_ms", "domain", "outcome"):
            if hasattr(record, field):
                log_data[field] = getattr(record, field)

        return json.dumps(log_data)


def _make_formatter(enable_json: bool) -> logging.Formatter:
    if enable_json:
        return JSONFormatter()
    return logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)


def setup_logging(
    log_level: str = "INFO",
    log_dir: Optional[str] = None,
    app_name: str = "tlsrpt-notifier",
    enable_json: bool = False
):
    """
    Configure application logging

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_dir: Directory for log files. If empty, only console logging is enabled.
        app_name: Application name used for log file names
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

        app_log_file = log_path / f"{app_name}.log"
        file_handler = logging.handlers.RotatingFileHandler(
            app_log_file,
            maxBytes=10 * 1024 * 1024,  # 10MB
            backupCount=5,
            encoding="utf-8"
        )
        file_handler.setLevel(level)
        file_handler.setFormatter(_make_formatter(enable_json))
        root_logger.addHandler(file_handler)

        # Errors only
        error_handler = logging.handlers.RotatingFileHandler(
            log_path / f"{app_name}-error.log",
            maxBytes=10 * 1024 * 1024,
            backupCount=5,
            encoding="utf-8"
        )
        error_handler.setLevel(logging.ERROR)
        error_handler.setFormatter(_make_formatter(enable_json))
        root_logger.addHandler(error_handler)

        logging.info(f"File logging enabled: {app_log_file}")

    # Reduce noise from third-party libraries
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("aiosmtplib").setLevel(logging.WARNING)

    logging.info(f"Logging configured: level={log_level}, json={enable_json}")


async def log_requests_middleware(request, call_next):
    """Log each HTTP request and its outcome, tagging it with a request ID"""
    request_id = str(uuid.uuid4())[:8]
    request.state.request_id = request_id

    logger = logging.getLogger("tlsrpt_notifier.requests")
    logger.info(
        f"Request started: {request.method} {request.url.path}",
        extra={
            "request_id": request_id,
            "client": request.client.host if request.client else None
        }
    )

    start_time = time.time()
    try:
        response = await call_next(request)
    except Exception as e:
        duration_ms = (time.time() - start_time) * 1000
        logger.error(
            f"Request failed: {request.method} {request.url.path} - {str(e)}",
            extra={"request_id": request_id, "duration_ms": round(duration_ms, 2)},
            exc_info=True
        )
        raise

    duration_ms = (time.time() - start_time) * 1000
    logger.info(
        f"Request completed: {request.method} {request.url.path} - {response.status_code}",
        extra={"request_id": request_id, "duration_ms": round(duration_ms, 2)}
    )

    response.headers["X-Request-ID"] = request_id
    return response
