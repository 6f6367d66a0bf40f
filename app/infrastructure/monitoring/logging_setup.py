import logging
import sys
import time
import uuid
from datetime import datetime
from typing import Dict, Any, Optional

from pythonjsonlogger import jsonlogger
from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

from app.core.config import settings


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    """JSON formatter adding service and call-site fields to every record."""

    def add_fields(self, log_record, record, message_dict):
        super().add_fields(log_record, record, message_dict)
        log_record['timestamp'] = datetime.fromtimestamp(record.created).isoformat()
        log_record['level'] = record.levelname
        log_record['service'] = settings.SERVICE_NAME
        log_record['logger'] = record.name
        log_record['module'] = record.module
        log_record['function'] = record.funcName
        log_record['line'] = record.lineno


class LoggingMiddleware(BaseHTTPMiddleware):
    """Assigns a request id and logs each request/response pair with its duration."""

    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get("x-request-id") or str(uuid.uuid4())
        request.state.request_id = request_id

        logger = get_logger(__name__)
        logger.info(
            "Incoming request",
            extra={
                'request_id': request_id,
                'method': request.method,
                'path': request.url.path,
                'user_agent': request.headers.get('user-agent'),
                'remote_addr': request.client.host if request.client else None,
            },
        )

        start_time = time.time()
        response = await call_next(request)
        duration = time.time() - start_time

        logger.info(
            "Outgoing response",
            extra={
                'request_id': request_id,
                'status_code': response.status_code,
                'duration_ms': round(duration * 1000, 2),
                'endpoint': request.url.path,
            },
        )
        response.headers["X-Request-ID"] = request_id
        return response


def setup_logging():
    """Install the JSON handler on the root logger."""
    logger = logging.getLogger()
    logger.handlers.clear()
    logger.setLevel(logging.INFO if not settings.DEBUG else logging.DEBUG)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        CustomJsonFormatter('%(timestamp)s %(level)s %(service)s %(module)s %(function)s %(line)d %(message)s')
    )
    logger.addHandler(handler)

    # Access logs are replaced by LoggingMiddleware
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    """Get a logger, configuring the root logger on first use."""
    if not logging.getLogger().handlers:
        setup_logging()
    return logging.getLogger(name)


def log_error(
    logger: logging.Logger,
    error: Exception,
    context: Optional[str] = None,
    user_id: Optional[str] = None,
    extra_data: Optional[Dict[str, Any]] = None,
):
    """Log an error with structured data."""
    log_data = {
        'event': 'error',
        'error_type': type(error).__name__,
        'error_message': str(error),
        'context': context,
        'user_id': user_id,
    }
    if extra_data:
        log_data.update(extra_data)

    logger.error("Error occurred", extra=log_data)


def log_performance(
    logger: logging.Logger,
    operation: str,
    duration: float,
    resource: Optional[str] = None,
    user_id: Optional[str] = None,
    extra_data: Optional[Dict[str, Any]] = None,
):
    """Log performance metrics."""
    log_data = {
        'event': 'performance',
        'operation': operation,
        'duration_ms': round(duration * 1000, 2),
        'resource': resource,
        'user_id': user_id,
    }
    if extra_data:
        log_data.update(extra_data)

    logger.info("Performance metric", extra=log_data)


def log_source_transition(
    logger: logging.Logger,
    source_id: str,
    from_status: Optional[str],
    to_status: str,
    trigger: str,
    extra_data: Optional[Dict[str, Any]] = None,
):
    """Log a source status change. ``trigger`` names what caused it (dispatch, callback, sweep)."""
    log_data = {
        'event': 'source_transition',
        'source_id': source_id,
        'from_status': getattr(from_status, "value", from_status),
        'to_status': getattr(to_status, "value", to_status),
        'trigger': trigger,
    }
    if extra_data:
        log_data.update(extra_data)

    logger.info(f"Source {source_id} -> {log_data['to_status']} ({trigger})", extra=log_data)
