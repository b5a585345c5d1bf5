"""
Logging Service for PasteShare
Provides structured logging with JSON format and request correlation IDs.
"""

import json
import logging
import logging.config
import sys
import time
import traceback
import uuid
from datetime import datetime
from typing import Dict, Any, Optional
from contextvars import ContextVar

# Context variable for request correlation
request_id_var: ContextVar[Optional[str]] = ContextVar('request_id', default=None)

_RESERVED_RECORD_KEYS = frozenset([
    'name', 'msg', 'args', 'levelname', 'levelno', 'pathname', 'filename',
    'module', 'lineno', 'funcName', 'created', 'msecs', 'relativeCreated',
    'thread', 'threadName', 'processName', 'process', 'getMessage', 'exc_info',
    'exc_text', 'stack_info', 'taskName', 'message', 'asctime',
])

class JSONFormatter(logging.Formatter):
    """Custom JSON formatter for structured logging"""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON"""
        log_data = {
            'timestamp': datetime.utcnow().isoformat() + 'Z',
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage(),
            'module': record.module,
            'function': record.funcName,
            'line': record.lineno,
        }

        request_id = request_id_var.get()
        if request_id:
            log_data['request_id'] = request_id

        if record.exc_info:
            log_data['exception'] = {
                'type': record.exc_info[0].__name__,
                'message': str(record.exc_info[1]),
                'traceback': traceback.format_exception(*record.exc_info)
            }

        extra_fields = {
            key: value for key, value in record.__dict__.items()
            if key not in _RESERVED_RECORD_KEYS
        }
        if extra_fields:
            log_data['extra'] = extra_fields

        return json.dumps(log_data, default=str, ensure_ascii=False)

class PasteLoggerAdapter(logging.LoggerAdapter):
    """Logger adapter that attaches the request id to every record"""

    def __init__(self, logger: logging.Logger, extra: Dict[str, Any] = None):
        super().__init__(logger, extra or {})

    def process(self, msg: str, kwargs: Dict[str, Any]) -> tuple:
        extra = dict(kwargs.get('extra') or {})
        if self.extra:
            extra.update(self.extra)

        request_id = request_id_var.get()
        if request_id:
            extra['request_id'] = request_id

        kwargs['extra'] = extra
        return msg, kwargs

    def log_paste_event(self, level: int, event_type: str, paste_id: str = None,
                        message: str = "", **kwargs):
        """Log paste lifecycle events"""
        extra = {
            'event_type': event_type,
            'paste_id': paste_id,
            **kwargs
        }
        self.log(level, message, extra=extra)

    def log_api_request(self, method: str, endpoint: str, status_code: int,
                        duration_ms: float, **kwargs):
        """Log API request events"""
        extra = {
            'event_type': 'api_request',
            'method': method,
            'endpoint': endpoint,
            'status_code': status_code,
            'duration_ms': duration_ms,
            **kwargs
        }
        self.info(f"{method} {endpoint} - {status_code} ({duration_ms}ms)", extra=extra)

def build_logging_config(level: str = "INFO", json_format: bool = True) -> Dict[str, Any]:
    """dictConfig for the application, uvicorn and SQLAlchemy loggers"""
    formatter = 'json' if json_format else 'simple'
    return {
        'version': 1,
        'disable_existing_loggers': False,
        'formatters': {
            'json': {
                '()': JSONFormatter,
            },
            'simple': {
                'format': '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
            }
        },
        'handlers': {
            'console': {
                'class': 'logging.StreamHandler',
                'level': level,
                'formatter': formatter,
                'stream': sys.stdout
            },
        },
        'loggers': {
            'pasteshare': {
                'level': level,
                'handlers': ['console'],
                'propagate': False
            },
            'uvicorn': {
                'level': 'INFO',
                'handlers': ['console'],
                'propagate': False
            },
            'sqlalchemy': {
                'level': 'WARNING',
                'handlers': ['console'],
                'propagate': False
            }
        },
        'root': {
            'level': level,
            'handlers': ['console']
        }
    }

def setup_logging(level: str = "INFO", json_format: bool = True):
    """Setup logging configuration"""
    logging.config.dictConfig(build_logging_config(level.upper(), json_format))

def get_api_logger() -> PasteLoggerAdapter:
    """Get API logger"""
    return PasteLoggerAdapter(logging.getLogger("pasteshare.api"))

# Middleware for request logging
class LoggingMiddleware:
    """Middleware for request/response logging"""

    def __init__(self, app):
        self.app = app
        self.logger = get_api_logger()

    async def __call__(self, scope, receive, send):
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        request_id = str(uuid.uuid4())
        start_time = time.time()
        token = request_id_var.set(request_id)

        # Add request_id to scope for access in endpoints
        scope["request_id"] = request_id

        async def send_wrapper(message):
            if message["type"] == "http.response.start":
                duration_ms = round((time.time() - start_time) * 1000, 2)
                self.logger.log_api_request(
                    method=scope["method"],
                    endpoint=scope["path"],
                    status_code=message["status"],
                    duration_ms=duration_ms,
                )
                headers = list(message.get("headers", []))
                headers.append((b"x-request-id", request_id.encode("latin-1")))
                message = {**message, "headers": headers}

            await send(message)

        try:
            await self.app(scope, receive, send_wrapper)
        finally:
            request_id_var.reset(token)
