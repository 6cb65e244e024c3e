import json
import logging
import re
from datetime import datetime
from typing import Dict, Any, Optional
from contextvars import ContextVar

# Context variables for correlation
request_id_var: ContextVar[Optional[str]] = ContextVar('request_id', default=None)
user_id_var: ContextVar[Optional[str]] = ContextVar('user_id', default=None)
provider_var: ContextVar[Optional[str]] = ContextVar('provider', default=None)
stage_var: ContextVar[Optional[str]] = ContextVar('stage', default=None)


class SecretMasker:
    """Masks sensitive information in log messages."""

    def __init__(self):
        """Initialize secret masker with patterns."""
        self.patterns = [
            # Generic tokens, keys and passwords
            r'(?i)(token|secret|password|auth)[\s]*[:=][\s]*["\']?([a-zA-Z0-9\-_\.]{10,})["\']?',
            # Provider API keys, as config entries or query parameters
            r'(?i)(lastfm_api_key|youtube_api_key|api_key|key)[\s]*[:=][\s]*["\']?([a-zA-Z0-9\-_\.]{10,})["\']?',
            # Authorization headers
            r'(?i)(authorization|bearer)[\s]*[:=][\s]*["\']?([a-zA-Z0-9\-_\.]{50,})["\']?',
        ]

        self.compiled_patterns = [re.compile(pattern) for pattern in self.patterns]

    def mask_secrets(self, text: str) -> str:
        """Mask sensitive information in text."""
        if not text:
            return text

        masked_text = text

        for pattern in self.compiled_patterns:
            def replace_match(match):
                prefix = match.group(1)
                secret = match.group(2)
                # Keep first 4 and last 4 characters, mask the rest
                if len(secret) > 8:
                    masked_secret = secret[:4] + '*' * (len(secret) - 8) + secret[-4:]
                else:
                    masked_secret = '*' * len(secret)
                return f"{prefix}: {masked_secret}"

            masked_text = pattern.sub(replace_match, masked_text)

        return masked_text

    def mask_dict(self, data: Dict[str, Any]) -> Dict[str, Any]:
        """Mask sensitive information in dictionary."""
        if not data:
            return data

        masked_data = {}

        for key, value in data.items():
            if isinstance(value, str):
                masked_data[key] = self.mask_secrets(value)
            elif isinstance(value, dict):
                masked_data[key] = self.mask_dict(value)
            elif isinstance(value, list):
                masked_data[key] = [self.mask_dict(item) if isinstance(item, dict)
                                  else self.mask_secrets(item) if isinstance(item, str)
                                  else item for item in value]
            else:
                masked_data[key] = value

        return masked_data


class StructuredFormatter(logging.Formatter):
    """JSON formatter for structured logging."""

    def __init__(self):
        """Initialize formatter."""
        super().__init__()
        self.masker = SecretMasker()

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        request_id = request_id_var.get()
        user_id = user_id_var.get()
        provider = provider_var.get()
        stage = stage_var.get()

        log_entry = {
            'ts': datetime.utcnow().isoformat() + 'Z',
            'level': record.levelname,
            'logger': record.name,
            'message': self.masker.mask_secrets(record.getMessage()),
            'module': record.module,
            'function': record.funcName,
            'line': record.lineno
        }

        if request_id:
            log_entry['requestId'] = request_id
        if user_id:
            log_entry['userId'] = user_id
        if provider:
            log_entry['provider'] = provider
        if stage:
            log_entry['stage'] = stage

        if record.exc_info:
            log_entry['exception'] = self.formatException(record.exc_info)

        if hasattr(record, 'fields') and record.fields:
            log_entry['fields'] = self.masker.mask_dict(record.fields)

        return json.dumps(log_entry, ensure_ascii=False)


class CorrelationContext:
    """Context manager for correlation data."""

    _VARS = {
        'request_id': request_id_var,
        'user_id': user_id_var,
        'provider': provider_var,
        'stage': stage_var,
    }

    def __init__(self, request_id: Optional[str] = None,
                 user_id: Optional[str] = None,
                 provider: Optional[str] = None,
                 stage: Optional[str] = None):
        """Initialize correlation context."""
        self._values = {
            'request_id': request_id,
            'user_id': user_id,
            'provider': provider,
            'stage': stage,
        }
        self._tokens = {}

    def __enter__(self):
        """Set correlation context."""
        for name, value in self._values.items():
            if value is not None:
                self._tokens[name] = self._VARS[name].set(value)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Restore correlation context."""
        for name, token in self._tokens.items():
            self._VARS[name].reset(token)
        self._tokens = {}


def setup_logging(level: str = 'INFO',
                  log_file: Optional[str] = None) -> logging.Logger:
    """Setup structured logging for the ``auraluxe`` logger tree."""
    logger = logging.getLogger('auraluxe')
    logger.setLevel(getattr(logging, level.upper()))

    logger.handlers.clear()

    formatter = StructuredFormatter()

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    return logger


def get_logger(name: str = 'auraluxe') -> logging.Logger:
    """Get logger with structured formatting."""
    return logging.getLogger(name)


def log_with_fields(logger: logging.Logger, level: str, message: str,
                    fields: Optional[Dict[str, Any]] = None, **kwargs):
    """Log message with additional fields."""
    levelno = getattr(logging, level.upper())
    if not logger.isEnabledFor(levelno):
        return
    record = logger.makeRecord(
        logger.name, levelno, '', 0, message, (), None
    )

    record.fields = dict(fields or {})
    record.fields.update(kwargs)

    logger.handle(record)


def log_search_start(logger: logging.Logger, request_id: str, query: str,
                     limit: int, providers: list, **kwargs):
    """Log start of a provider fan-out."""
    with CorrelationContext(request_id=request_id, stage='search_start'):
        log_with_fields(logger, 'INFO', 'Search started', {
            'query': query,
            'limit': limit,
            'providers': providers,
            **kwargs
        })


def log_provider_failure(logger: logging.Logger, provider: str, operation: str,
                         error: Exception, **kwargs):
    """Log a contained provider failure."""
    with CorrelationContext(provider=provider, stage='provider_failure'):
        log_with_fields(logger, 'WARNING', 'Provider call failed', {
            'operation': operation,
            'error_type': type(error).__name__,
            'error_message': str(error),
            **kwargs
        })


def log_search_complete(logger: logging.Logger, request_id: str,
                        result_count: int, total: int, duration_ms: int, **kwargs):
    """Log completion of a provider fan-out."""
    with CorrelationContext(request_id=request_id, stage='search_complete'):
        log_with_fields(logger, 'INFO', 'Search completed', {
            'result_count': result_count,
            'total': total,
            'duration_ms': duration_ms,
            **kwargs
        })


def log_error(logger: logging.Logger, message: str, error: Exception, **kwargs):
    """Log error with exception details."""
    log_with_fields(logger, 'ERROR', message, {
        'error_type': type(error).__name__,
        'error_message': str(error),
        **kwargs
    })
