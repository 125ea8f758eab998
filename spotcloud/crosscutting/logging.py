import json
import logging
import re
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, Dict, Optional

# Context variables for correlation
job_id_var: ContextVar[Optional[str]] = ContextVar('job_id', default=None)
playlist_id_var: ContextVar[Optional[str]] = ContextVar('playlist_id', default=None)
stage_var: ContextVar[Optional[str]] = ContextVar('stage', default=None)

ROOT_LOGGER_NAME = 'spotcloud'
TEXT_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


class SecretMasker:
    """Masks sensitive information in log messages."""

    def __init__(self):
        """Initialize secret masker with patterns."""
        # (pattern, separator used when rewriting the match)
        self.patterns = [
            # Catalog access tokens
            (r'(?i)(spotify_access_token|soundcloud_access_token|access_token)[\s]*[:=][\s]*["\']?([a-zA-Z0-9\-_\.]{10,})["\']?', ': '),
            # API tokens and keys
            (r'(?i)(token|key|secret|password|auth)[\s]*[:=][\s]*["\']?([a-zA-Z0-9\-_\.]{10,})["\']?', ': '),
            # Client secrets
            (r'(?i)(client_secret)[\s]*[:=][\s]*["\']?([a-zA-Z0-9\-_\.]{20,})["\']?', ': '),
            # Authorization header values ("OAuth <token>", "Bearer <token>")
            (r'(?i)\b(oauth|bearer)[ ]+([a-zA-Z0-9\-_\.]{10,})', ' '),
            # OAuth codes
            (r'(?i)(code|authorization_code)[\s]*[:=][\s]*["\']?([a-zA-Z0-9\-_\.]{20,})["\']?', ': '),
        ]

        self.compiled_patterns = [(re.compile(pattern), sep) for pattern, sep in self.patterns]

    @staticmethod
    def _mask_value(secret: str) -> str:
        # Keep first 4 and last 4 characters, mask the rest
        if len(secret) > 8:
            return secret[:4] + '*' * (len(secret) - 8) + secret[-4:]
        return '*' * len(secret)

    def mask_secrets(self, text: str) -> str:
        """Mask sensitive information in text."""
        if not text:
            return text

        masked_text = text

        for pattern, sep in self.compiled_patterns:
            masked_text = pattern.sub(
                lambda match: f"{match.group(1)}{sep}{self._mask_value(match.group(2))}",
                masked_text,
            )

        return masked_text

    def mask_dict(self, data: Dict[str, Any]) -> Dict[str, Any]:
        """Mask sensitive information in dictionary values."""
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
        super().__init__()
        self.masker = SecretMasker()

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as a JSON line."""
        log_entry = {
            'ts': datetime.now(timezone.utc).isoformat().replace('+00:00', 'Z'),
            'level': record.levelname,
            'logger': record.name,
            'message': self.masker.mask_secrets(record.getMessage()),
            'module': record.module,
            'function': record.funcName,
            'line': record.lineno
        }

        job_id = job_id_var.get()
        playlist_id = playlist_id_var.get()
        stage = stage_var.get()
        if job_id:
            log_entry['jobId'] = job_id
        if playlist_id:
            log_entry['playlistId'] = playlist_id
        if stage:
            log_entry['stage'] = stage

        if record.exc_info:
            log_entry['exception'] = self.formatException(record.exc_info)

        if getattr(record, 'fields', None):
            log_entry['fields'] = self.masker.mask_dict(record.fields)

        return json.dumps(log_entry, ensure_ascii=False)


class CorrelationContext:
    """Context manager setting correlation fields for the enclosed log records."""

    def __init__(self, job_id: Optional[str] = None,
                 playlist_id: Optional[str] = None,
                 stage: Optional[str] = None):
        self._values = {
            job_id_var: job_id,
            playlist_id_var: playlist_id,
            stage_var: stage,
        }
        self._tokens = []

    def __enter__(self):
        for var, value in self._values.items():
            if value is not None:
                self._tokens.append((var, var.set(value)))
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        for var, token in reversed(self._tokens):
            var.reset(token)
        self._tokens = []


def setup_logging(level: str = 'INFO',
                  log_file: Optional[str] = None,
                  json_format: bool = True) -> logging.Logger:
    """Configure the `spotcloud` logger hierarchy."""
    logger = logging.getLogger(ROOT_LOGGER_NAME)
    logger.setLevel(getattr(logging, level.upper()))
    logger.handlers.clear()

    formatter = StructuredFormatter() if json_format else logging.Formatter(TEXT_FORMAT)

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    return logger


def get_logger(name: str = ROOT_LOGGER_NAME) -> logging.Logger:
    return logging.getLogger(name)


def log_with_fields(logger: logging.Logger, level: str, message: str,
                    fields: Optional[Dict[str, Any]] = None, exc_info: bool = False, **kwargs) -> None:
    """Log message with additional structured fields."""
    extra_fields = dict(fields or {})
    extra_fields.update(kwargs)
    logger.log(getattr(logging, level.upper()), message,
               extra={'fields': extra_fields}, exc_info=exc_info)


def log_conversion_start(logger: logging.Logger, playlist_id: str, track_count: int, **kwargs) -> None:
    """Log conversion start."""
    with CorrelationContext(playlist_id=playlist_id, stage='matching'):
        log_with_fields(logger, 'INFO', 'Conversion started', {
            'track_count': track_count,
            **kwargs
        })


def log_conversion_complete(logger: logging.Logger, playlist_id: str,
                            success_count: int, failure_count: int, **kwargs) -> None:
    """Log conversion completion."""
    with CorrelationContext(playlist_id=playlist_id, stage='complete'):
        log_with_fields(logger, 'INFO', 'Conversion completed', {
            'success_count': success_count,
            'failure_count': failure_count,
            **kwargs
        })


def log_error(logger: logging.Logger, message: str, error: BaseException, **kwargs) -> None:
    """Log error with exception details."""
    log_with_fields(logger, 'ERROR', message, {
        'error_type': type(error).__name__,
        'error_message': str(error),
        **kwargs
    })
