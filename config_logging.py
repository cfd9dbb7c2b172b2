#!/usr/bin/env python3
"""
VersionCompare Configuration & Logging Module
=============================================
Centralized configuration, structured logging, and the error taxonomy
shared by the comparison engine and its HTTP layer.

Version: module v1.2
"""

import os
import sys
import json
import logging
import uuid
import time
import threading
from datetime import datetime, timezone
from typing import Optional, Dict, Any, List
from pathlib import Path
from dataclasses import dataclass, field
from contextlib import contextmanager

# =============================================================================
# CONFIGURATION CONSTANTS
# =============================================================================
DEFAULT_COALESCE_GAP = 0            # Unchanged lines allowed inside one modified hunk
DEFAULT_LARGE_HUNK_LINES = 20       # Modified hunks above this escalate to high
DEFAULT_CACHE_SIZE = 256            # Cached comparisons kept in memory
DEFAULT_DECISION = "accept"         # Applied to hunks the reviewer did not decide
DEFAULT_MAX_REVIEWS = 100           # Open review sessions kept in memory
DEFAULT_CONTEXT_LINES = 3           # Unchanged lines around each unified-diff hunk
LOG_FILE_MAX_BYTES = 5 * 1024 * 1024  # 5MB max per log file
LOG_BACKUP_COUNT = 5                # Number of log backup files to keep

__version__ = "1.2.0"
VERSION = __version__
APP_NAME = "VersionCompare"

VALID_DECISIONS = ('accept', 'reject')
VALID_LOG_FORMATS = ('json', 'text')


def _env_flag(name: str, default: str) -> bool:
    return os.environ.get(name, default).lower() == 'true'


# =============================================================================
# ENVIRONMENT CONFIGURATION
# =============================================================================

@dataclass
class AppConfig:
    """Application configuration with local defaults."""

    # Server settings
    host: str = "127.0.0.1"  # Localhost only by default
    port: int = 5060
    debug: bool = False

    # Version store
    db_path: Path = field(default_factory=lambda: Path(__file__).parent / 'revisions.db')

    # Diff & classification tuning
    coalesce_gap: int = DEFAULT_COALESCE_GAP
    large_hunk_threshold: int = DEFAULT_LARGE_HUNK_LINES
    default_decision: str = DEFAULT_DECISION
    cache_size: int = DEFAULT_CACHE_SIZE
    max_reviews: int = DEFAULT_MAX_REVIEWS
    ignore_whitespace: bool = False
    ignore_case: bool = False
    context_lines: int = DEFAULT_CONTEXT_LINES

    # Logging
    log_dir: Path = field(default_factory=lambda: Path(__file__).parent / 'logs')
    log_level: str = "INFO"
    log_format: str = "json"  # Options: json, text
    log_to_file: bool = False
    log_to_console: bool = True

    def __post_init__(self):
        """Normalize paths and apply production overrides."""
        self.db_path = Path(self.db_path)
        self.log_dir = Path(self.log_dir)

        if self.log_to_file:
            self.log_dir.mkdir(parents=True, exist_ok=True)

        # Force debug=False in production environment
        if os.environ.get('VC_ENV', 'development').lower() == 'production':
            self.debug = False
            self.log_level = "WARNING"

    @classmethod
    def from_env(cls) -> 'AppConfig':
        """Load configuration from environment variables."""
        default_db = Path(__file__).parent / 'revisions.db'
        return cls(
            host=os.environ.get('VC_HOST', '127.0.0.1'),
            port=int(os.environ.get('VC_PORT', '5060')),
            debug=_env_flag('VC_DEBUG', 'false'),
            db_path=Path(os.environ.get('VC_DB_PATH', str(default_db))),
            coalesce_gap=int(os.environ.get('VC_COALESCE_GAP', str(DEFAULT_COALESCE_GAP))),
            large_hunk_threshold=int(os.environ.get('VC_LARGE_HUNK_LINES', str(DEFAULT_LARGE_HUNK_LINES))),
            default_decision=os.environ.get('VC_DEFAULT_DECISION', DEFAULT_DECISION).lower(),
            cache_size=int(os.environ.get('VC_CACHE_SIZE', str(DEFAULT_CACHE_SIZE))),
            max_reviews=int(os.environ.get('VC_MAX_REVIEWS', str(DEFAULT_MAX_REVIEWS))),
            ignore_whitespace=_env_flag('VC_IGNORE_WHITESPACE', 'false'),
            ignore_case=_env_flag('VC_IGNORE_CASE', 'false'),
            context_lines=int(os.environ.get('VC_CONTEXT_LINES', str(DEFAULT_CONTEXT_LINES))),
            log_level=os.environ.get('VC_LOG_LEVEL', 'INFO'),
            log_format=os.environ.get('VC_LOG_FORMAT', 'json'),
            log_to_file=_env_flag('VC_LOG_FILE', 'false'),
            log_to_console=_env_flag('VC_LOG_CONSOLE', 'true'),
        )

    def validate(self) -> tuple:
        """Validate configuration and return (is_valid, errors)."""
        errors: List[str] = []

        if self.coalesce_gap < 0:
            errors.append("coalesce_gap cannot be negative")

        if self.large_hunk_threshold < 1:
            errors.append("large_hunk_threshold must be at least 1")

        if self.cache_size < 0:
            errors.append("cache_size cannot be negative")

        if self.max_reviews < 1:
            errors.append("max_reviews must be at least 1")

        if self.context_lines < 0:
            errors.append("context_lines cannot be negative")

        if self.default_decision not in VALID_DECISIONS:
            errors.append(f"Invalid default_decision: {self.default_decision}. "
                          f"Must be one of {', '.join(VALID_DECISIONS)}")

        if self.log_format not in VALID_LOG_FORMATS:
            errors.append(f"Invalid log_format: {self.log_format}")

        return (len(errors) == 0, errors)


# Global config instance
_config: Optional[AppConfig] = None

def get_config() -> AppConfig:
    """Get or create the global configuration."""
    global _config
    if _config is None:
        _config = AppConfig.from_env()
    return _config


def set_config(config: AppConfig):
    """Install an explicit configuration (app factory, tests)."""
    global _config
    _config = config


def reset_config():
    """Reset the global configuration (for testing)."""
    global _config
    _config = None


# =============================================================================
# STRUCTURED LOGGING
# =============================================================================

class StructuredLogger:
    """Thread-safe structured JSON logger with correlation IDs."""

    _local = threading.local()

    def __init__(self, name: str, config: Optional[AppConfig] = None):
        self.name = name
        self.config = config or get_config()
        self._setup_logger()

    def _setup_logger(self):
        """Configure the underlying Python logger."""
        self.logger = logging.getLogger(self.name)
        self.logger.setLevel(getattr(logging, self.config.log_level.upper(), logging.INFO))
        self.logger.handlers.clear()
        self.logger.propagate = False

        if self.config.log_format == 'json':
            formatter = JsonFormatter()
        else:
            formatter = logging.Formatter(
                '%(asctime)s [%(levelname)s] %(name)s - %(message)s'
            )

        if self.config.log_to_console:
            console_handler = logging.StreamHandler(sys.stderr)
            console_handler.setFormatter(formatter)
            self.logger.addHandler(console_handler)

        # Rotating file handler keeps the log directory bounded
        if self.config.log_to_file:
            from logging.handlers import RotatingFileHandler
            log_file = self.config.log_dir / f"{self.name.lower()}.log"
            file_handler = RotatingFileHandler(
                log_file,
                maxBytes=LOG_FILE_MAX_BYTES,
                backupCount=LOG_BACKUP_COUNT,
                encoding='utf-8'
            )
            file_handler.setFormatter(formatter)
            self.logger.addHandler(file_handler)

        if not self.logger.handlers:
            self.logger.addHandler(logging.NullHandler())

    @classmethod
    def set_correlation_id(cls, correlation_id: str):
        """Set correlation ID for current thread."""
        cls._local.correlation_id = correlation_id

    @classmethod
    def get_correlation_id(cls) -> str:
        """Get correlation ID for current thread."""
        return getattr(cls._local, 'correlation_id', None) or str(uuid.uuid4())[:8]

    @classmethod
    def new_correlation_id(cls) -> str:
        """Generate and set a new correlation ID."""
        correlation_id = str(uuid.uuid4())[:12]
        cls.set_correlation_id(correlation_id)
        return correlation_id

    def _build_log_record(self, level: str, message: str, **kwargs) -> Dict[str, Any]:
        """Build a structured log record."""
        return {
            'timestamp': datetime.now(timezone.utc).isoformat().replace('+00:00', 'Z'),
            'level': level,
            'logger': self.name,
            'correlation_id': self.get_correlation_id(),
            'message': message,
            **kwargs
        }

    def _render(self, level: str, message: str, **kwargs) -> str:
        if self.config.log_format != 'json':
            return message
        return json.dumps(self._build_log_record(level, message, **kwargs), default=str)

    def debug(self, message: str, **kwargs):
        """Log debug message."""
        self.logger.debug(self._render('DEBUG', message, **kwargs))

    def info(self, message: str, **kwargs):
        """Log info message."""
        self.logger.info(self._render('INFO', message, **kwargs))

    def warning(self, message: str, **kwargs):
        """Log warning message."""
        self.logger.warning(self._render('WARNING', message, **kwargs))

    def error(self, message: str, exc_info: bool = False, **kwargs):
        """Log error message with optional exception info."""
        self.logger.error(self._render('ERROR', message, **kwargs), exc_info=exc_info)

    def exception(self, message: str, **kwargs):
        """Log exception with full traceback."""
        self.error(message, exc_info=True, **kwargs)

    @contextmanager
    def log_operation(self, operation: str, **context):
        """Context manager for logging operation start/end with timing."""
        start_time = time.time()
        self.debug(f"{operation} started", operation=operation, status='started', **context)
        try:
            yield
            duration_ms = (time.time() - start_time) * 1000
            self.info(f"{operation} completed", operation=operation, status='completed',
                      duration_ms=round(duration_ms, 2), **context)
        except Exception as e:
            duration_ms = (time.time() - start_time) * 1000
            self.warning(f"{operation} failed: {e}", operation=operation, status='failed',
                         duration_ms=round(duration_ms, 2), **context)
            raise


class JsonFormatter(logging.Formatter):
    """JSON log formatter.

    Messages already rendered by StructuredLogger pass through untouched;
    plain records from third-party loggers get wrapped.
    """

    def format(self, record: logging.LogRecord) -> str:
        message = record.getMessage()
        if message.startswith('{') and not record.exc_info:
            return message

        log_data = {
            'timestamp': datetime.now(timezone.utc).isoformat().replace('+00:00', 'Z'),
            'level': record.levelname,
            'logger': record.name,
            'message': message,
        }

        if record.exc_info:
            log_data['traceback'] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)


# Factory function for getting loggers
def get_logger(name: str) -> StructuredLogger:
    """Get a structured logger instance."""
    return StructuredLogger(name, get_config())


# =============================================================================
# ERROR TAXONOMY
# =============================================================================

class VersionCompareError(Exception):
    """Base exception for the version comparison engine."""

    def __init__(self, message: str, code: str = "UNKNOWN_ERROR",
                 status_code: int = 500, details: Optional[Dict] = None):
        super().__init__(message)
        self.message = message
        self.code = code
        self.status_code = status_code
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        """Convert to API response dict."""
        return {
            'success': False,
            'error': {
                'code': self.code,
                'message': self.message,
                'details': self.details
            }
        }


class ValidationError(VersionCompareError):
    """Malformed input at the wire boundary."""
    def __init__(self, message: str, field: Optional[str] = None, **kwargs):
        super().__init__(message, code="VALIDATION_ERROR", status_code=400,
                         details={'field': field, **kwargs})


class RevisionNotFound(VersionCompareError):
    """A revision (or a comparison/review derived from one) cannot be resolved."""
    def __init__(self, revision_id: Any, kind: str = "revision"):
        super().__init__(f"{kind.capitalize()} {revision_id} not found",
                         code="REVISION_NOT_FOUND", status_code=404,
                         details={'id': revision_id, 'kind': kind})
        self.revision_id = revision_id


class OverlappingDecisionConflict(VersionCompareError):
    """Decisions that cannot be applied independently."""
    def __init__(self, message: str, hunk_ids: Optional[List[str]] = None, **kwargs):
        super().__init__(message, code="DECISION_CONFLICT", status_code=409,
                         details={'hunk_ids': list(hunk_ids or []), **kwargs})
        self.hunk_ids = list(hunk_ids or [])


class InvalidSectionReference(VersionCompareError):
    """A decision names a hunk that is not part of the comparison."""
    def __init__(self, hunk_id: str, comparison_id: Optional[str] = None):
        super().__init__(f"Hunk {hunk_id} is not part of comparison {comparison_id}",
                         code="INVALID_HUNK_REFERENCE", status_code=422,
                         details={'hunk_id': hunk_id, 'comparison_id': comparison_id})
        self.hunk_id = hunk_id


class InvalidStateTransition(VersionCompareError):
    """Review session used outside its lifecycle."""
    def __init__(self, message: str, state: Optional[str] = None):
        super().__init__(message, code="INVALID_STATE", status_code=409,
                         details={'state': state})


class LineageError(VersionCompareError):
    """Version ordering or parent chain invariant violated."""
    def __init__(self, message: str, **kwargs):
        super().__init__(message, code="LINEAGE_ERROR", status_code=409, details=kwargs)
