"""lockguard package: app/core/infra/parsers.

Expose library-friendly API client at the package level.
"""

from .app.api import AppConfig, LockguardClient
from .core.domain.errors import (
    IoError,
    LockguardError,
    NetworkError,
    NotFoundError,
    ParseError,
    ScanCancelledError,
    ScanInProgressError,
)

import logging

logger = logging.getLogger(__name__)
logger.addHandler(logging.NullHandler())

__all__ = [
    "LockguardClient",
    "AppConfig",
    "LockguardError",
    "NotFoundError",
    "ParseError",
    "ScanInProgressError",
    "ScanCancelledError",
    "NetworkError",
    "IoError",
]
