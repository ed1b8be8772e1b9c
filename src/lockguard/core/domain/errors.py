from __future__ import annotations

from typing import Optional

from .enums import Ecosystem


class LockguardError(Exception):
    """Base class for every error the scanner reports to callers."""


class NotFoundError(LockguardError):
    """No recognized lockfile, or the target path is not a usable directory."""

    def __init__(self, path: str, message: str) -> None:
        super().__init__(f"{message}: {path}")
        self.path = path


class ParseError(LockguardError):
    """A lockfile could not be parsed. Recorded per file; the scan goes on."""

    def __init__(self, path: str, cause: str) -> None:
        super().__init__(f"Failed to parse {path}: {cause}")
        self.path = path
        self.cause = cause


class ScanInProgressError(LockguardError):
    def __init__(self, directory: str) -> None:
        super().__init__(f"A scan is already running for {directory}")
        self.directory = directory


class ScanCancelledError(LockguardError):
    def __init__(self, directory: str) -> None:
        super().__init__(f"Scan cancelled for {directory}")
        self.directory = directory


class NetworkError(LockguardError):
    """Advisory refresh failed. The cache is left as it was."""

    def __init__(self, source: str, cause: str, ecosystem: Optional[Ecosystem] = None) -> None:
        where = f"{source}/{ecosystem.value}" if ecosystem is not None else source
        super().__init__(f"Advisory refresh from {where} failed: {cause}")
        self.source = source
        self.ecosystem = ecosystem
        self.cause = cause


class IoError(LockguardError):
    """Filesystem access failed; fatal to the scan that hit it."""

    def __init__(self, path: str, cause: str) -> None:
        super().__init__(f"I/O error on {path}: {cause}")
        self.path = path
        self.cause = cause
