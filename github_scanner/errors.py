"""
Error types for the scanner.

Components raise these; the pipeline decides whether to substitute a default
and continue with the next repository.
"""

from enum import Enum
from typing import Optional


class ErrorKind(str, Enum):
    TRANSPORT = "transport"
    DECODE = "decode"
    INVALID_INPUT = "invalid_input"
    SINK = "sink"
    CONFIG = "config"


class ScannerError(Exception):
    """Base class for every error raised by github_scanner."""

    kind: ErrorKind = ErrorKind.TRANSPORT

    def __init__(self, message: str, target: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.target = target

    def __str__(self) -> str:
        if self.target:
            return f"{self.message} ({self.target})"
        return self.message


class TransportError(ScannerError):
    """Network failure or non-success HTTP status."""
    kind = ErrorKind.TRANSPORT


class DecodeError(ScannerError):
    """Malformed JSON, missing fields or undecodable file content."""
    kind = ErrorKind.DECODE


class InvalidInputError(ScannerError):
    """Input string that does not route to a user or a repository."""
    kind = ErrorKind.INVALID_INPUT


class SinkError(ScannerError):
    """Spreadsheet or ingest endpoint rejected a call."""
    kind = ErrorKind.SINK


class ConfigError(ScannerError):
    """Missing or malformed startup configuration."""
    kind = ErrorKind.CONFIG
