#!/usr/bin/env python3
"""
Exception hierarchy for the feed ingestion pipeline.

Every per-feed failure carries a stable machine-readable code and a
human-readable message so the batch scheduler can report it without
letting it escape the batch.
"""

from enum import Enum
from typing import Optional, Dict, Any


class FeedReaderError(Exception):
    """Base exception for all feed reader errors."""

    def __init__(self, message: str, error_code: Optional[str] = None, context: Optional[Dict[str, Any]] = None):
        """
        Initialize base exception.

        Args:
            message: Human-readable error message
            error_code: Machine-readable error code
            context: Additional error context
        """
        super().__init__(message)
        self.message = message
        self.error_code = error_code or self.__class__.__name__
        self.context = context or {}

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for logging/serialization."""
        return {
            'error_type': self.__class__.__name__,
            'error_code': self.error_code,
            'message': self.message,
            'context': self.context
        }


class FetchErrorCode(str, Enum):
    """Failure kinds reported for a single feed fetch."""
    NETWORK = 'NETWORK'
    HTTP_ERROR = 'HTTP_ERROR'
    PARSE_ERROR = 'PARSE_ERROR'
    TIMEOUT = 'TIMEOUT'
    UNKNOWN = 'UNKNOWN'


# Fetch-related exceptions
class FeedFetchError(FeedReaderError):
    """A feed could not be fetched, read or parsed."""

    def __init__(self, code: FetchErrorCode, message: str, status: Optional[int] = None,
                 url: Optional[str] = None):
        context: Dict[str, Any] = {}
        if status is not None:
            context['status'] = status
        if url:
            context['url'] = url
        super().__init__(message, error_code=FetchErrorCode(code).value, context=context)
        self.code = FetchErrorCode(code)
        self.status = status


class FeedParseError(FeedReaderError):
    """Feed body could not be structurally parsed into a known format."""

    def __init__(self, reason: str, original_error: Optional[Exception] = None):
        context = {'reason': reason}
        if original_error is not None:
            context['original_error'] = str(original_error)
        super().__init__(f"Failed to parse feed content: {reason}", context=context)


# Database-related exceptions
class DatabaseError(FeedReaderError):
    """Database operation or connection failed."""
    pass


class DatabaseOperationError(DatabaseError):
    """A single store operation failed."""

    def __init__(self, operation: str, table: str, original_error: Exception):
        message = f"Database {operation} failed on table {table}"
        context = {
            'operation': operation,
            'table': table,
            'original_error': str(original_error)
        }
        super().__init__(message, context=context)


# Configuration-related exceptions
class ConfigurationError(FeedReaderError):
    """Configuration is invalid or missing."""

    def __init__(self, config_key: str, issue: str):
        message = f"Configuration error for {config_key}: {issue}"
        context = {
            'config_key': config_key,
            'issue': issue
        }
        super().__init__(message, context=context)


# Validation-related exceptions
class InvalidFeedUrlError(FeedReaderError):
    """Feed URL failed validation and must not be fetched."""

    def __init__(self, url: str, reason: str):
        message = f"Invalid feed url {url}: {reason}"
        context = {
            'url': url,
            'reason': reason
        }
        super().__init__(message, context=context)
