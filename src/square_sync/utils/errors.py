"""
Error handling framework for the square-sync server.

This module provides:
- Hierarchical exception classes
- Error context preservation
- Structured error payloads that can be sent to clients
"""

from typing import Optional, Dict, Any, List
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum


class ErrorSeverity(Enum):
    """Error severity levels."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class ErrorCategory(Enum):
    """Error categories for classification."""
    SYSTEM = "system"
    NETWORK = "network"
    VALIDATION = "validation"
    CONFIGURATION = "configuration"
    SYNC = "sync"
    UNKNOWN = "unknown"


@dataclass
class ErrorContext:
    """Context information for an error."""
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    connection_id: Optional[str] = None
    group: Optional[str] = None
    component: Optional[str] = None
    operation: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)


class SquareSyncError(Exception):
    """Base exception for all square-sync errors."""

    code: str = "SQUARE_SYNC_ERROR"
    default_message: str = "An error occurred in square-sync"
    severity: ErrorSeverity = ErrorSeverity.ERROR
    category: ErrorCategory = ErrorCategory.UNKNOWN

    def __init__(
        self,
        message: Optional[str] = None,
        context: Optional[ErrorContext] = None,
        cause: Optional[Exception] = None,
    ):
        self.message = message or self.default_message
        self.context = context or ErrorContext()
        self.cause = cause
        super().__init__(self.message)

    def get_suggestions(self) -> List[str]:
        """Get error resolution suggestions."""
        return []

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "error": {
                "code": self.code,
                "message": self.message,
                "severity": self.severity.value,
                "category": self.category.value,
                "suggestions": self.get_suggestions(),
                "context": {
                    "timestamp": self.context.timestamp.isoformat(),
                    "component": self.context.component,
                    "operation": self.context.operation,
                    "metadata": self.context.metadata,
                }
            }
        }


# Configuration Errors

class ConfigurationError(SquareSyncError):
    """Configuration errors."""
    code = "CONFIG_ERROR"
    default_message = "Configuration error"
    category = ErrorCategory.CONFIGURATION

    def get_suggestions(self) -> List[str]:
        return [
            "Check your configuration file syntax",
            "Check SQUARE_SYNC_* and PORT environment variables",
        ]


# Validation Errors

class ValidationError(SquareSyncError):
    """Input validation errors."""
    code = "VALIDATION_ERROR"
    default_message = "Validation error"
    category = ErrorCategory.VALIDATION
    severity = ErrorSeverity.WARNING

    def __init__(self, field: str, value: Any, constraint: str, **kwargs):
        self.field = field
        self.value = value
        self.constraint = constraint
        message = f"Validation failed for field '{field}': {constraint}"
        super().__init__(message, **kwargs)

    def get_suggestions(self) -> List[str]:
        return [f"Ensure '{self.field}' meets the constraint: {self.constraint}"]


class MalformedDeltaError(ValidationError):
    """A movement update that cannot be applied."""
    code = "MALFORMED_DELTA"
    default_message = "Malformed movement update"

    def get_suggestions(self) -> List[str]:
        return ["Send {\"xUpdate\": <number>, \"yUpdate\": <number>}"]


# Sync Errors

class SyncError(SquareSyncError):
    """Synchronization core errors."""
    code = "SYNC_ERROR"
    default_message = "Synchronization error"
    category = ErrorCategory.SYNC


class SyncNotRunningError(SyncError):
    """Raised when a command is submitted to a stopped core."""
    code = "SYNC_NOT_RUNNING"
    default_message = "Synchronization core is not running"


# Transport Errors

class TransportError(SquareSyncError):
    """Delivery failures in the messaging transport."""
    code = "TRANSPORT_ERROR"
    default_message = "Failed to deliver message"
    category = ErrorCategory.NETWORK


__all__ = [
    'SquareSyncError',
    'ErrorContext',
    'ErrorSeverity',
    'ErrorCategory',
    'ConfigurationError',
    'ValidationError',
    'MalformedDeltaError',
    'SyncError',
    'SyncNotRunningError',
    'TransportError',
]
