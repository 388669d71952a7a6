"""
Structured error types for query rewriting.

Provides error context preservation, severity/category classification and
recovery hints so callers can either surface a failure or collapse it into
the empty-query signal used by dashboard builders.
"""

import inspect
import platform
import sys
import traceback
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional


class ErrorSeverity(str, Enum):
    """Error severity levels for categorization and response."""
    CRITICAL = "critical"    # Generation run cannot continue
    HIGH = "high"            # Query or configuration unusable
    MEDIUM = "medium"        # Output degraded
    LOW = "low"              # Cosmetic
    INFO = "info"            # Informational, no action required


class ErrorCategory(str, Enum):
    """Error categories for systematic handling."""
    PARSE = "parse"                   # Query text is not valid PromQL
    VALIDATION = "validation"         # Caller supplied invalid input
    CONFIGURATION = "configuration"   # Settings failed validation
    LOGIC = "logic"                   # Internal logic errors


class RecoveryStrategy(str, Enum):
    """Recovery strategies for different error types."""
    SKIP = "skip"                     # Drop the query and continue
    ABORT = "abort"                   # Stop processing
    IGNORE = "ignore"                 # Log but continue


@dataclass
class ErrorContext:
    """Context information captured where an error was raised."""
    component: str
    operation: str
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    file_path: Optional[str] = None
    line_number: Optional[int] = None
    function_name: Optional[str] = None

    # System context
    python_version: Optional[str] = None
    platform: Optional[str] = None

    # Operation context
    parameters: Dict[str, Any] = field(default_factory=dict)


class PromLabelsError(Exception):
    """
    Base exception class with structured error handling.

    Carries severity, category, recovery strategy and context so the
    error can be logged as a structured record or rendered for humans.
    """

    def __init__(
        self,
        message: str,
        severity: ErrorSeverity = ErrorSeverity.MEDIUM,
        category: ErrorCategory = ErrorCategory.LOGIC,
        recovery_strategy: RecoveryStrategy = RecoveryStrategy.ABORT,
        context: Optional[ErrorContext] = None,
        cause: Optional[Exception] = None,
        details: Optional[Dict[str, Any]] = None,
        suggestions: Optional[List[str]] = None
    ):
        super().__init__(message)
        self.message = message
        self.severity = severity
        self.category = category
        self.recovery_strategy = recovery_strategy
        self.context = context or ErrorContext(component="unknown", operation="unknown")
        self.cause = cause
        self.details = details or {}
        self.suggestions = suggestions or []
        self.timestamp = datetime.now(timezone.utc)
        if cause is not None:
            self.__cause__ = cause

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to structured dictionary for logging."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "severity": self.severity.value,
            "category": self.category.value,
            "recovery_strategy": self.recovery_strategy.value,
            "timestamp": self.timestamp.isoformat(),
            "context": {
                "component": self.context.component,
                "operation": self.context.operation,
                "timestamp": self.context.timestamp.isoformat(),
                "file_path": self.context.file_path,
                "line_number": self.context.line_number,
                "function_name": self.context.function_name,
                "parameters": self.context.parameters,
            },
            "details": self.details,
            "suggestions": self.suggestions,
            "cause": str(self.cause) if self.cause else None,
            "traceback": (
                "".join(traceback.format_exception(self.cause)) if self.cause else None
            ),
        }

    def __str__(self) -> str:
        """Human-readable error representation."""
        parts = [
            f"[{self.severity.value.upper()}] {self.category.value}: {self.message}",
            f"Component: {self.context.component}",
            f"Operation: {self.context.operation}",
        ]

        if self.suggestions:
            parts.append("Suggestions:")
            for suggestion in self.suggestions:
                parts.append(f"  - {suggestion}")

        return "\n".join(parts)


class PromQLParseError(PromLabelsError):
    """Query text could not be tokenized or parsed."""

    def __init__(self, message: str, position: int = 0, query: str = None, **kwargs):
        super().__init__(
            message,
            severity=ErrorSeverity.HIGH,
            category=ErrorCategory.PARSE,
            recovery_strategy=RecoveryStrategy.SKIP,
            **kwargs
        )
        self.position = position
        self.query = query
        self.details["position"] = position
        if query is not None:
            self.details["query"] = query

    def __str__(self) -> str:
        return f"{self.position}: parse error: {self.message}"


class UnknownOperatorError(PromLabelsError):
    """Label matcher operator does not map to a match type."""

    def __init__(self, operator: Any, **kwargs):
        super().__init__(
            f"Unknown label match operator {operator!r}",
            severity=ErrorSeverity.HIGH,
            category=ErrorCategory.VALIDATION,
            recovery_strategy=RecoveryStrategy.SKIP,
            suggestions=["Use one of '=', '!=', '=~' or '!~'"],
            **kwargs
        )
        self.operator = operator
        self.details["operator"] = str(operator)


class ConfigurationError(PromLabelsError):
    """Configuration and setup errors."""

    def __init__(self, config_key: str, message: str, **kwargs):
        super().__init__(
            f"Configuration error for '{config_key}': {message}",
            severity=ErrorSeverity.HIGH,
            category=ErrorCategory.CONFIGURATION,
            recovery_strategy=RecoveryStrategy.ABORT,
            **kwargs
        )
        self.details["config_key"] = config_key


def create_error_context(
    component: str,
    operation: str,
    **kwargs
) -> ErrorContext:
    """Create error context with automatic stack frame detection."""
    frame = inspect.currentframe()
    if frame and frame.f_back:
        caller_frame = frame.f_back
        return ErrorContext(
            component=component,
            operation=operation,
            file_path=caller_frame.f_code.co_filename,
            line_number=caller_frame.f_lineno,
            function_name=caller_frame.f_code.co_name,
            python_version=sys.version,
            platform=platform.platform(),
            **kwargs
        )

    return ErrorContext(component=component, operation=operation, **kwargs)
