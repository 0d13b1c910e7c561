"""Report Studio Exception Hierarchy.

Exceptions in this module are reserved for structural-integrity failures
that indicate a logic error somewhere in the system. Expected business
failures (blank fields, invalid enum members, rule rejections, permission
denials, illegal workflow transitions, unknown ids) are never raised;
they are returned to callers as ``OperationResult`` values.

Exception Hierarchy:
    ReportStudioException (base)
    ├── ConfigurationError
    └── InvariantViolation
        ├── DependentEntityError
        ├── DuplicateEntityError
        └── AuditIntegrityError

All exceptions include rich context:
- error_code: Unique error identifier
- component: Name of the engine component that raised the error
- context: Dictionary with error-specific details
- timestamp: When the error occurred
- traceback: Stack at the point of construction

Example:
    >>> from reportstudio.exceptions import DependentEntityError
    >>> raise DependentEntityError(
    ...     message="Section still has data points",
    ...     entity_type="ReportSection",
    ...     entity_id="sec-1",
    ...     dependents={"DataPoint": 3},
    ... )

Author: Report Studio Platform Team
Date: October 2026
Status: Production Ready
"""

from typing import Any, Dict, Optional
from datetime import datetime, timezone
import json
import re
import traceback as tb


# ==============================================================================
# Base Exception
# ==============================================================================

class ReportStudioException(Exception):
    """Base exception for all Report Studio errors.

    Attributes:
        message: Human-readable error message
        error_code: Unique error identifier (e.g., "RS_INVARIANT_DEPENDENT_ENTITY_ERROR")
        component: Engine component that raised the error (optional)
        context: Dictionary with error-specific details
        timestamp: When the error occurred (UTC)
        traceback_str: Stack trace for debugging
    """

    ERROR_PREFIX = "RS"

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        component: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        """Initialize exception with rich context.

        Args:
            message: Human-readable error message
            error_code: Unique error identifier (auto-generated if not provided)
            component: Engine component that raised the error
            context: Dictionary with error-specific details
        """
        super().__init__(message)
        self.message = message
        self.error_code = error_code or self._generate_error_code()
        self.component = component
        self.context = context or {}
        self.timestamp = datetime.now(timezone.utc)
        self.traceback_str = "".join(tb.format_stack()[:-1])

    def _generate_error_code(self) -> str:
        """Derive the error code from the class name.

        Returns:
            Error code like "RS_INVARIANT_DUPLICATE_ENTITY_ERROR"
        """
        error_type = re.sub(r'(?<!^)(?=[A-Z])', '_', self.__class__.__name__).upper()
        return f"{self.ERROR_PREFIX}_{error_type}"

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for serialization.

        Returns:
            Dictionary with all error details
        """
        return {
            "error_type": self.__class__.__name__,
            "error_code": self.error_code,
            "message": self.message,
            "component": self.component,
            "context": self.context,
            "timestamp": self.timestamp.isoformat(),
            "traceback": self.traceback_str,
        }

    def to_json(self) -> str:
        """Convert exception to JSON string."""
        return json.dumps(self.to_dict(), indent=2, default=str)

    def __str__(self) -> str:
        parts = [f"[{self.error_code}]"]
        if self.component:
            parts.append(f"Component: {self.component}")
        parts.append(self.message)
        return " - ".join(parts)

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"message='{self.message}', "
            f"error_code='{self.error_code}', "
            f"component='{self.component}')"
        )


# ==============================================================================
# Configuration
# ==============================================================================

class ConfigurationError(ReportStudioException):
    """Engine configuration is invalid.

    Example:
        >>> raise ConfigurationError(
        ...     message="max_source_url_length must be positive",
        ...     config_key="max_source_url_length",
        ...     config_value=0,
        ... )
    """

    def __init__(
        self,
        message: str,
        context: Optional[Dict[str, Any]] = None,
        config_key: Optional[str] = None,
        config_value: Any = None,
    ):
        context = context or {}
        if config_key:
            context["config_key"] = config_key
            context["config_value"] = config_value
        super().__init__(message, component="config", context=context)


# ==============================================================================
# Invariant Violations
# ==============================================================================

class InvariantViolation(ReportStudioException):
    """Base exception for structural-integrity violations.

    These propagate to a boundary handler instead of being returned as
    ordinary validation failures.
    """
    ERROR_PREFIX = "RS_INVARIANT"


class DependentEntityError(InvariantViolation):
    """An entity was deleted while other entities still reference it.

    Example:
        >>> raise DependentEntityError(
        ...     message="Cannot delete section with dependents",
        ...     entity_type="ReportSection",
        ...     entity_id="sec-1",
        ...     dependents={"DataPoint": 2, "ValidationRule": 1},
        ... )
    """

    def __init__(
        self,
        message: str,
        entity_type: str,
        entity_id: str,
        dependents: Optional[Dict[str, int]] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        context = context or {}
        context["entity_type"] = entity_type
        context["entity_id"] = entity_id
        if dependents:
            context["dependents"] = dict(dependents)
        super().__init__(message, component="store", context=context)


class DuplicateEntityError(InvariantViolation):
    """An entity id collided with an existing record on insert."""

    def __init__(
        self,
        message: str,
        entity_type: str,
        entity_id: str,
        context: Optional[Dict[str, Any]] = None,
    ):
        context = context or {}
        context["entity_type"] = entity_type
        context["entity_id"] = entity_id
        super().__init__(message, component="store", context=context)


class AuditIntegrityError(InvariantViolation):
    """The append-only audit log would be violated.

    Raised when an entry that does not extend the current hash chain is
    appended, or when an existing entry id is reused.
    """

    def __init__(
        self,
        message: str,
        entry_id: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        context = context or {}
        if entry_id:
            context["entry_id"] = entry_id
        super().__init__(message, component="audit_trail", context=context)


# ==============================================================================
# Exception Utilities
# ==============================================================================

def format_exception_chain(exc: Exception) -> str:
    """Format exception chain for logging/display.

    Args:
        exc: Exception to format

    Returns:
        Formatted string with full exception chain
    """
    lines = []
    current: Optional[BaseException] = exc

    while current is not None:
        if isinstance(current, ReportStudioException):
            lines.append(str(current))
            lines.append(f"  Context: {current.context}")
        else:
            lines.append(f"{type(current).__name__}: {current}")
        current = getattr(current, "__cause__", None)

    return "\n".join(lines)


__all__ = [
    "ReportStudioException",
    "ConfigurationError",
    "InvariantViolation",
    "DependentEntityError",
    "DuplicateEntityError",
    "AuditIntegrityError",
    "format_exception_chain",
]
