"""Custom exceptions for fair_tool.

Provides an exception hierarchy with structured error context, recovery
suggestions and error classification, so callers can tell an invalid scenario
from a cancelled run or a numerical failure.
"""

from typing import Optional, Dict, Any, List
from enum import Enum


class ErrorSeverity(Enum):
    """How badly a failure affects the caller's run."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class ErrorCategory(Enum):
    """Where a failure originated."""
    VALIDATION = "validation"
    COMPUTATION = "computation"
    CANCELLATION = "cancellation"
    IO = "io"
    SYSTEM = "system"


class FairToolError(Exception):
    """Root of the fair_tool error hierarchy.

    Every error carries a category, a severity, a stable ``FAIR_*`` code, a
    context dict for the audit log and a list of things the user can try.
    """

    def __init__(
        self,
        message: str,
        category: ErrorCategory = ErrorCategory.SYSTEM,
        severity: ErrorSeverity = ErrorSeverity.MEDIUM,
        error_code: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
        recovery_suggestions: Optional[List[str]] = None,
        cause: Optional[Exception] = None
    ):
        """
        Args:
            message: What went wrong, phrased for the person running the scenario
            category: Where the failure originated
            severity: Impact on the run
            error_code: Override for the class-derived ``FAIR_*`` code
            context: Values recorded alongside the error (ids, counts, paths)
            recovery_suggestions: Steps the user can take
            cause: Underlying exception, if this one wraps another
        """
        super().__init__(message)
        self.message = message
        self.category = category
        self.severity = severity
        self.error_code = error_code or f"FAIR_{type(self).__name__.upper()}"
        self.context = dict(context or {})
        self.recovery_suggestions = list(recovery_suggestions or [])
        self.cause = cause

    def to_dict(self) -> Dict[str, Any]:
        """Plain-dict form for audit entries and JSON logs."""
        return {
            'error_code': self.error_code,
            'exception_type': type(self).__name__,
            'message': self.message,
            'category': self.category.value,
            'severity': self.severity.value,
            'context': self.context,
            'recovery_suggestions': self.recovery_suggestions,
            'cause': str(self.cause) if self.cause else None,
        }


class ValidationError(FairToolError):
    """Raised when input data validation fails."""

    def __init__(
        self,
        message: str,
        field_name: Optional[str] = None,
        field_value: Any = None,
        **kwargs
    ):
        context = kwargs.pop('context', None) or {}
        context.update({
            'field_name': field_name,
            'field_value': field_value,
        })

        recovery_suggestions = kwargs.pop('recovery_suggestions', None) or [
            "Check every min/ML/max triad is filled with numbers",
            "Verify max is not below min",
        ]

        super().__init__(
            message,
            category=ErrorCategory.VALIDATION,
            severity=kwargs.pop('severity', ErrorSeverity.MEDIUM),
            context=context,
            recovery_suggestions=recovery_suggestions,
            **kwargs
        )


class InvalidInputError(ValidationError):
    """Raised when a scenario is not runnable.

    ``missing`` lists every required factor that is absent or malformed, not
    just the first one found.
    """

    def __init__(self, missing: List[str], message: Optional[str] = None, **kwargs):
        self.missing = list(missing)
        context = kwargs.pop('context', None) or {}
        context['missing'] = self.missing

        recovery_suggestions = [
            f"Provide {name}" for name in self.missing
        ] or ["Review the scenario inputs"]

        super().__init__(
            message or f"Invalid inputs: missing {', '.join(self.missing)}",
            context=context,
            recovery_suggestions=recovery_suggestions,
            **kwargs
        )


class SimulationCancelledError(FairToolError):
    """Raised when a run is aborted through its ``should_cancel`` hook.

    Partially accumulated samples are discarded; the caller may retry the
    whole run.
    """

    cancelled = True

    def __init__(self, done: int, total: int, **kwargs):
        self.done = done
        self.total = total
        context = kwargs.pop('context', None) or {}
        context.update({'done': done, 'total': total})

        super().__init__(
            f"Simulation cancelled after {done:,} of {total:,} draws",
            category=ErrorCategory.CANCELLATION,
            severity=ErrorSeverity.LOW,
            context=context,
            recovery_suggestions=["Re-run the simulation when ready"],
            **kwargs
        )


class ComputationError(FairToolError):
    """Raised when numerical computation fails."""

    def __init__(self, message: str, operation: str, **kwargs):
        context = kwargs.pop('context', None) or {}
        context['operation'] = operation

        recovery_suggestions = kwargs.pop('recovery_suggestions', None) or [
            "Check input data for numerical issues",
            "Verify parameters are within valid ranges",
        ]

        super().__init__(
            message,
            category=ErrorCategory.COMPUTATION,
            severity=kwargs.pop('severity', ErrorSeverity.HIGH),
            context=context,
            recovery_suggestions=recovery_suggestions,
            **kwargs
        )


class ScenarioFileError(FairToolError):
    """Raised when a scenario file cannot be read or parsed."""

    def __init__(self, message: str, file_path: Optional[str] = None, **kwargs):
        context = kwargs.pop('context', None) or {}
        context['file_path'] = file_path

        super().__init__(
            message,
            category=ErrorCategory.IO,
            context=context,
            recovery_suggestions=kwargs.pop('recovery_suggestions', None) or [
                "Check the file exists and is valid JSON",
                "Generate a starting point with 'fair-tool template'",
            ],
            **kwargs
        )
