"""
Result types returned by every service operation.

Services never raise to the tool layer. They hand back a ``DomainResult``
which the executor renders as the response envelope:

    success: true            success: false
    data: {...}              error: "limit: must be <= 500"
    suggestions: [...]       error_type: validation_error
                             details: {field: limit, reason: ...}
                             suggestions: [...]
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Generic, List, Optional, TypeVar


class DomainErrorType(Enum):
    """Failure categories exposed as ``error_type``."""

    VALIDATION_ERROR = "validation_error"
    BUSINESS_RULE_VIOLATION = "business_rule_violation"
    REMOTE_ERROR = "remote_error"


T = TypeVar("T")


@dataclass
class DomainResult(Generic[T]):
    """Outcome of a service call: ``data`` on success, error fields otherwise."""

    success: bool
    data: Optional[T] = None
    error_type: Optional[DomainErrorType] = None
    error_message: Optional[str] = None
    error_details: Dict[str, Any] = field(default_factory=dict)
    suggestions: List[str] = field(default_factory=list)

    @property
    def is_success(self) -> bool:
        return self.success

    @property
    def is_failure(self) -> bool:
        return not self.success

    def to_envelope(self) -> Dict[str, Any]:
        """Render as the tool response envelope; empty parts are left out."""
        if self.success:
            envelope: Dict[str, Any] = {"success": True, "data": self.data}
        else:
            envelope = {
                "success": False,
                "error": self.error_message,
                "error_type": self.error_type.value if self.error_type else None,
            }
            if self.error_details:
                envelope["details"] = self.error_details
        if self.suggestions:
            envelope["suggestions"] = self.suggestions
        return envelope


class DomainSuccess:
    """Builds successful results."""

    @staticmethod
    def create(
        data: Optional[T] = None, suggestions: Optional[List[str]] = None
    ) -> DomainResult[T]:
        return DomainResult(success=True, data=data, suggestions=list(suggestions or []))


class DomainError:
    """
    Builds failed results, one constructor per ``DomainErrorType``.

    Usage:
        return DomainError.validation_error("must be <= 500", field="limit")
    """

    @staticmethod
    def create(
        error_type: DomainErrorType,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        suggestions: Optional[List[str]] = None,
    ) -> DomainResult[Any]:
        return DomainResult(
            success=False,
            error_type=error_type,
            error_message=message,
            error_details=dict(details or {}),
            suggestions=list(suggestions or []),
        )

    @staticmethod
    def validation_error(
        message: str,
        field: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        suggestions: Optional[List[str]] = None,
    ) -> DomainResult[Any]:
        """Rejected input. ``field`` is the dotted path of the offending value."""
        details = dict(details or {})
        if field is not None:
            details.setdefault("field", field)
            details.setdefault("reason", message)
            message = f"{field}: {message}"
        return DomainError.create(
            DomainErrorType.VALIDATION_ERROR,
            message,
            details,
            suggestions or ["Check input format and try again"],
        )

    @staticmethod
    def business_rule_violation(
        rule: str,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        suggestions: Optional[List[str]] = None,
    ) -> DomainResult[Any]:
        """Well-formed input that cannot be applied, e.g. an unknown step index."""
        return DomainError.create(
            DomainErrorType.BUSINESS_RULE_VIOLATION,
            message,
            {**(details or {}), "rule": rule},
            suggestions,
        )

    @staticmethod
    def remote_error(
        operation: str,
        message: str,
        status_code: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None,
        suggestions: Optional[List[str]] = None,
    ) -> DomainResult[Any]:
        """Zephyr Scale rejected the call or could not be reached."""
        details = {**(details or {}), "operation": operation}
        if status_code is not None:
            details["statusCode"] = status_code
        return DomainError.create(
            DomainErrorType.REMOTE_ERROR,
            message,
            details,
            suggestions or _remote_suggestions(status_code),
        )


def _remote_suggestions(status_code: Optional[int]) -> List[str]:
    if status_code in (401, 403):
        return ["Check ZEPHYR_API_TOKEN and its project permissions"]
    if status_code == 404:
        return ["Verify the key exists in Zephyr Scale"]
    if status_code == 429:
        return ["Zephyr Scale rate limit reached, wait before retrying"]
    return ["Check connectivity to Zephyr Scale and try again"]
