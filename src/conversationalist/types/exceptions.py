"""Exception-related type definitions for the SDK."""

import json
from typing import Any, Dict, List, Literal, Optional

from typing_extensions import TypedDict

ErrorCode = Literal["error:validation", "error:integrity", "error:precondition"]

IntegrityIssueCode = Literal[
    "integrity:missing-message",
    "integrity:unlisted-message",
    "integrity:duplicate-message-id",
    "integrity:invalid-position",
    "integrity:orphan-tool-result",
    "integrity:tool-result-before-call",
    "integrity:duplicate-tool-call",
]


class IntegrityIssue(TypedDict):
    """A single structural problem found in a conversation.

    Attributes:
        code: Machine readable issue code.
        message: Human readable description.
        data: Identifiers involved in the issue.
    """

    code: IntegrityIssueCode
    message: str
    data: Dict[str, Any]


class ConversationalistError(Exception):
    """Base exception for conversation operations.

    Carries a structured error code and optional context data for diagnostics.
    """

    def __init__(self, message: str, code: ErrorCode, context: Optional[Dict[str, Any]] = None) -> None:
        """Initialize the error.

        Args:
            message: Human readable description.
            code: Structured error code.
            context: Additional JSON context about the failure.
        """
        super().__init__(message)
        self.message = message
        self.code = code
        self.context = context or {}

    def to_detailed_string(self) -> str:
        """Format the error with its code, context and cause."""
        parts = [f"[{self.code}] {self.message}"]
        if self.context:
            parts.append(f"Context: {json.dumps(self.context, indent=2, default=str)}")
        if self.__cause__ is not None:
            parts.append(f"Caused by: {self.__cause__}")
        return "\n".join(parts)


class ValidationError(ConversationalistError):
    """Exception raised when a conversation does not conform to the conversation schema."""

    def __init__(self, message: str, issues: Optional[List[Dict[str, Any]]] = None) -> None:
        """Initialize with the schema issues reported by the validator."""
        super().__init__(message, "error:validation", {"issues": issues or []})
        self.issues = issues or []


class IntegrityError(ConversationalistError):
    """Exception raised when conversation invariants are violated.

    Examples are a tool result without a tool use, duplicate identifiers, or positions that do not
    match the canonical order.
    """

    def __init__(self, message: str, issues: Optional[List[IntegrityIssue]] = None) -> None:
        """Initialize with the integrity issues found."""
        super().__init__(message, "error:integrity", {"issues": issues or []})
        self.issues: List[IntegrityIssue] = list(issues or [])


class ToolPairingError(IntegrityError):
    """Exception raised when an operation split a tool use from its result.

    This only happens when tool pair preservation was explicitly disabled, so the breakage is an expected
    consequence of the caller's options rather than a defect.
    """

    def __init__(self, operation: str, issues: Optional[List[IntegrityIssue]] = None) -> None:
        """Initialize the error.

        Args:
            operation: Name of the operation that produced the broken conversation.
            issues: Integrity issues reported for the result.
        """
        super().__init__(
            f"{operation} produced a conversation with broken tool linkage because preserve_tool_pairs was "
            "disabled. Pass preserve_tool_pairs=True to keep tool uses and their results together.",
            issues,
        )
        self.operation = operation


class PreconditionError(ConversationalistError):
    """Exception raised when an operation is invoked on a conversation that fails pre-flight checks."""

    def __init__(self, operation: str, message: str, context: Optional[Dict[str, Any]] = None) -> None:
        """Initialize the error.

        Args:
            operation: Name of the operation that rejected its input.
            message: Description of the failed check.
            context: Additional context about the failure.
        """
        super().__init__(f"{operation}: {message}", "error:precondition", context)
        self.operation = operation


class ContextWindowOverflowException(Exception):
    """Exception raised when a conversation cannot be reduced to fit the context window."""

    pass
