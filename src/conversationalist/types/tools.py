"""Tool-related type definitions for the SDK.

These types are attached to `tool-use` and `tool-result` messages and link the two together.
"""

from typing import Any, Literal

from typing_extensions import NotRequired, TypedDict

ToolResultOutcome = Literal["success", "error"]
"""Outcome of a tool execution."""


class ToolCall(TypedDict):
    """A tool invocation requested by the model.

    Attributes:
        id: Unique identifier of the call, referenced by the matching ToolResult.
        name: The name of the tool being invoked.
        arguments: JSON arguments passed to the tool.
    """

    id: str
    name: str
    arguments: Any


class ToolResult(TypedDict):
    """The outcome of a tool invocation.

    Attributes:
        callId: The ToolCall.id this result answers.
        outcome: Whether the tool succeeded.
        content: JSON payload returned by the tool.
        error: Error description when the tool failed.
    """

    callId: str
    outcome: ToolResultOutcome
    content: NotRequired[Any]
    error: NotRequired[str]
