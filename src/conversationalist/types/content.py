"""Content-related type definitions for the SDK.

This module defines the conversation transcript types. Keys follow the persisted (camelCase) format so that
values round-trip through storage and format converters unchanged.
"""

from typing import Any, Callable, Dict, List, Literal, Union

from typing_extensions import NotRequired, TypedDict

from .tools import ToolCall, ToolResult

CURRENT_SCHEMA_VERSION = 1

MessageRole = Literal["user", "assistant", "system", "developer", "tool-use", "tool-result", "snapshot"]
"""Role of a message within a conversation."""

ConversationStatus = Literal["active", "archived", "deleted"]


class TextContent(TypedDict):
    """A text content part."""

    type: Literal["text"]
    text: str


class ImageContent(TypedDict):
    """An image content part.

    Attributes:
        url: Location of the image.
        mimeType: Optional MIME type of the image.
        text: Optional alt text.
    """

    type: Literal["image"]
    url: str
    mimeType: NotRequired[str]
    text: NotRequired[str]


ContentPart = Union[TextContent, ImageContent]
"""A single part of multi-modal message content."""

MessageContent = Union[str, List[ContentPart]]


class TokenUsage(TypedDict):
    """Token accounting reported by a model for a message."""

    prompt: int
    completion: int
    total: int


class Message(TypedDict):
    """A single message in a conversation.

    Attributes:
        id: Unique message identifier.
        role: The role of the message author.
        content: Plain text or an ordered list of content parts.
        position: Zero-based index of the message in the conversation.
        createdAt: ISO-8601 creation timestamp.
        metadata: Arbitrary JSON metadata.
        hidden: Whether the message is hidden from normal display.
        toolCall: Tool invocation, present only on `tool-use` messages.
        toolResult: Tool outcome, present only on `tool-result` messages.
        tokenUsage: Token accounting, if known.
        goalCompleted: Goal completion flag, only meaningful on `assistant` messages.
    """

    id: str
    role: MessageRole
    content: MessageContent
    position: int
    createdAt: str
    metadata: Dict[str, Any]
    hidden: bool
    toolCall: NotRequired[ToolCall]
    toolResult: NotRequired[ToolResult]
    tokenUsage: NotRequired[TokenUsage]
    goalCompleted: NotRequired[bool]


class Conversation(TypedDict):
    """An ordered conversation transcript.

    `ids` defines canonical order while `messages` is keyed storage.

    Attributes:
        id: Unique conversation identifier.
        schemaVersion: Version of the persisted format.
        title: Optional human readable title.
        status: Lifecycle status of the conversation.
        metadata: Arbitrary JSON metadata.
        tags: Free-form labels.
        ids: Message ids in canonical order.
        messages: Messages keyed by id.
        createdAt: ISO-8601 creation timestamp.
        updatedAt: ISO-8601 timestamp of the last change.
    """

    id: str
    schemaVersion: int
    title: NotRequired[str]
    status: ConversationStatus
    metadata: Dict[str, Any]
    tags: NotRequired[List[str]]
    ids: List[str]
    messages: Dict[str, Message]
    createdAt: str
    updatedAt: str


class MessageInput(TypedDict):
    """Input for appending a message to a conversation."""

    role: MessageRole
    content: MessageContent
    metadata: NotRequired[Dict[str, Any]]
    hidden: NotRequired[bool]
    toolCall: NotRequired[ToolCall]
    toolResult: NotRequired[ToolResult]
    tokenUsage: NotRequired[TokenUsage]
    goalCompleted: NotRequired[bool]


TokenEstimator = Callable[[Message], int]
"""A pure function estimating the token cost of a message."""
