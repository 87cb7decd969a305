"""Immutable conversation transcripts and budget-constrained truncation."""

from .context import (
    ContextWindowManager,
    estimate_conversation_tokens,
    get_recent_messages,
    truncate_from_position,
    truncate_to_token_limit,
)
from .conversation import (
    append_messages,
    assert_conversation_safe,
    create_conversation,
    ensure_conversation_safe,
    validate_conversation_integrity,
)
from .environment import ConversationEnvironment, resolve_conversation_environment, simple_token_estimator
from .types.content import Conversation, Message
from .types.exceptions import (
    ContextWindowOverflowException,
    ConversationalistError,
    IntegrityError,
    PreconditionError,
    ToolPairingError,
    ValidationError,
)

__all__ = [
    "ContextWindowManager",
    "ContextWindowOverflowException",
    "Conversation",
    "ConversationEnvironment",
    "ConversationalistError",
    "IntegrityError",
    "Message",
    "PreconditionError",
    "ToolPairingError",
    "ValidationError",
    "append_messages",
    "assert_conversation_safe",
    "create_conversation",
    "ensure_conversation_safe",
    "estimate_conversation_tokens",
    "get_recent_messages",
    "resolve_conversation_environment",
    "simple_token_estimator",
    "truncate_from_position",
    "truncate_to_token_limit",
    "validate_conversation_integrity",
]
