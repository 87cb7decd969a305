"""This package fits conversations into bounded token budgets.

It includes:

- estimate_conversation_tokens: Sums a token estimator over a conversation
- truncate_to_token_limit: Drops the oldest removable blocks until the conversation fits a token budget
- truncate_from_position: Keeps messages from a position onwards
- get_recent_messages: Returns a recency window that never splits a tool interaction
- ContextWindowManager: Applies truncation when a conversation grows beyond a fraction of the context window

Tool uses and their results are treated as one atomic block by every operation, so truncation never separates an
invocation from its outcome.
"""

from .blocks import BlockIndex, MessageBlock
from .manager import ContextWindowManager, ConversationManager
from .truncation import (
    RecentMessagesOptions,
    TruncateFromPositionOptions,
    TruncateOptions,
    estimate_conversation_tokens,
    get_recent_messages,
    truncate_from_position,
    truncate_to_token_limit,
)

__all__ = [
    "BlockIndex",
    "ContextWindowManager",
    "ConversationManager",
    "MessageBlock",
    "RecentMessagesOptions",
    "TruncateFromPositionOptions",
    "TruncateOptions",
    "estimate_conversation_tokens",
    "get_recent_messages",
    "truncate_from_position",
    "truncate_to_token_limit",
]
