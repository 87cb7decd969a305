"""Conversation construction, ordered access and validation.

These are the collaborators the context engine relies on:

- create_conversation / append_messages: build immutable conversation snapshots
- validate_conversation_integrity: report linkage, identifier and position problems
- assert_conversation_safe / ensure_conversation_safe: schema plus integrity enforcement
"""

from .integrity import assert_conversation_integrity, validate_conversation_integrity
from .store import append_messages, create_conversation, get_ordered_messages, to_id_record
from .validation import assert_conversation_safe, assert_conversation_schema, ensure_conversation_safe

__all__ = [
    "append_messages",
    "assert_conversation_integrity",
    "assert_conversation_safe",
    "assert_conversation_schema",
    "create_conversation",
    "ensure_conversation_safe",
    "get_ordered_messages",
    "to_id_record",
    "validate_conversation_integrity",
]
