"""Schema and integrity enforcement for conversations passed through public operations."""

import logging
from typing import Any

from pydantic import TypeAdapter
from pydantic import ValidationError as SchemaValidationError

from ..types.content import Conversation
from ..types.exceptions import ValidationError
from .integrity import assert_conversation_integrity

logger = logging.getLogger(__name__)

conversation_adapter: TypeAdapter[Conversation] = TypeAdapter(Conversation)


def assert_conversation_schema(conversation: Any) -> None:
    """Check that a value has the conversation shape.

    Raises:
        ValidationError: If the value does not conform to the conversation schema.
    """
    try:
        conversation_adapter.validate_python(conversation, strict=True)
    except SchemaValidationError as e:
        issues = e.errors(include_url=False, include_context=False, include_input=False)
        logger.debug("Conversation failed schema validation with %d issues", len(issues))
        raise ValidationError("conversation failed schema validation", [dict(issue) for issue in issues]) from e


def assert_conversation_safe(conversation: Conversation) -> None:
    """Check that a conversation conforms to the schema and to the integrity rules.

    Raises:
        ValidationError: If the schema check fails.
        IntegrityError: If the integrity check fails.
    """
    assert_conversation_schema(conversation)
    assert_conversation_integrity(conversation)


def ensure_conversation_safe(conversation: Conversation) -> Conversation:
    """Return the conversation unchanged after checking it with assert_conversation_safe."""
    assert_conversation_safe(conversation)
    return conversation
