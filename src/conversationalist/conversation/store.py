"""Construction and ordered access for conversation snapshots.

Every function here returns new values and leaves its inputs untouched.
"""

import copy
import logging
from typing import Any, Dict, Iterable, List, Optional

from typing_extensions import TypedDict

from ..environment import ConversationEnvironment, resolve_conversation_environment
from ..types.content import CURRENT_SCHEMA_VERSION, Conversation, ConversationStatus, Message, MessageInput

logger = logging.getLogger(__name__)

_OPTIONAL_MESSAGE_KEYS = ("toolCall", "toolResult", "tokenUsage")


class CreateConversationOptions(TypedDict, total=False):
    """Options for create_conversation."""

    id: str
    title: str
    status: ConversationStatus
    metadata: Dict[str, Any]
    tags: List[str]


def create_conversation(
    options: Optional[CreateConversationOptions] = None,
    environment: Optional[ConversationEnvironment] = None,
) -> Conversation:
    """Create a new empty conversation.

    Args:
        options: Identifier, title, status, metadata and tags for the conversation.
        environment: Environment override for timestamps and identifiers.

    Returns:
        An empty conversation with both timestamps set to the current time.
    """
    options = options or {}
    env = resolve_conversation_environment(environment)
    now = env.now()

    conversation: Conversation = {
        "id": options.get("id") or env.random_id(),
        "schemaVersion": CURRENT_SCHEMA_VERSION,
        "status": options.get("status", "active"),
        "metadata": copy.deepcopy(options.get("metadata", {})),
        "tags": list(options.get("tags", [])),
        "ids": [],
        "messages": {},
        "createdAt": now,
        "updatedAt": now,
    }
    if "title" in options:
        conversation["title"] = options["title"]
    return conversation


def append_messages(
    conversation: Conversation,
    *inputs: MessageInput,
    environment: Optional[ConversationEnvironment] = None,
) -> Conversation:
    """Append messages at the next free positions.

    Args:
        conversation: The conversation to extend.
        *inputs: Messages to append, in order.
        environment: Environment override for timestamps and identifiers.

    Returns:
        A new conversation containing the appended messages.
    """
    env = resolve_conversation_environment(environment)
    now = env.now()

    ids = list(conversation["ids"])
    messages = dict(conversation["messages"])

    for message_input in inputs:
        message: Message = {
            "id": env.random_id(),
            "role": message_input["role"],
            "content": copy.deepcopy(message_input["content"]),
            "position": len(ids),
            "createdAt": now,
            "metadata": copy.deepcopy(message_input.get("metadata", {})),
            "hidden": message_input.get("hidden", False),
        }
        for key in _OPTIONAL_MESSAGE_KEYS:
            if key in message_input:
                message[key] = copy.deepcopy(message_input[key])  # type: ignore[literal-required]
        if message_input["role"] == "assistant" and "goalCompleted" in message_input:
            message["goalCompleted"] = message_input["goalCompleted"]

        ids.append(message["id"])
        messages[message["id"]] = message

    logger.debug("Appended %d messages to conversation %s", len(inputs), conversation["id"])

    return {**conversation, "ids": ids, "messages": messages, "updatedAt": now}


def get_ordered_messages(conversation: Conversation) -> List[Message]:
    """Return messages in canonical order, skipping ids without a stored message."""
    messages = conversation["messages"]
    return [messages[message_id] for message_id in conversation["ids"] if message_id in messages]


def to_id_record(items: Iterable[Message]) -> Dict[str, Message]:
    """Key messages by their identifier."""
    return {item["id"]: item for item in items}
