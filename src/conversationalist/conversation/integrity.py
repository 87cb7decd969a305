"""Structural integrity checks for conversations.

Checks that `ids` and `messages` agree, that positions match canonical order, and that every tool result
follows the tool use it answers.
"""

import logging
from typing import Dict, List, Set

from ..types.content import Conversation
from ..types.exceptions import IntegrityError, IntegrityIssue

logger = logging.getLogger(__name__)


def validate_conversation_integrity(conversation: Conversation) -> List[IntegrityIssue]:
    """Validate conversation invariants.

    Args:
        conversation: The conversation to check.

    Returns:
        The list of issues found; empty when the conversation is sound.
    """
    issues: List[IntegrityIssue] = []
    ids = conversation["ids"]
    messages = conversation["messages"]
    seen_ids: Set[str] = set()

    for index, message_id in enumerate(ids):
        if message_id in seen_ids:
            issues.append(
                {
                    "code": "integrity:duplicate-message-id",
                    "message": f"duplicate message id in ids: {message_id}",
                    "data": {"id": message_id, "position": index},
                }
            )
        else:
            seen_ids.add(message_id)

        message = messages.get(message_id)
        if message is None:
            issues.append(
                {
                    "code": "integrity:missing-message",
                    "message": f"missing message for id {message_id}",
                    "data": {"id": message_id, "position": index},
                }
            )
        elif message["position"] != index:
            issues.append(
                {
                    "code": "integrity:invalid-position",
                    "message": f"message {message_id} has position {message['position']}, expected {index}",
                    "data": {"id": message_id, "expected": index, "actual": message["position"]},
                }
            )

    for message_id in messages:
        if message_id not in seen_ids:
            issues.append(
                {
                    "code": "integrity:unlisted-message",
                    "message": f"message {message_id} is not listed in ids",
                    "data": {"id": message_id},
                }
            )

    tool_uses: Dict[str, int] = {}
    tool_use_message_ids: Dict[str, str] = {}
    for index, message_id in enumerate(ids):
        message = messages.get(message_id)
        if message is None or message["role"] != "tool-use" or "toolCall" not in message:
            continue

        call_id = message["toolCall"]["id"]
        if call_id in tool_uses:
            issues.append(
                {
                    "code": "integrity:duplicate-tool-call",
                    "message": f"duplicate toolCall.id {call_id}",
                    "data": {"toolCallId": call_id, "messageId": message_id},
                }
            )
        else:
            tool_uses[call_id] = index
            tool_use_message_ids[call_id] = message_id

    for index, message_id in enumerate(ids):
        message = messages.get(message_id)
        if message is None or message["role"] != "tool-result" or "toolResult" not in message:
            continue

        call_id = message["toolResult"]["callId"]
        if call_id not in tool_uses:
            issues.append(
                {
                    "code": "integrity:orphan-tool-result",
                    "message": f"tool-result references missing tool-use {call_id}",
                    "data": {"callId": call_id, "messageId": message_id},
                }
            )
        elif tool_uses[call_id] >= index:
            issues.append(
                {
                    "code": "integrity:tool-result-before-call",
                    "message": f"tool-result {call_id} occurs before tool-use",
                    "data": {
                        "callId": call_id,
                        "messageId": message_id,
                        "toolUseMessageId": tool_use_message_ids[call_id],
                    },
                }
            )

    return issues


def assert_conversation_integrity(conversation: Conversation) -> None:
    """Raise if the conversation fails integrity validation.

    Raises:
        IntegrityError: If any issue is found; the issues are attached to the error.
    """
    issues = validate_conversation_integrity(conversation)
    if not issues:
        return

    logger.debug("Conversation %s failed integrity check with %d issues", conversation["id"], len(issues))
    raise IntegrityError("conversation integrity check failed", issues)
