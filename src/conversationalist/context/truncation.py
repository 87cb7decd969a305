"""Budget-constrained truncation of conversations.

Every operation here is a pure function over an immutable conversation snapshot. Messages are grouped into blocks
(see `BlockIndex`) so that a tool use is never kept without its result, locked blocks are always kept, and the
remaining blocks are selected newest first under the budget. The selected messages are renumbered, deep-copied
into a new conversation and checked by the integrity validator.
"""

import copy
import logging
from typing import Iterable, List, Optional, Sequence

from typing_extensions import TypedDict

from ..conversation.store import get_ordered_messages, to_id_record
from ..conversation.validation import assert_conversation_schema, ensure_conversation_safe
from ..environment import ConversationEnvironment, resolve_conversation_environment
from ..types.content import Conversation, Message, TokenEstimator
from ..types.exceptions import IntegrityError, PreconditionError, ToolPairingError, ValidationError
from .blocks import BlockIndex, MessageBlock, flatten_blocks, total_tokens

logger = logging.getLogger(__name__)


class TruncateOptions(TypedDict, total=False):
    """Options for truncate_to_token_limit.

    Attributes:
        estimate_tokens: Token estimator; defaults to the environment's estimator.
        preserve_system_messages: Always keep system messages (default True).
        preserve_last_n: Number of trailing non-system messages that are always kept (default 0).
        preserve_tool_pairs: Keep tool uses and their results together (default True).
    """

    estimate_tokens: TokenEstimator
    preserve_system_messages: bool
    preserve_last_n: int
    preserve_tool_pairs: bool


class TruncateFromPositionOptions(TypedDict, total=False):
    """Options for truncate_from_position.

    Attributes:
        preserve_system_messages: Keep system messages positioned before the cutoff (default True).
        preserve_tool_pairs: Keep tool uses and their results together (default True).
    """

    preserve_system_messages: bool
    preserve_tool_pairs: bool


class RecentMessagesOptions(TypedDict, total=False):
    """Options for get_recent_messages.

    Attributes:
        include_hidden: Count hidden messages (default False).
        include_system: Count system messages (default False).
        preserve_tool_pairs: Extend the window so tool interactions are not split (default True).
    """

    include_hidden: bool
    include_system: bool
    preserve_tool_pairs: bool


def _zero_tokens(message: Message) -> int:
    return 0


def estimate_conversation_tokens(
    conversation: Conversation,
    estimate_tokens: Optional[TokenEstimator] = None,
    environment: Optional[ConversationEnvironment] = None,
) -> int:
    """Estimate the total tokens of a conversation.

    Args:
        conversation: The conversation to measure.
        estimate_tokens: Token estimator; defaults to the environment's estimator.
        environment: Environment override.

    Returns:
        The summed estimate over all messages in canonical order.
    """
    estimator = estimate_tokens or resolve_conversation_environment(environment).estimate_tokens
    return sum(estimator(message) for message in get_ordered_messages(conversation))


def truncate_to_token_limit(
    conversation: Conversation,
    max_tokens: int,
    options: Optional[TruncateOptions] = None,
    environment: Optional[ConversationEnvironment] = None,
) -> Conversation:
    """Truncate a conversation to fit an estimated token limit.

    System messages (when preserved) and the last `preserve_last_n` non-system messages are always kept, together
    with every message sharing a block with them. The remaining blocks are kept newest first while they fit in
    the tokens left over; selection stops at the first block that does not fit. Locked content is never
    partially truncated, so the result can still exceed `max_tokens` when locked content alone does.

    Args:
        conversation: The conversation to truncate.
        max_tokens: The token budget.
        options: Truncation options.
        environment: Environment override for the clock and default estimator.

    Returns:
        The input conversation itself if it already fits, otherwise a new renumbered conversation.

    Raises:
        ValueError: If `max_tokens` or `preserve_last_n` is negative.
        PreconditionError: If the conversation fails schema validation.
        ToolPairingError: If `preserve_tool_pairs` is False and the result has broken tool linkage.
        IntegrityError: If the result fails integrity validation with `preserve_tool_pairs` enabled.
    """
    operation = "truncate_to_token_limit"
    options = options or {}
    env = resolve_conversation_environment(environment)
    estimator = options.get("estimate_tokens") or env.estimate_tokens
    preserve_system = options.get("preserve_system_messages", True)
    preserve_last_n = options.get("preserve_last_n", 0)
    preserve_tool_pairs = options.get("preserve_tool_pairs", True)

    if max_tokens < 0:
        raise ValueError(f"max_tokens must be non-negative, got {max_tokens}")
    if preserve_last_n < 0:
        raise ValueError(f"preserve_last_n must be non-negative, got {preserve_last_n}")

    _assert_precondition(operation, conversation)

    current_tokens = estimate_conversation_tokens(conversation, estimator)
    if current_tokens <= max_tokens:
        logger.debug("Conversation fits: %d tokens <= %d limit", current_tokens, max_tokens)
        return conversation

    now = env.now()
    ordered = get_ordered_messages(conversation)
    index = BlockIndex(ordered, estimator, preserve_tool_pairs)

    system_blocks = index.covering_blocks(_system_messages(ordered)) if preserve_system else []
    non_system = [message for message in ordered if message["role"] != "system"]
    recent = non_system[-preserve_last_n:] if preserve_last_n > 0 else []
    recency_blocks = index.covering_blocks(recent)

    locked = _union(system_blocks, recency_blocks)
    locked_set = set(locked)
    removable = [block for block in index.blocks if block not in locked_set]
    available_tokens = max_tokens - total_tokens(system_blocks) - total_tokens(recency_blocks)

    logger.debug(
        "Token budget: %d limit, %d system, %d recent, %d available for %d removable blocks (%d orphans excluded)",
        max_tokens,
        total_tokens(system_blocks),
        total_tokens(recency_blocks),
        available_tokens,
        len(removable),
        len(index.orphans),
    )

    kept = _union(locked, _select_within_budget(removable, available_tokens))
    truncated = _rebuild(conversation, flatten_blocks(kept), now)

    logger.info(
        "Truncation completed: %d -> %d messages (%d removed)",
        len(ordered),
        len(truncated["ids"]),
        len(ordered) - len(truncated["ids"]),
    )
    return _ensure_linkage(truncated, operation, preserve_tool_pairs)


def truncate_from_position(
    conversation: Conversation,
    position: int,
    options: Optional[TruncateFromPositionOptions] = None,
    environment: Optional[ConversationEnvironment] = None,
) -> Conversation:
    """Keep only the messages at or after a position.

    System messages before the cutoff are kept when preserved. Any block with a member at or after the cutoff
    is kept whole, so a tool use just before the cutoff survives together with its result.

    Args:
        conversation: The conversation to truncate.
        position: First position to keep.
        options: Truncation options.
        environment: Environment override for the clock.

    Returns:
        A new renumbered conversation.

    Raises:
        ValueError: If `position` is negative.
        PreconditionError: If the conversation fails schema validation.
        ToolPairingError: If `preserve_tool_pairs` is False and the result has broken tool linkage.
        IntegrityError: If the result fails integrity validation with `preserve_tool_pairs` enabled.
    """
    operation = "truncate_from_position"
    options = options or {}
    preserve_system = options.get("preserve_system_messages", True)
    preserve_tool_pairs = options.get("preserve_tool_pairs", True)

    if position < 0:
        raise ValueError(f"position must be non-negative, got {position}")

    _assert_precondition(operation, conversation)

    now = resolve_conversation_environment(environment).now()
    ordered = get_ordered_messages(conversation)
    index = BlockIndex(ordered, _zero_tokens, preserve_tool_pairs)

    system = (
        [message for message in _system_messages(ordered) if message["position"] < position] if preserve_system else []
    )
    tail = [message for message in ordered if message["position"] >= position]

    kept = _union(index.covering_blocks(system), index.covering_blocks(tail))
    truncated = _rebuild(conversation, flatten_blocks(kept), now)

    logger.debug(
        "Truncated from position %d: %d -> %d messages (%d orphan results excluded)",
        position,
        len(ordered),
        len(truncated["ids"]),
        len(index.orphans),
    )
    return _ensure_linkage(truncated, operation, preserve_tool_pairs)


def get_recent_messages(
    conversation: Conversation,
    count: int,
    options: Optional[RecentMessagesOptions] = None,
) -> List[Message]:
    """Return the last `count` messages.

    Hidden and system messages are skipped unless included by the options. With `preserve_tool_pairs`, the window
    is widened to whole blocks, so more than `count` messages can be returned. Orphan tool results in the window
    are returned as they are. Positions are left as they are.

    Args:
        conversation: The conversation to read.
        count: Number of trailing messages to return.
        options: Filtering options.

    Returns:
        Messages in canonical order.

    Raises:
        ValueError: If `count` is negative.
    """
    options = options or {}
    include_hidden = options.get("include_hidden", False)
    include_system = options.get("include_system", False)
    preserve_tool_pairs = options.get("preserve_tool_pairs", True)

    if count < 0:
        raise ValueError(f"count must be non-negative, got {count}")
    if count == 0:
        return []

    ordered = get_ordered_messages(conversation)
    filtered = [
        message
        for message in ordered
        if (include_hidden or not message["hidden"]) and (include_system or message["role"] != "system")
    ]
    recent = filtered[-count:]

    if not preserve_tool_pairs:
        return recent

    index = BlockIndex(ordered, _zero_tokens)
    unblocked = [message for message in recent if message["id"] not in index.block_by_message_id]
    expanded = flatten_blocks(index.covering_blocks(recent)) + unblocked
    return sorted(expanded, key=lambda message: message["position"])


def _system_messages(messages: Iterable[Message]) -> List[Message]:
    return [message for message in messages if message["role"] == "system"]


def _union(*groups: Sequence[MessageBlock]) -> List[MessageBlock]:
    """Combine block groups, keeping the first occurrence of each block."""
    combined: List[MessageBlock] = []
    seen = set()
    for group in groups:
        for block in group:
            if block not in seen:
                seen.add(block)
                combined.append(block)
    return combined


def _select_within_budget(removable: Sequence[MessageBlock], available_tokens: int) -> List[MessageBlock]:
    """Select removable blocks newest first while they fit the budget.

    Args:
        removable: Blocks eligible for trimming.
        available_tokens: Tokens left after locked content.

    Returns:
        The retained blocks.
    """
    if available_tokens <= 0:
        return []

    retained: List[MessageBlock] = []
    used_tokens = 0
    for block in reversed(sorted(removable, key=lambda block: block.max_position)):
        if used_tokens + block.token_count > available_tokens:
            break
        retained.append(block)
        used_tokens += block.token_count

    return retained


def _clone_message_with_position(message: Message, position: int) -> Message:
    """Deep copy a message with a new position."""
    clone = copy.deepcopy(message)
    clone["position"] = position
    if clone["role"] != "assistant":
        clone.pop("goalCompleted", None)
    return clone


def _rebuild(conversation: Conversation, messages: Sequence[Message], now: str) -> Conversation:
    """Create a new conversation holding `messages` renumbered from zero.

    Args:
        conversation: The source conversation whose other fields are carried over.
        messages: The kept messages, ordered by original position.
        now: Timestamp for `updatedAt`.

    Returns:
        A conversation sharing no mutable structure with the source.
    """
    renumbered = [_clone_message_with_position(message, position) for position, message in enumerate(messages)]
    rebuilt = {key: copy.deepcopy(value) for key, value in conversation.items() if key not in ("ids", "messages")}
    rebuilt["ids"] = [message["id"] for message in renumbered]
    rebuilt["messages"] = to_id_record(renumbered)
    rebuilt["updatedAt"] = now
    return rebuilt  # type: ignore[return-value]


def _assert_precondition(operation: str, conversation: Conversation) -> None:
    """Reject conversations that do not have the conversation shape."""
    try:
        assert_conversation_schema(conversation)
    except ValidationError as e:
        raise PreconditionError(operation, "conversation failed schema validation", {"issues": e.issues}) from e


def _ensure_linkage(conversation: Conversation, operation: str, preserve_tool_pairs: bool) -> Conversation:
    """Validate a rebuilt conversation.

    Integrity failures are unexpected while tool pairs are preserved and propagate unchanged. With tool pair
    preservation disabled they are an expected consequence and are raised as ToolPairingError.
    """
    try:
        return ensure_conversation_safe(conversation)
    except IntegrityError as e:
        if preserve_tool_pairs:
            raise
        logger.debug("%s broke tool linkage with preserve_tool_pairs disabled", operation)
        raise ToolPairingError(operation, e.issues) from e
