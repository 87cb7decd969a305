"""Grouping of conversation messages into atomic truncation blocks."""

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Sequence, Set

from ..types.content import Message, TokenEstimator

logger = logging.getLogger(__name__)


@dataclass(eq=False)
class MessageBlock:
    """An atomic unit of truncation.

    A block is either a tool-use message merged with the tool-result messages answering it, or any other single
    message. Blocks compare and hash by identity.

    Attributes:
        messages: Member messages in conversation order.
        min_position: Position of the earliest member.
        max_position: Position of the latest member.
        token_count: Summed token estimate of all members.
    """

    messages: List[Message] = field(default_factory=list)
    min_position: int = 0
    max_position: int = 0
    token_count: int = 0

    @classmethod
    def from_message(cls, message: Message, token_count: int) -> "MessageBlock":
        """Create a block holding a single message."""
        return cls(
            messages=[message],
            min_position=message["position"],
            max_position=message["position"],
            token_count=token_count,
        )

    def add(self, message: Message, token_count: int) -> None:
        """Append a message to the block, extending its span and cost."""
        self.messages.append(message)
        self.min_position = min(self.min_position, message["position"])
        self.max_position = max(self.max_position, message["position"])
        self.token_count += token_count


class BlockIndex:
    """Partition of an ordered message list into blocks.

    When tool pairs are preserved, a tool-use message opens a block keyed by its call id and later tool-result
    messages with that call id join it. A tool result with no open block is an orphan: it is recorded in
    `orphans` but excluded from `blocks` and from the lookup, so it never takes part in selection. When tool pairs
    are not preserved every message becomes its own block.
    """

    def __init__(
        self,
        messages: Sequence[Message],
        estimate_tokens: TokenEstimator,
        preserve_tool_pairs: bool = True,
    ):
        """Build blocks for a message sequence.

        Args:
            messages: Messages in canonical order.
            estimate_tokens: Token estimator applied to every message.
            preserve_tool_pairs: Whether to group tool uses with their results.
        """
        self.messages = list(messages)
        self.preserve_tool_pairs = preserve_tool_pairs
        self.orphans: List[Message] = []
        self.blocks = self._build_blocks(estimate_tokens)
        self.block_by_message_id: Dict[str, MessageBlock] = {
            message["id"]: block for block in self.blocks for message in block.messages
        }

    def _build_blocks(self, estimate_tokens: TokenEstimator) -> List[MessageBlock]:
        """Group messages into blocks.

        Args:
            estimate_tokens: Token estimator applied to every message.

        Returns:
            Blocks in order of their first message, orphan tool results excluded.
        """
        if not self.preserve_tool_pairs:
            return [MessageBlock.from_message(message, estimate_tokens(message)) for message in self.messages]

        blocks: List[MessageBlock] = []
        open_blocks: Dict[str, MessageBlock] = {}

        for message in self.messages:
            token_count = estimate_tokens(message)

            if message["role"] == "tool-use" and "toolCall" in message:
                block = MessageBlock.from_message(message, token_count)
                open_blocks[message["toolCall"]["id"]] = block
                blocks.append(block)
            elif message["role"] == "tool-result" and "toolResult" in message:
                owner = open_blocks.get(message["toolResult"]["callId"])
                if owner is not None:
                    owner.add(message, token_count)
                else:
                    logger.debug(
                        "Excluding orphan tool result %s (call id %s)", message["id"], message["toolResult"]["callId"]
                    )
                    self.orphans.append(message)
            else:
                blocks.append(MessageBlock.from_message(message, token_count))

        return blocks

    def covering_blocks(self, messages: Iterable[Message]) -> List[MessageBlock]:
        """Expand messages to the blocks containing them.

        A block is included once if any of its members is among `messages`. Messages without a block (orphan tool
        results) contribute nothing.

        Args:
            messages: The messages to cover.

        Returns:
            Covering blocks in order of first reference.
        """
        covered: List[MessageBlock] = []
        seen: Set[MessageBlock] = set()
        for message in messages:
            block = self.block_by_message_id.get(message["id"])
            if block is None or block in seen:
                continue
            seen.add(block)
            covered.append(block)
        return covered


def flatten_blocks(blocks: Iterable[MessageBlock]) -> List[Message]:
    """Flatten blocks into messages ordered by position, each message appearing once."""
    unique: Dict[str, Message] = {}
    for block in blocks:
        for message in block.messages:
            unique.setdefault(message["id"], message)
    return sorted(unique.values(), key=lambda message: message["position"])


def total_tokens(blocks: Iterable[MessageBlock]) -> int:
    """Sum the token cost of blocks."""
    return sum(block.token_count for block in blocks)
