"""Tests for BlockIndex and block helpers."""

import pytest

from conversationalist.context.blocks import BlockIndex, MessageBlock, flatten_blocks, total_tokens
from conversationalist.conversation import get_ordered_messages


def text(role, content, tokens=0):
    return {"role": role, "content": content, "metadata": {"tokens": tokens}}


def tool_use(call_id, tokens=0):
    return {
        "role": "tool-use",
        "content": "",
        "metadata": {"tokens": tokens},
        "toolCall": {"id": call_id, "name": "search", "arguments": {"q": call_id}},
    }


def tool_result(call_id, tokens=0):
    return {
        "role": "tool-result",
        "content": "",
        "metadata": {"tokens": tokens},
        "toolResult": {"callId": call_id, "outcome": "success", "content": "ok"},
    }


class TestBlockIndex:
    """Test the BlockIndex class."""

    @pytest.fixture
    def sample_messages(self, build_conversation):
        conversation = build_conversation(
            text("user", "Hello", 2),
            tool_use("call-1", 5),
            tool_result("call-1", 7),
            text("assistant", "Final response", 3),
        )
        return get_ordered_messages(conversation)

    def test_tool_use_and_result_are_grouped(self, sample_messages, estimator):
        """Test that a tool use and its result form one block."""
        index = BlockIndex(sample_messages, estimator)

        assert len(index.blocks) == 3
        tool_block = index.blocks[1]
        assert [message["id"] for message in tool_block.messages] == ["msg-2", "msg-3"]
        assert tool_block.min_position == 1
        assert tool_block.max_position == 2
        assert tool_block.token_count == 12

    def test_lookup_covers_every_grouped_message(self, sample_messages, estimator):
        """Test that both members of a tool block resolve to the same block."""
        index = BlockIndex(sample_messages, estimator)

        assert index.block_by_message_id["msg-2"] is index.block_by_message_id["msg-3"]
        assert index.block_by_message_id["msg-1"] is not index.block_by_message_id["msg-4"]
        assert set(index.block_by_message_id) == {"msg-1", "msg-2", "msg-3", "msg-4"}

    def test_multiple_results_join_the_same_block(self, build_conversation, estimator):
        """Test that every result sharing a call id joins the tool use block."""
        conversation = build_conversation(
            tool_use("call-1", 1),
            tool_result("call-1", 2),
            text("user", "interjection", 1),
            tool_result("call-1", 4),
        )
        index = BlockIndex(get_ordered_messages(conversation), estimator)

        assert len(index.blocks) == 2
        tool_block = index.block_by_message_id["msg-1"]
        assert [message["id"] for message in tool_block.messages] == ["msg-1", "msg-2", "msg-4"]
        assert tool_block.max_position == 3
        assert tool_block.token_count == 7

    def test_orphan_result_is_excluded(self, build_conversation, estimator):
        """Test that a result without a tool use is left out of blocks and lookup."""
        conversation = build_conversation(text("user", "Hello", 1), tool_result("missing", 1))
        index = BlockIndex(get_ordered_messages(conversation), estimator)

        assert len(index.blocks) == 1
        assert len(index.orphans) == 1
        assert index.orphans[0]["id"] == "msg-2"
        assert "msg-2" not in index.block_by_message_id

    def test_result_before_tool_use_is_orphan(self, build_conversation, estimator):
        """Test that an out-of-order result does not attach to a later tool use."""
        conversation = build_conversation(tool_result("call-1", 1), tool_use("call-1", 1))
        index = BlockIndex(get_ordered_messages(conversation), estimator)

        assert [block.messages[0]["id"] for block in index.blocks] == ["msg-2"]
        assert len(index.blocks[0].messages) == 1
        assert [message["id"] for message in index.orphans] == ["msg-1"]

    def test_without_tool_pairs_every_message_is_a_singleton(self, sample_messages, estimator):
        """Test that disabling tool pair preservation disables grouping and orphan exclusion."""
        index = BlockIndex(sample_messages, estimator, preserve_tool_pairs=False)

        assert len(index.blocks) == 4
        assert all(len(block.messages) == 1 for block in index.blocks)
        assert index.orphans == []

    def test_covering_blocks_deduplicates(self, sample_messages, estimator):
        """Test that covering a tool use and its result yields the block once."""
        index = BlockIndex(sample_messages, estimator)

        covered = index.covering_blocks([sample_messages[2], sample_messages[1], sample_messages[3]])

        assert covered == [index.block_by_message_id["msg-2"], index.block_by_message_id["msg-4"]]

    def test_covering_blocks_skips_orphans(self, build_conversation, estimator):
        """Test that orphan results contribute no block."""
        conversation = build_conversation(text("user", "Hello"), tool_result("missing"))
        messages = get_ordered_messages(conversation)
        index = BlockIndex(messages, estimator)

        assert index.covering_blocks(messages[1:]) == []

    def test_empty_messages_list(self, estimator):
        """Test behavior with an empty message list."""
        index = BlockIndex([], estimator)

        assert index.blocks == []
        assert index.block_by_message_id == {}

    def test_estimator_is_applied_to_every_message(self, sample_messages):
        """Test that the estimator sees each message exactly once."""
        seen = []

        def counting_estimator(message):
            seen.append(message["id"])
            return 1

        BlockIndex(sample_messages, counting_estimator)

        assert seen == ["msg-1", "msg-2", "msg-3", "msg-4"]


class TestBlockHelpers:
    """Test flatten_blocks and total_tokens."""

    def test_flatten_orders_by_position_and_deduplicates(self, build_conversation, estimator):
        """Test that flattening restores canonical order without duplicates."""
        conversation = build_conversation(text("user", "a", 1), tool_use("call-1", 2), tool_result("call-1", 3))
        messages = get_ordered_messages(conversation)
        index = BlockIndex(messages, estimator)
        tool_block = index.block_by_message_id["msg-2"]

        flattened = flatten_blocks([tool_block, index.block_by_message_id["msg-1"], tool_block])

        assert [message["id"] for message in flattened] == ["msg-1", "msg-2", "msg-3"]

    def test_total_tokens(self, build_conversation, estimator):
        """Test that block costs are summed."""
        conversation = build_conversation(text("user", "a", 1), tool_use("call-1", 2), tool_result("call-1", 3))
        index = BlockIndex(get_ordered_messages(conversation), estimator)

        assert total_tokens(index.blocks) == 6
        assert total_tokens([]) == 0

    def test_blocks_compare_by_identity(self):
        """Test that distinct blocks with equal fields are not equal."""
        assert MessageBlock() != MessageBlock()
        assert len({MessageBlock(), MessageBlock()}) == 2
