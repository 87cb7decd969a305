"""Tests for conversation schema and safety checks."""

import pytest

from conversationalist.conversation import (
    assert_conversation_safe,
    assert_conversation_schema,
    ensure_conversation_safe,
)
from conversationalist.types.exceptions import IntegrityError, ValidationError


@pytest.fixture
def conversation(build_conversation):
    return build_conversation(
        {"role": "system", "content": "You are helpful"},
        {"role": "user", "content": [{"type": "text", "text": "Look"}, {"type": "image", "url": "https://x.test/a"}]},
        {
            "role": "tool-use",
            "content": "",
            "toolCall": {"id": "call-1", "name": "search", "arguments": {"q": "x"}},
        },
        {
            "role": "tool-result",
            "content": "",
            "toolResult": {"callId": "call-1", "outcome": "error", "error": "timeout"},
        },
        {"role": "assistant", "content": "Done", "goalCompleted": True},
    )


class TestAssertConversationSchema:
    """Test assert_conversation_schema."""

    def test_accepts_built_conversation(self, conversation):
        """Test that conversations built by the store conform to the schema."""
        assert_conversation_schema(conversation)

    def test_rejects_unknown_role(self, conversation):
        """Test that an unknown role is rejected with its location."""
        conversation["messages"]["msg-2"]["role"] = "robot"

        with pytest.raises(ValidationError, match="conversation failed schema validation") as exc_info:
            assert_conversation_schema(conversation)

        error = exc_info.value
        assert error.code == "error:validation"
        assert error.issues
        assert any("msg-2" in issue["loc"] for issue in error.issues)

    def test_rejects_missing_field(self, conversation):
        """Test that a missing required field is rejected."""
        del conversation["updatedAt"]

        with pytest.raises(ValidationError):
            assert_conversation_schema(conversation)

    def test_does_not_coerce_types(self, conversation):
        """Test that values of the wrong type are not coerced."""
        conversation["messages"]["msg-1"]["position"] = "0"

        with pytest.raises(ValidationError):
            assert_conversation_schema(conversation)

    def test_rejects_non_mapping(self):
        """Test that values that are not conversations are rejected."""
        with pytest.raises(ValidationError):
            assert_conversation_schema(["not", "a", "conversation"])


class TestConversationSafety:
    """Test assert_conversation_safe and ensure_conversation_safe."""

    def test_ensure_returns_same_conversation(self, conversation):
        """Test that a safe conversation is returned as is."""
        assert ensure_conversation_safe(conversation) is conversation

    def test_schema_checked_before_integrity(self, conversation):
        """Test that schema failures are reported before integrity failures."""
        conversation["ids"].append("ghost")
        conversation["status"] = "unknown"

        with pytest.raises(ValidationError):
            assert_conversation_safe(conversation)

    def test_integrity_failure(self, conversation):
        """Test that integrity failures raise IntegrityError."""
        conversation["ids"].reverse()

        with pytest.raises(IntegrityError):
            ensure_conversation_safe(conversation)

    def test_detailed_string(self, conversation):
        """Test that the detailed string carries code, context and cause."""
        conversation["messages"]["msg-1"]["hidden"] = "no"

        with pytest.raises(ValidationError) as exc_info:
            assert_conversation_safe(conversation)

        detailed = exc_info.value.to_detailed_string()
        assert detailed.startswith("[error:validation] conversation failed schema validation")
        assert "Context:" in detailed
        assert "Caused by:" in detailed
