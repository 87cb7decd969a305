"""Tests for the environment provider."""

from conversationalist.environment import (
    DEFAULT_ENVIRONMENT,
    message_text,
    random_id,
    resolve_conversation_environment,
    simple_token_estimator,
    utc_now,
)


def message(content):
    return {
        "id": "m",
        "role": "user",
        "content": content,
        "position": 0,
        "createdAt": "2024-01-01T00:00:00.000Z",
        "metadata": {},
        "hidden": False,
    }


class TestResolveConversationEnvironment:
    """Test resolve_conversation_environment."""

    def test_defaults(self):
        """Test that no override resolves to the defaults."""
        assert resolve_conversation_environment() is DEFAULT_ENVIRONMENT
        assert resolve_conversation_environment({}) is DEFAULT_ENVIRONMENT

    def test_partial_override(self):
        """Test that missing entries fall back to the defaults."""
        env = resolve_conversation_environment({"now": lambda: "then"})

        assert env.now() == "then"
        assert env.random_id is random_id
        assert env.estimate_tokens is simple_token_estimator


class TestDefaults:
    """Test the default environment functions."""

    def test_utc_now_format(self):
        """Test that timestamps are UTC with millisecond precision."""
        now = utc_now()

        assert now.endswith("Z")
        assert len(now) == len("2024-01-01T00:00:00.000Z")

    def test_random_ids_are_unique(self):
        """Test that generated ids do not repeat."""
        assert len({random_id() for _ in range(100)}) == 100

    def test_simple_token_estimator(self):
        """Test that roughly four characters count as one token."""
        assert simple_token_estimator(message("")) == 0
        assert simple_token_estimator(message("abcd")) == 1
        assert simple_token_estimator(message("abcde")) == 2

    def test_message_text_joins_text_parts(self):
        """Test that text parts are joined and other parts are skipped."""
        content = [
            {"type": "text", "text": "Hello"},
            {"type": "image", "url": "https://x.test/a.png", "text": "alt"},
            {"type": "text", "text": "world"},
        ]

        assert message_text(message(content)) == "Hello\n\nworld"
        assert message_text(message(content), " ") == "Hello world"
        assert message_text(message("plain")) == "plain"
