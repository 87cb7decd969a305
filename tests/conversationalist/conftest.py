import itertools

import pytest

from conversationalist.conversation import append_messages, create_conversation


def metadata_tokens(message):
    """Token estimator reading a fixed cost from message metadata."""
    return message["metadata"].get("tokens", 0)


@pytest.fixture
def environment():
    counter = itertools.count(1)
    return {
        "now": lambda: "2024-01-01T00:00:00.000Z",
        "random_id": lambda: f"msg-{next(counter)}",
    }


@pytest.fixture
def build_conversation(environment):
    """Build a conversation with deterministic ids msg-1, msg-2, ... in append order."""

    def _build(*inputs):
        conversation = create_conversation({"id": "conv"}, environment)
        return append_messages(conversation, *inputs, environment=environment)

    return _build


@pytest.fixture
def estimator():
    return metadata_tokens
