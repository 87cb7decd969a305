"""Environment provider for conversation operations.

The environment supplies the wall clock, identifier generation and the default token estimator. Callers pass a
partial override and missing entries are filled from the defaults, which keeps operations deterministic in tests.
"""

import math
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Optional

from typing_extensions import TypedDict

from .types.content import Message, TokenEstimator


class ConversationEnvironment(TypedDict, total=False):
    """Partial environment override.

    Attributes:
        now: Returns the current time as an ISO-8601 string.
        random_id: Returns a new unique identifier.
        estimate_tokens: Default token estimator for messages.
    """

    now: Callable[[], str]
    random_id: Callable[[], str]
    estimate_tokens: TokenEstimator


@dataclass(frozen=True)
class ResolvedEnvironment:
    """A complete environment with every function present."""

    now: Callable[[], str]
    random_id: Callable[[], str]
    estimate_tokens: TokenEstimator


def message_text(message: Message, joiner: str = "\n\n") -> str:
    """Extract the text of a message, joining text parts and skipping non-text parts.

    Args:
        message: The message to read.
        joiner: Separator placed between text parts.

    Returns:
        The message text.
    """
    content = message["content"]
    if isinstance(content, str):
        return content
    return joiner.join(part["text"] for part in content if part["type"] == "text")


def simple_token_estimator(message: Message) -> int:
    """Character based token estimator.

    Approximates ~4 characters per token, a rough average for English text.
    """
    return math.ceil(len(message_text(message)) / 4)


def utc_now() -> str:
    """Return the current UTC time as an ISO-8601 string with millisecond precision."""
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def random_id() -> str:
    """Return a random UUID4 string."""
    return str(uuid.uuid4())


DEFAULT_ENVIRONMENT = ResolvedEnvironment(now=utc_now, random_id=random_id, estimate_tokens=simple_token_estimator)


def resolve_conversation_environment(environment: Optional[ConversationEnvironment] = None) -> ResolvedEnvironment:
    """Merge a partial environment with the defaults.

    Args:
        environment: Partial override, or None for the defaults.

    Returns:
        A complete environment.
    """
    if not environment:
        return DEFAULT_ENVIRONMENT

    return ResolvedEnvironment(
        now=environment.get("now") or DEFAULT_ENVIRONMENT.now,
        random_id=environment.get("random_id") or DEFAULT_ENVIRONMENT.random_id,
        estimate_tokens=environment.get("estimate_tokens") or DEFAULT_ENVIRONMENT.estimate_tokens,
    )
