"""Conversation manager that keeps a conversation within a context window by truncation."""

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, NoReturn, Optional

from typing_extensions import override

from ..conversation.store import get_ordered_messages
from ..environment import ConversationEnvironment
from ..types.content import Conversation, TokenEstimator
from ..types.exceptions import ContextWindowOverflowException
from .truncation import TruncateOptions, estimate_conversation_tokens, truncate_to_token_limit

logger = logging.getLogger(__name__)


class ConversationManager(ABC):
    """Abstract interface for managing conversation size between model calls.

    Managers take a conversation snapshot and return the snapshot to use next; they never modify their input.
    """

    def __init__(self) -> None:
        """Initialize the manager."""
        self.removed_message_count = 0

    @abstractmethod
    def apply_management(self, conversation: Conversation, **kwargs: Any) -> Conversation:
        """Apply the management strategy after each model turn.

        Args:
            conversation: The current conversation.
            **kwargs: Additional keyword arguments for future extensibility.

        Returns:
            The conversation to continue with.
        """
        pass

    @abstractmethod
    def reduce_context(self, conversation: Conversation, e: Optional[Exception] = None, **kwargs: Any) -> Conversation:
        """Reduce the conversation, typically after a context window overflow.

        Args:
            conversation: The current conversation.
            e: The exception that triggered the reduction, if any.
            **kwargs: Additional keyword arguments for future extensibility.

        Returns:
            The reduced conversation.
        """
        pass

    def get_state(self) -> Dict[str, Any]:
        """Get the manager state for session persistence."""
        return {
            "__name__": self.__class__.__name__,
            "removed_message_count": self.removed_message_count,
        }

    def restore_from_session(self, state: Dict[str, Any]) -> None:
        """Restore the manager state from a session.

        Args:
            state: State produced by get_state.

        Raises:
            ValueError: If the state belongs to a different manager class.
        """
        if state.get("__name__") != self.__class__.__name__:
            raise ValueError("Invalid conversation manager state.")
        self.removed_message_count = state["removed_message_count"]


class ContextWindowManager(ConversationManager):
    """Conversation manager that truncates conversations to a fraction of the context window.

    Truncation keeps system messages, the most recent messages and whole tool interactions, and drops the oldest
    remaining blocks first.
    """

    def __init__(
        self,
        context_window_size: int = 200000,
        truncation_threshold: float = 0.7,
        preserve_system_messages: bool = True,
        preserve_last_n: int = 2,
        preserve_tool_pairs: bool = True,
        enable_proactive_truncation: bool = True,
        estimate_tokens: Optional[TokenEstimator] = None,
        environment: Optional[ConversationEnvironment] = None,
    ):
        """Initialize the context window manager.

        Args:
            context_window_size: Maximum context window size in tokens.
            truncation_threshold: Fraction of the window to truncate down to, and the usage that triggers
                proactive truncation (0.1-1.0).
            preserve_system_messages: Whether system messages are always kept.
            preserve_last_n: Number of recent non-system messages that are always kept.
            preserve_tool_pairs: Whether tool uses and their results are kept together.
            enable_proactive_truncation: Whether apply_management truncates once the threshold is exceeded.
            estimate_tokens: Token estimator; defaults to the environment's estimator.
            environment: Environment override for the clock and default estimator.
        """
        super().__init__()
        self.context_window_size = context_window_size
        self.truncation_threshold = max(0.1, min(1.0, truncation_threshold))
        self.preserve_system_messages = preserve_system_messages
        self.preserve_last_n = preserve_last_n
        self.preserve_tool_pairs = preserve_tool_pairs
        self.enable_proactive_truncation = enable_proactive_truncation
        self.estimate_tokens = estimate_tokens
        self.environment = environment

    @property
    def threshold_tokens(self) -> int:
        """Token count that triggers proactive truncation and that truncation aims for."""
        return int(self.context_window_size * self.truncation_threshold)

    @override
    def apply_management(self, conversation: Conversation, **kwargs: Any) -> Conversation:
        """Truncate proactively once the conversation grows beyond the threshold.

        Args:
            conversation: The current conversation.
            **kwargs: Additional keyword arguments for future extensibility.

        Returns:
            The truncated conversation, or the input when no truncation is needed.

        Raises:
            ContextWindowOverflowException: If proactive truncation cannot reduce the conversation.
        """
        if self.enable_proactive_truncation and self._should_truncate_proactively(conversation):
            logger.debug("Applying proactive truncation based on threshold")
            return self.reduce_context(conversation, **kwargs)
        return conversation

    @override
    def reduce_context(self, conversation: Conversation, e: Optional[Exception] = None, **kwargs: Any) -> Conversation:
        """Truncate the conversation down to the threshold.

        Args:
            conversation: The current conversation.
            e: The exception that triggered the reduction, if any.
            **kwargs: Additional keyword arguments for future extensibility.

        Returns:
            The truncated conversation.

        Raises:
            ContextWindowOverflowException: If the conversation is empty, truncation did not reduce its estimated
                size, or it still exceeds the context window after truncation. The triggering exception `e` is
                re-raised instead when given.
        """
        if not conversation["ids"]:
            raise ContextWindowOverflowException("No messages to truncate")

        original_count = len(conversation["ids"])

        try:
            original_tokens = self._estimate(conversation)
            truncated = truncate_to_token_limit(conversation, self.threshold_tokens, self._options(), self.environment)
            remaining_tokens = self._estimate(truncated)
        except Exception as truncation_error:
            logger.error("Truncation failed: %s", truncation_error)
            raise truncation_error from e

        logger.debug("Token comparison: original=%d, truncated=%d", original_tokens, remaining_tokens)
        if remaining_tokens > self.context_window_size:
            logger.error(
                "Truncation failed to fit the context window: %d tokens > %d limit",
                remaining_tokens,
                self.context_window_size,
            )
            self._handle_truncation_failure(e, "Truncation failed to fit the context window")
        if remaining_tokens >= original_tokens:
            self._handle_truncation_failure(e, "Truncation failed to reduce context")

        removed_count = original_count - len(truncated["ids"])
        self.removed_message_count += removed_count
        logger.info(
            "Context reduced: %d -> %d messages (%d removed)", original_count, len(truncated["ids"]), removed_count
        )
        return truncated

    def _should_truncate_proactively(self, conversation: Conversation) -> bool:
        """Determine if proactive truncation should be triggered.

        Args:
            conversation: The conversation to evaluate.

        Returns:
            True if the estimated tokens exceed the threshold.
        """
        if not get_ordered_messages(conversation):
            return False

        total_tokens = self._estimate(conversation)
        logger.debug(
            "Proactive truncation check: %d tokens / %d threshold (%d limit * %s threshold)",
            total_tokens,
            self.threshold_tokens,
            self.context_window_size,
            self.truncation_threshold,
        )
        return total_tokens > self.threshold_tokens

    def _handle_truncation_failure(self, e: Optional[Exception], message: str) -> NoReturn:
        """Handle a truncation that cannot be used.

        Args:
            e: The original exception that triggered the reduction, if any.
            message: Description used when there is no original exception.

        Raises:
            ContextWindowOverflowException: When truncation fails and no original exception is given.
        """
        logger.error("%s", message)
        if e:
            raise e
        raise ContextWindowOverflowException(message)

    def _estimate(self, conversation: Conversation) -> int:
        return estimate_conversation_tokens(conversation, self.estimate_tokens, self.environment)

    def _options(self) -> TruncateOptions:
        options: TruncateOptions = {
            "preserve_system_messages": self.preserve_system_messages,
            "preserve_last_n": self.preserve_last_n,
            "preserve_tool_pairs": self.preserve_tool_pairs,
        }
        if self.estimate_tokens is not None:
            options["estimate_tokens"] = self.estimate_tokens
        return options
