"""Conversation management with prompt building and bounded history."""

from collections.abc import Sequence

from .config import config
from .models import ConversationTurn, Prompt, RetrievalResult

logger = config.get_logger(__name__)

ROLE_LABELS = {"user": "Human", "assistant": "Assistant"}

SYSTEM_INSTRUCTIONS = (
    "You are a helpful AI assistant that answers questions based on the provided "
    "context documents. Use the information from the documents to provide "
    "accurate and helpful responses. If the information isn't available in the "
    "context, say so clearly."
)


class ConversationManager:
    """Keeps the most recent turns and assembles grounded prompts."""

    def __init__(self, max_turns: int | None = None) -> None:
        """Initialize ConversationManager.

        Args:
            max_turns: Maximum number of messages kept in history. If None,
                uses config.HISTORY_MAX_TURNS.

        Raises:
            ValueError: If max_turns is not positive.
        """
        self.max_turns = max_turns if max_turns is not None else config.HISTORY_MAX_TURNS
        if self.max_turns <= 0:
            msg = f"max_turns must be positive, got {self.max_turns}"
            raise ValueError(msg)
        self.history: list[ConversationTurn] = []

    def append_turn(self, role: str, content: str) -> None:
        """Append a message, evicting the oldest ones beyond max_turns.

        Raises:
            ValueError: If role is not "user" or "assistant".
        """
        if role not in ROLE_LABELS:
            msg = f"Unknown conversation role: {role}"
            raise ValueError(msg)
        self.history.append(ConversationTurn(role=role, content=content))
        overflow = len(self.history) - self.max_turns
        if overflow > 0:
            del self.history[:overflow]

    @staticmethod
    def render(history: Sequence[ConversationTurn]) -> str:
        """Render turns as a transcript, one role-labelled line per turn.

        Returns:
            str: Lines of the form ``Human: ...`` / ``Assistant: ...``.
        """
        return "\n".join(
            f"{ROLE_LABELS[turn.role]}: {turn.content}" for turn in history
        )

    def transcript(self) -> str:
        """Render this manager's own history.

        Returns:
            str: The rendered transcript.
        """
        return self.render(self.history)

    @staticmethod
    def format_context(results: Sequence[RetrievalResult]) -> str:
        """Label each retrieved chunk with its category and source.

        Returns:
            str: Context documents separated by blank lines.
        """
        return "\n\n".join(
            f"Document {i + 1} ({result.category}) - Source: "
            f"{result.source_path}:\n{result.text}"
            for i, result in enumerate(results)
        )

    def assemble_prompt(
        self,
        query: str,
        results: Sequence[RetrievalResult],
        history: Sequence[ConversationTurn] | None = None,
    ) -> Prompt:
        """Build the grounded prompt for a question.

        Args:
            query: The user's question, passed through verbatim.
            results: Retrieved chunks used as grounding context.
            history: Prior turns. Defaults to this manager's history.

        Returns:
            Prompt: System prompt with history and context, plus the question.
        """
        if history is None:
            history = self.history

        history_context = (
            f"Previous conversation:\n{self.render(history)}\n\n" if history else ""
        )
        system_prompt = (
            f"{SYSTEM_INSTRUCTIONS}\n\n"
            f"{history_context}"
            f"Context Documents:\n{self.format_context(results)}\n\n"
            "Please answer the following question based on the context provided above."
        )
        return Prompt(system_prompt=system_prompt, user_message=query)

    def clear_history(self) -> None:
        """Clear the conversation history."""
        self.history = []
        logger.info("Conversation history cleared.")
