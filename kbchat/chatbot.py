"""Question answering over the knowledge base with streamed replies."""

from collections.abc import Iterator
from contextlib import closing

from .completion import CompletionStreamer
from .config import config
from .conversation import ConversationManager
from .exceptions import CompletionError, EmbeddingError, VectorStoreConnectionError
from .pipeline import RAGPipeline

logger = config.get_logger(__name__)

APOLOGY = "Sorry, I encountered an error processing your question. Please try again."
REBUILT_MESSAGE = "Knowledge base rebuilt successfully!"

TURN_ERRORS = (EmbeddingError, CompletionError, VectorStoreConnectionError)


class RAGChatbot:
    """Answers questions with retrieval, prompt assembly and streaming."""

    def __init__(
        self,
        pipeline: RAGPipeline,
        conversation: ConversationManager | None = None,
        streamer: CompletionStreamer | None = None,
        top_k: int | None = None,
    ) -> None:
        """Initialize RAGChatbot.

        Args:
            pipeline: Initialized RAG pipeline used for retrieval and rebuilds.
            conversation: History holder and prompt builder. If None, a new
                ConversationManager is created.
            streamer: Chat completion streamer. If None, built from config.
            top_k: Chunks retrieved per question. If None, uses
                config.RETRIEVAL_TOP_K.
        """
        self.pipeline = pipeline
        self.conversation = conversation or ConversationManager()
        self.streamer = streamer or CompletionStreamer()
        self.top_k = top_k if top_k is not None else config.RETRIEVAL_TOP_K

    def ask(self, question: str) -> Iterator[str]:
        """Answer a question, yielding reply fragments as they stream in.

        Both turns are recorded only once the reply has fully streamed.
        A failed turn yields APOLOGY and leaves the history unchanged.

        Yields:
            Reply fragments, or APOLOGY if the turn failed.
        """
        fragments: list[str] = []
        try:
            results = self.pipeline.retrieve(question, self.top_k)
            prompt = self.conversation.assemble_prompt(question, results)
            stream = self.streamer.stream_completion(
                prompt.system_prompt, prompt.user_message
            )
            with closing(stream):
                for fragment in stream:
                    fragments.append(fragment)
                    yield fragment
        except TURN_ERRORS:
            logger.exception("Error during chat")
            yield APOLOGY
            return

        self.conversation.append_turn("user", question)
        self.conversation.append_turn("assistant", "".join(fragments))

    def rebuild(self) -> str:
        """Rebuild the knowledge base from the documents on disk.

        Returns:
            Confirmation message.

        Raises:
            EmbeddingError: If embedding fails during the build.
            VectorStoreConnectionError: If the store cannot be reached.
        """
        stored = self.pipeline.rebuild()
        logger.info("Knowledge base rebuilt with %d chunks", stored)
        return REBUILT_MESSAGE

    def status(self) -> str:
        """Summarize the store, collection, history and model.

        Returns:
            Multi-line status report.
        """
        store = self.pipeline.vector_store
        connected = store.is_connected
        if not connected:
            documents = "Not available"
        else:
            count = self.pipeline.document_count()
            documents = "Error fetching count" if count is None else f"{count} documents"

        return "\n".join([
            "System Status:",
            f"- Vector store: {store.backend} "
            f"({'Connected' if connected else 'Not connected'}) ({store.describe()})",
            f"- Collection: {self.pipeline.collection_name} "
            f"({'Available' if connected else 'Not available'})",
            f"- Documents: {documents}",
            f"- Chat History: {len(self.conversation.history)} messages",
            f"- Model: {self.streamer.model}",
        ])

    def respond(self, message: str) -> Iterator[str]:
        """Handle one line of user input.

        ``rebuild`` and ``status`` (any case) are commands; anything else is
        a question.

        Yields:
            Output fragments for the line.
        """
        command = message.strip().lower()
        if command == "rebuild":
            try:
                yield self.rebuild()
            except (EmbeddingError, VectorStoreConnectionError):
                logger.exception("Error rebuilding knowledge base")
                yield APOLOGY
            return
        if command == "status":
            yield self.status()
            return
        yield from self.ask(message)
