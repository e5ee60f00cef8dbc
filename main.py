"""Command-line entry point for the KBChat terminal chatbot."""

from __future__ import annotations

import argparse
import signal
import sys
from pathlib import Path
from typing import TYPE_CHECKING

from kbchat.chatbot import RAGChatbot
from kbchat.config import SUPPORTED_BACKENDS, config
from kbchat.document_processing import KnowledgeBaseIngestor
from kbchat.exceptions import (
    ConfigError,
    EmbeddingError,
    SchemaError,
    VectorStoreConnectionError,
)
from kbchat.pipeline import RAGPipeline
from kbchat.vector_store import get_vector_store

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence
    from types import FrameType

EXIT_COMMANDS = {"exit", "quit"}
BANNER_WIDTH = 50
FATAL_ERRORS = (ConfigError, VectorStoreConnectionError, SchemaError, EmbeddingError)

logger = config.get_logger(__name__)


def positive_int(value: str) -> int:
    """Argparse type accepting integers greater than zero."""  # noqa: DOC201, DOC501
    number = int(value)
    if number <= 0:
        msg = f"must be a positive integer, got {value}"
        raise argparse.ArgumentTypeError(msg)
    return number


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    """Build the CLI parser and read command-line arguments."""  # noqa: DOC201
    parser = argparse.ArgumentParser(
        description="Chat with a folder of documents using retrieval-augmented "
        "generation.",
    )
    parser.add_argument(
        "--knowledge-base",
        type=Path,
        default=None,
        help=f"Knowledge-base directory (default: {config.KNOWLEDGE_BASE_DIR}).",
    )
    parser.add_argument(
        "--backend",
        choices=SUPPORTED_BACKENDS,
        default=None,
        help=f"Vector store backend (default: {config.VECTOR_BACKEND}).",
    )
    parser.add_argument(
        "--collection",
        default=None,
        help=f"Collection or index name (default: {config.COLLECTION_NAME}).",
    )
    parser.add_argument(
        "--top-k",
        type=positive_int,
        default=None,
        help=f"Chunks retrieved per question (default: {config.RETRIEVAL_TOP_K}).",
    )
    return parser.parse_args(argv)


def build_chatbot(args: argparse.Namespace) -> RAGChatbot:
    """Construct the pipeline and chatbot from arguments and config."""  # noqa: DOC201
    pipeline = RAGPipeline(
        vector_store=get_vector_store(args.backend),
        ingestor=KnowledgeBaseIngestor(root=args.knowledge_base),
        collection_name=args.collection,
    )
    return RAGChatbot(pipeline, top_k=args.top_k)


def write_stdout(text: str) -> None:
    """Write text to stdout immediately."""
    sys.stdout.write(text)
    sys.stdout.flush()


def print_banner(document_count: int, write: Callable[[str], None]) -> None:
    """Show the ready message and the available commands."""
    rule = "=" * BANNER_WIDTH
    write(
        f"{rule}\n"
        "RAG Chatbot initialized successfully!\n"
        f"Knowledge base contains {document_count} documents.\n"
        "You can now ask questions about your documents.\n"
        "Commands:\n"
        '  - "rebuild" - Rebuild the knowledge base from documents\n'
        '  - "status" - Show current status\n'
        '  - "exit" or "quit" - End the conversation\n'
        f"{rule}\n\n"
    )


def run_repl(
    chatbot: RAGChatbot,
    read_line: Callable[[str], str] = input,
    write: Callable[[str], None] = write_stdout,
) -> int:
    """Read questions until exit, streaming each reply as it arrives.

    Returns:
        Exit code 0.
    """
    while True:
        try:
            line = read_line("You: ")
        except EOFError:
            write("\nGoodbye!\n")
            return 0

        message = line.strip()
        if not message:
            continue
        if message.lower() in EXIT_COMMANDS:
            write("Goodbye!\n")
            return 0

        write("\nAssistant: ")
        for fragment in chatbot.respond(message):
            write(fragment)
        write("\n\n")


def handle_sigterm(signum: int, frame: FrameType | None) -> None:  # noqa: ARG001
    """Turn SIGTERM into the same clean shutdown as Ctrl-C."""  # noqa: DOC501
    raise KeyboardInterrupt


def main(
    argv: Sequence[str] | None = None,
    read_line: Callable[[str], str] = input,
    write: Callable[[str], None] = write_stdout,
) -> int:
    """Validate configuration, build the knowledge base and run the chat loop."""  # noqa: DOC201
    args = parse_args(argv)

    config.setup_logging()
    signal.signal(signal.SIGTERM, handle_sigterm)

    try:
        config.validate(backend=args.backend)
        chatbot = build_chatbot(args)
        document_count = chatbot.pipeline.initialize()
    except FATAL_ERRORS:
        logger.exception("Failed to initialize chatbot")
        return 1
    except KeyboardInterrupt:
        write("\nGoodbye!\n")
        logger.info("KBChat stopped by user")
        return 0

    print_banner(document_count, write)
    try:
        return run_repl(chatbot, read_line=read_line, write=write)
    except FATAL_ERRORS:
        logger.exception("Chat session ended by an unrecoverable error")
        return 1
    except KeyboardInterrupt:
        write("\nGoodbye!\n")
        logger.info("KBChat stopped by user")
        return 0


if __name__ == "__main__":
    sys.exit(main())
