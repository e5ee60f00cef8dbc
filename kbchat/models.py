"""Data models for the RAG chatbot."""

from dataclasses import dataclass
from typing import Literal

import numpy as np

Role = Literal["user", "assistant"]


@dataclass(frozen=True)
class Document:
    """A knowledge-base file tagged with the category of its folder."""

    id: str
    text: str
    category: str
    source_path: str


@dataclass(frozen=True)
class Chunk:
    """A contiguous slice of a document, ``document.text[start_char:end_char]``."""

    id: str
    text: str
    category: str
    source_path: str
    sequence_index: int
    start_char: int
    end_char: int


@dataclass
class EmbeddedChunk:
    """A chunk paired with its embedding vector."""

    chunk: Chunk
    vector: np.ndarray


@dataclass
class StoredRecord:
    """Persisted form of an embedded chunk, keyed by a unique id."""

    id: str
    vector: np.ndarray
    text: str
    category: str
    source_path: str

    @classmethod
    def from_embedded_chunk(cls, embedded: EmbeddedChunk) -> "StoredRecord":
        """Build a record from an embedded chunk.

        Returns:
            StoredRecord carrying the chunk's id, text and metadata.
        """
        chunk = embedded.chunk
        return cls(
            id=chunk.id,
            vector=np.asarray(embedded.vector, dtype=np.float32),
            text=chunk.text,
            category=chunk.category,
            source_path=chunk.source_path,
        )

    def metadata(self) -> dict[str, str]:
        """Metadata payload shared by the remote backends.

        Returns:
            Mapping of category and source path.
        """
        return {"category": self.category, "source_path": self.source_path}


@dataclass
class RetrievalResult:
    """A retrieved chunk with its cosine similarity to the query."""

    text: str
    category: str
    source_path: str
    score: float


@dataclass
class ConversationTurn:
    """Represents a single message in the conversation."""

    role: Role
    content: str


@dataclass
class Prompt:
    """System prompt and user message sent to the chat model."""

    system_prompt: str
    user_message: str

    def to_messages(self) -> list[dict[str, str]]:
        """Render as a chat-completions ``messages`` list.

        Returns:
            List with a system message followed by the user message.
        """
        return [
            {"role": "system", "content": self.system_prompt},
            {"role": "user", "content": self.user_message},
        ]
