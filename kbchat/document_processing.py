"""Knowledge-base loading and text chunking functionality."""

import hashlib
from collections.abc import Iterable
from pathlib import Path

import pypdf
from pypdf.errors import PyPdfError

from .config import config
from .exceptions import IngestionWarning
from .models import Chunk, Document

logger = config.get_logger(__name__)

DEFAULT_EXTENSIONS = (".md", ".txt", ".pdf")
TEXT_EXTENSIONS = {".md", ".markdown", ".txt", ".rst"}

EXAMPLE_CATEGORY = "example"
EXAMPLE_FILENAME = "example.md"
EXAMPLE_CONTENT = """# Example Document

This is an example document for the RAG chatbot.

## Features
- Supports markdown and text files
- Can handle multiple document types
- Provides contextual answers

## Usage
Place your documents in the knowledge-base directory, organized by folders.
"""


class DocumentLoader:
    """Handles loading of text-like and PDF documents."""

    @staticmethod
    def load_pdf(file_path: Path) -> str:
        """Load text content from a PDF file.

        Returns:
            The extracted text content from the PDF as a string.
        """
        with file_path.open("rb") as file:
            pdf_reader = pypdf.PdfReader(file)
            text = ""
            for page_num, page in enumerate(pdf_reader.pages):
                page_text = page.extract_text() or ""
                text += f"\n--- Page {page_num + 1} ---\n{page_text}\n"
        return text

    @staticmethod
    def load_txt(file_path: Path) -> str:
        """Load text content from a UTF-8 text or markdown file.

        Returns:
            The file content as a string.
        """
        with file_path.open(encoding="utf-8") as file:
            return file.read()

    @classmethod
    def load_document(cls, file_path: Path) -> str:
        """Load document based on file extension.

        Args:
            file_path: Path to the document file.

        Returns:
            The text content of the document as a string.

        Raises:
            IngestionWarning: If the file type is not supported or the file
                cannot be read.
        """
        file_ext = file_path.suffix.lower()
        try:
            if file_ext == ".pdf":
                return cls.load_pdf(file_path)
            if file_ext in TEXT_EXTENSIONS:
                return cls.load_txt(file_path)
        except (OSError, UnicodeDecodeError, PyPdfError) as e:
            msg = f"Could not read {file_path}: {e}"
            raise IngestionWarning(msg) from e
        msg = f"Unsupported file type: {file_ext}"
        raise IngestionWarning(msg)


def document_id_for(source_path: str) -> str:
    """Derive a stable document id from its path relative to the root.

    Returns:
        First 16 hex characters of the SHA-1 of the path.
    """
    return hashlib.sha1(source_path.encode("utf-8")).hexdigest()[:16]  # noqa: S324


class KnowledgeBaseIngestor:
    """Reads a knowledge-base tree where each subfolder is a category."""

    def __init__(
        self,
        root: Path | None = None,
        extensions: Iterable[str] = DEFAULT_EXTENSIONS,
    ) -> None:
        """Initialize the ingestor.

        Args:
            root: Knowledge-base directory. If None, uses config.KNOWLEDGE_BASE_DIR.
            extensions: File suffixes to read; anything else is ignored.
        """
        self.root = Path(root) if root is not None else config.KNOWLEDGE_BASE_DIR
        self.extensions = {ext.lower() for ext in extensions}

    def ensure_exists(self) -> bool:
        """Create an example knowledge base if the root directory is missing.

        Returns:
            True if the root already existed, False if the example was created.
        """
        if self.root.is_dir():
            return True

        logger.warning(
            "Knowledge base directory %s not found. Creating example...", self.root
        )
        example_dir = self.root / EXAMPLE_CATEGORY
        example_dir.mkdir(parents=True, exist_ok=True)
        (example_dir / EXAMPLE_FILENAME).write_text(EXAMPLE_CONTENT, encoding="utf-8")
        logger.info(
            "Created example knowledge base. Add your documents to %s", self.root
        )
        return False

    def load_documents(self) -> list[Document]:
        """Load every supported file below each category folder.

        Returns:
            Documents in folder then path order. Empty if the root was missing.
        """
        logger.info("Loading documents from %s", self.root)
        if not self.ensure_exists():
            return []

        folders = sorted(path for path in self.root.iterdir() if path.is_dir())
        if not folders:
            logger.warning("No folders found in %s", self.root)
            return []

        for stray in sorted(path for path in self.root.iterdir() if path.is_file()):
            logger.debug("Ignoring file outside a category folder: %s", stray)

        documents: list[Document] = []
        for folder in folders:
            try:
                folder_docs = self._load_folder(folder)
            except IngestionWarning as e:
                logger.warning("Skipping folder %s: %s", folder.name, e)
                continue
            logger.info("  - Loaded %d documents from %s", len(folder_docs), folder.name)
            documents.extend(folder_docs)

        logger.info("Total documents loaded: %d", len(documents))
        return documents

    def _load_folder(self, folder: Path) -> list[Document]:
        category = folder.name
        try:
            files = sorted(
                path
                for path in folder.rglob("*")
                if path.is_file() and path.suffix.lower() in self.extensions
            )
        except OSError as e:
            msg = f"Could not list {folder}: {e}"
            raise IngestionWarning(msg) from e

        documents = []
        for file_path in files:
            source_path = file_path.relative_to(self.root).as_posix()
            try:
                text = DocumentLoader.load_document(file_path)
            except IngestionWarning as e:
                logger.warning("Skipping %s: %s", source_path, e)
                continue

            if not text.strip():
                logger.debug("Skipping empty document %s", source_path)
                continue

            documents.append(
                Document(
                    id=document_id_for(source_path),
                    text=text,
                    category=category,
                    source_path=source_path,
                )
            )
        return documents


class TextChunker:
    """Splits text into overlapping windows, preferring natural boundaries."""

    separators: tuple[str, ...] = ("\n\n", "\n", ". ", " ")

    def __init__(self, chunk_size: int = 1000, overlap: int = 200) -> None:
        """Initialize the TextChunker with chunk size and overlap.

        Args:
            chunk_size: Maximum number of characters in a chunk.
            overlap: Number of characters shared by neighbouring chunks.

        Raises:
            ValueError: If chunk_size is not positive or overlap is not
                smaller than chunk_size.
        """
        if chunk_size <= 0:
            msg = f"chunk_size must be positive, got {chunk_size}"
            raise ValueError(msg)
        if not 0 <= overlap < chunk_size:
            msg = f"overlap must be in [0, {chunk_size}), got {overlap}"
            raise ValueError(msg)
        self.chunk_size = chunk_size
        self.overlap = overlap
        # Split points closer than this to the window start would stall progress
        self.min_split = max(chunk_size // 2, overlap + 1)

    def _find_split(self, text: str, start: int, hard_end: int) -> int:
        window = text[start:hard_end]
        for separator in self.separators:
            idx = window.rfind(separator)
            if idx >= self.min_split:
                return start + idx + len(separator)
        return hard_end

    def split_text(self, text: str) -> list[tuple[int, int]]:
        """Compute chunk window spans over the text.

        Returns:
            List of (start, end) character offsets. Neighbouring spans overlap
            by exactly ``overlap`` characters.
        """
        spans: list[tuple[int, int]] = []
        start = 0
        text_length = len(text)

        while start < text_length:
            end = min(start + self.chunk_size, text_length)
            if end < text_length:
                end = self._find_split(text, start, end)
            spans.append((start, end))
            if end >= text_length:
                break
            start = end - self.overlap

        return spans

    def chunk_document(self, document: Document) -> list[Chunk]:
        """Split one document into chunks.

        Returns:
            Chunks with contiguous sequence indexes, whitespace-only windows
            dropped.
        """
        chunks: list[Chunk] = []
        for start, end in self.split_text(document.text):
            chunk_text = document.text[start:end]
            if not chunk_text.strip():
                continue
            sequence_index = len(chunks)
            chunks.append(
                Chunk(
                    id=f"{document.id}-{sequence_index:05d}",
                    text=chunk_text,
                    category=document.category,
                    source_path=document.source_path,
                    sequence_index=sequence_index,
                    start_char=start,
                    end_char=end,
                )
            )
        return chunks

    def chunk_documents(self, documents: Iterable[Document]) -> list[Chunk]:
        """Split many documents into chunks.

        Returns:
            All chunks, in document order.
        """
        chunks: list[Chunk] = []
        for document in documents:
            chunks.extend(self.chunk_document(document))

        categories = sorted({chunk.category for chunk in chunks})
        logger.info("Created %d text chunks", len(chunks))
        if categories:
            logger.info("Document types found: %s", ", ".join(categories))
        return chunks
