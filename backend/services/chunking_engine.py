"""Chunking engine with contextual heading injection."""
import logging
import re
from typing import Any, Dict, List, Optional
import fitz  # PyMuPDF
from transformers import AutoTokenizer

from models.source import SourceFile
from models.document import Document
from config import CHUNK_SIZE, CHUNK_OVERLAP, EMBEDDING_MODEL

logger = logging.getLogger(__name__)

MARKDOWN_HEADING = re.compile(r'^(#{1,3})\s+(.+?)\s*$', re.MULTILINE)


class ChunkingEngine:
    """Segments knowledge files into retrievable documents with contextual headers."""

    # Separators for recursive splitting (in priority order)
    SEPARATORS = ["\n\n", "\n", ". ", " "]

    def __init__(
        self,
        chunk_size: int = CHUNK_SIZE,
        chunk_overlap: int = CHUNK_OVERLAP,
        tokenizer: Optional[Any] = None
    ):
        """
        Args:
            chunk_size: Target chunk size in tokens
            chunk_overlap: Overlap between consecutive chunks in tokens
            tokenizer: Object with encode/decode; defaults to the embedding model's tokenizer
        """
        if chunk_overlap >= chunk_size:
            raise ValueError("chunk_overlap must be smaller than chunk_size")

        self.chunk_size = chunk_size
        self.chunk_overlap = chunk_overlap

        if tokenizer is None:
            logger.info("Loading tokenizer for chunking...")
            tokenizer = AutoTokenizer.from_pretrained(EMBEDDING_MODEL)
        self.tokenizer = tokenizer

    def chunk_sources(self, sources: List[SourceFile]) -> List[Document]:
        """
        Chunk loaded files with token-aware recursive splitting.

        Returns:
            Documents whose text is prefixed with the section they came from
        """
        all_documents = []

        for source in sources:
            logger.info(f"Chunking {source.filename}")

            if source.source_path.lower().endswith(".pdf"):
                headers_by_page = self._extract_pdf_headers(source.source_path)
            else:
                headers_by_page = {}

            current_headers: List[str] = []
            for page in source.pages:
                if page.page_number in headers_by_page:
                    current_headers = headers_by_page[page.page_number]

                if headers_by_page:
                    all_documents.extend(
                        self._chunk_text(page.text, source.filename, page.page_number, current_headers)
                    )
                else:
                    all_documents.extend(
                        self._chunk_markdown(page.text, source.filename, page.page_number)
                    )

        logger.info(f"Created {len(all_documents)} documents from {len(sources)} files")
        return all_documents

    def _extract_pdf_headers(self, pdf_path: str) -> Dict[int, List[str]]:
        """
        Map page number to the heading stack in effect on that page.

        Headings are detected by font size: >18pt is level 1, >14pt level 2,
        >12pt level 3.
        """
        header_stack_by_page: Dict[int, List[str]] = {}
        current_stack: List[tuple] = []  # (text, level)

        try:
            with fitz.open(pdf_path) as pdf_document:
                for page_index, page in enumerate(pdf_document):
                    for block in page.get_text("dict")["blocks"]:
                        for line in block.get("lines", []):
                            for span in line["spans"]:
                                text = span["text"].strip()
                                font_size = span["size"]
                                if font_size <= 12 or len(text) <= 2:
                                    continue
                                if font_size > 18:
                                    level = 1
                                elif font_size > 14:
                                    level = 2
                                else:
                                    level = 3
                                # A level-N heading closes every open heading of level >= N
                                current_stack = [(h, l) for h, l in current_stack if l < level]
                                current_stack.append((text, level))

                    if current_stack:
                        header_stack_by_page[page_index + 1] = [h for h, _ in current_stack]
        except Exception as e:
            logger.warning(f"Could not extract headers from {pdf_path}: {str(e)}")

        return header_stack_by_page

    def _chunk_markdown(self, text: str, source: str, page_number: int) -> List[Document]:
        """Chunk text section by section, using Markdown headings as context."""
        matches = list(MARKDOWN_HEADING.finditer(text))
        if not matches:
            return self._chunk_text(text, source, page_number, [])

        documents = []
        preamble = text[:matches[0].start()]
        if preamble.strip():
            documents.extend(self._chunk_text(preamble, source, page_number, []))

        stack: List[tuple] = []
        for index, match in enumerate(matches):
            level = len(match.group(1))
            stack = [(h, l) for h, l in stack if l < level]
            stack.append((match.group(2), level))

            end = matches[index + 1].start() if index + 1 < len(matches) else len(text)
            body = text[match.end():end]
            documents.extend(
                self._chunk_text(body, source, page_number, [h for h, _ in stack],
                                 start_index=len(documents))
            )
        return documents

    def _chunk_text(
        self,
        text: str,
        source: str,
        page_number: int,
        header_stack: List[str],
        start_index: int = 0
    ) -> List[Document]:
        if not text.strip():
            return []

        context_header = " > ".join(header_stack) if header_stack else None

        documents = []
        for offset, chunk_text in enumerate(self._recursive_split(text.strip())):
            full_text = f"[Context: {context_header}] {chunk_text}" if context_header else chunk_text
            documents.append(Document(
                document_id=f"{source}_{page_number}_{start_index + offset}",
                text=full_text,
                source=source,
                page_number=page_number,
                token_count=self._count(full_text),
                context_header=context_header
            ))
        return documents

    def _recursive_split(self, text: str, depth: int = 0) -> List[str]:
        """
        Split text into chunks of at most chunk_size tokens.

        Parts that are still too large after splitting on one separator are
        split again with the next one. Each new chunk starts with the last
        chunk_overlap tokens of the previous chunk.
        """
        if self._count(text) <= self.chunk_size:
            return [text]

        if depth >= len(self.SEPARATORS):
            return self._split_by_tokens(text)

        separator = self.SEPARATORS[depth]
        if separator not in text:
            return self._recursive_split(text, depth + 1)

        pieces: List[str] = []
        for part in text.split(separator):
            if not part.strip():
                continue
            if self._count(part) > self.chunk_size:
                pieces.extend(self._recursive_split(part, depth + 1))
            else:
                pieces.append(part)

        chunks: List[str] = []
        current = ""
        for piece in pieces:
            candidate = f"{current}{separator}{piece}" if current else piece
            if self._count(candidate) <= self.chunk_size:
                current = candidate
                continue
            if current:
                chunks.append(current.strip())
            current = self._with_overlap(chunks, piece)

        if current.strip():
            chunks.append(current.strip())
        return chunks

    def _with_overlap(self, chunks: List[str], piece: str) -> str:
        if not chunks or self.chunk_overlap <= 0:
            return piece
        tail = self.tokenizer.encode(chunks[-1], add_special_tokens=False)[-self.chunk_overlap:]
        candidate = f"{self.tokenizer.decode(tail).strip()} {piece}"
        return candidate if self._count(candidate) <= self.chunk_size else piece

    def _split_by_tokens(self, text: str) -> List[str]:
        tokens = self.tokenizer.encode(text, add_special_tokens=False)
        step = self.chunk_size - self.chunk_overlap
        return [
            self.tokenizer.decode(tokens[i:i + self.chunk_size]).strip()
            for i in range(0, len(tokens), step)
        ]

    def _count(self, text: str) -> int:
        return len(self.tokenizer.encode(text, add_special_tokens=False))
