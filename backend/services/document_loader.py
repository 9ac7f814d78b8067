"""Loads knowledge files (resume, transcripts, project write-ups) for ingestion."""
import logging
import os
from typing import List, Optional
import fitz  # PyMuPDF

from models.source import SourceFile, Page

logger = logging.getLogger(__name__)

TEXT_EXTENSIONS = (".txt", ".md")
SUPPORTED_EXTENSIONS = (".pdf",) + TEXT_EXTENSIONS


class DocumentLoader:
    """Extracts text page-by-page from PDF and plain-text files."""

    def __init__(self, docs_directory: str = "knowledge_docs"):
        self.docs_directory = docs_directory

    def load_documents(self) -> List[SourceFile]:
        """
        Load every supported file in the knowledge directory.

        Unreadable files are logged and skipped.
        """
        sources: List[SourceFile] = []

        if not os.path.isdir(self.docs_directory):
            logger.error(f"Knowledge directory not found: {self.docs_directory}")
            return sources

        filenames = sorted(
            f for f in os.listdir(self.docs_directory)
            if f.lower().endswith(SUPPORTED_EXTENSIONS)
        )
        logger.info(f"Found {len(filenames)} knowledge files in {self.docs_directory}")

        for filename in filenames:
            filepath = os.path.join(self.docs_directory, filename)
            try:
                source = self.load_file(filepath)
            except Exception as e:
                logger.error(f"Error loading {filename}: {str(e)}", exc_info=True)
                continue
            if source:
                sources.append(source)
                logger.info(f"Loaded {filename}: {source.total_pages} pages")

        logger.info(f"Successfully loaded {len(sources)} files")
        return sources

    def load_file(self, filepath: str) -> Optional[SourceFile]:
        """Load one file, dispatching on its extension."""
        filename = os.path.basename(filepath)
        if filename.lower().endswith(".pdf"):
            return self._load_pdf(filepath, filename)
        if filename.lower().endswith(TEXT_EXTENSIONS):
            return self._load_text(filepath, filename)
        logger.warning(f"Unsupported file type skipped: {filename}")
        return None

    def _load_pdf(self, filepath: str, filename: str) -> SourceFile:
        pages = []
        with fitz.open(filepath) as pdf_document:
            for page_index, page in enumerate(pdf_document):
                text = page.get_text()
                pages.append(Page(
                    page_number=page_index + 1,  # 1-indexed
                    text=text,
                    word_count=len(text.split())
                ))

        return SourceFile(
            filename=filename,
            pages=pages,
            total_pages=len(pages),
            source_path=filepath
        )

    def _load_text(self, filepath: str, filename: str) -> SourceFile:
        with open(filepath, encoding="utf-8") as handle:
            text = handle.read()
        return self.from_text(filename, text, source_path=filepath)

    @staticmethod
    def from_text(filename: str, text: str, source_path: str = "") -> SourceFile:
        """Wrap raw text (e.g. pasted by an administrator) as a one-page source."""
        return SourceFile(
            filename=filename,
            pages=[Page(page_number=1, text=text, word_count=len(text.split()))],
            total_pages=1,
            source_path=source_path
        )
