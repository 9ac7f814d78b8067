"""Source file models for knowledge ingestion."""
from dataclasses import dataclass
from typing import List

@dataclass
class Page:
    """Represents a single page (or the whole body of a text file)."""
    page_number: int
    text: str
    word_count: int

@dataclass
class SourceFile:
    """Represents a loaded knowledge file (resume, transcript, write-up)."""
    filename: str
    pages: List[Page]
    total_pages: int
    source_path: str = ""
