"""Knowledge document models."""
from dataclasses import dataclass
from typing import Optional

@dataclass
class Document:
    """A stored knowledge chunk that the retriever can return."""
    document_id: str  # Format: "{source}_{page}_{chunk_index}"
    text: str
    source: str
    page_number: int = 1
    token_count: int = 0
    context_header: Optional[str] = None

@dataclass
class ScoredDocument:
    """Document with relevance score from retrieval."""
    document: Document
    relevance_score: float  # 0.0 to 1.0
