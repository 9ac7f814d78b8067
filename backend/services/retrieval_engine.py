"""Retrieval engine for orchestrating query embedding and document search."""
import logging
from typing import List, Optional
from models.document import ScoredDocument
from services.vector_store import VectorStore
from services.embedding_model import EmbeddingModel
from config import RETRIEVAL_TOP_K, RELEVANCE_THRESHOLD, DYNAMIC_K_CUTOFF

logger = logging.getLogger(__name__)


class RetrievalEngine:
    """Embed a query and return the top documents with a dynamic K cutoff."""

    def __init__(
        self,
        vector_store: VectorStore,
        embedding_model: EmbeddingModel,
        top_k: int = RETRIEVAL_TOP_K,
        relevance_threshold: float = RELEVANCE_THRESHOLD,
        dynamic_k_cutoff: float = DYNAMIC_K_CUTOFF
    ):
        """
        Initialize the retrieval engine.

        Args:
            vector_store: VectorStore instance for similarity search
            embedding_model: EmbeddingModel instance for query embedding
            top_k: Default number of documents to request
            relevance_threshold: Documents scoring at or below this are dropped
            dynamic_k_cutoff: Keep only documents scoring within this fraction of the best
        """
        self.vector_store = vector_store
        self.embedding_model = embedding_model
        self.top_k = top_k
        self.relevance_threshold = relevance_threshold
        self.dynamic_k_cutoff = dynamic_k_cutoff
        logger.info("Initialized RetrievalEngine")

    def retrieve(self, query: str, k: Optional[int] = None) -> List[ScoredDocument]:
        """
        Retrieve up to k relevant documents for a query, best match first.

        Filtering:
        1. Drop documents at or below the relevance threshold
        2. Keep only documents scoring >= best score * dynamic_k_cutoff, so a
           single strong match is not diluted by weak neighbours

        Args:
            query: User question
            k: Maximum number of documents (defaults to top_k)

        Returns:
            Scored documents, empty if the query is blank or nothing is relevant

        Raises:
            RuntimeError: If embedding or search operations fail
        """
        if not query or not query.strip():
            logger.warning("Empty query string provided, returning empty results")
            return []

        k = k or self.top_k

        try:
            query_embedding = self.embedding_model.embed_text(query)
            scored_documents = self.vector_store.search(query_embedding, top_k=k)
        except Exception as e:
            error_msg = f"Failed to retrieve documents for query: {str(e)}"
            logger.error(error_msg)
            raise RuntimeError(error_msg) from e

        filtered = [
            doc for doc in scored_documents
            if doc.relevance_score > self.relevance_threshold
        ]
        if not filtered:
            logger.info(f"No documents above relevance threshold {self.relevance_threshold}")
            return []

        top_score = filtered[0].relevance_score
        cutoff = top_score * self.dynamic_k_cutoff
        results = [doc for doc in filtered if doc.relevance_score >= cutoff][:k]

        logger.info(
            f"Retrieved {len(results)} documents "
            f"(top score: {top_score:.3f}, cutoff: {cutoff:.3f})"
        )
        return results
