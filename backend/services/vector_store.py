"""Vector store implementation using Supabase pgvector."""
import logging
from typing import Any, Dict, List, Optional
from supabase import create_client, Client
from models.document import Document, ScoredDocument
from services.embedding_model import EmbeddingModel
from services.supabase_pages import fetch_all_rows, PAGE_SIZE
from config import SUPABASE_URL, SUPABASE_KEY, DOCUMENTS_TABLE

logger = logging.getLogger(__name__)

# The match RPC must exist in the database:
#
# CREATE OR REPLACE FUNCTION match_documents(
#   query_embedding vector(768),
#   match_threshold float,
#   match_count int
# )
# RETURNS TABLE (
#   document_id text, text text, source text, page_number int,
#   token_count int, context_header text, similarity float
# )
# LANGUAGE sql STABLE AS $$
#   SELECT d.document_id, d.text, d.source, d.page_number,
#          d.token_count, d.context_header,
#          1 - (d.embedding <=> query_embedding) AS similarity
#   FROM chatbot_documents d
#   WHERE 1 - (d.embedding <=> query_embedding) > match_threshold
#   ORDER BY d.embedding <=> query_embedding
#   LIMIT match_count;
# $$;
MATCH_RPC = "match_documents"


class VectorStore:
    """Store document embeddings and run similarity search in Supabase pgvector."""

    def __init__(
        self,
        embedding_model: EmbeddingModel,
        supabase_url: Optional[str] = SUPABASE_URL,
        supabase_key: Optional[str] = SUPABASE_KEY,
        table_name: str = DOCUMENTS_TABLE
    ):
        """
        Initialize the vector store with a Supabase client.

        Raises:
            ValueError: If Supabase credentials are missing
        """
        if not supabase_url or not supabase_key:
            raise ValueError("SUPABASE_URL and SUPABASE_KEY environment variables are required")

        self.embedding_model = embedding_model
        self.table_name = table_name
        self.page_size = PAGE_SIZE
        self.client: Client = create_client(supabase_url, supabase_key)

        logger.info(f"Initialized VectorStore with table: {table_name}")

    def add_documents(self, documents: List[Document]) -> None:
        """
        Embed and upsert documents in one batch.

        Raises:
            ValueError: If documents list is empty
            RuntimeError: If embedding or the database write fails
        """
        if not documents:
            raise ValueError("Documents list cannot be empty")

        logger.info(f"Adding {len(documents)} documents to vector store...")

        try:
            records = self._embed_records(documents)
            # Upsert keyed on document_id; chunks with other ids are left alone
            self.client.table(self.table_name).upsert(records).execute()
            logger.info(f"Successfully added {len(documents)} documents to vector store")
        except Exception as e:
            error_msg = f"Failed to add documents to vector store: {str(e)}"
            logger.error(error_msg)
            raise RuntimeError(error_msg) from e

    def replace_source(self, source: str, documents: List[Document]) -> None:
        """
        Replace every stored chunk of one source with a new set.

        Embedding happens before anything is deleted, so a failed embedding
        call leaves the old chunks in place.

        Raises:
            ValueError: If documents is empty or a document belongs to another source
            RuntimeError: If embedding or a database write fails
        """
        if not documents:
            raise ValueError("Documents list cannot be empty")
        if any(doc.source != source for doc in documents):
            raise ValueError(f"All documents must belong to source {source}")

        try:
            records = self._embed_records(documents)
            self.client.table(self.table_name).delete().eq("source", source).execute()
            self.client.table(self.table_name).insert(records).execute()
        except Exception as e:
            error_msg = f"Failed to replace documents of {source}: {str(e)}"
            logger.error(error_msg)
            raise RuntimeError(error_msg) from e

        logger.info(f"Replaced documents of {source} with {len(documents)} chunks")

    def _embed_records(self, documents: List[Document]) -> List[Dict[str, Any]]:
        embeddings = self.embedding_model.embed_batch([doc.text for doc in documents])
        return [
            {
                "document_id": doc.document_id,
                "text": doc.text,
                "source": doc.source,
                "page_number": doc.page_number,
                "token_count": doc.token_count,
                "context_header": doc.context_header,
                "embedding": embedding
            }
            for doc, embedding in zip(documents, embeddings)
        ]

    def search(self, query_embedding: List[float], top_k: int = 5) -> List[ScoredDocument]:
        """
        Find the documents most similar to a query embedding.

        Returns:
            ScoredDocuments best match first, scores clamped to [0, 1]

        Raises:
            ValueError: If query_embedding is empty or top_k is invalid
            RuntimeError: If the RPC call fails
        """
        if not query_embedding:
            raise ValueError("Query embedding cannot be empty")
        if top_k <= 0:
            raise ValueError("top_k must be positive")

        try:
            response = self.client.rpc(
                MATCH_RPC,
                {
                    "query_embedding": query_embedding,
                    "match_threshold": 0.0,  # thresholding happens in RetrievalEngine
                    "match_count": top_k
                }
            ).execute()
        except Exception as e:
            error_msg = f"Failed to search vector store: {str(e)}"
            logger.error(error_msg)
            raise RuntimeError(error_msg) from e

        scored = [
            ScoredDocument(
                document=self._row_to_document(row),
                relevance_score=max(0.0, min(1.0, float(row["similarity"])))
            )
            for row in (response.data or [])
        ]
        scored.sort(key=lambda s: s.relevance_score, reverse=True)
        logger.debug(f"Found {len(scored)} documents for query")
        return scored

    def list_documents(self) -> List[Document]:
        """Return all stored documents without embeddings, ordered by id."""
        def build_query():
            return (
                self.client.table(self.table_name)
                .select("document_id,text,source,page_number,token_count,context_header")
                .order("document_id")
            )

        try:
            rows = fetch_all_rows(build_query, self.page_size)
        except Exception as e:
            error_msg = f"Failed to list documents: {str(e)}"
            logger.error(error_msg)
            raise RuntimeError(error_msg) from e
        return [self._row_to_document(row) for row in rows]

    def delete_document(self, document_id: str) -> bool:
        """
        Delete one document.

        Returns:
            True if a row was removed, False if no document had that id
        """
        try:
            response = self.client.table(self.table_name).delete().eq("document_id", document_id).execute()
        except Exception as e:
            error_msg = f"Failed to delete document {document_id}: {str(e)}"
            logger.error(error_msg)
            raise RuntimeError(error_msg) from e
        deleted = bool(response.data)
        logger.info(f"Delete document {document_id}: {'removed' if deleted else 'not found'}")
        return deleted

    def clear(self) -> None:
        """Remove every document. Used before a full re-ingest."""
        try:
            self.client.table(self.table_name).delete().neq("document_id", "").execute()
            logger.info("Cleared all documents from vector store")
        except Exception as e:
            error_msg = f"Failed to clear vector store: {str(e)}"
            logger.error(error_msg)
            raise RuntimeError(error_msg) from e

    def count(self) -> int:
        """Return the number of stored documents."""
        try:
            response = self.client.table(self.table_name).select("document_id", count="exact").execute()
            return response.count if response.count is not None else 0
        except Exception as e:
            error_msg = f"Failed to count documents in vector store: {str(e)}"
            logger.error(error_msg)
            raise RuntimeError(error_msg) from e

    @staticmethod
    def _row_to_document(row: Dict[str, Any]) -> Document:
        return Document(
            document_id=row["document_id"],
            text=row["text"],
            source=row["source"],
            page_number=row.get("page_number") or 1,
            token_count=row.get("token_count") or 0,
            context_header=row.get("context_header")
        )
