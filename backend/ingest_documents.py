"""
Knowledge ingestion script for the portfolio chatbot.

This script:
1. Clears existing documents from Supabase (unless --keep-existing)
2. Loads PDF, text and Markdown files from the knowledge directory
3. Chunks them with contextual headers
4. Generates embeddings using the HuggingFace API
5. Stores everything in Supabase pgvector

Usage:
    python ingest_documents.py [--docs-dir PATH] [--batch-size N] [--keep-existing]
"""
import argparse
import sys
import logging
from pathlib import Path
from typing import List

# Add backend to path
sys.path.insert(0, str(Path(__file__).parent))

from services.document_loader import DocumentLoader
from services.chunking_engine import ChunkingEngine
from services.embedding_model import EmbeddingModel
from services.vector_store import VectorStore
from models.document import Document
from config import KNOWLEDGE_DIR, LOG_LEVEL, LOG_FORMAT
from logger import setup_logging

logger = logging.getLogger(__name__)


def parse_args(argv=None) -> argparse.Namespace:
    script_dir = Path(__file__).parent
    parser = argparse.ArgumentParser(description="Ingest knowledge files into the chatbot's vector store")
    parser.add_argument(
        "--docs-dir",
        default=str(script_dir.parent / KNOWLEDGE_DIR),
        help="Directory holding the knowledge files"
    )
    parser.add_argument("--batch-size", type=int, default=10, help="Documents embedded per request")
    parser.add_argument(
        "--keep-existing",
        action="store_true",
        help="Do not clear previously stored documents"
    )
    return parser.parse_args(argv)


def store_in_batches(vector_store: VectorStore, documents: List[Document], batch_size: int) -> None:
    """Embed and store documents, batch_size at a time."""
    total_batches = (len(documents) + batch_size - 1) // batch_size

    for i in range(0, len(documents), batch_size):
        batch = documents[i:i + batch_size]
        batch_num = (i // batch_size) + 1

        logger.info(f"Processing batch {batch_num}/{total_batches} ({len(batch)} documents)...")
        vector_store.add_documents(batch)


def main(argv=None) -> int:
    """Main ingestion process. Returns the process exit code."""
    args = parse_args(argv)
    setup_logging(LOG_LEVEL, LOG_FORMAT)

    try:
        logger.info("Starting knowledge ingestion")

        embedding_model = EmbeddingModel()
        vector_store = VectorStore(embedding_model)
        document_loader = DocumentLoader(docs_directory=args.docs_dir)
        chunking_engine = ChunkingEngine()

        if not args.keep_existing:
            count_before = vector_store.count()
            logger.info(f"Clearing {count_before} existing documents...")
            vector_store.clear()

        logger.info("Warming up embedding model (may take 15-20 seconds on the free tier)...")
        embedding_model.warmup()

        sources = document_loader.load_documents()
        if not sources:
            logger.error(f"No knowledge files found in {args.docs_dir}")
            return 1

        for source in sources:
            logger.info(f"  - {source.filename} ({source.total_pages} pages)")

        documents = chunking_engine.chunk_sources(sources)
        if not documents:
            logger.error("Knowledge files produced no documents")
            return 1

        store_in_batches(vector_store, documents, args.batch_size)

        final_count = vector_store.count()
        logger.info(
            f"Ingestion complete: {len(sources)} files, {len(documents)} documents created, "
            f"{final_count} documents in database"
        )
        return 0

    except KeyboardInterrupt:
        logger.warning("Ingestion interrupted by user")
        return 1
    except Exception as e:
        logger.error(f"Ingestion failed: {str(e)}", exc_info=True)
        return 1


if __name__ == "__main__":
    sys.exit(main())
