"""Main entry point for the portfolio chatbot API."""
import logging
from dataclasses import asdict
from typing import List, Optional
import tiktoken
from fastapi import FastAPI, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware

from config import PORT, LOG_LEVEL, LOG_FORMAT, CORS_ORIGINS, ChatConfig
from logger import setup_logging
from models.api import (
    ChatRequest, ChatResponse, ChatMetadata, Source, TurnOut, ConversationOut,
    EvaluationOut, EvaluationStatsOut, BatchEvaluationOut, DocumentIn, DocumentOut,
    FeedbackIn, FeedbackOut
)
from models.document import Document
from models.evaluation import Evaluation
from models.feedback import Feedback
from services.chat_handler import ChatTurnHandler
from services.chunking_engine import ChunkingEngine
from services.conversation_manager import ConversationManager
from services.document_loader import DocumentLoader
from services.embedding_model import EmbeddingModel
from services.errors import ChatError, GenerationFailedError, InvalidInputError
from services.evaluation_scheduler import EvaluationScheduler
from services.evaluation_store import EvaluationStore
from services.feedback_store import FeedbackStore
from services.llm_client import LLMClient
from services.output_evaluator import OutputEvaluator
from services.retrieval_engine import RetrievalEngine
from services.vector_store import VectorStore

setup_logging(LOG_LEVEL, LOG_FORMAT)
logger = logging.getLogger(__name__)

# Initialize FastAPI app
app = FastAPI(
    title="Portfolio Chatbot",
    description="Retrieval-augmented assistant answering questions about the site owner",
    version="1.0.0"
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Initialize services (will be done on startup)
chat_handler: ChatTurnHandler = None
conversation_manager: ConversationManager = None
evaluation_store: EvaluationStore = None
feedback_store: FeedbackStore = None
evaluation_scheduler: EvaluationScheduler = None
vector_store: VectorStore = None
chunking_engine: ChunkingEngine = None


@app.on_event("startup")
async def startup_event():
    """Initialize services on startup."""
    global chat_handler, conversation_manager, evaluation_store
    global evaluation_scheduler, vector_store, feedback_store

    logger.info("Initializing portfolio chatbot services...")

    try:
        config = ChatConfig.from_env()

        # Used only to report prompt size in the response metadata
        tiktoken_encoder = tiktoken.get_encoding("o200k_base")

        embedding_model = EmbeddingModel()
        vector_store = VectorStore(embedding_model)
        retrieval_engine = RetrievalEngine(
            vector_store,
            embedding_model,
            top_k=config.retrieval_top_k,
            relevance_threshold=config.relevance_threshold,
            dynamic_k_cutoff=config.dynamic_k_cutoff
        )

        llm_client = LLMClient(config)
        logger.info("Initialized LLMClient")

        conversation_manager = ConversationManager()
        evaluation_store = EvaluationStore()
        feedback_store = FeedbackStore()
        evaluation_scheduler = EvaluationScheduler(
            OutputEvaluator(llm_client, config),
            evaluation_store,
            max_workers=config.evaluation_workers
        )

        chat_handler = ChatTurnHandler(
            config,
            conversation_manager,
            retrieval_engine,
            llm_client,
            evaluation_scheduler,
            tokenizer=tiktoken_encoder
        )

        logger.info("All services initialized successfully")
    except Exception as e:
        logger.error(f"Failed to initialize services: {e}", exc_info=True)
        raise


@app.on_event("shutdown")
async def shutdown_event():
    """Let queued evaluations finish before the process exits."""
    if evaluation_scheduler is not None:
        evaluation_scheduler.shutdown(wait=True)


@app.get("/")
async def root():
    """Health check endpoint."""
    return {"status": "ok", "message": "Portfolio Chatbot API"}


@app.get("/health")
async def health():
    """Detailed health check."""
    return {
        "status": "healthy",
        "service": "portfolio-chatbot",
        "version": "1.0.0"
    }


@app.post("/api/chatbot/chat", response_model=ChatResponse)
def chat_endpoint(request: ChatRequest) -> ChatResponse:
    """
    Answer one visitor message.

    Returns 400 for an empty message, 503 when the language model fails and
    500 when the turn could not be stored.
    """
    try:
        result = chat_handler.chat(request.conversation_id, request.message)
    except InvalidInputError as e:
        raise HTTPException(status_code=400, detail={"error": e.to_dict()})
    except GenerationFailedError as e:
        logger.error(f"Generation failed: {e.message}", extra={"error_details": e.details})
        raise HTTPException(status_code=503, detail={"error": e.to_dict()})
    except Exception as e:
        logger.error(f"Unexpected error processing chat message: {e}", exc_info=True)
        raise _internal_error(e)

    return ChatResponse(
        response=result.response,
        conversation_id=result.conversation_id,
        metadata=ChatMetadata(
            documents_retrieved=result.documents_retrieved,
            prompt_tokens=result.prompt_tokens,
            latency_ms=result.latency_ms
        ),
        sources=[
            Source(
                document_id=scored.document.document_id,
                source=scored.document.source,
                relevance_score=scored.relevance_score
            )
            for scored in result.documents
        ]
    )


@app.post("/api/chatbot/feedback", response_model=FeedbackOut, status_code=201)
def submit_feedback(request: FeedbackIn) -> FeedbackOut:
    """Record a visitor's thumbs-up or thumbs-down on a conversation."""
    try:
        if not conversation_manager.conversation_exists(request.conversation_id):
            raise _not_found(f"Conversation {request.conversation_id} not found")
        feedback = feedback_store.save(request.conversation_id, request.rating, request.comment)
    except RuntimeError as e:
        raise _internal_error(e)
    return _feedback_out(feedback)


# Administrative endpoints


@app.get("/api/admin/chatbot/conversations/{conversation_id}", response_model=ConversationOut)
def get_conversation(conversation_id: str) -> ConversationOut:
    """Return every turn of a conversation, oldest first."""
    try:
        conversation = conversation_manager.get_conversation(conversation_id)
    except RuntimeError as e:
        raise _internal_error(e)

    if conversation is None:
        raise _not_found(f"Conversation {conversation_id} not found")

    return ConversationOut(
        conversation_id=conversation.conversation_id,
        turns=[
            TurnOut(turn_id=t.turn_id, role=t.role, content=t.content, timestamp=t.timestamp)
            for t in conversation.turns
        ]
    )


@app.get(
    "/api/admin/chatbot/conversations/{conversation_id}/evaluations",
    response_model=List[EvaluationOut]
)
def list_conversation_evaluations(conversation_id: str) -> List[EvaluationOut]:
    """Return the evaluations recorded for one conversation."""
    try:
        evaluations = evaluation_store.list_for_conversation(conversation_id)
    except RuntimeError as e:
        raise _internal_error(e)
    return [_evaluation_out(e) for e in evaluations]


@app.get("/api/admin/chatbot/evaluations", response_model=List[EvaluationOut])
def list_evaluations(limit: Optional[int] = Query(default=None, ge=1, le=500)) -> List[EvaluationOut]:
    """Return evaluations, most recent first."""
    try:
        evaluations = evaluation_store.list_evaluations(limit=limit)
    except RuntimeError as e:
        raise _internal_error(e)
    return [_evaluation_out(e) for e in evaluations]


@app.get("/api/admin/chatbot/evaluations/stats", response_model=EvaluationStatsOut)
def evaluation_stats() -> EvaluationStatsOut:
    """Aggregate evaluation scores."""
    try:
        stats = evaluation_store.get_stats()
    except RuntimeError as e:
        raise _internal_error(e)
    return EvaluationStatsOut(**asdict(stats))


@app.get("/api/admin/chatbot/evaluations/{evaluation_id}", response_model=EvaluationOut)
def get_evaluation(evaluation_id: int) -> EvaluationOut:
    try:
        evaluation = evaluation_store.get_evaluation(evaluation_id)
    except RuntimeError as e:
        raise _internal_error(e)

    if evaluation is None:
        raise _not_found(f"Evaluation {evaluation_id} not found")
    return _evaluation_out(evaluation)


@app.post("/api/admin/chatbot/evaluations/evaluate/{conversation_id}", status_code=202)
def evaluate_conversation(conversation_id: str):
    """Schedule a fresh evaluation of the latest exchange in a conversation."""
    try:
        scheduled = chat_handler.reevaluate(conversation_id)
    except RuntimeError as e:
        raise _internal_error(e)

    if not scheduled:
        raise _not_found(f"Conversation {conversation_id} has no assistant response to evaluate")
    return {"status": "scheduled", "conversation_id": conversation_id}


@app.post("/api/admin/chatbot/evaluations/batch", response_model=BatchEvaluationOut, status_code=202)
def evaluate_unevaluated() -> BatchEvaluationOut:
    """Schedule evaluations for every conversation that has none yet."""
    try:
        batch = chat_handler.reevaluate_unevaluated(evaluation_store.evaluated_conversation_ids())
    except RuntimeError as e:
        raise _internal_error(e)
    return BatchEvaluationOut(**asdict(batch))


@app.get("/api/admin/chatbot/feedback", response_model=List[FeedbackOut])
def list_feedback(limit: Optional[int] = Query(default=None, ge=1, le=500)) -> List[FeedbackOut]:
    """Return visitor feedback, most recent first."""
    try:
        feedback = feedback_store.list_feedback(limit=limit)
    except RuntimeError as e:
        raise _internal_error(e)
    return [_feedback_out(f) for f in feedback]


@app.get("/api/admin/chatbot/feedback/{conversation_id}", response_model=List[FeedbackOut])
def list_conversation_feedback(conversation_id: str) -> List[FeedbackOut]:
    try:
        feedback = feedback_store.list_for_conversation(conversation_id)
    except RuntimeError as e:
        raise _internal_error(e)
    return [_feedback_out(f) for f in feedback]


@app.get("/api/admin/chatbot/documents", response_model=List[DocumentOut])
def list_documents() -> List[DocumentOut]:
    """List stored knowledge documents."""
    try:
        documents = vector_store.list_documents()
    except RuntimeError as e:
        raise _internal_error(e)
    return [_document_out(d) for d in documents]


@app.post("/api/admin/chatbot/documents", response_model=List[DocumentOut], status_code=201)
def add_document(request: DocumentIn) -> List[DocumentOut]:
    """
    Chunk, embed and store a plain-text knowledge document.

    Re-adding an existing source replaces all of its previous chunks.
    """
    source = DocumentLoader.from_text(request.source, request.text)
    documents = _get_chunking_engine().chunk_sources([source])
    if not documents:
        raise HTTPException(
            status_code=400,
            detail={"error": InvalidInputError("Document text produced no chunks").to_dict()}
        )

    try:
        vector_store.replace_source(request.source, documents)
    except (RuntimeError, ValueError) as e:
        raise _internal_error(e)

    logger.info(f"Added {len(documents)} documents from {request.source}")
    return [_document_out(d) for d in documents]


@app.delete("/api/admin/chatbot/documents/{document_id}")
def delete_document(document_id: str):
    try:
        deleted = vector_store.delete_document(document_id)
    except RuntimeError as e:
        raise _internal_error(e)

    if not deleted:
        raise _not_found(f"Document {document_id} not found")
    return {"status": "deleted", "document_id": document_id}


def _get_chunking_engine() -> ChunkingEngine:
    """Create the chunking engine on first use; loading its tokenizer is slow."""
    global chunking_engine
    if chunking_engine is None:
        chunking_engine = ChunkingEngine()
    return chunking_engine


def _evaluation_out(evaluation: Evaluation) -> EvaluationOut:
    return EvaluationOut(**asdict(evaluation))


def _feedback_out(feedback: Feedback) -> FeedbackOut:
    return FeedbackOut(**asdict(feedback))


def _document_out(document: Document) -> DocumentOut:
    return DocumentOut(
        document_id=document.document_id,
        source=document.source,
        page_number=document.page_number,
        token_count=document.token_count,
        context_header=document.context_header
    )


def _not_found(message: str) -> HTTPException:
    return HTTPException(
        status_code=404,
        detail={"error": {"code": "NOT_FOUND", "message": message, "details": {}}}
    )


def _internal_error(error: Exception) -> HTTPException:
    if isinstance(error, ChatError):
        body = error.to_dict()
    else:
        body = {"code": "INTERNAL_ERROR", "message": f"Internal server error: {str(error)}", "details": {}}
    return HTTPException(status_code=500, detail={"error": body})


if __name__ == "__main__":
    import uvicorn
    logger.info(f"Starting portfolio chatbot API on port {PORT}")
    uvicorn.run(app, host="0.0.0.0", port=PORT)
