"""Services for the portfolio chatbot."""
from .document_loader import DocumentLoader
from .chunking_engine import ChunkingEngine
from .embedding_model import EmbeddingModel
from .vector_store import VectorStore
from .retrieval_engine import RetrievalEngine
from .llm_client import LLMClient, LLMResponse, LLMError, LLMClientError
from .output_evaluator import OutputEvaluator
from .conversation_manager import ConversationManager
from .evaluation_store import EvaluationStore
from .feedback_store import FeedbackStore
from .evaluation_scheduler import EvaluationScheduler
from .chat_handler import ChatTurnHandler, ChatResult

__all__ = ['DocumentLoader', 'ChunkingEngine', 'EmbeddingModel', 'VectorStore', 'RetrievalEngine', 'LLMClient', 'LLMResponse', 'LLMError', 'LLMClientError', 'OutputEvaluator', 'ConversationManager', 'EvaluationStore', 'FeedbackStore', 'EvaluationScheduler', 'ChatTurnHandler', 'ChatResult']
