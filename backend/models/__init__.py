"""Data models for the portfolio chatbot service."""
from .source import SourceFile, Page
from .document import Document, ScoredDocument
from .conversation import Conversation, Turn
from .evaluation import Evaluation, EvaluationJob, EvaluationResult, EvaluationStats, BatchEvaluation
from .feedback import Feedback
from .api import ChatRequest, ChatResponse, ChatMetadata, Source

__all__ = [
    "SourceFile",
    "Page",
    "Document",
    "ScoredDocument",
    "Conversation",
    "Turn",
    "Evaluation",
    "EvaluationJob",
    "EvaluationResult",
    "EvaluationStats",
    "BatchEvaluation",
    "Feedback",
    "ChatRequest",
    "ChatResponse",
    "ChatMetadata",
    "Source",
]
