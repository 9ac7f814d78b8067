"""Request and response schemas for the HTTP API."""
from datetime import datetime
from typing import Dict, List, Literal, Optional
from pydantic import BaseModel, Field


class ChatRequest(BaseModel):
    """Inbound chat message."""
    message: str
    conversation_id: Optional[str] = Field(default=None, max_length=128)


class Source(BaseModel):
    """A document used to ground the answer."""
    document_id: str
    source: str
    relevance_score: float


class ChatMetadata(BaseModel):
    """Diagnostics returned alongside the answer."""
    documents_retrieved: int
    prompt_tokens: Optional[int] = None
    latency_ms: int


class ChatResponse(BaseModel):
    """Outbound chat answer."""
    response: str
    conversation_id: str
    metadata: ChatMetadata
    sources: List[Source] = Field(default_factory=list)


class TurnOut(BaseModel):
    """One persisted turn."""
    turn_id: Optional[int] = None
    role: str
    content: str
    timestamp: datetime


class ConversationOut(BaseModel):
    """Conversation with its turns."""
    conversation_id: str
    turns: List[TurnOut]


class EvaluationOut(BaseModel):
    """Persisted evaluation as shown to administrators."""
    evaluation_id: Optional[int] = None
    conversation_id: str
    turn_id: int
    scores: Dict[str, float]
    overall_score: float
    feedback: str
    flags: List[str] = Field(default_factory=list)
    strengths: List[str] = Field(default_factory=list)
    improvements: List[str] = Field(default_factory=list)
    document_ids: List[str] = Field(default_factory=list)
    evaluated_at: datetime


class EvaluationStatsOut(BaseModel):
    """Aggregate evaluation scores."""
    total_evaluations: int
    average_overall_score: float
    average_scores: Dict[str, float]
    last_week_average: float
    last_month_average: float


class DocumentIn(BaseModel):
    """Plain-text knowledge document added by an administrator."""
    source: str = Field(min_length=1)
    text: str = Field(min_length=1)


class DocumentOut(BaseModel):
    """Stored knowledge document."""
    document_id: str
    source: str
    page_number: int
    token_count: int
    context_header: Optional[str] = None


class BatchEvaluationOut(BaseModel):
    """Conversations scheduled by a batch evaluation."""
    total_conversations: int
    evaluated_before: int
    scheduled: List[str]
    skipped: List[str]


class FeedbackIn(BaseModel):
    """Visitor rating of a conversation."""
    conversation_id: str = Field(min_length=1, max_length=128)
    rating: Literal["thumbs_up", "thumbs_down"]
    comment: Optional[str] = Field(default=None, max_length=2000)


class FeedbackOut(BaseModel):
    """Stored visitor feedback."""
    feedback_id: Optional[int] = None
    conversation_id: str
    rating: str
    comment: Optional[str] = None
    created_at: datetime
