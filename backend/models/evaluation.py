"""Evaluation data models."""
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional

from models.document import ScoredDocument

SCORE_NAMES = ("correctness", "comprehensiveness", "coherence", "conciseness")


@dataclass
class EvaluationResult:
    """Judge output for one response, before it is persisted."""
    scores: Dict[str, float]
    overall_score: float
    feedback: str
    strengths: List[str] = field(default_factory=list)
    improvements: List[str] = field(default_factory=list)
    flags: List[str] = field(default_factory=list)


@dataclass
class EvaluationJob:
    """Everything the background evaluator needs for one assistant turn."""
    conversation_id: str
    turn_id: int
    question: str
    response: str
    documents: List[ScoredDocument] = field(default_factory=list)

    @property
    def document_ids(self) -> List[str]:
        return [scored.document.document_id for scored in self.documents]


@dataclass(frozen=True)
class Evaluation:
    """Persisted quality assessment of an assistant turn."""
    conversation_id: str
    turn_id: int
    scores: Dict[str, float]
    overall_score: float
    feedback: str
    evaluated_at: datetime
    flags: List[str] = field(default_factory=list)
    strengths: List[str] = field(default_factory=list)
    improvements: List[str] = field(default_factory=list)
    document_ids: List[str] = field(default_factory=list)
    evaluation_id: Optional[int] = None


@dataclass
class EvaluationStats:
    """Aggregate view over all evaluations."""
    total_evaluations: int
    average_overall_score: float
    average_scores: Dict[str, float]
    last_week_average: float
    last_month_average: float


@dataclass
class BatchEvaluation:
    """Outcome of scheduling evaluations for every unevaluated conversation."""
    total_conversations: int
    evaluated_before: int
    scheduled: List[str] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)
