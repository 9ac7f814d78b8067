"""Evaluation persistence and reporting backed by Supabase."""
import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, Optional, Set
import numpy as np
from supabase import create_client, Client

from models.evaluation import Evaluation, EvaluationStats, SCORE_NAMES
from services.conversation_manager import parse_timestamp
from services.supabase_pages import fetch_all_rows, PAGE_SIZE
from config import SUPABASE_URL, SUPABASE_KEY, EVALUATIONS_TABLE

logger = logging.getLogger(__name__)


class EvaluationStore:
    """Writes evaluation records and serves the administrative read views."""

    def __init__(
        self,
        supabase_url: Optional[str] = SUPABASE_URL,
        supabase_key: Optional[str] = SUPABASE_KEY,
        table_name: str = EVALUATIONS_TABLE
    ):
        if not supabase_url or not supabase_key:
            raise ValueError("SUPABASE_URL and SUPABASE_KEY must be set in environment variables")

        self.table_name = table_name
        self.page_size = PAGE_SIZE
        self.client: Client = create_client(supabase_url, supabase_key)
        logger.info(f"EvaluationStore initialized with table: {table_name}")

    def save(self, evaluation: Evaluation) -> Evaluation:
        """
        Insert an evaluation record.

        Returns:
            The evaluation with its database ID

        Raises:
            RuntimeError: If the insert fails
        """
        record = {
            "conversation_id": evaluation.conversation_id,
            "turn_id": evaluation.turn_id,
            "scores": evaluation.scores,
            "overall_score": evaluation.overall_score,
            "feedback": evaluation.feedback,
            "flags": evaluation.flags,
            "strengths": evaluation.strengths,
            "improvements": evaluation.improvements,
            "document_ids": evaluation.document_ids,
            "evaluated_at": evaluation.evaluated_at.isoformat(),
        }
        try:
            result = self.client.table(self.table_name).insert(record).execute()
        except Exception as e:
            error_msg = f"Error saving evaluation for turn {evaluation.turn_id}: {e}"
            logger.error(error_msg)
            raise RuntimeError(error_msg) from e

        saved = self._row_to_evaluation(result.data[0]) if result.data else evaluation
        logger.info(
            f"Saved evaluation for conversation {evaluation.conversation_id} "
            f"turn {evaluation.turn_id} (overall {evaluation.overall_score})"
        )
        return saved

    def list_evaluations(self, limit: Optional[int] = None) -> List[Evaluation]:
        """
        Return evaluations, most recent first.

        Without a limit every row is read, page by page.
        """
        if limit:
            return self._fetch(self._recent_first().limit(limit), "listing evaluations")
        return self._fetch_all(self._recent_first, "listing evaluations")

    def evaluated_conversation_ids(self) -> Set[str]:
        """Return the IDs of conversations that have at least one evaluation."""
        def build_query():
            return self.client.table(self.table_name).select("conversation_id").order("id")

        try:
            rows = fetch_all_rows(build_query, self.page_size)
        except Exception as e:
            error_msg = f"Error listing evaluated conversations: {e}"
            logger.error(error_msg)
            raise RuntimeError(error_msg) from e
        return {row["conversation_id"] for row in rows}

    def list_for_conversation(self, conversation_id: str) -> List[Evaluation]:
        """Return every evaluation of one conversation, oldest first."""
        query = (
            self.client.table(self.table_name)
            .select("*")
            .eq("conversation_id", conversation_id)
            .order("evaluated_at")
        )
        return self._fetch(query, f"listing evaluations for {conversation_id}")

    def get_evaluation(self, evaluation_id: int) -> Optional[Evaluation]:
        """Return one evaluation, or None if it does not exist."""
        query = self.client.table(self.table_name).select("*").eq("id", evaluation_id)
        rows = self._fetch(query, f"retrieving evaluation {evaluation_id}")
        return rows[0] if rows else None

    def get_stats(self, now: Optional[datetime] = None) -> EvaluationStats:
        """
        Aggregate scores across all evaluations.

        Averages are rounded to two decimals. The weekly and monthly figures
        average the overall score of evaluations from the last 7 and 30 days.
        """
        evaluations = self._fetch_all(self._recent_first, "computing evaluation stats")
        if not evaluations:
            return EvaluationStats(
                total_evaluations=0,
                average_overall_score=0.0,
                average_scores={name: 0.0 for name in SCORE_NAMES},
                last_week_average=0.0,
                last_month_average=0.0
            )

        now = now or datetime.now(timezone.utc)
        overall = np.array([e.overall_score for e in evaluations], dtype=float)

        average_scores = {}
        for name in SCORE_NAMES:
            values = [e.scores[name] for e in evaluations if name in e.scores]
            average_scores[name] = _rounded_mean(values)

        def window_average(days: int) -> float:
            since = now - timedelta(days=days)
            return _rounded_mean([e.overall_score for e in evaluations if e.evaluated_at >= since])

        return EvaluationStats(
            total_evaluations=len(evaluations),
            average_overall_score=round(float(overall.mean()), 2),
            average_scores=average_scores,
            last_week_average=window_average(7),
            last_month_average=window_average(30)
        )

    def _recent_first(self) -> Any:
        # id breaks ties between equal timestamps so pages never overlap
        return (
            self.client.table(self.table_name)
            .select("*")
            .order("evaluated_at", desc=True)
            .order("id", desc=True)
        )

    def _fetch_all(self, build_query: Callable[[], Any], action: str) -> List[Evaluation]:
        try:
            rows = fetch_all_rows(build_query, self.page_size)
        except Exception as e:
            error_msg = f"Error {action}: {e}"
            logger.error(error_msg)
            raise RuntimeError(error_msg) from e
        return [self._row_to_evaluation(row) for row in rows]

    def _fetch(self, query: Any, action: str) -> List[Evaluation]:
        try:
            result = query.execute()
        except Exception as e:
            error_msg = f"Error {action}: {e}"
            logger.error(error_msg)
            raise RuntimeError(error_msg) from e
        return [self._row_to_evaluation(row) for row in (result.data or [])]

    @staticmethod
    def _row_to_evaluation(row: Dict[str, Any]) -> Evaluation:
        evaluated_at = parse_timestamp(row["evaluated_at"])
        if evaluated_at.tzinfo is None:
            evaluated_at = evaluated_at.replace(tzinfo=timezone.utc)
        return Evaluation(
            evaluation_id=row.get("id"),
            conversation_id=row["conversation_id"],
            turn_id=row["turn_id"],
            scores={k: float(v) for k, v in (row.get("scores") or {}).items()},
            overall_score=float(row["overall_score"]),
            feedback=row.get("feedback") or "",
            flags=list(row.get("flags") or []),
            strengths=list(row.get("strengths") or []),
            improvements=list(row.get("improvements") or []),
            document_ids=list(row.get("document_ids") or []),
            evaluated_at=evaluated_at
        )


def _rounded_mean(values: List[float]) -> float:
    if not values:
        return 0.0
    return round(float(np.mean(values)), 2)
