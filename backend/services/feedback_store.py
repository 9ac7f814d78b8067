"""Visitor feedback persistence backed by Supabase."""
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
from supabase import create_client, Client

from models.feedback import Feedback, RATINGS
from services.conversation_manager import parse_timestamp
from services.supabase_pages import fetch_all_rows, PAGE_SIZE
from config import SUPABASE_URL, SUPABASE_KEY, FEEDBACK_TABLE

logger = logging.getLogger(__name__)


class FeedbackStore:
    """Records thumbs-up/thumbs-down ratings and serves them to administrators."""

    def __init__(
        self,
        supabase_url: Optional[str] = SUPABASE_URL,
        supabase_key: Optional[str] = SUPABASE_KEY,
        table_name: str = FEEDBACK_TABLE
    ):
        if not supabase_url or not supabase_key:
            raise ValueError("SUPABASE_URL and SUPABASE_KEY must be set in environment variables")

        self.table_name = table_name
        self.page_size = PAGE_SIZE
        self.client: Client = create_client(supabase_url, supabase_key)
        logger.info(f"FeedbackStore initialized with table: {table_name}")

    def save(self, conversation_id: str, rating: str, comment: Optional[str] = None) -> Feedback:
        """
        Record one piece of feedback.

        Args:
            conversation_id: Conversation being rated
            rating: "thumbs_up" or "thumbs_down"
            comment: Optional free text; blank comments are stored as None

        Returns:
            The stored Feedback with its database ID

        Raises:
            ValueError: If the rating is not recognised
            RuntimeError: If the insert fails
        """
        if rating not in RATINGS:
            raise ValueError(f"rating must be one of {', '.join(RATINGS)}")

        comment = comment.strip() if comment else None
        feedback = Feedback(
            conversation_id=conversation_id,
            rating=rating,
            comment=comment or None,
            created_at=datetime.now(timezone.utc)
        )
        record = {
            "conversation_id": feedback.conversation_id,
            "rating": feedback.rating,
            "comment": feedback.comment,
            "created_at": feedback.created_at.isoformat(),
        }

        try:
            result = self.client.table(self.table_name).insert(record).execute()
        except Exception as e:
            error_msg = f"Error saving feedback for conversation {conversation_id}: {e}"
            logger.error(error_msg)
            raise RuntimeError(error_msg) from e

        logger.info(f"Saved {rating} feedback for conversation {conversation_id}")
        return self._row_to_feedback(result.data[0]) if result.data else feedback

    def list_feedback(self, limit: Optional[int] = None) -> List[Feedback]:
        """Return feedback, most recent first; every page is read when no limit is given."""
        def build_query():
            return (
                self.client.table(self.table_name)
                .select("*")
                .order("created_at", desc=True)
                .order("id", desc=True)
            )

        try:
            if limit:
                rows = build_query().limit(limit).execute().data or []
            else:
                rows = fetch_all_rows(build_query, self.page_size)
        except Exception as e:
            error_msg = f"Error listing feedback: {e}"
            logger.error(error_msg)
            raise RuntimeError(error_msg) from e
        return [self._row_to_feedback(row) for row in rows]

    def list_for_conversation(self, conversation_id: str) -> List[Feedback]:
        """Return the feedback left on one conversation, oldest first."""
        try:
            result = (
                self.client.table(self.table_name)
                .select("*")
                .eq("conversation_id", conversation_id)
                .order("created_at")
                .execute()
            )
        except Exception as e:
            error_msg = f"Error listing feedback for {conversation_id}: {e}"
            logger.error(error_msg)
            raise RuntimeError(error_msg) from e
        return [self._row_to_feedback(row) for row in (result.data or [])]

    @staticmethod
    def _row_to_feedback(row: Dict[str, Any]) -> Feedback:
        created_at = parse_timestamp(row["created_at"])
        if created_at.tzinfo is None:
            created_at = created_at.replace(tzinfo=timezone.utc)
        return Feedback(
            feedback_id=row.get("id"),
            conversation_id=row["conversation_id"],
            rating=row["rating"],
            comment=row.get("comment"),
            created_at=created_at
        )
