"""Conversation store backed by Supabase PostgreSQL."""
import logging
import time
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple
from supabase import create_client, Client

from models.conversation import Conversation, Turn, USER, ASSISTANT
from services.supabase_pages import fetch_all_rows, PAGE_SIZE
from config import SUPABASE_URL, SUPABASE_KEY, CONVERSATIONS_TABLE, TURNS_TABLE

logger = logging.getLogger(__name__)


class ConversationManager:
    """Reads and appends conversation turns in Supabase."""

    def __init__(
        self,
        supabase_url: Optional[str] = SUPABASE_URL,
        supabase_key: Optional[str] = SUPABASE_KEY
    ):
        """Initialize the conversation manager with a Supabase client."""
        if not supabase_url or not supabase_key:
            raise ValueError("SUPABASE_URL and SUPABASE_KEY must be set in environment variables")

        self.page_size = PAGE_SIZE
        self.client: Client = create_client(supabase_url, supabase_key)
        logger.info("ConversationManager initialized with Supabase")

    @staticmethod
    def generate_conversation_id() -> str:
        """
        Generate a time-based conversation ID for callers that did not supply one.

        Returns:
            ID of the form conv_<epoch_ms>_<6 hex chars>
        """
        return f"conv_{int(time.time() * 1000)}_{uuid.uuid4().hex[:6]}"

    def get_turns(self, conversation_id: str, limit: Optional[int] = None) -> List[Turn]:
        """
        Retrieve turns for a conversation in chronological order.

        Args:
            conversation_id: ID of the conversation
            limit: Only return the most recent N turns

        Returns:
            List of Turn objects, oldest first (empty for a new conversation)

        Raises:
            RuntimeError: If the database read fails
        """
        try:
            query = (
                self.client.table(TURNS_TABLE)
                .select("*")
                .eq("conversation_id", conversation_id)
                .order("id", desc=True)
            )
            if limit:
                query = query.limit(limit)
            result = query.execute()
        except Exception as e:
            error_msg = f"Error retrieving turns for conversation {conversation_id}: {e}"
            logger.error(error_msg)
            raise RuntimeError(error_msg) from e

        rows = list(reversed(result.data or []))
        return [self._row_to_turn(row) for row in rows]

    def get_conversation(self, conversation_id: str) -> Optional[Conversation]:
        """
        Load a conversation and all of its turns.

        Returns:
            Conversation, or None if no conversation with that ID exists
        """
        try:
            result = (
                self.client.table(CONVERSATIONS_TABLE)
                .select("*")
                .eq("conversation_id", conversation_id)
                .execute()
            )
        except Exception as e:
            error_msg = f"Error retrieving conversation {conversation_id}: {e}"
            logger.error(error_msg)
            raise RuntimeError(error_msg) from e

        if not result.data:
            return None

        conv_data = result.data[0]
        return Conversation(
            conversation_id=conv_data["conversation_id"],
            turns=self.get_turns(conversation_id),
            created_at=parse_timestamp(conv_data["created_at"])
        )

    def conversation_exists(self, conversation_id: str) -> bool:
        """Return True if a conversation row with this ID exists."""
        try:
            result = (
                self.client.table(CONVERSATIONS_TABLE)
                .select("conversation_id")
                .eq("conversation_id", conversation_id)
                .limit(1)
                .execute()
            )
        except Exception as e:
            error_msg = f"Error checking conversation {conversation_id}: {e}"
            logger.error(error_msg)
            raise RuntimeError(error_msg) from e
        return bool(result.data)

    def list_conversation_ids(self) -> List[str]:
        """
        Return every conversation ID, oldest conversation first.

        Raises:
            RuntimeError: If the database read fails
        """
        def build_query():
            return (
                self.client.table(CONVERSATIONS_TABLE)
                .select("conversation_id")
                .order("created_at")
                .order("conversation_id")
            )

        try:
            rows = fetch_all_rows(build_query, self.page_size)
        except Exception as e:
            error_msg = f"Error listing conversations: {e}"
            logger.error(error_msg)
            raise RuntimeError(error_msg) from e
        return [row["conversation_id"] for row in rows]

    def append_turn_pair(
        self,
        conversation_id: str,
        user_message: str,
        assistant_message: str
    ) -> Tuple[Turn, Turn]:
        """
        Persist a user turn and its assistant reply.

        Both turns go out in a single multi-row insert so a conversation never
        holds a user turn without its reply. The conversation row is created on
        first use.

        Returns:
            (user_turn, assistant_turn) with database IDs

        Raises:
            RuntimeError: If either write fails
        """
        now = datetime.now(timezone.utc)

        try:
            self.client.table(CONVERSATIONS_TABLE).upsert(
                {"conversation_id": conversation_id, "created_at": now.isoformat()},
                on_conflict="conversation_id",
                ignore_duplicates=True
            ).execute()

            result = self.client.table(TURNS_TABLE).insert([
                {
                    "conversation_id": conversation_id,
                    "role": USER,
                    "content": user_message,
                    "timestamp": now.isoformat()
                },
                {
                    "conversation_id": conversation_id,
                    "role": ASSISTANT,
                    "content": assistant_message,
                    "timestamp": datetime.now(timezone.utc).isoformat()
                },
            ]).execute()
        except Exception as e:
            error_msg = f"Error adding turns to conversation {conversation_id}: {e}"
            logger.error(error_msg)
            raise RuntimeError(error_msg) from e

        rows = sorted(result.data or [], key=lambda row: row["id"])
        if len(rows) != 2:
            raise RuntimeError(
                f"Expected 2 turns to be written for conversation {conversation_id}, got {len(rows)}"
            )

        user_turn, assistant_turn = (self._row_to_turn(row) for row in rows)
        logger.info(f"Added turn pair to conversation {conversation_id}")
        return user_turn, assistant_turn

    def get_last_exchange(self, conversation_id: str) -> Optional[Tuple[Turn, Turn]]:
        """
        Return the latest assistant turn together with the user turn it answered.

        Returns:
            (user_turn, assistant_turn), or None if the conversation has no reply yet
        """
        turns = self.get_turns(conversation_id)
        for index in range(len(turns) - 1, 0, -1):
            if turns[index].role == ASSISTANT and turns[index - 1].role == USER:
                return turns[index - 1], turns[index]
        return None

    @staticmethod
    def _row_to_turn(row: Dict[str, Any]) -> Turn:
        return Turn(
            conversation_id=row["conversation_id"],
            role=row["role"],
            content=row["content"],
            timestamp=parse_timestamp(row["timestamp"]),
            turn_id=row.get("id")
        )


def parse_timestamp(timestamp_str: str) -> datetime:
    """
    Parse a timestamp string returned by Supabase.

    PostgREST may return fractional seconds with fewer or more than six
    digits, which older fromisoformat() implementations reject, so the
    fraction is normalized to exactly six digits.
    """
    timestamp_str = timestamp_str.replace("Z", "+00:00")

    if "." in timestamp_str:
        head, tail = timestamp_str.split(".", 1)
        # Split fractional seconds from the timezone suffix
        for sign in ("+", "-"):
            if sign in tail:
                fraction, tz = tail.split(sign, 1)
                tz = sign + tz
                break
        else:
            fraction, tz = tail, ""
        timestamp_str = f"{head}.{fraction[:6].ljust(6, '0')}{tz}"

    return datetime.fromisoformat(timestamp_str)
