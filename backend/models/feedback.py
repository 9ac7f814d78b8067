"""Visitor feedback models."""
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

THUMBS_UP = "thumbs_up"
THUMBS_DOWN = "thumbs_down"
RATINGS = (THUMBS_UP, THUMBS_DOWN)

@dataclass(frozen=True)
class Feedback:
    """A visitor's rating of a conversation, with an optional comment."""
    conversation_id: str
    rating: str  # "thumbs_up" or "thumbs_down"
    created_at: datetime
    comment: Optional[str] = None
    feedback_id: Optional[int] = None
