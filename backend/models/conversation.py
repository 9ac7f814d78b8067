"""Conversation data models."""
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional

USER = "user"
ASSISTANT = "assistant"

@dataclass(frozen=True)
class Turn:
    """Represents a single message in a conversation."""
    conversation_id: str
    role: str  # "user" or "assistant"
    content: str
    timestamp: datetime
    turn_id: Optional[int] = None

@dataclass
class Conversation:
    """Represents a multi-turn conversation."""
    conversation_id: str
    turns: List[Turn] = field(default_factory=list)
    created_at: Optional[datetime] = None
