"""Configuration management for the portfolio chatbot service."""
import os
import logging
from dataclasses import dataclass, field
from typing import List, Optional
from dotenv import load_dotenv

# Load environment variables
load_dotenv()

# API Keys
GROQ_API_KEY = os.getenv("GROQ_API_KEY")
HUGGINGFACE_API_KEY = os.getenv("HUGGINGFACE_API_KEY")
SUPABASE_URL = os.getenv("SUPABASE_URL")
SUPABASE_KEY = os.getenv("SUPABASE_KEY")

# Server Configuration
PORT = int(os.getenv("PORT", "8000"))
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
LOG_FORMAT = os.getenv("LOG_FORMAT", "text")  # "text" or "json"

# CORS Configuration
CORS_ORIGINS = os.getenv(
    "CORS_ORIGINS",
    "http://localhost:5173,http://localhost:3000"
).split(",")

# Model Configuration
EMBEDDING_MODEL = "sentence-transformers/all-mpnet-base-v2"
CHAT_MODEL = os.getenv("CHAT_MODEL", "llama-3.3-70b-versatile")
EVALUATOR_MODEL = os.getenv("EVALUATOR_MODEL", "llama-3.1-8b-instant")
LLM_TIMEOUT_SECONDS = float(os.getenv("LLM_TIMEOUT_SECONDS", "30"))

# Chunking Configuration
CHUNK_SIZE = 300  # tokens
CHUNK_OVERLAP = 50  # tokens
KNOWLEDGE_DIR = os.getenv("KNOWLEDGE_DIR", "knowledge_docs")

# Retrieval Configuration
RETRIEVAL_TOP_K = 5
RELEVANCE_THRESHOLD = 0.2
DYNAMIC_K_CUTOFF = 0.8  # Only include documents within 80% of top score

# Conversation Configuration
HISTORY_TURNS = 6  # most recent turns included in the prompt

# Evaluation Configuration
EVALUATION_WORKERS = int(os.getenv("EVALUATION_WORKERS", "2"))

# Supabase tables
CONVERSATIONS_TABLE = "chatbot_conversations"
TURNS_TABLE = "chatbot_turns"
DOCUMENTS_TABLE = "chatbot_documents"
EVALUATIONS_TABLE = "chatbot_evaluations"
FEEDBACK_TABLE = "chatbot_feedback"

# Logging Configuration
logging.basicConfig(
    level=getattr(logging, LOG_LEVEL),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)


@dataclass
class ChatConfig:
    """
    Explicit settings for the chat flow.

    Built once at startup and handed to the services that need it, so the
    request path never reads the environment.
    """
    groq_api_key: Optional[str] = None
    chat_model: str = CHAT_MODEL
    evaluator_model: str = EVALUATOR_MODEL
    llm_timeout_seconds: float = LLM_TIMEOUT_SECONDS
    max_response_tokens: int = 400
    temperature: float = 0.7
    retrieval_top_k: int = RETRIEVAL_TOP_K
    relevance_threshold: float = RELEVANCE_THRESHOLD
    dynamic_k_cutoff: float = DYNAMIC_K_CUTOFF
    history_turns: int = HISTORY_TURNS
    evaluation_workers: int = EVALUATION_WORKERS
    owner_name: str = "Nick Lanahan"
    assistant_name: str = "Nack"
    cors_origins: List[str] = field(default_factory=lambda: list(CORS_ORIGINS))

    @classmethod
    def from_env(cls) -> "ChatConfig":
        """Build a ChatConfig from the values loaded at import time."""
        return cls(
            groq_api_key=GROQ_API_KEY,
            owner_name=os.getenv("OWNER_NAME", "Nick Lanahan"),
            assistant_name=os.getenv("ASSISTANT_NAME", "Nack"),
        )
