"""Chat turn handler: history, retrieval, generation, persistence, evaluation."""
import logging
import time
from dataclasses import dataclass, field
from typing import Any, List, Optional, Set

from config import ChatConfig
from models.conversation import Turn
from models.document import ScoredDocument
from models.evaluation import BatchEvaluation, EvaluationJob
from services.conversation_manager import ConversationManager
from services.errors import GenerationFailedError, InvalidInputError, RetrievalDegradedError
from services.evaluation_scheduler import EvaluationScheduler
from services.llm_client import LLMClient, LLMClientError
from services.prompt_builder import assemble_prompt, build_instructions
from services.retrieval_engine import RetrievalEngine

logger = logging.getLogger(__name__)

MAX_MESSAGE_CHARS = 4000


@dataclass
class ChatResult:
    """Outcome of a successful chat turn."""
    response: str
    conversation_id: str
    documents: List[ScoredDocument] = field(default_factory=list)
    prompt_tokens: Optional[int] = None
    latency_ms: int = 0
    assistant_turn: Optional[Turn] = None

    @property
    def documents_retrieved(self) -> int:
        return len(self.documents)


class ChatTurnHandler:
    """
    Answers one visitor message.

    Flow: validate -> load history -> retrieve -> assemble prompt -> generate
    -> persist user and assistant turns -> return, then hand the turn to the
    evaluation scheduler without waiting on it.
    """

    def __init__(
        self,
        config: ChatConfig,
        conversation_manager: ConversationManager,
        retrieval_engine: RetrievalEngine,
        llm_client: LLMClient,
        evaluation_scheduler: EvaluationScheduler,
        tokenizer: Optional[Any] = None
    ):
        """
        Args:
            config: Chat settings (top-k, history length, persona)
            conversation_manager: Turn history store
            retrieval_engine: Document retriever
            llm_client: Response generator
            evaluation_scheduler: Background evaluator
            tokenizer: Optional tiktoken encoding used to report prompt size
        """
        self.config = config
        self.conversation_manager = conversation_manager
        self.retrieval_engine = retrieval_engine
        self.llm_client = llm_client
        self.evaluation_scheduler = evaluation_scheduler
        self.tokenizer = tokenizer
        self.instructions = build_instructions(config.owner_name, config.assistant_name)

    def chat(self, conversation_id: Optional[str], message: str) -> ChatResult:
        """
        Process one user message.

        Args:
            conversation_id: Caller's conversation ID; a new one is generated if None
            message: The user's message

        Returns:
            ChatResult with the assistant's response

        Raises:
            InvalidInputError: Empty, whitespace-only or oversized message
            GenerationFailedError: The language model call failed or timed out
            RuntimeError: The turn pair could not be persisted
        """
        start_time = time.time()

        if message is None or not message.strip():
            raise InvalidInputError("Message is required and cannot be empty")
        if len(message) > MAX_MESSAGE_CHARS:
            raise InvalidInputError(
                f"Message exceeds {MAX_MESSAGE_CHARS} characters",
                details={"length": len(message)}
            )
        if conversation_id is not None and not conversation_id.strip():
            raise InvalidInputError("conversation_id cannot be blank")

        conversation_id = conversation_id or self.conversation_manager.generate_conversation_id()
        message = message.strip()
        logger.info(f"Processing message for conversation {conversation_id}: {message[:100]}")

        history = self._load_history(conversation_id)
        documents = self._retrieve(message)

        prompt = assemble_prompt(self.instructions, documents, history, message)
        # Visitor text may spell out special tokens; count them as plain text
        prompt_tokens = len(self.tokenizer.encode(prompt, disallowed_special=())) if self.tokenizer else None

        try:
            llm_response = self.llm_client.generate(prompt)
        except LLMClientError as e:
            raise GenerationFailedError(
                e.error.message,
                details={"provider_code": e.error.code, **e.error.details}
            ) from e

        _, assistant_turn = self.conversation_manager.append_turn_pair(
            conversation_id, message, llm_response.text
        )

        self._schedule_evaluation(
            EvaluationJob(
                conversation_id=conversation_id,
                turn_id=assistant_turn.turn_id,
                question=message,
                response=llm_response.text,
                documents=documents
            )
        )

        latency_ms = int((time.time() - start_time) * 1000)
        logger.info(
            f"Answered conversation {conversation_id} in {latency_ms}ms "
            f"with {len(documents)} documents",
            extra={"conversation_id": conversation_id, "documents_retrieved": len(documents)}
        )

        return ChatResult(
            response=llm_response.text,
            conversation_id=conversation_id,
            documents=documents,
            prompt_tokens=prompt_tokens,
            latency_ms=latency_ms,
            assistant_turn=assistant_turn
        )

    def reevaluate(self, conversation_id: str) -> bool:
        """
        Schedule a fresh evaluation of the latest exchange in a conversation.

        Documents are re-retrieved for the stored question, so they reflect the
        current knowledge base rather than what the original answer used.

        Returns:
            False if the conversation has no assistant turn to evaluate
        """
        exchange = self.conversation_manager.get_last_exchange(conversation_id)
        if exchange is None:
            return False

        user_turn, assistant_turn = exchange
        self._schedule_evaluation(
            EvaluationJob(
                conversation_id=conversation_id,
                turn_id=assistant_turn.turn_id,
                question=user_turn.content,
                response=assistant_turn.content,
                documents=self._retrieve(user_turn.content)
            )
        )
        return True

    def reevaluate_unevaluated(self, evaluated_conversation_ids: Set[str]) -> BatchEvaluation:
        """
        Schedule an evaluation for every conversation that has none yet.

        Each conversation goes through reevaluate(), so documents are
        retrieved here but judging happens on the evaluation scheduler.
        Conversations without an assistant reply, or whose history cannot be
        read, are skipped.

        Args:
            evaluated_conversation_ids: Conversations that already have an evaluation

        Raises:
            RuntimeError: If the conversation list cannot be read
        """
        conversation_ids = self.conversation_manager.list_conversation_ids()
        batch = BatchEvaluation(
            total_conversations=len(conversation_ids),
            evaluated_before=len(evaluated_conversation_ids.intersection(conversation_ids))
        )

        for conversation_id in conversation_ids:
            if conversation_id in evaluated_conversation_ids:
                continue
            try:
                scheduled = self.reevaluate(conversation_id)
            except RuntimeError as e:
                logger.warning(f"Skipping conversation {conversation_id} in batch evaluation: {e}")
                scheduled = False
            (batch.scheduled if scheduled else batch.skipped).append(conversation_id)

        logger.info(
            f"Batch evaluation scheduled {len(batch.scheduled)} of {batch.total_conversations} "
            f"conversations ({len(batch.skipped)} skipped)"
        )
        return batch

    def _load_history(self, conversation_id: str) -> List[Turn]:
        try:
            return self.conversation_manager.get_turns(conversation_id, limit=self.config.history_turns)
        except RuntimeError as e:
            logger.warning(f"History unavailable for {conversation_id}, continuing without it: {e}")
            return []

    def _retrieve(self, message: str) -> List[ScoredDocument]:
        try:
            return self.retrieval_engine.retrieve(message, k=self.config.retrieval_top_k)
        except Exception as e:
            degraded = RetrievalDegradedError(str(e))
            logger.warning(
                f"Retrieval degraded, answering without documents: {degraded.message}",
                extra={"error_code": degraded.code}
            )
            return []

    def _schedule_evaluation(self, job: EvaluationJob) -> None:
        try:
            self.evaluation_scheduler.submit(job)
        except Exception:
            logger.exception(f"Could not schedule evaluation for turn {job.turn_id}")
