"""Detached execution of response evaluations."""
import logging
from concurrent.futures import Future, ThreadPoolExecutor
from datetime import datetime, timezone
from typing import Optional

from models.evaluation import Evaluation, EvaluationJob
from services.errors import EvaluationFailedError
from services.evaluation_store import EvaluationStore
from services.output_evaluator import OutputEvaluator

logger = logging.getLogger(__name__)


class EvaluationScheduler:
    """
    Submit-and-forget evaluation runner.

    Jobs run on a small thread pool. Each job is attempted once; a failure is
    logged and the assistant turn simply stays without an evaluation.
    """

    def __init__(
        self,
        evaluator: OutputEvaluator,
        store: EvaluationStore,
        max_workers: int = 2
    ):
        self.evaluator = evaluator
        self.store = store
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers,
            thread_name_prefix="evaluation"
        )
        logger.info(f"EvaluationScheduler started with {max_workers} workers")

    def submit(self, job: EvaluationJob) -> Optional[Future]:
        """
        Queue an evaluation without waiting for it.

        Returns:
            The Future for the job, or None if the scheduler no longer accepts work
        """
        try:
            future = self._executor.submit(self.run, job)
        except RuntimeError as e:
            # Raised by the executor after shutdown()
            logger.warning(
                f"Evaluation for turn {job.turn_id} not scheduled: {e}",
                extra={"conversation_id": job.conversation_id, "turn_id": job.turn_id}
            )
            return None

        logger.debug(f"Scheduled evaluation for turn {job.turn_id}")
        return future

    def run(self, job: EvaluationJob) -> Optional[Evaluation]:
        """
        Evaluate one assistant turn and persist the result.

        Never raises: the outcome is recorded in the logs only.

        Returns:
            The saved Evaluation, or None on failure
        """
        log_extra = {"conversation_id": job.conversation_id, "turn_id": job.turn_id}

        try:
            result = self.evaluator.evaluate(job.question, job.response, job.documents)
        except EvaluationFailedError as e:
            logger.warning(
                f"Evaluation failed for turn {job.turn_id}: {e.message}",
                extra={**log_extra, "error_code": e.code, "error_details": e.details}
            )
            return None
        except Exception:
            logger.exception(f"Unexpected error evaluating turn {job.turn_id}", extra=log_extra)
            return None

        evaluation = Evaluation(
            conversation_id=job.conversation_id,
            turn_id=job.turn_id,
            scores=result.scores,
            overall_score=result.overall_score,
            feedback=result.feedback,
            flags=result.flags,
            strengths=result.strengths,
            improvements=result.improvements,
            document_ids=job.document_ids,
            evaluated_at=datetime.now(timezone.utc)
        )

        try:
            saved = self.store.save(evaluation)
        except RuntimeError as e:
            logger.error(f"Could not persist evaluation for turn {job.turn_id}: {e}", extra=log_extra)
            return None

        logger.info(
            f"Evaluation completed for turn {job.turn_id}: overall={result.overall_score}, "
            f"flags={result.flags}",
            extra=log_extra
        )
        return saved

    def shutdown(self, wait: bool = True) -> None:
        """Stop accepting jobs; optionally wait for queued ones to finish."""
        self._executor.shutdown(wait=wait)
        logger.info("EvaluationScheduler shut down")
