"""Unit tests for EvaluationScheduler."""
import sys
from pathlib import Path

# Add backend to path
sys.path.insert(0, str(Path(__file__).parent.parent / "backend"))

import threading
import pytest
from unittest.mock import Mock
from models.document import Document, ScoredDocument
from models.evaluation import EvaluationJob, EvaluationResult
from services.errors import EvaluationFailedError
from services.evaluation_scheduler import EvaluationScheduler
from services.evaluation_store import EvaluationStore
from services.output_evaluator import OutputEvaluator


@pytest.fixture
def job():
    return EvaluationJob(
        conversation_id="c1",
        turn_id=42,
        question="What is Nick's education?",
        response="Nick has a B.S. in ...",
        documents=[
            ScoredDocument(Document("resume.pdf_1_0", "B.S. in CS", "resume.pdf"), 0.9),
            ScoredDocument(Document("transcript.pdf_1_0", "GPA 3.8", "transcript.pdf"), 0.8),
        ]
    )


@pytest.fixture
def evaluator():
    evaluator = Mock(spec=OutputEvaluator)
    evaluator.evaluate.return_value = EvaluationResult(
        scores={"correctness": 9.0, "comprehensiveness": 8.0, "coherence": 9.0, "conciseness": 9.0},
        overall_score=8.8,
        feedback="Good",
        flags=[]
    )
    return evaluator


@pytest.fixture
def store():
    store = Mock(spec=EvaluationStore)
    store.save.side_effect = lambda evaluation: evaluation
    return store


@pytest.fixture
def scheduler(evaluator, store):
    scheduler = EvaluationScheduler(evaluator, store, max_workers=1)
    yield scheduler
    scheduler.shutdown(wait=True)


class TestEvaluationScheduler:
    """Test suite for EvaluationScheduler."""

    def test_run_saves_evaluation(self, scheduler, evaluator, store, job):
        evaluation = scheduler.run(job)

        evaluator.evaluate.assert_called_once_with(job.question, job.response, job.documents)
        store.save.assert_called_once()
        assert evaluation.turn_id == 42
        assert evaluation.conversation_id == "c1"
        assert evaluation.document_ids == ["resume.pdf_1_0", "transcript.pdf_1_0"]
        assert evaluation.overall_score == 8.8
        assert evaluation.evaluated_at.tzinfo is not None

    def test_submit_runs_in_background(self, scheduler, evaluator, store, job):
        release = threading.Event()
        started = threading.Event()
        result = evaluator.evaluate.return_value

        def slow_evaluate(*args):
            started.set()
            release.wait(timeout=5)
            return result

        evaluator.evaluate.side_effect = slow_evaluate

        future = scheduler.submit(job)

        # submit() returned while the evaluation is still held open
        assert future is not None
        assert started.wait(timeout=5)
        assert not future.done()
        store.save.assert_not_called()

        release.set()
        evaluation = future.result(timeout=5)
        assert evaluation.turn_id == 42
        store.save.assert_called_once()

    def test_evaluation_failure_is_logged_not_raised(self, scheduler, evaluator, store, job):
        evaluator.evaluate.side_effect = EvaluationFailedError("Judge returned invalid JSON")

        assert scheduler.run(job) is None
        store.save.assert_not_called()

    def test_unexpected_error_is_contained(self, scheduler, evaluator, store, job):
        evaluator.evaluate.side_effect = KeyError("boom")

        assert scheduler.run(job) is None
        store.save.assert_not_called()

    def test_store_failure_is_contained(self, scheduler, store, job):
        store.save.side_effect = RuntimeError("db down")

        assert scheduler.run(job) is None

    def test_single_attempt(self, scheduler, evaluator, job):
        """A failed evaluation is not retried."""
        evaluator.evaluate.side_effect = EvaluationFailedError("rate limited")

        scheduler.submit(job).result(timeout=5)

        assert evaluator.evaluate.call_count == 1

    def test_submit_after_shutdown_returns_none(self, evaluator, store, job):
        scheduler = EvaluationScheduler(evaluator, store, max_workers=1)
        scheduler.shutdown()

        assert scheduler.submit(job) is None
