"""Unit tests for EvaluationStore."""
import sys
from pathlib import Path

# Add backend to path
sys.path.insert(0, str(Path(__file__).parent.parent / "backend"))

import pytest
from datetime import datetime, timedelta, timezone
from unittest.mock import Mock, MagicMock, call, patch
from models.evaluation import Evaluation
from services.evaluation_store import EvaluationStore

NOW = datetime(2026, 3, 15, 12, 0, 0, tzinfo=timezone.utc)


def _row(evaluation_id, overall, days_ago, **scores):
    return {
        "id": evaluation_id,
        "conversation_id": "c1",
        "turn_id": evaluation_id * 2,
        "scores": scores or {"correctness": overall, "comprehensiveness": overall,
                             "coherence": overall, "conciseness": overall},
        "overall_score": overall,
        "feedback": "ok",
        "flags": [],
        "strengths": None,
        "improvements": ["shorter"],
        "document_ids": ["resume.pdf_1_0"],
        "evaluated_at": (NOW - timedelta(days=days_ago)).isoformat(),
    }


@pytest.fixture
def mock_client():
    with patch('services.evaluation_store.create_client') as mock_create_client:
        client = MagicMock()
        mock_create_client.return_value = client
        yield client


@pytest.fixture
def store(mock_client):
    return EvaluationStore(supabase_url="https://test.supabase.co", supabase_key="test_key")


def _recent_first(mock_client):
    """The evaluated_at, id descending query behind listings and stats."""
    return mock_client.table.return_value.select.return_value.order.return_value.order.return_value


def _pages(mock_client, *pages):
    """Serve each list of rows as one .range() page of the recent-first query."""
    _recent_first(mock_client).range.return_value.execute.side_effect = [Mock(data=page) for page in pages]


class TestEvaluationStore:
    """Test suite for EvaluationStore."""

    def test_requires_credentials(self):
        with pytest.raises(ValueError, match="SUPABASE_URL and SUPABASE_KEY"):
            EvaluationStore(supabase_url=None, supabase_key="key")

    def test_save_inserts_record(self, store, mock_client):
        insert = mock_client.table.return_value.insert
        insert.return_value.execute.return_value = Mock(data=[_row(7, 8.0, 0)])
        evaluation = Evaluation(
            conversation_id="c1",
            turn_id=14,
            scores={"correctness": 8.0},
            overall_score=8.0,
            feedback="ok",
            evaluated_at=NOW,
            document_ids=["resume.pdf_1_0"]
        )

        saved = store.save(evaluation)

        record = insert.call_args.args[0]
        assert record["turn_id"] == 14
        assert record["document_ids"] == ["resume.pdf_1_0"]
        assert record["evaluated_at"] == NOW.isoformat()
        assert saved.evaluation_id == 7
        mock_client.table.assert_called_with("chatbot_evaluations")

    def test_save_failure(self, store, mock_client):
        mock_client.table.return_value.insert.return_value.execute.side_effect = Exception("db down")
        evaluation = Evaluation("c1", 2, {}, 5.0, "", NOW)

        with pytest.raises(RuntimeError, match="Error saving evaluation"):
            store.save(evaluation)

    def test_list_evaluations_most_recent_first(self, store, mock_client):
        _pages(mock_client, [_row(2, 9.0, 0), _row(1, 7.0, 3)])

        evaluations = store.list_evaluations()

        assert [e.evaluation_id for e in evaluations] == [2, 1]
        mock_client.table.return_value.select.return_value.order.assert_called_with("evaluated_at", desc=True)
        assert evaluations[0].strengths == []
        assert evaluations[0].evaluated_at.tzinfo is not None

    def test_list_evaluations_with_limit(self, store, mock_client):
        _recent_first(mock_client).limit.return_value.execute.return_value = Mock(data=[_row(2, 9.0, 0)])

        assert len(store.list_evaluations(limit=1)) == 1
        _recent_first(mock_client).limit.assert_called_once_with(1)
        _recent_first(mock_client).range.assert_not_called()

    def test_list_evaluations_reads_every_page(self, store, mock_client):
        store.page_size = 2
        _pages(mock_client, [_row(5, 9.0, 0), _row(4, 8.0, 0)], [_row(3, 7.0, 1), _row(2, 6.0, 1)], [_row(1, 5.0, 2)])

        evaluations = store.list_evaluations()

        assert [e.evaluation_id for e in evaluations] == [5, 4, 3, 2, 1]
        assert _recent_first(mock_client).range.call_args_list == [call(0, 1), call(2, 3), call(4, 5)]

    def test_get_evaluation_found(self, store, mock_client):
        query = mock_client.table.return_value.select.return_value.eq.return_value
        query.execute.return_value = Mock(data=[_row(5, 6.5, 1)])

        evaluation = store.get_evaluation(5)

        assert evaluation.overall_score == 6.5
        mock_client.table.return_value.select.return_value.eq.assert_called_once_with("id", 5)

    def test_get_evaluation_missing(self, store, mock_client):
        query = mock_client.table.return_value.select.return_value.eq.return_value
        query.execute.return_value = Mock(data=[])

        assert store.get_evaluation(404) is None

    def test_list_for_conversation(self, store, mock_client):
        query = mock_client.table.return_value.select.return_value.eq.return_value.order.return_value
        query.execute.return_value = Mock(data=[_row(1, 7.0, 2)])

        evaluations = store.list_for_conversation("c1")

        assert evaluations[0].conversation_id == "c1"
        mock_client.table.return_value.select.return_value.eq.assert_called_once_with("conversation_id", "c1")

    def test_read_failure(self, store, mock_client):
        _recent_first(mock_client).range.return_value.execute.side_effect = Exception("timeout")

        with pytest.raises(RuntimeError, match="Error listing evaluations"):
            store.list_evaluations()

    def test_evaluated_conversation_ids(self, store, mock_client):
        store.page_size = 2
        query = mock_client.table.return_value.select.return_value.order.return_value
        query.range.return_value.execute.side_effect = [
            Mock(data=[{"conversation_id": "c1"}, {"conversation_id": "c2"}]),
            Mock(data=[{"conversation_id": "c1"}]),
        ]

        assert store.evaluated_conversation_ids() == {"c1", "c2"}
        mock_client.table.return_value.select.assert_called_once_with("conversation_id")


class TestEvaluationStats:
    """Tests for aggregate statistics."""

    def test_empty_stats(self, store, mock_client):
        _pages(mock_client, [])

        stats = store.get_stats(now=NOW)

        assert stats.total_evaluations == 0
        assert stats.average_overall_score == 0.0
        assert stats.average_scores["correctness"] == 0.0
        assert stats.last_week_average == 0.0

    def test_stats_windows_and_rounding(self, store, mock_client):
        _pages(mock_client, [
            _row(4, 9.0, 1),
            _row(3, 8.0, 5),
            _row(2, 6.0, 20),
            _row(1, 4.0, 60),
        ])

        stats = store.get_stats(now=NOW)

        assert stats.total_evaluations == 4
        assert stats.average_overall_score == 6.75
        assert stats.last_week_average == 8.5
        assert stats.last_month_average == pytest.approx(7.67)
        assert stats.average_scores["coherence"] == 6.75

    def test_stats_cover_rows_beyond_first_page(self, store, mock_client):
        store.page_size = 3
        _pages(
            mock_client,
            [_row(7, 10.0, 0), _row(6, 10.0, 0), _row(5, 10.0, 0)],
            [_row(4, 2.0, 40), _row(3, 2.0, 40), _row(2, 2.0, 40)],
            [_row(1, 2.0, 40)],
        )

        stats = store.get_stats(now=NOW)

        assert stats.total_evaluations == 7
        assert stats.average_overall_score == pytest.approx(5.43)
        assert stats.last_week_average == 10.0
        assert _recent_first(mock_client).range.call_count == 3

    def test_stats_stop_after_exactly_full_page(self, store, mock_client):
        store.page_size = 2
        _pages(mock_client, [_row(2, 8.0, 0), _row(1, 6.0, 0)], [])

        assert store.get_stats(now=NOW).total_evaluations == 2

    def test_stats_ignore_missing_score_names(self, store, mock_client):
        _pages(mock_client, [
            _row(2, 8.0, 0, correctness=9.0),
            _row(1, 6.0, 0, correctness=7.0, coherence=5.0),
        ])

        stats = store.get_stats(now=NOW)

        assert stats.average_scores["correctness"] == 8.0
        assert stats.average_scores["coherence"] == 5.0
        assert stats.average_scores["conciseness"] == 0.0
