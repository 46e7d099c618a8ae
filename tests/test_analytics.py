from datetime import datetime, timedelta
from types import SimpleNamespace

import pytest

from skillsprint.errors import Forbidden, NotFound
from skillsprint.models import ReviewAction, SubmissionStatus
from skillsprint.services import submissions as lifecycle
from skillsprint.services.analytics import aggregate, get_challenge_analytics
from skillsprint.services.submissions import SubmissionPayload

NOW = datetime(2024, 3, 31, 12, 0, 0)


def row(user_id, status, score=None, days_ago=0):
    return SimpleNamespace(
        user_id=user_id,
        status=status,
        score=score,
        submitted_at=NOW - timedelta(days=days_ago),
    )


def test_zero_submissions():
    result = aggregate([], now=NOW)
    assert result["total_submissions"] == 0
    assert result["unique_participants"] == 0
    assert result["average_score"] == 0
    assert result["difficulty_metrics"] == {"average_attempts": 0, "success_rate": 0}
    assert result["status_distribution"] == []
    assert result["submissions_by_day"] == []


def test_average_score_ignores_unscored_submissions():
    result = aggregate(
        [
            row("a", SubmissionStatus.ACCEPTED, 80),
            row("b", SubmissionStatus.REJECTED, 0),
            row("c", SubmissionStatus.PENDING),
        ],
        now=NOW,
    )
    assert result["average_score"] == 40


def test_rates_are_per_unique_participant():
    result = aggregate(
        [
            row("a", SubmissionStatus.ACCEPTED, 100),
            row("b", SubmissionStatus.WRONG_ANSWER, 20),
            row("b", SubmissionStatus.WRONG_ANSWER, 30),
            row("c", SubmissionStatus.ACCEPTED, 90),
        ],
        now=NOW,
    )
    assert result["total_submissions"] == 4
    assert result["unique_participants"] == 3
    assert result["accepted_submissions"] == 2
    assert result["difficulty_metrics"]["average_attempts"] == pytest.approx(4 / 3)
    assert result["difficulty_metrics"]["success_rate"] == pytest.approx(200 / 3)


def test_status_distribution():
    result = aggregate(
        [
            row("a", SubmissionStatus.ACCEPTED, 100),
            row("b", SubmissionStatus.PENDING),
            row("c", SubmissionStatus.PENDING),
        ],
        now=NOW,
    )
    counts = {item["status"]: item["count"] for item in result["status_distribution"]}
    assert counts == {"ACCEPTED": 1, "PENDING": 2}


def test_daily_histogram_uses_trailing_window_newest_first():
    result = aggregate(
        [
            row("a", SubmissionStatus.PENDING, days_ago=0),
            row("b", SubmissionStatus.PENDING, days_ago=0),
            row("c", SubmissionStatus.PENDING, days_ago=3),
            row("d", SubmissionStatus.PENDING, days_ago=45),
        ],
        now=NOW,
        window_days=30,
    )
    assert result["submissions_by_day"] == [
        {"date": "2024-03-31", "count": 2},
        {"date": "2024-03-28", "count": 1},
    ]
    # Old submissions still count towards the totals
    assert result["total_submissions"] == 4



def test_zero_day_window_keeps_only_the_current_instant():
    result = aggregate(
        [
            row("a", SubmissionStatus.PENDING, days_ago=0),
            row("b", SubmissionStatus.PENDING, days_ago=1),
        ],
        now=NOW,
        window_days=0,
    )
    assert result["submissions_by_day"] == [{"date": "2024-03-31", "count": 1}]


def test_analytics_require_the_challenge_creator(db, make_user, challenge):
    outsider = make_user("outsider")
    with pytest.raises(Forbidden):
        get_challenge_analytics(db, challenge.challenge_id, outsider)


def test_analytics_for_missing_challenge(db, creator):
    with pytest.raises(NotFound):
        get_challenge_analytics(db, 999, creator)


def test_analytics_ignore_drafts(db, make_user, creator, challenge):
    make_user("alice")
    make_user("bob")
    cid = challenge.challenge_id
    final = lifecycle.submit_final(
        db, cid, "alice", SubmissionPayload(code="x", language="python")
    )
    lifecycle.save_draft(db, cid, "bob", SubmissionPayload(code="y", language="python"))
    lifecycle.review(db, final.submission_id, creator, ReviewAction.ACCEPT, score=60)

    result = get_challenge_analytics(db, cid, creator)
    assert result["total_submissions"] == 1
    assert result["unique_participants"] == 1
    assert result["average_score"] == 60
    assert result["difficulty_metrics"]["success_rate"] == 100
