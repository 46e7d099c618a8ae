import random
from types import SimpleNamespace

import pytest

from skillsprint.errors import InvalidState
from skillsprint.models import SubmissionStatus
from skillsprint.services.grading import (
    POINTS,
    CaseOutcome,
    FixedGradingBackend,
    GradeReport,
    ManualGradingBackend,
    SimulatedGradingBackend,
    create_grading_backend,
    decide,
)


def test_percentage_at_threshold_is_accepted():
    assert decide(GradeReport(score=70), 100) == (SubmissionStatus.ACCEPTED, 70)


def test_percentage_below_threshold_is_wrong_answer():
    assert decide(GradeReport(score=69), 100) == (SubmissionStatus.WRONG_ANSWER, 69)


def test_percentage_is_scaled_to_challenge_points():
    assert decide(GradeReport(score=75), 200) == (SubmissionStatus.ACCEPTED, 150)
    assert decide(GradeReport(score=30), 50) == (SubmissionStatus.WRONG_ANSWER, 15)


def test_point_scaled_score_passes_through():
    assert decide(GradeReport(score=40, scale=POINTS), 50) == (
        SubmissionStatus.ACCEPTED,
        40,
    )
    assert decide(GradeReport(score=20, scale=POINTS), 50) == (
        SubmissionStatus.WRONG_ANSWER,
        20,
    )


def test_score_is_clamped_to_challenge_points():
    assert decide(GradeReport(score=150, scale=POINTS), 100) == (
        SubmissionStatus.ACCEPTED,
        100,
    )
    assert decide(GradeReport(score=-10), 100) == (SubmissionStatus.WRONG_ANSWER, 0)


def test_reported_failure_status_wins():
    report = GradeReport(score=95, failure_status=SubmissionStatus.TIME_LIMIT_EXCEEDED)
    assert decide(report, 100) == (SubmissionStatus.TIME_LIMIT_EXCEEDED, 95)


def test_non_failure_status_is_rejected():
    report = GradeReport(score=95, failure_status=SubmissionStatus.ACCEPTED)
    with pytest.raises(ValueError):
        decide(report, 100)


def test_custom_threshold():
    assert decide(GradeReport(score=55), 100, threshold=50)[0] == SubmissionStatus.ACCEPTED


def test_simulated_backend_reports_percentages():
    backend = SimulatedGradingBackend(rng=random.Random(7))
    for _ in range(50):
        report = backend.evaluate(submission=_Stub(1), challenge=None)
        assert 0 <= report.score <= 100
        assert 100 <= report.execution_time < 1100


def test_fixed_backend_is_deterministic():
    backend = FixedGradingBackend(score=42)
    assert backend.evaluate(_Stub(1), None).score == 42
    assert backend.evaluate(_Stub(2), None).score == 42


def test_manual_backend_refuses_to_grade():
    with pytest.raises(InvalidState):
        ManualGradingBackend().evaluate(_Stub(1), None)


def test_simulated_backend_runs_cases():
    backend = SimulatedGradingBackend(rng=random.Random(3))
    case = SimpleNamespace(input="1 2", expected_output="3")
    outcomes = [backend.run_case("print(3)", "python", case) for _ in range(100)]
    assert any(o.passed for o in outcomes) and not all(o.passed for o in outcomes)
    for outcome in outcomes:
        assert outcome.actual_output == ("3" if outcome.passed else "")
        assert 10 <= outcome.execution_time < 110


def test_fixed_backend_runs_cases():
    case = SimpleNamespace(input="1 2", expected_output="3")
    assert FixedGradingBackend(score=100).run_case("x", "c", case) == CaseOutcome(True, "3", 0)
    assert FixedGradingBackend(score=0, passes=False).run_case("x", "c", case) == CaseOutcome(False, "", 0)


def test_manual_backend_refuses_to_run_code():
    with pytest.raises(InvalidState):
        ManualGradingBackend().run_case("x", "c", SimpleNamespace(input="", expected_output=""))


def test_create_grading_backend():
    assert isinstance(create_grading_backend("simulated"), SimulatedGradingBackend)
    assert isinstance(create_grading_backend("manual"), ManualGradingBackend)
    with pytest.raises(ValueError):
        create_grading_backend("sandbox")


class _Stub:
    def __init__(self, submission_id):
        self.submission_id = submission_id
