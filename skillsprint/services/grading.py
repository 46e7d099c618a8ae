"""Grading policy and pluggable grading backends.

A backend evaluates a submission and reports a raw score; ``decide`` turns
that report into a terminal status and a score in point space. The state
machine only ever talks to ``GradingBackend.evaluate`` and ``decide``, so a
sandboxed execution backend can replace the simulated one without touching
the submission lifecycle.
"""

import logging
import random
from dataclasses import dataclass
from typing import Optional, Tuple

from ..config import settings
from ..errors import InvalidState
from ..models import SubmissionStatus

logger = logging.getLogger(__name__)

PERCENT = "percent"
POINTS = "points"

FAILURE_STATUSES = frozenset({
    SubmissionStatus.WRONG_ANSWER,
    SubmissionStatus.RUNTIME_ERROR,
    SubmissionStatus.COMPILATION_ERROR,
    SubmissionStatus.TIME_LIMIT_EXCEEDED,
})


@dataclass
class GradeReport:
    score: float
    scale: str = PERCENT
    failure_status: Optional[SubmissionStatus] = None
    execution_time: Optional[int] = None
    memory: Optional[int] = None


def decide(
    report: GradeReport,
    max_points: int,
    threshold: Optional[int] = None,
) -> Tuple[SubmissionStatus, int]:
    """Map a grade report to ``(status, score)`` with score in [0, max_points]."""
    if threshold is None:
        threshold = settings.acceptance_threshold

    if report.scale == POINTS:
        score = round(report.score)
        percent = report.score * 100 / max_points if max_points else 0
    else:
        percent = report.score
        score = round(max_points * report.score / 100)
    score = max(0, min(score, max_points))

    if report.failure_status is not None:
        if report.failure_status not in FAILURE_STATUSES:
            raise ValueError(f"Not a failure status: {report.failure_status}")
        return report.failure_status, score

    if percent >= threshold:
        return SubmissionStatus.ACCEPTED, score
    return SubmissionStatus.WRONG_ANSWER, score


@dataclass
class CaseOutcome:
    passed: bool
    actual_output: str
    execution_time: Optional[int] = None


class GradingBackend:
    name = "base"

    def evaluate(self, submission, challenge) -> GradeReport:
        raise NotImplementedError

    def run_case(self, code: str, language: str, test_case) -> CaseOutcome:
        """Run ``code`` on one test case's input."""
        raise NotImplementedError


class SimulatedGradingBackend(GradingBackend):
    """Stand-in for real code execution: random score and execution time."""

    name = "simulated"

    def __init__(self, rng: Optional[random.Random] = None):
        self.rng = rng or random.Random()

    def evaluate(self, submission, challenge):
        score = self.rng.randint(0, 100)
        execution_time = self.rng.randint(100, 1099)
        logger.info(
            "Simulated grading of submission %s: %s%%",
            submission.submission_id, score,
        )
        return GradeReport(score=score, execution_time=execution_time)

    def run_case(self, code, language, test_case):
        # Passes about 70% of cases
        passed = self.rng.random() > 0.3
        return CaseOutcome(
            passed=passed,
            actual_output=test_case.expected_output if passed else "",
            execution_time=self.rng.randint(10, 109),
        )


class FixedGradingBackend(GradingBackend):
    """Deterministic backend that reports the same result every time."""

    name = "fixed"

    def __init__(
        self, score: float, scale: str = PERCENT, failure_status=None, passes=True
    ):
        self.report = GradeReport(
            score=score, scale=scale, failure_status=failure_status
        )
        self.passes = passes

    def evaluate(self, submission, challenge):
        return self.report

    def run_case(self, code, language, test_case):
        return CaseOutcome(
            passed=self.passes,
            actual_output=test_case.expected_output if self.passes else "",
            execution_time=0,
        )


class ManualGradingBackend(GradingBackend):
    """Backend for deployments where every submission is reviewed by hand."""

    name = "manual"

    def evaluate(self, submission, challenge):
        raise InvalidState("Automatic grading is disabled; submissions are reviewed manually")

    def run_case(self, code, language, test_case):
        raise InvalidState("Code execution is disabled on this deployment")


def create_grading_backend(name: Optional[str] = None) -> GradingBackend:
    name = name or settings.grading_backend
    if name == SimulatedGradingBackend.name:
        return SimulatedGradingBackend()
    if name == ManualGradingBackend.name:
        return ManualGradingBackend()
    raise ValueError(f"Unknown grading backend: {name}")
