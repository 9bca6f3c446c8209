from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional


class AttemptStatus:
    IN_PROGRESS = "in_progress"
    SUBMITTING = "submitting"
    SUBMITTED = "submitted"


# ---------------------------
# Records returned by the storage gateway
# ---------------------------

@dataclass(frozen=True)
class Exam:
    id: int
    title: str
    duration: int  # minutes
    start_time: datetime
    end_time: datetime
    is_active: bool
    created_by: str
    description: Optional[str] = None


@dataclass(frozen=True)
class Question:
    id: int
    exam_id: int
    question_text: str
    question_type: str
    correct_answer: str
    order_index: int
    points: int = 1
    options: Optional[List[str]] = None


@dataclass(frozen=True)
class Attempt:
    id: str
    exam_id: int
    user_id: str
    started_at: datetime
    time_remaining_at_start: int  # seconds
    total_questions: int
    status: str = AttemptStatus.IN_PROGRESS
    is_submitted: bool = False
    submitted_at: Optional[datetime] = None
    score: Optional[int] = None
    student_name: Optional[str] = None
    student_email: Optional[str] = None

    @property
    def accepts_answers(self) -> bool:
        return self.status == AttemptStatus.IN_PROGRESS


@dataclass(frozen=True)
class Answer:
    id: int
    attempt_id: str
    question_id: int
    user_answer: Optional[str]
    is_marked_for_review: bool = False
    is_correct: Optional[bool] = None
    updated_at: Optional[datetime] = None


@dataclass(frozen=True)
class StudentIdentity:
    user_id: str
    name: Optional[str] = None
    email: Optional[str] = None


# ---------------------------
# Write payloads
# ---------------------------

@dataclass(frozen=True)
class NewAttempt:
    exam_id: int
    user_id: str
    started_at: datetime
    time_remaining_at_start: int
    total_questions: int
    student_name: Optional[str] = None
    student_email: Optional[str] = None


@dataclass(frozen=True)
class AttemptPatch:
    """Partial update of an attempt. Fields left as None are not touched."""

    status: Optional[str] = None
    is_submitted: Optional[bool] = None
    submitted_at: Optional[datetime] = None
    score: Optional[int] = None

    def changes(self) -> dict:
        return {
            name: value
            for name, value in (
                ("status", self.status),
                ("is_submitted", self.is_submitted),
                ("submitted_at", self.submitted_at),
                ("score", self.score),
            )
            if value is not None
        }


@dataclass(frozen=True)
class AnswerData:
    user_answer: Optional[str]
    is_marked_for_review: bool = False
    updated_at: Optional[datetime] = None


# ---------------------------
# Scoring output and results view
# ---------------------------

@dataclass(frozen=True)
class QuestionOutcome:
    question_id: int
    user_answer: Optional[str]
    correct_answer: str
    is_correct: bool
    points: int = 1


@dataclass(frozen=True)
class ScoreResult:
    score: int
    points_awarded: int
    points_possible: int
    outcomes: List[QuestionOutcome] = field(default_factory=list)

    def correctness(self) -> dict:
        return {o.question_id: o.is_correct for o in self.outcomes}


@dataclass(frozen=True)
class ResultRow:
    question: Question
    user_answer: Optional[str]
    is_correct: bool

    @property
    def correct_answer(self) -> str:
        return self.question.correct_answer


@dataclass(frozen=True)
class AttemptResults:
    attempt: Attempt
    results: List[ResultRow]
    score: int
    total_questions: int
    percentage: int
    points_awarded: int
    points_possible: int


@dataclass(frozen=True)
class AttemptView:
    """An attempt together with the server-side countdown."""

    attempt: Attempt
    time_remaining: int
    deadline: datetime
