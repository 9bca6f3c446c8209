import logging
import math
from datetime import datetime, timedelta
from typing import Optional

from app.core.clock import Clock, as_utc
from app.application.exam_session.errors import (
    AlreadySubmitted,
    AttemptNotFound,
    ExamEnded,
    ExamNotStarted,
    ExamUnavailable,
)
from app.application.exam_session.ports import StorageGateway
from app.application.exam_session.records import (
    Attempt,
    AttemptPatch,
    AttemptStatus,
    NewAttempt,
    StudentIdentity,
)
from app.application.exam_session.scoring import score_attempt

logger = logging.getLogger(__name__)


class AttemptLifecycleManager:
    """
    Owns the attempt state machine: in_progress -> submitting -> submitted.

    Policy-agnostic: every ``start`` creates a new attempt. Whether a student
    may start again is decided by the facade.
    """

    def __init__(self, *, storage: StorageGateway, clock: Clock):
        self._storage = storage
        self._clock = clock

    # ---------------------------
    # Start
    # ---------------------------

    def start(self, exam_id: int, identity: StudentIdentity) -> Attempt:
        now = self._clock.now()
        exam = self._storage.get_exam(exam_id)

        if exam is None or not exam.is_active:
            logger.warning(f"Start rejected: exam {exam_id} missing or inactive")
            raise ExamUnavailable(f"Exam {exam_id} is not available")

        start_time = as_utc(exam.start_time)
        end_time = as_utc(exam.end_time)
        if now < start_time:
            logger.warning(f"Start rejected: exam {exam_id} opens at {start_time.isoformat()}")
            raise ExamNotStarted(f"Exam {exam_id} has not started yet")
        if now > end_time:
            logger.warning(f"Start rejected: exam {exam_id} closed at {end_time.isoformat()}")
            raise ExamEnded(f"Exam {exam_id} has ended")

        total_questions = self._storage.count_questions_for_exam(exam_id)
        time_remaining = self.initial_time_remaining(exam.duration, end_time, now)

        attempt = self._storage.create_attempt(
            NewAttempt(
                exam_id=exam_id,
                user_id=identity.user_id,
                student_name=identity.name,
                student_email=identity.email,
                started_at=now,
                time_remaining_at_start=time_remaining,
                total_questions=total_questions,
            )
        )
        logger.info(
            f"Attempt {attempt.id} started for exam {exam_id} by {identity.user_id} "
            f"({time_remaining}s, {total_questions} questions)"
        )
        return attempt

    @staticmethod
    def initial_time_remaining(duration_minutes: int, end_time: datetime, now: datetime) -> int:
        """Seconds granted at start: the exam duration, cut short by the hard end time."""
        until_end = math.floor((end_time - now).total_seconds())
        return max(0, min(duration_minutes * 60, until_end))

    # ---------------------------
    # Remaining time
    # ---------------------------

    def time_remaining(self, attempt: Attempt, now: Optional[datetime] = None) -> int:
        if attempt.is_submitted:
            return 0
        now = now or self._clock.now()
        elapsed = math.floor((now - as_utc(attempt.started_at)).total_seconds())
        return max(0, attempt.time_remaining_at_start - max(0, elapsed))

    @staticmethod
    def deadline(attempt: Attempt) -> datetime:
        return as_utc(attempt.started_at) + timedelta(seconds=attempt.time_remaining_at_start)

    # ---------------------------
    # Submit
    # ---------------------------

    def submit(self, attempt_id: str) -> Attempt:
        attempt = self.get(attempt_id)
        if not attempt.accepts_answers:
            logger.info(f"Submit ignored: attempt {attempt_id} is already {attempt.status}")
            raise AlreadySubmitted(f"Attempt {attempt_id} was already submitted", attempt=attempt)

        # Only one caller gets past this point; answer writes fail from here on
        if not self._storage.begin_submission(attempt_id):
            current = self._storage.get_attempt(attempt_id)
            logger.info(f"Submit lost the race for attempt {attempt_id}")
            raise AlreadySubmitted(f"Attempt {attempt_id} was already submitted", attempt=current)

        try:
            answers = self._storage.get_answers_for_attempt(attempt_id)
            questions = self._storage.get_questions_for_exam(attempt.exam_id)
            result = score_attempt(answers, questions)

            submitted = self._storage.finalize_submission(
                attempt_id,
                result.correctness(),
                AttemptPatch(
                    status=AttemptStatus.SUBMITTED,
                    is_submitted=True,
                    submitted_at=self._clock.now(),
                    score=result.score,
                ),
            )
        except Exception:
            # Any failure after the claim puts the attempt back in progress
            logger.error(f"Submission of attempt {attempt_id} failed, releasing lock", exc_info=True)
            self._storage.update_attempt(attempt_id, AttemptPatch(status=AttemptStatus.IN_PROGRESS))
            raise

        logger.info(
            f"Attempt {attempt_id} submitted: score {result.score}/{len(result.outcomes)}"
        )
        return submitted

    # ---------------------------
    # Lookups
    # ---------------------------

    def get(self, attempt_id: str) -> Attempt:
        attempt = self._storage.get_attempt(attempt_id)
        if attempt is None:
            logger.warning(f"Attempt {attempt_id} not found")
            raise AttemptNotFound(f"Attempt {attempt_id} not found")
        return attempt
