import logging
from typing import List, Optional

from app.core.clock import Clock
from app.application.exam_session.errors import (
    AttemptNotFound,
    SubmissionLocked,
    ValidationError,
)
from app.application.exam_session.ports import StorageGateway
from app.application.exam_session.records import Answer, AnswerData, Attempt

logger = logging.getLogger(__name__)


class AnswerLedger:
    """Per-question answers of an attempt, writable only while it is in progress."""

    def __init__(self, *, storage: StorageGateway, clock: Clock):
        self._storage = storage
        self._clock = clock

    def record_answer(
        self,
        attempt_id: str,
        question_id: int,
        user_answer: Optional[str],
        is_marked_for_review: bool = False,
    ) -> Answer:
        """
        Create or replace the answer to one question.

        Repeating a call with the same values converges to the same stored
        row, so clients may retry freely.
        """
        self._validate(question_id, user_answer, is_marked_for_review)

        attempt = self._load(attempt_id)
        if not attempt.accepts_answers:
            logger.warning(f"Answer rejected: attempt {attempt_id} is {attempt.status}")
            raise SubmissionLocked(f"Attempt {attempt_id} no longer accepts answers")

        question = self._storage.get_question(question_id)
        if question is None or question.exam_id != attempt.exam_id:
            logger.warning(f"Answer rejected: question {question_id} is not part of exam {attempt.exam_id}")
            raise ValidationError(
                f"Question {question_id} does not belong to this exam", field="question_id"
            )

        answer = self._storage.upsert_answer(
            attempt_id,
            question_id,
            AnswerData(
                user_answer=user_answer,
                is_marked_for_review=is_marked_for_review,
                updated_at=self._clock.now(),
            ),
        )
        if answer is None:
            # Submission claimed the attempt between our read and the write
            logger.warning(f"Answer rejected: attempt {attempt_id} locked during write")
            raise SubmissionLocked(f"Attempt {attempt_id} no longer accepts answers")

        logger.info(f"Saved answer for question {question_id} on attempt {attempt_id}")
        return answer

    def answers_for(self, attempt_id: str) -> List[Answer]:
        self._load(attempt_id)
        return self._storage.get_answers_for_attempt(attempt_id)

    def _load(self, attempt_id: str) -> Attempt:
        attempt = self._storage.get_attempt(attempt_id)
        if attempt is None:
            logger.warning(f"Attempt {attempt_id} not found")
            raise AttemptNotFound(f"Attempt {attempt_id} not found")
        return attempt

    @staticmethod
    def _validate(question_id, user_answer, is_marked_for_review) -> None:
        if question_id is None:
            raise ValidationError("question_id is required", field="question_id")
        if isinstance(question_id, bool) or not isinstance(question_id, int):
            raise ValidationError("question_id must be an integer", field="question_id")
        if user_answer is not None and not isinstance(user_answer, str):
            raise ValidationError("user_answer must be a string or null", field="user_answer")
        if not isinstance(is_marked_for_review, bool):
            raise ValidationError("is_marked_for_review must be a boolean", field="is_marked_for_review")
