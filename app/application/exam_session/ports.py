from abc import ABC, abstractmethod
from typing import Dict, List, Optional

from app.application.exam_session.records import (
    Answer,
    AnswerData,
    Attempt,
    AttemptPatch,
    Exam,
    NewAttempt,
    Question,
)


class StorageGateway(ABC):
    """
    Persistence boundary of the session engine.

    Implementations must make every method atomic on its own and must raise
    ``StorageError`` for infrastructure failures.
    """

    # Exams and questions (read-only to the engine)

    @abstractmethod
    def get_exam(self, exam_id: int) -> Optional[Exam]: ...

    @abstractmethod
    def count_questions_for_exam(self, exam_id: int) -> int: ...

    @abstractmethod
    def get_questions_for_exam(self, exam_id: int) -> List[Question]:
        """Questions of one exam, ordered by ``order_index`` ascending."""

    @abstractmethod
    def get_question(self, question_id: int) -> Optional[Question]: ...

    # Attempts

    @abstractmethod
    def create_attempt(self, data: NewAttempt) -> Attempt: ...

    @abstractmethod
    def get_attempt(self, attempt_id: str) -> Optional[Attempt]: ...

    @abstractmethod
    def update_attempt(self, attempt_id: str, patch: AttemptPatch) -> Optional[Attempt]: ...

    @abstractmethod
    def begin_submission(self, attempt_id: str) -> bool:
        """
        Atomically move an attempt from in_progress to submitting.

        Returns True for exactly one caller per attempt; every other caller
        gets False.
        """

    @abstractmethod
    def get_attempts_for_exam(self, exam_id: int) -> List[Attempt]: ...

    @abstractmethod
    def get_attempts_for_student(self, user_id: str, exam_id: Optional[int] = None) -> List[Attempt]: ...

    # Answers

    @abstractmethod
    def upsert_answer(self, attempt_id: str, question_id: int, data: AnswerData) -> Optional[Answer]:
        """
        Create or replace the answer for (attempt_id, question_id).

        The attempt's status is re-read under a lock in the same transaction;
        returns None, writing nothing, when it no longer accepts answers.
        """

    @abstractmethod
    def get_answers_for_attempt(self, attempt_id: str) -> List[Answer]: ...

    @abstractmethod
    def finalize_submission(self, attempt_id: str, flags: Dict[int, bool], patch: AttemptPatch) -> Optional[Attempt]:
        """
        Persist ``is_correct`` on the stored answers (keyed by question id) and
        apply ``patch`` to the attempt in one transaction.

        On failure nothing is written: the answers keep no flags and the
        attempt keeps its previous state.
        """
