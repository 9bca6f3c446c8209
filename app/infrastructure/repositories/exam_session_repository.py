from contextlib import contextmanager
from typing import Dict, List, Optional
import logging

from sqlalchemy import func, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.clock import as_utc
from app.application.exam_session.errors import StorageError
from app.application.exam_session.ports import StorageGateway
from app.application.exam_session.records import (
    Answer,
    AnswerData,
    Attempt,
    AttemptPatch,
    AttemptStatus,
    Exam,
    NewAttempt,
    Question,
)
from app.infrastructure.db.models.answer_model import AnswerModel
from app.infrastructure.db.models.attempt_model import AttemptModel
from app.infrastructure.db.models.exam_model import ExamModel
from app.infrastructure.db.models.question_model import QuestionModel

logger = logging.getLogger(__name__)


# ---------------------------
# Row -> record mapping
# ---------------------------

def _to_exam(row: ExamModel) -> Exam:
    return Exam(
        id=row.id,
        title=row.title,
        description=row.description,
        duration=row.duration,
        start_time=as_utc(row.start_time),
        end_time=as_utc(row.end_time),
        is_active=bool(row.is_active),
        created_by=row.created_by,
    )


def _to_question(row: QuestionModel) -> Question:
    return Question(
        id=row.id,
        exam_id=row.exam_id,
        question_text=row.question_text,
        question_type=row.question_type,
        options=list(row.options) if row.options is not None else None,
        correct_answer=row.correct_answer,
        points=row.points if row.points is not None else 1,
        order_index=row.order_index,
    )


def _to_attempt(row: AttemptModel) -> Attempt:
    return Attempt(
        id=row.id,
        exam_id=row.exam_id,
        user_id=row.user_id,
        student_name=row.student_name,
        student_email=row.student_email,
        started_at=as_utc(row.started_at),
        submitted_at=as_utc(row.submitted_at) if row.submitted_at else None,
        time_remaining_at_start=row.time_remaining_at_start,
        status=row.status,
        is_submitted=bool(row.is_submitted),
        score=row.score,
        total_questions=row.total_questions,
    )


def _to_answer(row: AnswerModel) -> Answer:
    return Answer(
        id=row.id,
        attempt_id=row.attempt_id,
        question_id=row.question_id,
        user_answer=row.user_answer,
        is_correct=row.is_correct,
        is_marked_for_review=bool(row.is_marked_for_review),
        updated_at=as_utc(row.updated_at) if row.updated_at else None,
    )


class SqlAlchemyStorageGateway(StorageGateway):
    """Storage gateway over a request-scoped SQLAlchemy session."""

    def __init__(self, db: Session):
        self.db = db

    @contextmanager
    def _unit_of_work(self, action: str):
        try:
            yield
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Database error while trying to {action}: {e}", exc_info=True)
            raise StorageError(f"Storage failure while trying to {action}") from e
        except Exception:
            # Pending changes must not ride along with the next commit
            self.db.rollback()
            raise

    # ---------------------------
    # Exams and questions
    # ---------------------------

    def get_exam(self, exam_id: int) -> Optional[Exam]:
        with self._unit_of_work(f"load exam {exam_id}"):
            row = self.db.query(ExamModel).filter(ExamModel.id == exam_id).first()
            return _to_exam(row) if row else None

    def count_questions_for_exam(self, exam_id: int) -> int:
        with self._unit_of_work(f"count questions of exam {exam_id}"):
            return (
                self.db.query(func.count(QuestionModel.id))
                .filter(QuestionModel.exam_id == exam_id)
                .scalar()
                or 0
            )

    def get_questions_for_exam(self, exam_id: int) -> List[Question]:
        with self._unit_of_work(f"load questions of exam {exam_id}"):
            rows = (
                self.db.query(QuestionModel)
                .filter(QuestionModel.exam_id == exam_id)
                .order_by(QuestionModel.order_index.asc(), QuestionModel.id.asc())
                .all()
            )
            logger.debug(f"Loaded {len(rows)} questions for exam_id={exam_id}")
            return [_to_question(r) for r in rows]

    def get_question(self, question_id: int) -> Optional[Question]:
        with self._unit_of_work(f"load question {question_id}"):
            row = self.db.query(QuestionModel).filter(QuestionModel.id == question_id).first()
            return _to_question(row) if row else None

    # ---------------------------
    # Attempts
    # ---------------------------

    def create_attempt(self, data: NewAttempt) -> Attempt:
        with self._unit_of_work(f"create attempt on exam {data.exam_id}"):
            row = AttemptModel(
                exam_id=data.exam_id,
                user_id=data.user_id,
                student_name=data.student_name,
                student_email=data.student_email,
                started_at=as_utc(data.started_at),
                time_remaining_at_start=data.time_remaining_at_start,
                total_questions=data.total_questions,
                status=AttemptStatus.IN_PROGRESS,
                is_submitted=False,
            )
            self.db.add(row)
            self.db.commit()
            self.db.refresh(row)
            return _to_attempt(row)

    def get_attempt(self, attempt_id: str) -> Optional[Attempt]:
        with self._unit_of_work(f"load attempt {attempt_id}"):
            row = (
                self.db.query(AttemptModel)
                .populate_existing()
                .filter(AttemptModel.id == attempt_id)
                .first()
            )
            return _to_attempt(row) if row else None

    def update_attempt(self, attempt_id: str, patch: AttemptPatch) -> Optional[Attempt]:
        with self._unit_of_work(f"update attempt {attempt_id}"):
            row = self.db.query(AttemptModel).filter(AttemptModel.id == attempt_id).first()
            if not row:
                return None
            self._apply_patch(row, patch)
            self.db.commit()
            self.db.refresh(row)
            return _to_attempt(row)

    def _apply_patch(self, row: AttemptModel, patch: AttemptPatch) -> None:
        for name, value in patch.changes().items():
            if name == "submitted_at":
                value = as_utc(value)
            setattr(row, name, value)

    def begin_submission(self, attempt_id: str) -> bool:
        with self._unit_of_work(f"lock attempt {attempt_id} for submission"):
            result = self.db.execute(
                update(AttemptModel)
                .where(
                    AttemptModel.id == attempt_id,
                    AttemptModel.status == AttemptStatus.IN_PROGRESS,
                )
                .values(status=AttemptStatus.SUBMITTING)
                .execution_options(synchronize_session=False)
            )
            self.db.commit()
            claimed = result.rowcount == 1
            logger.debug(f"Submission claim on attempt {attempt_id}: {claimed}")
            return claimed

    def get_attempts_for_exam(self, exam_id: int) -> List[Attempt]:
        with self._unit_of_work(f"list attempts of exam {exam_id}"):
            rows = (
                self.db.query(AttemptModel)
                .filter(AttemptModel.exam_id == exam_id)
                .order_by(AttemptModel.started_at.desc())
                .all()
            )
            return [_to_attempt(r) for r in rows]

    def get_attempts_for_student(self, user_id: str, exam_id: Optional[int] = None) -> List[Attempt]:
        with self._unit_of_work(f"list attempts of user {user_id}"):
            query = self.db.query(AttemptModel).filter(AttemptModel.user_id == user_id)
            if exam_id is not None:
                query = query.filter(AttemptModel.exam_id == exam_id)
            rows = query.order_by(AttemptModel.started_at.desc()).all()
            return [_to_attempt(r) for r in rows]

    # ---------------------------
    # Answers
    # ---------------------------

    def upsert_answer(self, attempt_id: str, question_id: int, data: AnswerData) -> Optional[Answer]:
        with self._unit_of_work(f"save answer {question_id} on attempt {attempt_id}"):
            try:
                return self._write_answer(attempt_id, question_id, data)
            except IntegrityError:
                # Two first writes for the same question raced; the row exists now
                self.db.rollback()
                logger.info(f"Concurrent insert for question {question_id} on attempt {attempt_id}, updating")
                return self._write_answer(attempt_id, question_id, data)

    def _write_answer(self, attempt_id: str, question_id: int, data: AnswerData) -> Optional[Answer]:
        # Row lock serializes this write against begin_submission
        attempt = (
            self.db.query(AttemptModel)
            .populate_existing()
            .with_for_update()
            .filter(AttemptModel.id == attempt_id)
            .first()
        )
        if attempt is None or attempt.status != AttemptStatus.IN_PROGRESS:
            self.db.rollback()
            return None

        row = (
            self.db.query(AnswerModel)
            .filter(
                AnswerModel.attempt_id == attempt_id,
                AnswerModel.question_id == question_id,
            )
            .first()
        )
        if row is None:
            row = AnswerModel(attempt_id=attempt_id, question_id=question_id)
            self.db.add(row)

        row.user_answer = data.user_answer
        row.is_marked_for_review = data.is_marked_for_review
        if data.updated_at is not None:
            row.updated_at = as_utc(data.updated_at)

        self.db.commit()
        self.db.refresh(row)
        return _to_answer(row)

    def get_answers_for_attempt(self, attempt_id: str) -> List[Answer]:
        with self._unit_of_work(f"load answers of attempt {attempt_id}"):
            rows = (
                self.db.query(AnswerModel)
                .populate_existing()
                .filter(AnswerModel.attempt_id == attempt_id)
                .order_by(AnswerModel.question_id.asc())
                .all()
            )
            return [_to_answer(r) for r in rows]

    def finalize_submission(self, attempt_id: str, flags: Dict[int, bool], patch: AttemptPatch) -> Optional[Attempt]:
        with self._unit_of_work(f"finalize submission of attempt {attempt_id}"):
            row = self.db.query(AttemptModel).filter(AttemptModel.id == attempt_id).first()
            if not row:
                return None

            answers = self.db.query(AnswerModel).filter(AnswerModel.attempt_id == attempt_id).all()
            for answer in answers:
                # Answers to questions outside the exam never match
                answer.is_correct = bool(flags.get(answer.question_id, False))
            self._apply_patch(row, patch)

            self.db.commit()
            self.db.refresh(row)
            logger.debug(f"Finalized attempt {attempt_id} with {len(answers)} graded answers")
            return _to_attempt(row)
