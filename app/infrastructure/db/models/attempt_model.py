import uuid

from sqlalchemy import Column, Integer, String, ForeignKey, DateTime, Boolean, Index
from sqlalchemy.orm import relationship
from ..base import Base


def _new_attempt_id() -> str:
    return str(uuid.uuid4())


class AttemptModel(Base):
    __tablename__ = "exam_attempts"

    id = Column(String(36), primary_key=True, default=_new_attempt_id)
    exam_id = Column(Integer, ForeignKey("exams.id"), nullable=False, index=True)
    user_id = Column(String, nullable=False, index=True)
    student_name = Column(String, nullable=True)
    student_email = Column(String, nullable=True)
    started_at = Column(DateTime(timezone=True), nullable=False)
    submitted_at = Column(DateTime(timezone=True), nullable=True)
    time_remaining_at_start = Column(Integer, nullable=False)  # seconds
    status = Column(String, nullable=False, default="in_progress")  # in_progress / submitting / submitted
    is_submitted = Column(Boolean, default=False, nullable=False)
    score = Column(Integer, nullable=True)
    total_questions = Column(Integer, nullable=False, default=0)

    # Relationships
    exam = relationship("ExamModel", back_populates="attempts")
    answers = relationship("AnswerModel", back_populates="attempt")

    __table_args__ = (
        Index("ix_attempt_user_exam", "user_id", "exam_id"),
    )
