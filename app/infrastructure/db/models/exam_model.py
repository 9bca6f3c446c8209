from sqlalchemy import Column, Integer, String, Text, DateTime, Boolean, CheckConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from ..base import Base


class ExamModel(Base):
    __tablename__ = "exams"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    duration = Column(Integer, nullable=False)  # minutes
    start_time = Column(DateTime(timezone=True), nullable=False)
    end_time = Column(DateTime(timezone=True), nullable=False)
    is_active = Column(Boolean, default=False, nullable=False)
    created_by = Column(String, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    # Relationships
    questions = relationship(
        "QuestionModel",
        back_populates="exam",
        cascade="all, delete-orphan",
        order_by="QuestionModel.order_index",
    )
    attempts = relationship("AttemptModel", back_populates="exam")

    __table_args__ = (
        CheckConstraint("duration > 0", name="ck_exam_duration_positive"),
        CheckConstraint("start_time < end_time", name="ck_exam_window"),
    )
