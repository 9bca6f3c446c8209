from sqlalchemy import Column, Integer, String, Text, ForeignKey, JSON, UniqueConstraint
from sqlalchemy.orm import relationship
from ..base import Base


class QuestionModel(Base):
    __tablename__ = "questions"

    id = Column(Integer, primary_key=True, index=True)
    exam_id = Column(Integer, ForeignKey("exams.id", ondelete="CASCADE"), nullable=False, index=True)
    question_text = Column(Text, nullable=False)
    question_type = Column(String, nullable=False)  # "multiple_choice", "true_false", "fill_blank"
    options = Column(JSON, nullable=True)  # only for multiple_choice
    correct_answer = Column(Text, nullable=False)
    points = Column(Integer, default=1, nullable=False)
    order_index = Column(Integer, nullable=False)

    exam = relationship("ExamModel", back_populates="questions")

    __table_args__ = (
        UniqueConstraint("exam_id", "order_index", name="uq_question_order_per_exam"),
    )
