from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, StrictBool, StrictStr


class StartAttemptRequest(BaseModel):
    student_name: Optional[str] = None
    student_email: Optional[str] = None


class AnswerRequest(BaseModel):
    question_id: int
    user_answer: Optional[StrictStr] = None
    is_marked_for_review: StrictBool = False


class AttemptOut(BaseModel):
    id: str
    exam_id: int
    user_id: str
    student_name: Optional[str] = None
    student_email: Optional[str] = None
    started_at: datetime
    submitted_at: Optional[datetime] = None
    time_remaining_at_start: int  # seconds
    status: str
    is_submitted: bool
    score: Optional[int] = None
    total_questions: int

    class Config:
        from_attributes = True


class AttemptStatusOut(BaseModel):
    attempt: AttemptOut
    time_remaining: int  # seconds, computed by the server
    deadline: datetime

    class Config:
        from_attributes = True


class AnswerOut(BaseModel):
    id: int
    attempt_id: str
    question_id: int
    user_answer: Optional[str] = None
    is_marked_for_review: bool
    is_correct: Optional[bool] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class QuestionOut(BaseModel):
    id: int
    question_text: str
    question_type: str
    options: Optional[List[str]] = None
    points: int
    order_index: int

    class Config:
        from_attributes = True


class ResultRowOut(BaseModel):
    question: QuestionOut
    user_answer: Optional[str] = None
    is_correct: bool
    correct_answer: str

    class Config:
        from_attributes = True


class AttemptResultsOut(BaseModel):
    attempt: AttemptOut
    results: List[ResultRowOut]
    score: int
    total_questions: int
    percentage: int
    points_awarded: int
    points_possible: int

    class Config:
        from_attributes = True
