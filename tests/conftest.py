import os
from datetime import datetime, timedelta, timezone

# Keep the module-level engine in main.py off the filesystem
os.environ.setdefault("DATABASE_URL", "sqlite://")

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.core.clock import Clock
from app.application.exam_session.answer_ledger import AnswerLedger
from app.application.exam_session.attempt_lifecycle import AttemptLifecycleManager
from app.application.exam_session.policies import (
    AnonymousIdentityResolver,
    OpenAccessPolicy,
    UnlimitedAttemptsPolicy,
)
from app.application.exam_session.records import StudentIdentity
from app.application.exam_session.session_facade import ExamSessionFacade
from app.infrastructure.db.base import Base
from app.infrastructure.db.models.answer_model import AnswerModel  # noqa: F401
from app.infrastructure.db.models.attempt_model import AttemptModel  # noqa: F401
from app.infrastructure.db.models.exam_model import ExamModel
from app.infrastructure.db.models.question_model import QuestionModel
from app.infrastructure.repositories.exam_session_repository import SqlAlchemyStorageGateway


T0 = datetime(2026, 3, 2, 9, 0, 0, tzinfo=timezone.utc)


class FakeClock(Clock):
    def __init__(self, now: datetime = T0):
        self._now = now

    def now(self) -> datetime:
        return self._now

    def set(self, now: datetime) -> None:
        self._now = now

    def advance(self, **delta) -> None:
        self._now = self._now + timedelta(**delta)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def storage(db):
    return SqlAlchemyStorageGateway(db)


@pytest.fixture
def make_exam(db):
    """
    Insert an exam and its questions.

    ``questions`` is a list of (correct_answer, question_type, points) tuples,
    in display order.
    """

    def _make_exam(
        *,
        opens=timedelta(hours=-1),
        closes=timedelta(hours=1),
        duration=10,
        is_active=True,
        questions=(("A", "multiple_choice", 1),),
    ):
        exam = ExamModel(
            title="Geography basics",
            duration=duration,
            start_time=T0 + opens,
            end_time=T0 + closes,
            is_active=is_active,
            created_by="admin",
        )
        db.add(exam)
        db.flush()

        for index, (correct, kind, points) in enumerate(questions):
            db.add(
                QuestionModel(
                    exam_id=exam.id,
                    question_text=f"Question {index + 1}",
                    question_type=kind,
                    options=["A", "B", "C", "D"] if kind == "multiple_choice" else None,
                    correct_answer=correct,
                    points=points,
                    order_index=index,
                )
            )
        db.commit()
        db.refresh(exam)
        return exam

    return _make_exam


@pytest.fixture
def question_ids(db):
    def _question_ids(exam_id):
        rows = (
            db.query(QuestionModel)
            .filter(QuestionModel.exam_id == exam_id)
            .order_by(QuestionModel.order_index)
            .all()
        )
        return [r.id for r in rows]

    return _question_ids


@pytest.fixture
def lifecycle(storage, clock):
    return AttemptLifecycleManager(storage=storage, clock=clock)


@pytest.fixture
def ledger(storage, clock):
    return AnswerLedger(storage=storage, clock=clock)


@pytest.fixture
def student():
    return StudentIdentity(user_id="student-1", name="Ada", email="ada@example.com")


@pytest.fixture
def build_facade(storage, lifecycle, ledger):
    def _build_facade(
        identity_resolver=None,
        attempt_policy=None,
        access_policy=None,
    ):
        return ExamSessionFacade(
            storage=storage,
            lifecycle=lifecycle,
            ledger=ledger,
            identity_resolver=identity_resolver
            or AnonymousIdentityResolver("default-user", "Anonymous Student", "student@example.com"),
            attempt_policy=attempt_policy or UnlimitedAttemptsPolicy(),
            access_policy=access_policy or OpenAccessPolicy(),
        )

    return _build_facade


@pytest.fixture
def facade(build_facade):
    return build_facade()
