import logging
from typing import Optional

import jwt
from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.orm import Session

from app.core.clock import Clock, SystemClock
from app.core.config import Settings, settings
from app.application.exam_session.answer_ledger import AnswerLedger
from app.application.exam_session.attempt_lifecycle import AttemptLifecycleManager
from app.application.exam_session.policies import policies_from_settings
from app.application.exam_session.session_facade import ExamSessionFacade
from app.infrastructure.db.session import SessionLocal
from app.infrastructure.repositories.exam_session_repository import SqlAlchemyStorageGateway
from app.infrastructure.security.jwt_service import decode_access_token

logger = logging.getLogger(__name__)

# auto_error=False so anonymous deployments can call every endpoint without a token
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/login", auto_error=False)


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_settings() -> Settings:
    return settings


def get_clock() -> Clock:
    return SystemClock()


def get_current_user(token: Optional[str] = Depends(oauth2_scheme)) -> Optional[dict]:
    """
    Decoded bearer token, or None when the request carries no token.

    A token that is present but invalid is always rejected, whatever the
    identity mode.
    """
    if not token:
        return None

    try:
        payload = decode_access_token(token)
    except jwt.PyJWTError as e:
        logger.warning(f"Token validation failed: {e}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )

    if payload.get("user_id") is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token payload",
        )

    logger.debug(f"Validated token for user_id: {payload.get('user_id')}")
    return payload


def admin_required(current_user: Optional[dict] = Depends(get_current_user)) -> dict:
    if not current_user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
    if current_user.get("role") != "ADMIN":
        logger.warning(
            f"Access denied for non-admin user_id: {current_user.get('user_id')}"
        )
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Administrative privileges required",
        )
    logger.info(f"Admin access granted for user_id: {current_user.get('user_id')}")
    return current_user


def get_session_facade(
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
    app_settings: Settings = Depends(get_settings),
) -> ExamSessionFacade:
    storage = SqlAlchemyStorageGateway(db)
    identity_resolver, attempt_policy, access_policy = policies_from_settings(app_settings)

    return ExamSessionFacade(
        storage=storage,
        lifecycle=AttemptLifecycleManager(storage=storage, clock=clock),
        ledger=AnswerLedger(storage=storage, clock=clock),
        identity_resolver=identity_resolver,
        attempt_policy=attempt_policy,
        access_policy=access_policy,
    )
