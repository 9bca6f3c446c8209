"""
Deployment-specific rules plugged into the session facade.

The simplified deployment lets anyone type a name and email and take an exam
as many times as they like; the authenticated deployment ties attempts to a
token's user id. Both are expressed here so the engine itself never branches
on the deployment mode.
"""
import logging
from abc import ABC, abstractmethod
from typing import List, Optional

from app.core.config import Settings
from app.application.exam_session.errors import (
    AttemptLimitReached,
    AttemptNotFound,
    AuthenticationRequired,
)
from app.application.exam_session.ports import StorageGateway
from app.application.exam_session.records import Attempt, StudentIdentity

logger = logging.getLogger(__name__)


# ---------------------------
# Identity resolution
# ---------------------------

class IdentityResolver(ABC):
    @abstractmethod
    def resolve(
        self,
        caller: Optional[dict],
        student_name: Optional[str] = None,
        student_email: Optional[str] = None,
    ) -> StudentIdentity: ...


class AnonymousIdentityResolver(IdentityResolver):
    """Everyone shares the default user id; name and email are whatever the student typed."""

    def __init__(self, default_user_id: str, default_name: str, default_email: str):
        self._user_id = default_user_id
        self._name = default_name
        self._email = default_email

    def resolve(self, caller, student_name=None, student_email=None) -> StudentIdentity:
        return StudentIdentity(
            user_id=self._user_id,
            name=student_name or self._name,
            email=student_email or self._email,
        )


class AuthenticatedIdentityResolver(IdentityResolver):
    def resolve(self, caller, student_name=None, student_email=None) -> StudentIdentity:
        if not caller or caller.get("user_id") is None:
            raise AuthenticationRequired("A valid bearer token is required")
        return StudentIdentity(
            user_id=str(caller["user_id"]),
            name=student_name or caller.get("name"),
            email=student_email or caller.get("email"),
        )


# ---------------------------
# How many attempts per exam
# ---------------------------

class AttemptPolicy(ABC):
    @abstractmethod
    def existing_attempt(self, storage: StorageGateway, exam_id: int, identity: StudentIdentity) -> Optional[Attempt]:
        """Return an attempt to resume instead of starting one, or None to start fresh."""


class UnlimitedAttemptsPolicy(AttemptPolicy):
    def existing_attempt(self, storage, exam_id, identity):
        return None


class SingleAttemptPolicy(AttemptPolicy):
    """One attempt per identity and exam. An unfinished one is resumed."""

    def existing_attempt(self, storage, exam_id, identity):
        previous = storage.get_attempts_for_student(identity.user_id, exam_id=exam_id)
        if not previous:
            return None

        if any(a.is_submitted for a in previous):
            logger.warning(f"User {identity.user_id} already completed exam {exam_id}")
            raise AttemptLimitReached(f"Exam {exam_id} has already been taken")

        attempt = previous[0]
        logger.info(f"Resuming attempt {attempt.id} for user {identity.user_id}")
        return attempt


# ---------------------------
# Who may touch an attempt
# ---------------------------

class AccessPolicy(ABC):
    @abstractmethod
    def check(self, attempt: Attempt, identity: Optional[StudentIdentity]) -> None: ...

    @abstractmethod
    def attempts_of(self, storage: StorageGateway, identity: StudentIdentity) -> List[Attempt]:
        """Attempts the identity may enumerate without knowing their ids."""


class OpenAccessPolicy(AccessPolicy):
    # Attempt ids are random UUIDs; knowing one is the credential
    def check(self, attempt, identity):
        return None

    def attempts_of(self, storage, identity):
        # One shared user id covers every anonymous student
        logger.debug(f"Attempt listing disabled for shared identity {identity.user_id}")
        return []


class OwnerOnlyAccessPolicy(AccessPolicy):
    def attempts_of(self, storage, identity):
        return storage.get_attempts_for_student(identity.user_id)

    def check(self, attempt, identity):
        if identity is None or identity.user_id != attempt.user_id:
            logger.warning(
                f"Access denied to attempt {attempt.id} for user {identity.user_id if identity else None}"
            )
            # Reported exactly like a missing attempt
            raise AttemptNotFound(f"Attempt {attempt.id} not found")


def policies_from_settings(settings: Settings):
    """Build (identity resolver, attempt policy, access policy) for the configured mode."""
    if settings.IDENTITY_MODE == "authenticated":
        resolver = AuthenticatedIdentityResolver()
        access = OwnerOnlyAccessPolicy()
    else:
        resolver = AnonymousIdentityResolver(
            settings.DEFAULT_USER_ID,
            settings.DEFAULT_STUDENT_NAME,
            settings.DEFAULT_STUDENT_EMAIL,
        )
        access = OpenAccessPolicy()

    if settings.ATTEMPT_POLICY == "single":
        attempts = SingleAttemptPolicy()
    else:
        attempts = UnlimitedAttemptsPolicy()

    return resolver, attempts, access
