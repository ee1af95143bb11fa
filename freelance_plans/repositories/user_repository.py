"""User repository - the slice of the identity store the subscription core reads."""

import threading
from typing import Optional

from sqlalchemy import exc as sa_exc, select
from sqlalchemy.orm import Session

from freelance_plans.database import Database, get_database
from freelance_plans.logging_config import get_logger
from freelance_plans.models.tables import UserRow
from freelance_plans.models.user import Role, User

logger = get_logger(__name__)


class UserNotFoundError(Exception):
    """Raised when a user does not exist or is deleted."""

    def __init__(self, user_id):
        super().__init__(f"User not found: {user_id}")
        self.user_id = user_id


class EmailAlreadyRegisteredError(Exception):
    """Raised when registering an email that already has an account."""

    def __init__(self, email: str):
        super().__init__(f"Email already registered: {email}")
        self.email = email


class UserRepository:
    """Reads users by id or email and creates accounts."""

    def __init__(self, database: Optional[Database] = None):
        self._database = database or get_database()

    def find(self, user_id: int, session: Optional[Session] = None) -> Optional[User]:
        """Find a user by id, deleted users included."""
        with self._database.session(session) as s:
            row = s.get(UserRow, user_id)
            return User.model_validate(row) if row is not None else None

    def get(self, user_id: int, session: Optional[Session] = None) -> User:
        """Get a live (not deleted) user.

        Raises:
            UserNotFoundError: If the user is missing or deleted
        """
        user = self.find(user_id, session=session)
        if user is None or user.is_deleted:
            raise UserNotFoundError(user_id)
        return user

    def get_credentials(self, email: str, session: Optional[Session] = None) -> Optional[tuple[User, str]]:
        """Return (user, password_hash) for a live account, or None."""
        with self._database.session(session) as s:
            row = s.scalars(select(UserRow).where(UserRow.email == email.lower())).first()
            if row is None or row.is_deleted:
                return None
            return User.model_validate(row), row.password_hash

    def create(
        self,
        email: str,
        password_hash: str,
        role: Role,
        first_name: str = "",
        last_name: str = "",
        is_verified: bool = False,
        session: Optional[Session] = None,
    ) -> User:
        """Create a user account.

        Raises:
            EmailAlreadyRegisteredError: If the email is taken
        """
        email = email.lower()
        try:
            with self._database.session(session) as s:
                if s.scalars(select(UserRow.id).where(UserRow.email == email)).first() is not None:
                    raise EmailAlreadyRegisteredError(email)
                row = UserRow(
                    email=email,
                    password_hash=password_hash,
                    first_name=first_name,
                    last_name=last_name,
                    role=int(role),
                    is_verified=is_verified,
                )
                s.add(row)
                s.flush()
                user = User.model_validate(row)
        except sa_exc.IntegrityError as e:
            raise EmailAlreadyRegisteredError(email) from e

        logger.info("user_created", user_id=user.id, role=user.role.name.lower())
        return user

    def set_verified(self, user_id: int, is_verified: bool = True, session: Optional[Session] = None) -> User:
        """Set a user's email-verified flag.

        Raises:
            UserNotFoundError: If the user does not exist
        """
        with self._database.session(session) as s:
            row = s.get(UserRow, user_id)
            if row is None:
                raise UserNotFoundError(user_id)
            row.is_verified = is_verified
            s.flush()
            return User.model_validate(row)

    def mark_deleted(self, user_id: int, session: Optional[Session] = None) -> None:
        """Soft-delete a user account."""
        with self._database.session(session) as s:
            row = s.get(UserRow, user_id)
            if row is None:
                raise UserNotFoundError(user_id)
            row.is_deleted = True
        logger.info("user_deleted", user_id=user_id)


# Global repository instance
_user_repository_instance: Optional[UserRepository] = None
_repository_lock = threading.Lock()


def get_user_repository() -> UserRepository:
    global _user_repository_instance
    if _user_repository_instance is None:
        with _repository_lock:
            if _user_repository_instance is None:
                _user_repository_instance = UserRepository()
    return _user_repository_instance


def reset_user_repository() -> None:
    global _user_repository_instance
    with _repository_lock:
        _user_repository_instance = None
