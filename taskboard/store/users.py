import logging
from typing import Any, List, Optional

from sqlalchemy import case, delete, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm.exc import StaleDataError
from sqlmodel import Session, func, select

from ..database import Database
from ..errors import DuplicateKey, EmptyUpdate, InvalidArgument, NotFound, require_id
from ..models import Task, User
from ..models.common import utcnow
from ..schemas.task import TaskRead, TaskStats
from ..schemas.user import UserRead
from .query import UserQueryOptions, build_user_query
from .stats import compute_stats
from .tasks import field_changes, to_task_read

logger = logging.getLogger(__name__)

USER_FIELDS = ("username", "email", "full_name")
UNIQUE_FIELDS = ("username", "email")


def duplicate_field(exc: IntegrityError) -> Optional[str]:
    """Which unique column an insert/update collided on, if any."""
    message = str(exc.orig)
    for field in UNIQUE_FIELDS:
        # Postgres names the constraint, SQLite names the column
        if f"users_{field}_key" in message or f"users.{field}" in message:
            return field
    return None


class UserStore:
    """Reads and mutations for users.

    ``delete`` is the one multi-statement write: it unassigns the user's
    tasks and removes the user inside a single transaction.
    """

    def __init__(self, database: Database):
        self.database = database

    # ---- reads ----

    def list(self, options: Optional[UserQueryOptions] = None) -> List[UserRead]:
        options = options or UserQueryOptions()
        with self.database.session() as session:
            users = session.exec(build_user_query(options)).all()
            return [UserRead.model_validate(user) for user in users]

    def get(self, user_id: Any) -> Optional[UserRead]:
        user_id = require_id(user_id, "User")
        with self.database.session() as session:
            user = session.get(User, user_id)
            return UserRead.model_validate(user) if user is not None else None

    def get_by_username(self, username: str) -> Optional[UserRead]:
        if not isinstance(username, str) or not username.strip():
            raise InvalidArgument("Valid username is required")
        return self._get_by(User.username == username.strip())

    def get_by_email(self, email: str) -> Optional[UserRead]:
        if not isinstance(email, str) or not email.strip():
            raise InvalidArgument("Valid email is required")
        return self._get_by(User.email == email.strip())

    def username_available(self, username: str) -> bool:
        return self.get_by_username(username) is None

    def email_available(self, email: str) -> bool:
        return self.get_by_email(email) is None

    def search(self, term: str, limit: int = 20, offset: int = 0) -> List[UserRead]:
        """Users whose username, email or full name contains ``term``.

        Username hits rank first, then full name, then email; ties go to the
        newest user.
        """
        if not isinstance(term, str) or not term.strip():
            raise InvalidArgument("Search term required")
        pattern = f"%{term.strip()}%"
        rank = case(
            (User.username.ilike(pattern), 1),
            (User.full_name.ilike(pattern), 2),
            (User.email.ilike(pattern), 3),
            else_=4,
        )
        statement = (
            build_user_query(UserQueryOptions(search=term, limit=limit, offset=offset))
            .order_by(None)
            .order_by(rank, User.created_at.desc(), User.id.desc())
        )
        with self.database.session() as session:
            return [UserRead.model_validate(user) for user in session.exec(statement).all()]

    def assigned_tasks(
        self,
        user_id: Any,
        status: Optional[str] = None,
        priority: Optional[str] = None,
        limit: Optional[int] = 50,
        offset: int = 0,
    ) -> List[TaskRead]:
        """Tasks assigned to ``user_id``, newest first."""
        user_id = require_id(user_id, "User")
        with self.database.session() as session:
            self._require(session, user_id)
            statement = select(Task).where(Task.assigned_to == user_id)
            if status:
                statement = statement.where(Task.status == status)
            if priority:
                statement = statement.where(Task.priority == priority)
            statement = statement.order_by(Task.created_at.desc(), Task.id.desc()).offset(offset).limit(limit)
            return [to_task_read(task) for task in session.exec(statement).all()]

    def stats(self, user_id: Any) -> TaskStats:
        user_id = require_id(user_id, "User")
        with self.database.session() as session:
            self._require(session, user_id)
            return compute_stats(session, assigned_to=user_id)

    # ---- mutations ----

    def create(self, data: Any) -> UserRead:
        fields = field_changes(data, USER_FIELDS)
        with self.database.session() as session:
            self._check_unique(session, fields)
            user = User(**fields)
            session.add(user)
            self._commit(session, fields)
            session.refresh(user)
            logger.info("Created user id=%s username=%s", user.id, user.username)
            return UserRead.model_validate(user)

    def update(self, user_id: Any, changes: Any) -> UserRead:
        user_id = require_id(user_id, "User")
        fields = field_changes(changes, USER_FIELDS)
        if not fields:
            raise EmptyUpdate()

        with self.database.session() as session:
            user = self._require(session, user_id)
            self._check_unique(session, fields, exclude_id=user_id)
            for field, value in fields.items():
                setattr(user, field, value)
            user.updated_at = utcnow()
            try:
                self._commit(session, fields)
            except StaleDataError:
                session.rollback()
                raise NotFound("User", user_id) from None
            session.refresh(user)
            logger.info("Updated user id=%s fields=%s", user_id, sorted(fields))
            return UserRead.model_validate(user)

    def delete(self, user_id: Any) -> int:
        """Remove a user, unassigning their tasks first.

        Both steps run in one transaction: if the user row is already gone the
        unassignment is rolled back and ``NotFound`` is raised. Returns how many
        tasks were unassigned.
        """
        user_id = require_id(user_id, "User")
        with self.database.transaction() as session:
            cleared = self._clear_assignments(session, user_id)
            self._delete_row(session, user_id)
        logger.info("Deleted user id=%s unassigned_tasks=%d", user_id, cleared)
        return cleared

    # ---- helpers ----

    @staticmethod
    def _clear_assignments(session: Session, user_id: int) -> int:
        result = session.execute(
            update(Task)
            .where(Task.assigned_to == user_id)
            .values(assigned_to=None)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    @staticmethod
    def _delete_row(session: Session, user_id: int) -> None:
        result = session.execute(
            delete(User).where(User.id == user_id).execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            raise NotFound("User", user_id)

    def _get_by(self, criterion) -> Optional[UserRead]:
        with self.database.session() as session:
            user = session.exec(select(User).where(criterion)).first()
            return UserRead.model_validate(user) if user is not None else None

    @staticmethod
    def _require(session: Session, user_id: int) -> User:
        user = session.get(User, user_id)
        if user is None:
            raise NotFound("User", user_id)
        return user

    @staticmethod
    def _check_unique(session: Session, fields, exclude_id: Optional[int] = None) -> None:
        for field in UNIQUE_FIELDS:
            if field not in fields:
                continue
            column = getattr(User, field)
            statement = select(func.count()).select_from(User).where(column == fields[field])
            if exclude_id is not None:
                statement = statement.where(User.id != exclude_id)
            if session.exec(statement).one():
                raise DuplicateKey(field, fields[field])

    @staticmethod
    def _commit(session: Session, fields) -> None:
        try:
            session.commit()
        except IntegrityError as exc:
            session.rollback()
            field = duplicate_field(exc)
            if field is None:
                raise
            raise DuplicateKey(field, fields.get(field)) from exc
