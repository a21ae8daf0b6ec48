"""
Database abstraction for Postgres and an in-memory test implementation.
"""

from __future__ import annotations

import threading
import time
import uuid
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Dict, Optional, Protocol

from sqlalchemy import (
    JSON,
    BigInteger,
    Boolean,
    Column,
    Float,
    Index,
    Integer,
    String,
    Text,
    create_engine,
    func,
    select,
    update,
)
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from qa_backend.types import (
    QuestionSource,
    QuestionStatus,
    Role,
    effective_is_active,
    effective_role,
    effective_source,
    effective_status,
)

COUNTERS = ("views", "helpful")
USER_FIELDS = frozenset({"email", "name", "image_url", "role", "is_active"})
QUESTION_FIELDS = frozenset(
    {
        "question",
        "answer",
        "category",
        "tags",
        "views",
        "helpful",
        "status",
        "source",
        "answered_by",
        "answered_at",
        "rejection_reason",
    }
)


def now_ms() -> int:
    return int(time.time() * 1000)


class AdminExistsError(Exception):
    """Raised when a bootstrap promotion finds an admin already in place."""


class DbClient(Protocol):
    """Interface for database access."""

    def create_user(
        self,
        *,
        external_id: str,
        email: str,
        name: Optional[str] = None,
        image_url: Optional[str] = None,
        role: Optional[Role] = Role.USER,
        is_active: Optional[bool] = True,
    ) -> "UserRecord":
        ...

    def get_user(self, user_id: str) -> Optional["UserRecord"]:
        ...

    def get_user_by_external_id(self, external_id: str) -> Optional["UserRecord"]:
        ...

    def upsert_user_identity(
        self,
        *,
        external_id: str,
        email: str,
        name: Optional[str],
        image_url: Optional[str],
    ) -> tuple["UserRecord", bool]:
        ...

    def update_user(self, user_id: str, **fields) -> Optional["UserRecord"]:
        ...

    def list_users(self) -> list["UserRecord"]:
        ...

    def count_users_with_role(self, role: Role) -> int:
        ...

    def promote_to_admin(
        self, user_id: str, *, require_no_admin: bool = False
    ) -> Optional["UserRecord"]:
        """
        Make a user an active admin in one atomic step.

        With ``require_no_admin`` the admin count is re-checked inside the same
        unit and ``AdminExistsError`` is raised if any admin already exists.
        """
        ...

    def create_question(
        self,
        *,
        question: str,
        answer: str,
        category: str,
        tags: list[str],
        user_id: Optional[str] = None,
        status: Optional[QuestionStatus] = None,
        source: Optional[QuestionSource] = None,
        views: int = 0,
        helpful: int = 0,
        created_at: Optional[int] = None,
    ) -> "QuestionRecord":
        ...

    def get_question(self, question_id: str) -> Optional["QuestionRecord"]:
        ...

    def update_question(self, question_id: str, **fields) -> Optional["QuestionRecord"]:
        ...

    def increment_question_counter(
        self, question_id: str, counter: str
    ) -> Optional["QuestionRecord"]:
        ...

    def delete_question(self, question_id: str) -> bool:
        ...

    def list_questions(self, *, user_id: Optional[str] = None) -> list["QuestionRecord"]:
        ...

    def count_questions(self) -> int:
        ...


@dataclass
class UserRecord:
    user_id: str
    external_id: str
    email: str
    name: Optional[str] = None
    image_url: Optional[str] = None
    role: Optional[Role] = None
    is_active: Optional[bool] = None
    creation_time: float = field(default_factory=lambda: time.time())

    def as_dict(self) -> dict:
        return {
            "id": self.user_id,
            "externalId": self.external_id,
            "email": self.email,
            "name": self.name,
            "imageUrl": self.image_url,
            "role": effective_role(self).value,
            "isActive": effective_is_active(self),
            "creationTime": self.creation_time,
        }


@dataclass
class QuestionRecord:
    question_id: str
    question: str
    answer: str
    category: str
    tags: list[str] = field(default_factory=list)
    views: int = 0
    helpful: int = 0
    created_at: int = field(default_factory=now_ms)
    user_id: Optional[str] = None
    status: Optional[QuestionStatus] = None
    source: Optional[QuestionSource] = None
    answered_by: Optional[str] = None
    answered_at: Optional[int] = None
    rejection_reason: Optional[str] = None

    def as_dict(self) -> dict:
        return {
            "id": self.question_id,
            "question": self.question,
            "answer": self.answer,
            "category": self.category,
            "tags": list(self.tags),
            "views": self.views,
            "helpful": self.helpful,
            "createdAt": self.created_at,
            "userId": self.user_id,
            "status": effective_status(self).value,
            "source": effective_source(self).value,
            "answeredBy": self.answered_by,
            "answeredAt": self.answered_at,
            "rejectionReason": self.rejection_reason,
        }


def _check_fields(fields: dict, allowed: frozenset) -> None:
    unknown = set(fields) - allowed
    if unknown:
        raise ValueError(f"Unknown fields: {sorted(unknown)}")


def _check_counter(counter: str) -> None:
    if counter not in COUNTERS:
        raise ValueError(f"Unknown counter: {counter}")


class InMemoryDbClient:
    """Simple in-memory database for development and tests."""

    def __init__(self):
        self.users: Dict[str, UserRecord] = {}
        self.questions: Dict[str, QuestionRecord] = {}
        self._lock = threading.Lock()

    def reset(self) -> None:
        """Clear all stored data (useful in tests)."""
        with self._lock:
            self.users.clear()
            self.questions.clear()

    def create_user(
        self,
        *,
        external_id: str,
        email: str,
        name: Optional[str] = None,
        image_url: Optional[str] = None,
        role: Optional[Role] = Role.USER,
        is_active: Optional[bool] = True,
    ) -> UserRecord:
        record = UserRecord(
            user_id=uuid.uuid4().hex,
            external_id=external_id,
            email=email,
            name=name,
            image_url=image_url,
            role=role,
            is_active=is_active,
        )
        with self._lock:
            self.users[record.user_id] = record
        return replace(record)

    def get_user(self, user_id: str) -> Optional[UserRecord]:
        with self._lock:
            user = self.users.get(user_id)
            return replace(user) if user else None

    def get_user_by_external_id(self, external_id: str) -> Optional[UserRecord]:
        with self._lock:
            for user in self.users.values():
                if user.external_id == external_id:
                    return replace(user)
        return None

    def upsert_user_identity(
        self,
        *,
        external_id: str,
        email: str,
        name: Optional[str],
        image_url: Optional[str],
    ) -> tuple[UserRecord, bool]:
        with self._lock:
            for user in self.users.values():
                if user.external_id == external_id:
                    user.email = email
                    user.name = name
                    user.image_url = image_url
                    return replace(user), False
            record = UserRecord(
                user_id=uuid.uuid4().hex,
                external_id=external_id,
                email=email,
                name=name,
                image_url=image_url,
                role=Role.USER,
                is_active=True,
            )
            self.users[record.user_id] = record
            return replace(record), True

    def update_user(self, user_id: str, **fields) -> Optional[UserRecord]:
        _check_fields(fields, USER_FIELDS)
        with self._lock:
            user = self.users.get(user_id)
            if not user:
                return None
            for key, value in fields.items():
                setattr(user, key, value)
            return replace(user)

    def list_users(self) -> list[UserRecord]:
        with self._lock:
            return [replace(user) for user in reversed(list(self.users.values()))]

    def count_users_with_role(self, role: Role) -> int:
        with self._lock:
            return self._count_role(role)

    def _count_role(self, role: Role) -> int:
        # Caller holds self._lock.
        return sum(1 for user in self.users.values() if user.role == role)

    def promote_to_admin(
        self, user_id: str, *, require_no_admin: bool = False
    ) -> Optional[UserRecord]:
        with self._lock:
            user = self.users.get(user_id)
            if not user:
                return None
            if require_no_admin and self._count_role(Role.ADMIN):
                raise AdminExistsError()
            user.role = Role.ADMIN
            user.is_active = True
            return replace(user)

    def create_question(
        self,
        *,
        question: str,
        answer: str,
        category: str,
        tags: list[str],
        user_id: Optional[str] = None,
        status: Optional[QuestionStatus] = None,
        source: Optional[QuestionSource] = None,
        views: int = 0,
        helpful: int = 0,
        created_at: Optional[int] = None,
    ) -> QuestionRecord:
        record = QuestionRecord(
            question_id=uuid.uuid4().hex,
            question=question,
            answer=answer,
            category=category,
            tags=list(tags),
            views=views,
            helpful=helpful,
            created_at=created_at if created_at is not None else now_ms(),
            user_id=user_id,
            status=status,
            source=source,
        )
        with self._lock:
            self.questions[record.question_id] = record
        return replace(record, tags=list(record.tags))

    def get_question(self, question_id: str) -> Optional[QuestionRecord]:
        with self._lock:
            question = self.questions.get(question_id)
            return replace(question, tags=list(question.tags)) if question else None

    def update_question(self, question_id: str, **fields) -> Optional[QuestionRecord]:
        _check_fields(fields, QUESTION_FIELDS)
        with self._lock:
            question = self.questions.get(question_id)
            if not question:
                return None
            for key, value in fields.items():
                setattr(question, key, list(value) if key == "tags" else value)
            return replace(question, tags=list(question.tags))

    def increment_question_counter(
        self, question_id: str, counter: str
    ) -> Optional[QuestionRecord]:
        _check_counter(counter)
        with self._lock:
            question = self.questions.get(question_id)
            if not question:
                return None
            setattr(question, counter, getattr(question, counter) + 1)
            return replace(question, tags=list(question.tags))

    def delete_question(self, question_id: str) -> bool:
        with self._lock:
            return self.questions.pop(question_id, None) is not None

    def list_questions(self, *, user_id: Optional[str] = None) -> list[QuestionRecord]:
        with self._lock:
            return [
                replace(question, tags=list(question.tags))
                for question in self.questions.values()
                if user_id is None or question.user_id == user_id
            ]

    def count_questions(self) -> int:
        with self._lock:
            return len(self.questions)


def _column_value(value):
    return value.value if isinstance(value, Enum) else value


class PostgresDbClient:
    """
    SQLAlchemy-backed implementation. Accepts any SQLAlchemy URL (e.g., Postgres or SQLite for tests).
    """

    def __init__(self, database_url: str):
        if not database_url:
            raise ValueError("DATABASE_URL is required for PostgresDbClient")
        self.engine = create_engine(
            database_url,
            future=True,
            pool_pre_ping=True,
            pool_recycle=1800,
        )
        self.Session = sessionmaker(
            bind=self.engine, class_=Session, expire_on_commit=False, future=True
        )
        Base.metadata.create_all(self.engine)

    def _to_user_record(self, row: "UserRow") -> UserRecord:
        return UserRecord(
            user_id=row.user_id,
            external_id=row.external_id,
            email=row.email,
            name=row.name,
            image_url=row.image_url,
            role=Role(row.role) if row.role else None,
            is_active=row.is_active,
            creation_time=row.creation_time,
        )

    def _to_question_record(self, row: "QuestionRow") -> QuestionRecord:
        return QuestionRecord(
            question_id=row.question_id,
            question=row.question,
            answer=row.answer,
            category=row.category,
            tags=list(row.tags or []),
            views=row.views,
            helpful=row.helpful,
            created_at=row.created_at,
            user_id=row.user_id,
            status=QuestionStatus(row.status) if row.status else None,
            source=QuestionSource(row.source) if row.source else None,
            answered_by=row.answered_by,
            answered_at=row.answered_at,
            rejection_reason=row.rejection_reason,
        )

    def create_user(
        self,
        *,
        external_id: str,
        email: str,
        name: Optional[str] = None,
        image_url: Optional[str] = None,
        role: Optional[Role] = Role.USER,
        is_active: Optional[bool] = True,
    ) -> UserRecord:
        with self.Session() as session:
            row = UserRow(
                user_id=uuid.uuid4().hex,
                external_id=external_id,
                email=email,
                name=name,
                image_url=image_url,
                role=_column_value(role),
                is_active=is_active,
                creation_time=time.time(),
            )
            session.add(row)
            session.commit()
            session.refresh(row)
            return self._to_user_record(row)

    def get_user(self, user_id: str) -> Optional[UserRecord]:
        with self.Session() as session:
            row = session.get(UserRow, user_id)
            return self._to_user_record(row) if row else None

    def get_user_by_external_id(self, external_id: str) -> Optional[UserRecord]:
        with self.Session() as session:
            stmt = select(UserRow).where(UserRow.external_id == external_id).limit(1)
            row = session.execute(stmt).scalar_one_or_none()
            return self._to_user_record(row) if row else None

    def upsert_user_identity(
        self,
        *,
        external_id: str,
        email: str,
        name: Optional[str],
        image_url: Optional[str],
    ) -> tuple[UserRecord, bool]:
        with self.Session() as session:
            stmt = (
                select(UserRow)
                .where(UserRow.external_id == external_id)
                .limit(1)
                .with_for_update()
            )
            row = session.execute(stmt).scalar_one_or_none()
            created = row is None
            if row:
                row.email = email
                row.name = name
                row.image_url = image_url
            else:
                row = UserRow(
                    user_id=uuid.uuid4().hex,
                    external_id=external_id,
                    email=email,
                    name=name,
                    image_url=image_url,
                    role=Role.USER.value,
                    is_active=True,
                    creation_time=time.time(),
                )
                session.add(row)
            session.commit()
            session.refresh(row)
            return self._to_user_record(row), created

    def update_user(self, user_id: str, **fields) -> Optional[UserRecord]:
        _check_fields(fields, USER_FIELDS)
        with self.Session() as session:
            row = session.get(UserRow, user_id)
            if not row:
                return None
            for key, value in fields.items():
                setattr(row, key, _column_value(value))
            session.commit()
            session.refresh(row)
            return self._to_user_record(row)

    def list_users(self) -> list[UserRecord]:
        with self.Session() as session:
            rows = (
                session.query(UserRow)
                .order_by(UserRow.creation_time.desc())
                .all()
            )
            return [self._to_user_record(row) for row in rows]

    def count_users_with_role(self, role: Role) -> int:
        with self.Session() as session:
            stmt = select(func.count()).select_from(UserRow).where(
                UserRow.role == role.value
            )
            return session.execute(stmt).scalar_one()

    def promote_to_admin(
        self, user_id: str, *, require_no_admin: bool = False
    ) -> Optional[UserRecord]:
        with self.Session() as session:
            if require_no_admin:
                # Lock every user row so a concurrent bootstrap waits here and
                # then sees this promotion when it counts.
                session.execute(select(UserRow.user_id).with_for_update()).all()
                admins = session.execute(
                    select(func.count())
                    .select_from(UserRow)
                    .where(UserRow.role == Role.ADMIN.value)
                ).scalar_one()
                if admins:
                    raise AdminExistsError()
            row = session.get(UserRow, user_id, with_for_update=True)
            if not row:
                return None
            row.role = Role.ADMIN.value
            row.is_active = True
            session.commit()
            session.refresh(row)
            return self._to_user_record(row)

    def create_question(
        self,
        *,
        question: str,
        answer: str,
        category: str,
        tags: list[str],
        user_id: Optional[str] = None,
        status: Optional[QuestionStatus] = None,
        source: Optional[QuestionSource] = None,
        views: int = 0,
        helpful: int = 0,
        created_at: Optional[int] = None,
    ) -> QuestionRecord:
        with self.Session() as session:
            row = QuestionRow(
                question_id=uuid.uuid4().hex,
                question=question,
                answer=answer,
                category=category,
                tags=list(tags),
                views=views,
                helpful=helpful,
                created_at=created_at if created_at is not None else now_ms(),
                user_id=user_id,
                status=_column_value(status),
                source=_column_value(source),
            )
            session.add(row)
            session.commit()
            session.refresh(row)
            return self._to_question_record(row)

    def get_question(self, question_id: str) -> Optional[QuestionRecord]:
        with self.Session() as session:
            row = session.get(QuestionRow, question_id)
            return self._to_question_record(row) if row else None

    def update_question(self, question_id: str, **fields) -> Optional[QuestionRecord]:
        _check_fields(fields, QUESTION_FIELDS)
        with self.Session() as session:
            row = session.get(QuestionRow, question_id)
            if not row:
                return None
            for key, value in fields.items():
                if key == "tags":
                    value = list(value)
                setattr(row, key, _column_value(value))
            session.commit()
            session.refresh(row)
            return self._to_question_record(row)

    def increment_question_counter(
        self, question_id: str, counter: str
    ) -> Optional[QuestionRecord]:
        _check_counter(counter)
        column = getattr(QuestionRow, counter)
        with self.Session() as session:
            result = session.execute(
                update(QuestionRow)
                .where(QuestionRow.question_id == question_id)
                .values({column: column + 1})
                .execution_options(synchronize_session=False)
            )
            session.commit()
            if not result.rowcount:
                return None
            row = session.get(QuestionRow, question_id, populate_existing=True)
            return self._to_question_record(row) if row else None

    def delete_question(self, question_id: str) -> bool:
        with self.Session() as session:
            row = session.get(QuestionRow, question_id)
            if not row:
                return False
            session.delete(row)
            session.commit()
            return True

    def list_questions(self, *, user_id: Optional[str] = None) -> list[QuestionRecord]:
        with self.Session() as session:
            query = session.query(QuestionRow)
            if user_id is not None:
                query = query.filter(QuestionRow.user_id == user_id)
            rows = query.order_by(QuestionRow.created_at.asc()).all()
            return [self._to_question_record(row) for row in rows]

    def count_questions(self) -> int:
        with self.Session() as session:
            return session.execute(
                select(func.count()).select_from(QuestionRow)
            ).scalar_one()


Base = declarative_base()


class UserRow(Base):
    __tablename__ = "users"

    user_id = Column("id", String, primary_key=True)
    external_id = Column(String, nullable=False, unique=True, index=True)
    email = Column(String, nullable=False, index=True)
    name = Column(String, nullable=True)
    image_url = Column(String, nullable=True)
    role = Column(String, nullable=True, index=True)
    is_active = Column(Boolean, nullable=True)
    creation_time = Column(Float, nullable=False)


class QuestionRow(Base):
    __tablename__ = "questions"
    __table_args__ = (
        Index("ix_questions_status_created_at", "status", "created_at"),
    )

    question_id = Column("id", String, primary_key=True)
    question = Column(Text, nullable=False)
    answer = Column(Text, nullable=False, default="")
    category = Column(String, nullable=False, index=True)
    tags = Column(JSON, nullable=False)
    views = Column(Integer, nullable=False, default=0, index=True)
    helpful = Column(Integer, nullable=False, default=0, index=True)
    created_at = Column(BigInteger, nullable=False, index=True)
    user_id = Column(String, nullable=True, index=True)
    status = Column(String, nullable=True, index=True)
    source = Column(String, nullable=True)
    answered_by = Column(String, nullable=True)
    answered_at = Column(BigInteger, nullable=True)
    rejection_reason = Column(Text, nullable=True)
