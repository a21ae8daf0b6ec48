"""
Enumerations and read-time derivations shared across the backend.

Records may be stored without ``status``/``source``/``role``/``is_active``
(rows written before those fields existed). Every read path resolves them
through the functions below; only the backfill sweeps look at raw absence.
"""

from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from qa_backend.db import QuestionRecord, UserRecord


class Role(str, Enum):
    USER = "user"
    ADMIN = "admin"


class QuestionStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class QuestionSource(str, Enum):
    ADMIN = "admin"
    USER = "user"


class SortBy(str, Enum):
    VIEWS = "views"
    HELPFUL = "helpful"
    NEWEST = "newest"
    OLDEST = "oldest"


def derive_status(answer: Optional[str]) -> QuestionStatus:
    return QuestionStatus.APPROVED if answer else QuestionStatus.PENDING


def derive_source(user_id: Optional[str]) -> QuestionSource:
    return QuestionSource.USER if user_id else QuestionSource.ADMIN


def effective_status(question: "QuestionRecord") -> QuestionStatus:
    if question.status is not None:
        return question.status
    return derive_status(question.answer)


def effective_source(question: "QuestionRecord") -> QuestionSource:
    if question.source is not None:
        return question.source
    return derive_source(question.user_id)


def effective_role(user: "UserRecord") -> Role:
    return user.role if user.role is not None else Role.USER


def effective_is_active(user: "UserRecord") -> bool:
    return user.is_active if user.is_active is not None else True


def is_active_admin(user: Optional["UserRecord"]) -> bool:
    """An admin is a user with role ``admin`` whose account is active."""
    if user is None:
        return False
    return effective_role(user) == Role.ADMIN and effective_is_active(user)
