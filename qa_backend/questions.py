"""
Question operations: public listing, submission, counters and admin review.

Listings load the whole collection and filter, sort and paginate in memory.
That is fine at the scale this service runs at (hundreds to low thousands of
rows) and is the reference behavior for the SQL-backed store as well.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Iterable, Optional

from qa_backend.access import AccessPolicy
from qa_backend.db import DbClient, QuestionRecord, now_ms
from qa_backend.errors import InvalidArgument, NotFound
from qa_backend.types import (
    QuestionSource,
    QuestionStatus,
    SortBy,
    effective_source,
    effective_status,
)

logger = logging.getLogger(__name__)

DEFAULT_LIST_LIMIT = 12
DEFAULT_MY_QUESTIONS_LIMIT = 10
DEFAULT_ADMIN_LIMIT = 20
ALL_CATEGORIES = "all"
ALL_STATUSES = "all"


@dataclass
class Pagination:
    page: int
    limit: int
    total: int
    total_pages: int
    has_next: bool
    has_prev: bool

    def as_dict(self) -> dict:
        return {
            "page": self.page,
            "limit": self.limit,
            "total": self.total,
            "totalPages": self.total_pages,
            "hasNext": self.has_next,
            "hasPrev": self.has_prev,
        }


@dataclass
class QuestionPage:
    questions: list[QuestionRecord]
    pagination: Pagination

    def as_dict(self) -> dict:
        return {
            "questions": [question.as_dict() for question in self.questions],
            "pagination": self.pagination.as_dict(),
        }


@dataclass
class AdminStats:
    total: int = 0
    pending: int = 0
    approved: int = 0
    rejected: int = 0
    user_questions: int = 0
    admin_questions: int = 0
    total_views: int = 0
    total_helpful: int = 0

    def as_dict(self) -> dict:
        return {
            "total": self.total,
            "pending": self.pending,
            "approved": self.approved,
            "rejected": self.rejected,
            "userQuestions": self.user_questions,
            "adminQuestions": self.admin_questions,
            "totalViews": self.total_views,
            "totalHelpful": self.total_helpful,
        }


def paginate(
    questions: list[QuestionRecord],
    page: Optional[int],
    limit: Optional[int],
    *,
    default_limit: int,
) -> QuestionPage:
    page = page or 1
    limit = limit or default_limit
    if page < 1 or limit < 1:
        raise InvalidArgument("page and limit must be positive")
    total = len(questions)
    total_pages = math.ceil(total / limit)
    offset = (page - 1) * limit
    return QuestionPage(
        questions=questions[offset : offset + limit],
        pagination=Pagination(
            page=page,
            limit=limit,
            total=total,
            total_pages=total_pages,
            has_next=page < total_pages,
            has_prev=page > 1,
        ),
    )


def _matches_search(question: QuestionRecord, needle: str) -> bool:
    return (
        needle in question.question.lower()
        or needle in question.answer.lower()
        or any(needle in tag.lower() for tag in question.tags)
    )


def _sort_questions(
    questions: Iterable[QuestionRecord], sort_by: Optional[str]
) -> list[QuestionRecord]:
    if sort_by == SortBy.VIEWS.value:
        return sorted(questions, key=lambda q: q.views, reverse=True)
    if sort_by == SortBy.HELPFUL.value:
        return sorted(questions, key=lambda q: q.helpful, reverse=True)
    if sort_by == SortBy.NEWEST.value:
        return sorted(questions, key=lambda q: q.created_at, reverse=True)
    return sorted(questions, key=lambda q: q.created_at)


def _require_text(value: str, name: str) -> str:
    if not value or not value.strip():
        raise InvalidArgument(f"{name} must not be empty")
    return value


def _get_or_raise(db: DbClient, question_id: str) -> QuestionRecord:
    question = db.get_question(question_id)
    if question is None:
        raise NotFound("Question not found")
    return question


def list_questions(
    db: DbClient,
    *,
    category: Optional[str] = None,
    search: Optional[str] = None,
    sort_by: Optional[str] = None,
    page: Optional[int] = None,
    limit: Optional[int] = None,
) -> QuestionPage:
    """
    Public listing of approved questions.

    Filters are applied in order: effective status, category (unless the
    ``all`` sentinel), then a case-insensitive substring search across the
    question text, the answer text and every tag.
    """
    questions = [
        q for q in db.list_questions() if effective_status(q) == QuestionStatus.APPROVED
    ]
    if category and category != ALL_CATEGORIES:
        questions = [q for q in questions if q.category == category]
    if search:
        needle = search.lower()
        questions = [q for q in questions if _matches_search(q, needle)]
    questions = _sort_questions(questions, sort_by)
    return paginate(questions, page, limit, default_limit=DEFAULT_LIST_LIMIT)


def get_question(
    db: DbClient, policy: AccessPolicy, question_id: str
) -> QuestionRecord:
    question = _get_or_raise(db, question_id)
    if effective_status(question) != QuestionStatus.APPROVED:
        policy.require_owner_or_admin(question.user_id)
    return question


def increment_views(db: DbClient, question_id: str) -> None:
    db.increment_question_counter(question_id, "views")


def increment_helpful(db: DbClient, question_id: str) -> None:
    db.increment_question_counter(question_id, "helpful")


def get_categories(db: DbClient) -> list[dict]:
    counts: dict[str, int] = {}
    for question in db.list_questions():
        if effective_status(question) != QuestionStatus.APPROVED:
            continue
        counts[question.category] = counts.get(question.category, 0) + 1
    return [{"name": name, "count": count} for name, count in counts.items()]


def submit_question(
    db: DbClient,
    policy: AccessPolicy,
    *,
    question: str,
    category: str,
    tags: list[str],
) -> QuestionRecord:
    user = policy.require_authenticated()
    record = db.create_question(
        question=_require_text(question, "question"),
        answer="",
        category=_require_text(category, "category"),
        tags=tags,
        user_id=user.user_id,
        status=QuestionStatus.PENDING,
        source=QuestionSource.USER,
    )
    logger.info("User %s submitted question %s", user.user_id, record.question_id)
    return record


def my_questions(
    db: DbClient,
    policy: AccessPolicy,
    *,
    page: Optional[int] = None,
    limit: Optional[int] = None,
) -> QuestionPage:
    user = policy.current_user()
    if user is None:
        # Anonymous polling gets an empty page rather than an error.
        return paginate([], 1, limit, default_limit=DEFAULT_MY_QUESTIONS_LIMIT)
    questions = sorted(
        db.list_questions(user_id=user.user_id),
        key=lambda q: q.created_at,
        reverse=True,
    )
    return paginate(questions, page, limit, default_limit=DEFAULT_MY_QUESTIONS_LIMIT)


def pending_questions(
    db: DbClient,
    policy: AccessPolicy,
    *,
    page: Optional[int] = None,
    limit: Optional[int] = None,
) -> QuestionPage:
    policy.require_admin()
    questions = sorted(
        (q for q in db.list_questions() if effective_status(q) == QuestionStatus.PENDING),
        key=lambda q: q.created_at,
    )
    return paginate(questions, page, limit, default_limit=DEFAULT_ADMIN_LIMIT)


def answer_question(
    db: DbClient,
    policy: AccessPolicy,
    question_id: str,
    *,
    answer: str,
    tags: Optional[list[str]] = None,
) -> QuestionRecord:
    """
    Answer a question. Answering always approves, including questions that
    were previously rejected; an earlier rejection reason is left in place.
    """
    admin = policy.require_admin()
    question = _get_or_raise(db, question_id)
    updated = db.update_question(
        question_id,
        answer=_require_text(answer, "answer"),
        tags=tags if tags is not None else question.tags,
        answered_by=admin.user_id,
        answered_at=now_ms(),
        status=QuestionStatus.APPROVED,
    )
    if updated is None:
        raise NotFound("Question not found")
    logger.info("Admin %s answered question %s", admin.user_id, question_id)
    return updated


def reject_question(
    db: DbClient,
    policy: AccessPolicy,
    question_id: str,
    *,
    rejection_reason: str,
) -> QuestionRecord:
    admin = policy.require_admin()
    _get_or_raise(db, question_id)
    updated = db.update_question(
        question_id,
        status=QuestionStatus.REJECTED,
        rejection_reason=rejection_reason,
    )
    if updated is None:
        raise NotFound("Question not found")
    logger.info("Admin %s rejected question %s", admin.user_id, question_id)
    return updated


def create_admin_question(
    db: DbClient,
    policy: AccessPolicy,
    *,
    question: str,
    answer: str,
    category: str,
    tags: list[str],
) -> QuestionRecord:
    admin = policy.require_admin()
    record = db.create_question(
        question=_require_text(question, "question"),
        answer=_require_text(answer, "answer"),
        category=_require_text(category, "category"),
        tags=tags,
        status=QuestionStatus.APPROVED,
        source=QuestionSource.ADMIN,
    )
    logger.info("Admin %s created question %s", admin.user_id, record.question_id)
    return record


def list_all_questions(
    db: DbClient,
    policy: AccessPolicy,
    *,
    status: Optional[str] = None,
    page: Optional[int] = None,
    limit: Optional[int] = None,
) -> QuestionPage:
    policy.require_admin()
    questions = db.list_questions()
    if status and status != ALL_STATUSES:
        try:
            wanted = QuestionStatus(status)
        except ValueError:
            raise InvalidArgument(f"Unknown status: {status}")
        questions = [q for q in questions if effective_status(q) == wanted]
    questions = sorted(questions, key=lambda q: q.created_at, reverse=True)
    return paginate(questions, page, limit, default_limit=DEFAULT_ADMIN_LIMIT)


def delete_question(db: DbClient, policy: AccessPolicy, question_id: str) -> None:
    admin = policy.require_admin()
    if not db.delete_question(question_id):
        raise NotFound("Question not found")
    logger.info("Admin %s deleted question %s", admin.user_id, question_id)


def admin_stats(db: DbClient, policy: AccessPolicy) -> AdminStats:
    policy.require_admin()
    stats = AdminStats()
    for question in db.list_questions():
        stats.total += 1
        status = effective_status(question)
        if status == QuestionStatus.PENDING:
            stats.pending += 1
        elif status == QuestionStatus.APPROVED:
            stats.approved += 1
        else:
            stats.rejected += 1
        if effective_source(question) == QuestionSource.USER:
            stats.user_questions += 1
        else:
            stats.admin_questions += 1
        stats.total_views += question.views
        stats.total_helpful += question.helpful
    return stats
