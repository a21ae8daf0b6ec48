"""
One-time backfill sweeps for records written before optional fields existed.

Both sweeps are idempotent for the defaulted fields. ``fix_existing_data``
additionally zeroes the view and helpful counters on every question.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from qa_backend.db import DbClient
from qa_backend.types import Role, derive_source, derive_status

logger = logging.getLogger(__name__)


@dataclass
class MigrationResult:
    users_total: int = 0
    users_updated: int = 0
    questions_total: int = 0
    questions_updated: int = 0
    message: Optional[str] = None

    def as_dict(self) -> dict:
        payload = {
            "success": True,
            "usersTotal": self.users_total,
            "usersUpdated": self.users_updated,
            "questionsTotal": self.questions_total,
            "questionsUpdated": self.questions_updated,
        }
        if self.message:
            payload["message"] = self.message
        return payload


def _backfill_users(db: DbClient, result: MigrationResult) -> None:
    users = db.list_users()
    result.users_total = len(users)
    for user in users:
        updates = {}
        if user.role is None:
            updates["role"] = Role.USER
        if user.is_active is None:
            updates["is_active"] = True
        if updates:
            db.update_user(user.user_id, **updates)
            result.users_updated += 1


def _backfill_questions(
    db: DbClient, result: MigrationResult, *, reset_counters: bool
) -> None:
    questions = db.list_questions()
    result.questions_total = len(questions)
    for question in questions:
        updates = {}
        if question.source is None:
            updates["source"] = derive_source(question.user_id)
        if question.status is None:
            updates["status"] = derive_status(question.answer)
        if reset_counters:
            updates["views"] = 0
            updates["helpful"] = 0
        if updates:
            db.update_question(question.question_id, **updates)
            result.questions_updated += 1


def fix_existing_data(db: DbClient) -> MigrationResult:
    result = MigrationResult()
    _backfill_users(db, result)
    _backfill_questions(db, result, reset_counters=True)
    logger.info(
        "fix_existing_data: %d/%d users, %d/%d questions updated",
        result.users_updated,
        result.users_total,
        result.questions_updated,
        result.questions_total,
    )
    return result


def migrate_data(db: DbClient) -> MigrationResult:
    result = MigrationResult(message="Migration completed successfully!")
    _backfill_users(db, result)
    _backfill_questions(db, result, reset_counters=False)
    logger.info(
        "migrate_data: %d/%d users, %d/%d questions updated",
        result.users_updated,
        result.users_total,
        result.questions_updated,
        result.questions_total,
    )
    return result
