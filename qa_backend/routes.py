"""
HTTP routes for the Q&A API.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Query

from qa_backend import migrations, questions, users
from qa_backend.access import AccessPolicy
from qa_backend.db import DbClient
from qa_backend.dependencies import get_access_policy, get_db_client
from qa_backend.questions import QuestionPage
from qa_backend.schemas import (
    AdminStatsResponse,
    AnswerQuestionRequest,
    CategoryCount,
    CreateAdminQuestionRequest,
    CreateQuestionResponse,
    MigrationResponse,
    PromoteResponse,
    Question,
    QuestionPageResponse,
    RejectQuestionRequest,
    SubmitQuestionRequest,
    SuccessResponse,
    UpdateRoleRequest,
    User,
)
from qa_backend.types import Role

logger = logging.getLogger(__name__)

router = APIRouter()

MAX_PAGE_SIZE = 100


def _page_response(page: QuestionPage) -> QuestionPageResponse:
    return QuestionPageResponse(**page.as_dict())


# Public question operations


@router.get("/questions", response_model=QuestionPageResponse)
def list_questions(
    category: str | None = Query(None),
    search: str | None = Query(None),
    sort_by: str | None = Query(None, alias="sortBy"),
    page: int = Query(1, ge=1),
    limit: int = Query(questions.DEFAULT_LIST_LIMIT, ge=1, le=MAX_PAGE_SIZE),
    db: DbClient = Depends(get_db_client),
):
    result = questions.list_questions(
        db, category=category, search=search, sort_by=sort_by, page=page, limit=limit
    )
    return _page_response(result)


@router.get("/questions/categories", response_model=list[CategoryCount])
def get_categories(db: DbClient = Depends(get_db_client)):
    return [CategoryCount(**item) for item in questions.get_categories(db)]


@router.get("/questions/mine", response_model=QuestionPageResponse)
def my_questions(
    page: int = Query(1, ge=1),
    limit: int = Query(questions.DEFAULT_MY_QUESTIONS_LIMIT, ge=1, le=MAX_PAGE_SIZE),
    db: DbClient = Depends(get_db_client),
    policy: AccessPolicy = Depends(get_access_policy),
):
    return _page_response(questions.my_questions(db, policy, page=page, limit=limit))


@router.get("/questions/{question_id}", response_model=Question)
def get_question(
    question_id: str,
    db: DbClient = Depends(get_db_client),
    policy: AccessPolicy = Depends(get_access_policy),
):
    return Question(**questions.get_question(db, policy, question_id).as_dict())


@router.post("/questions", response_model=CreateQuestionResponse, status_code=201)
def submit_question(
    payload: SubmitQuestionRequest,
    db: DbClient = Depends(get_db_client),
    policy: AccessPolicy = Depends(get_access_policy),
):
    record = questions.submit_question(
        db,
        policy,
        question=payload.question,
        category=payload.category,
        tags=payload.tags,
    )
    return CreateQuestionResponse(questionId=record.question_id)


@router.post("/questions/{question_id}/views", response_model=SuccessResponse)
def increment_views(question_id: str, db: DbClient = Depends(get_db_client)):
    questions.increment_views(db, question_id)
    return SuccessResponse()


@router.post("/questions/{question_id}/helpful", response_model=SuccessResponse)
def increment_helpful(question_id: str, db: DbClient = Depends(get_db_client)):
    questions.increment_helpful(db, question_id)
    return SuccessResponse()


# Users


@router.get("/users/me", response_model=User | None)
def get_current_user(policy: AccessPolicy = Depends(get_access_policy)):
    user = users.current_user(policy)
    return User(**user.as_dict()) if user else None


@router.post("/users/me", response_model=User)
def store_current_user(
    db: DbClient = Depends(get_db_client),
    policy: AccessPolicy = Depends(get_access_policy),
):
    return User(**users.store_current_user(db, policy).as_dict())


# Admin: question management


@router.get("/admin/questions/pending", response_model=QuestionPageResponse)
def pending_questions(
    page: int = Query(1, ge=1),
    limit: int = Query(questions.DEFAULT_ADMIN_LIMIT, ge=1, le=MAX_PAGE_SIZE),
    db: DbClient = Depends(get_db_client),
    policy: AccessPolicy = Depends(get_access_policy),
):
    return _page_response(
        questions.pending_questions(db, policy, page=page, limit=limit)
    )


@router.get("/admin/questions", response_model=QuestionPageResponse)
def list_all_questions(
    status: str | None = Query(None, pattern="^(pending|approved|rejected|all)$"),
    page: int = Query(1, ge=1),
    limit: int = Query(questions.DEFAULT_ADMIN_LIMIT, ge=1, le=MAX_PAGE_SIZE),
    db: DbClient = Depends(get_db_client),
    policy: AccessPolicy = Depends(get_access_policy),
):
    return _page_response(
        questions.list_all_questions(db, policy, status=status, page=page, limit=limit)
    )


@router.post("/admin/questions", response_model=CreateQuestionResponse, status_code=201)
def create_admin_question(
    payload: CreateAdminQuestionRequest,
    db: DbClient = Depends(get_db_client),
    policy: AccessPolicy = Depends(get_access_policy),
):
    record = questions.create_admin_question(
        db,
        policy,
        question=payload.question,
        answer=payload.answer,
        category=payload.category,
        tags=payload.tags,
    )
    return CreateQuestionResponse(questionId=record.question_id)


@router.post("/admin/questions/{question_id}/answer", response_model=SuccessResponse)
def answer_question(
    question_id: str,
    payload: AnswerQuestionRequest,
    db: DbClient = Depends(get_db_client),
    policy: AccessPolicy = Depends(get_access_policy),
):
    questions.answer_question(
        db, policy, question_id, answer=payload.answer, tags=payload.tags
    )
    return SuccessResponse()


@router.post("/admin/questions/{question_id}/reject", response_model=SuccessResponse)
def reject_question(
    question_id: str,
    payload: RejectQuestionRequest,
    db: DbClient = Depends(get_db_client),
    policy: AccessPolicy = Depends(get_access_policy),
):
    questions.reject_question(
        db, policy, question_id, rejection_reason=payload.rejectionReason
    )
    return SuccessResponse()


@router.delete("/admin/questions/{question_id}", response_model=SuccessResponse)
def delete_question(
    question_id: str,
    db: DbClient = Depends(get_db_client),
    policy: AccessPolicy = Depends(get_access_policy),
):
    questions.delete_question(db, policy, question_id)
    return SuccessResponse()


@router.get("/admin/stats", response_model=AdminStatsResponse)
def admin_stats(
    db: DbClient = Depends(get_db_client),
    policy: AccessPolicy = Depends(get_access_policy),
):
    return AdminStatsResponse(**questions.admin_stats(db, policy).as_dict())


# Admin: users


@router.get("/admin/users", response_model=list[User])
def list_all_users(
    db: DbClient = Depends(get_db_client),
    policy: AccessPolicy = Depends(get_access_policy),
):
    return [User(**user.as_dict()) for user in users.list_all_users(db, policy)]


@router.post("/admin/users/{user_id}/promote", response_model=PromoteResponse)
def promote_to_admin(
    user_id: str,
    db: DbClient = Depends(get_db_client),
    policy: AccessPolicy = Depends(get_access_policy),
):
    user = users.promote_to_admin(db, policy, user_id)
    return PromoteResponse(user=user.user_id)


@router.post("/admin/users/{user_id}/role", response_model=SuccessResponse)
def update_user_role(
    user_id: str,
    payload: UpdateRoleRequest,
    db: DbClient = Depends(get_db_client),
    policy: AccessPolicy = Depends(get_access_policy),
):
    users.update_user_role(db, policy, user_id, Role(payload.role))
    return SuccessResponse()


@router.post("/admin/users/{user_id}/toggle-status", response_model=SuccessResponse)
def toggle_user_status(
    user_id: str,
    db: DbClient = Depends(get_db_client),
    policy: AccessPolicy = Depends(get_access_policy),
):
    users.toggle_user_status(db, policy, user_id)
    return SuccessResponse()


# Admin: backfill


@router.post("/admin/fix-existing-data", response_model=MigrationResponse)
def fix_existing_data(
    db: DbClient = Depends(get_db_client),
    policy: AccessPolicy = Depends(get_access_policy),
):
    admin = policy.require_admin()
    logger.info("Admin %s started fix_existing_data", admin.user_id)
    return MigrationResponse(**migrations.fix_existing_data(db).as_dict())


@router.post("/admin/migrate-data", response_model=MigrationResponse)
def migrate_data(
    db: DbClient = Depends(get_db_client),
    policy: AccessPolicy = Depends(get_access_policy),
):
    admin = policy.require_admin()
    logger.info("Admin %s started migrate_data", admin.user_id)
    return MigrationResponse(**migrations.migrate_data(db).as_dict())
