"""
Pydantic schemas for the Q&A API.

Field names are camelCase to match what the web front-end sends and reads.
"""

from __future__ import annotations

from typing import Literal, Optional

from pydantic import BaseModel, Field


class Question(BaseModel):
    id: str
    question: str
    answer: str
    category: str
    tags: list[str]
    views: int
    helpful: int
    createdAt: int
    userId: Optional[str] = None
    status: Literal["pending", "approved", "rejected"]
    source: Literal["admin", "user"]
    answeredBy: Optional[str] = None
    answeredAt: Optional[int] = None
    rejectionReason: Optional[str] = None


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    totalPages: int
    hasNext: bool
    hasPrev: bool


class QuestionPageResponse(BaseModel):
    questions: list[Question]
    pagination: Pagination


class CategoryCount(BaseModel):
    name: str
    count: int


class User(BaseModel):
    id: str
    externalId: str
    email: str
    name: Optional[str] = None
    imageUrl: Optional[str] = None
    role: Literal["user", "admin"]
    isActive: bool
    creationTime: float


class SubmitQuestionRequest(BaseModel):
    question: str = Field(..., min_length=1, max_length=4000)
    category: str = Field(..., min_length=1, max_length=128)
    tags: list[str] = Field(default_factory=list)


class CreateQuestionResponse(BaseModel):
    questionId: str
    success: bool = True


class AnswerQuestionRequest(BaseModel):
    answer: str = Field(..., min_length=1)
    tags: Optional[list[str]] = None


class RejectQuestionRequest(BaseModel):
    rejectionReason: str = Field(..., min_length=1, max_length=1024)


class CreateAdminQuestionRequest(BaseModel):
    question: str = Field(..., min_length=1, max_length=4000)
    answer: str = Field(..., min_length=1)
    category: str = Field(..., min_length=1, max_length=128)
    tags: list[str] = Field(default_factory=list)


class SuccessResponse(BaseModel):
    success: Literal[True] = True


class PromoteResponse(BaseModel):
    success: Literal[True] = True
    user: str


class UpdateRoleRequest(BaseModel):
    role: Literal["user", "admin"]


class AdminStatsResponse(BaseModel):
    total: int
    pending: int
    approved: int
    rejected: int
    userQuestions: int
    adminQuestions: int
    totalViews: int
    totalHelpful: int


class MigrationResponse(BaseModel):
    success: bool
    usersTotal: int
    usersUpdated: int
    questionsTotal: int
    questionsUpdated: int
    message: Optional[str] = None
