"""
Access policy: resolves the caller to a user record and gates operations.
"""

from __future__ import annotations

from typing import Optional

from qa_backend.db import DbClient, UserRecord
from qa_backend.errors import AccountDisabled, Forbidden, Unauthenticated
from qa_backend.identity import Identity
from qa_backend.types import effective_is_active, is_active_admin


class AccessPolicy:
    """
    Authorization checks for a single call.

    The caller's user record is looked up once per check so a role or status
    change made earlier in the same request is observed.
    """

    def __init__(self, db: DbClient, identity: Optional[Identity]):
        self.db = db
        self.identity = identity

    def current_user(self) -> Optional[UserRecord]:
        if self.identity is None:
            return None
        return self.db.get_user_by_external_id(self.identity.subject)

    def is_admin(self) -> bool:
        return is_active_admin(self.current_user())

    def require_authenticated(self) -> UserRecord:
        user = self.current_user()
        if user is None:
            raise Unauthenticated()
        if not effective_is_active(user):
            raise AccountDisabled()
        return user

    def require_admin(self) -> UserRecord:
        user = self.current_user()
        if user is None:
            raise Unauthenticated()
        if not is_active_admin(user):
            raise Forbidden("Admin access required")
        return user

    def require_owner_or_admin(self, owner_id: Optional[str]) -> UserRecord:
        user = self.current_user()
        if user is None:
            raise Unauthenticated()
        is_owner = owner_id is not None and user.user_id == owner_id
        if not is_owner and not is_active_admin(user):
            raise Forbidden()
        return user
