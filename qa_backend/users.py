"""
User provisioning and administration.
"""

from __future__ import annotations

import logging
from typing import Optional

from qa_backend.access import AccessPolicy
from qa_backend.db import AdminExistsError, DbClient, UserRecord
from qa_backend.errors import NotFound, Unauthenticated
from qa_backend.types import Role, effective_is_active

logger = logging.getLogger(__name__)


def current_user(policy: AccessPolicy) -> Optional[UserRecord]:
    return policy.current_user()


def store_current_user(db: DbClient, policy: AccessPolicy) -> UserRecord:
    """
    Create or refresh the caller's user record from their verified identity.

    Existing records get name, email and avatar refreshed; new records start
    as active ``user`` accounts.
    """
    identity = policy.identity
    if identity is None:
        raise Unauthenticated("Not authenticated")
    user, created = db.upsert_user_identity(
        external_id=identity.subject,
        email=identity.email or "",
        name=identity.name,
        image_url=identity.picture_url,
    )
    if created:
        logger.info("Created user %s for subject %s", user.user_id, identity.subject)
    else:
        logger.info("Updated user %s", user.user_id)
    return user


def _get_or_raise(db: DbClient, user_id: str) -> UserRecord:
    user = db.get_user(user_id)
    if user is None:
        raise NotFound("User not found")
    return user


def admin_bootstrap_open(db: DbClient) -> bool:
    """True only while no user holds the admin role."""
    return db.count_users_with_role(Role.ADMIN) == 0


def promote_to_admin(db: DbClient, policy: AccessPolicy, user_id: str) -> UserRecord:
    """
    Promote a user to an active admin.

    Requires an admin caller, except for the very first promotion: while no
    admin exists the check is skipped so the installation can be bootstrapped.
    The store re-checks the admin count in the same step as the write, so a
    caller that loses a bootstrap race falls back to the admin check.
    """
    user = None
    if admin_bootstrap_open(db):
        try:
            user = db.promote_to_admin(user_id, require_no_admin=True)
            if user is not None:
                logger.warning("No admin existed; bootstrapped %s as first admin", user_id)
        except AdminExistsError:
            logger.info("Bootstrap for %s lost to a concurrent promotion", user_id)
            policy.require_admin()
            user = db.promote_to_admin(user_id)
    else:
        policy.require_admin()
        user = db.promote_to_admin(user_id)
    if user is None:
        raise NotFound("User not found")
    logger.info("Promoted user %s to admin", user_id)
    return user


def update_user_role(
    db: DbClient, policy: AccessPolicy, user_id: str, role: Role
) -> UserRecord:
    admin = policy.require_admin()
    user = db.update_user(user_id, role=role)
    if user is None:
        raise NotFound("User not found")
    logger.info("Admin %s set role of %s to %s", admin.user_id, user_id, role.value)
    return user


def toggle_user_status(db: DbClient, policy: AccessPolicy, user_id: str) -> UserRecord:
    admin = policy.require_admin()
    user = _get_or_raise(db, user_id)
    updated = db.update_user(user_id, is_active=not effective_is_active(user))
    if updated is None:
        raise NotFound("User not found")
    logger.info(
        "Admin %s set %s active=%s", admin.user_id, user_id, updated.is_active
    )
    return updated


def list_all_users(db: DbClient, policy: AccessPolicy) -> list[UserRecord]:
    policy.require_admin()
    return db.list_users()
