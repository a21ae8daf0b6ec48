"""
Dependency wiring for the FastAPI app.
"""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import Depends, Header

from qa_backend.access import AccessPolicy
from qa_backend.config import get_settings
from qa_backend.db import DbClient, InMemoryDbClient, PostgresDbClient
from qa_backend.identity import (
    ClerkJwtVerifier,
    Identity,
    IdentityVerifier,
    InMemoryIdentityVerifier,
    parse_bearer_token,
)

logger = logging.getLogger(__name__)

_db_client: DbClient | None = None
_identity_verifier: IdentityVerifier | None = None


def get_db_client() -> DbClient:
    """
    Return a singleton DB client so state persists across requests.
    """
    global _db_client
    if _db_client:
        return _db_client

    settings = get_settings()
    if settings.use_in_memory_backends or not settings.database_url:
        _db_client = InMemoryDbClient()
    else:
        _db_client = PostgresDbClient(settings.database_url)
    return _db_client


def get_identity_verifier() -> IdentityVerifier:
    global _identity_verifier
    if _identity_verifier:
        return _identity_verifier

    settings = get_settings()
    if settings.use_in_memory_backends or not settings.clerk_jwt_issuer_domain:
        if not settings.use_in_memory_backends:
            logger.warning(
                "CLERK_JWT_ISSUER_DOMAIN is not set; bearer tokens will not be verified"
            )
        _identity_verifier = InMemoryIdentityVerifier()
    else:
        _identity_verifier = ClerkJwtVerifier(
            settings.clerk_jwt_issuer_domain,
            audience=settings.clerk_jwt_audience,
            algorithms=settings.clerk_jwt_algorithms,
            cache_seconds=settings.jwks_cache_seconds,
        )
    return _identity_verifier


def get_caller_identity(
    authorization: Optional[str] = Header(None),
    verifier: IdentityVerifier = Depends(get_identity_verifier),
) -> Optional[Identity]:
    token = parse_bearer_token(authorization)
    if token is None:
        return None
    return verifier.verify(token)


def get_access_policy(
    db: DbClient = Depends(get_db_client),
    identity: Optional[Identity] = Depends(get_caller_identity),
) -> AccessPolicy:
    return AccessPolicy(db, identity)
