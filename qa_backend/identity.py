"""
Caller identity verification.

Clerk issues RS256 JWTs whose signing keys are published as a JWKS document
under the issuer domain. ``ClerkJwtVerifier`` fetches and caches that
document and verifies bearer tokens against it. ``InMemoryIdentityVerifier``
maps opaque tokens to identities for development and tests.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from typing import Dict, Optional, Protocol, Sequence

import requests
from jose import JWTError, jwt

logger = logging.getLogger(__name__)

REQUEST_TIMEOUT = 10  # seconds


@dataclass(frozen=True)
class Identity:
    """A verified principal as reported by the identity provider."""

    subject: str
    email: Optional[str] = None
    name: Optional[str] = None
    picture_url: Optional[str] = None

    @classmethod
    def from_claims(cls, claims: dict) -> "Identity":
        return cls(
            subject=str(claims["sub"]),
            email=claims.get("email"),
            name=claims.get("name"),
            picture_url=claims.get("picture_url") or claims.get("picture"),
        )


class IdentityVerifier(Protocol):
    """Resolves a bearer token to an identity, or ``None`` if it is not valid."""

    def verify(self, token: str) -> Optional[Identity]:
        ...


class InMemoryIdentityVerifier:
    """Test double: tokens are registered ahead of time."""

    def __init__(self):
        self.tokens: Dict[str, Identity] = {}

    def register(self, token: str, identity: Identity) -> None:
        self.tokens[token] = identity

    def reset(self) -> None:
        self.tokens.clear()

    def verify(self, token: str) -> Optional[Identity]:
        return self.tokens.get(token)


def normalize_issuer(domain: str) -> str:
    issuer = domain.strip().rstrip("/")
    if not issuer.startswith(("http://", "https://")):
        issuer = f"https://{issuer}"
    return issuer


class ClerkJwtVerifier:
    def __init__(
        self,
        issuer_domain: str,
        *,
        audience: Optional[str] = "convex",
        algorithms: Sequence[str] = ("RS256",),
        cache_seconds: int = 3600,
    ):
        self.issuer = normalize_issuer(issuer_domain)
        self.jwks_url = f"{self.issuer}/.well-known/jwks.json"
        self.audience = audience
        self.algorithms = list(algorithms)
        self.cache_seconds = cache_seconds
        self._jwks: Optional[dict] = None
        self._fetched_at = 0.0
        self._lock = threading.Lock()

    def _fetch_jwks(self) -> dict:
        response = requests.get(self.jwks_url, timeout=REQUEST_TIMEOUT)
        response.raise_for_status()
        return response.json()

    def _get_jwks(self, *, force: bool = False) -> dict:
        with self._lock:
            expired = time.time() - self._fetched_at > self.cache_seconds
            if force or self._jwks is None or expired:
                self._jwks = self._fetch_jwks()
                self._fetched_at = time.time()
            return self._jwks

    def _signing_keys(self, kid: Optional[str]) -> dict:
        jwks = self._get_jwks()
        if kid is None:
            return jwks
        keys = [key for key in jwks.get("keys", []) if key.get("kid") == kid]
        if not keys:
            # Key rotation: refresh once before giving up.
            jwks = self._get_jwks(force=True)
            keys = [key for key in jwks.get("keys", []) if key.get("kid") == kid]
        return {"keys": keys}

    def verify(self, token: str) -> Optional[Identity]:
        try:
            header = jwt.get_unverified_header(token)
            keys = self._signing_keys(header.get("kid"))
            claims = jwt.decode(
                token,
                keys,
                algorithms=self.algorithms,
                audience=self.audience,
                issuer=self.issuer,
                options={"verify_aud": self.audience is not None},
            )
        except JWTError as e:
            logger.warning("Rejected bearer token: %s", e)
            return None
        except requests.RequestException as e:
            logger.error("Could not fetch JWKS from %s: %s", self.jwks_url, e)
            return None
        if not claims.get("sub"):
            logger.warning("Rejected bearer token: missing sub claim")
            return None
        return Identity.from_claims(claims)


def parse_bearer_token(authorization: Optional[str]) -> Optional[str]:
    if not authorization:
        return None
    parts = authorization.split()
    if len(parts) != 2 or parts[0].lower() != "bearer":
        return None
    return parts[1]
