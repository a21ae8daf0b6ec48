import base64
import time
import unittest
from unittest.mock import MagicMock, patch

import requests
from jose import jwt

from qa_backend.identity import (
    ClerkJwtVerifier,
    Identity,
    InMemoryIdentityVerifier,
    normalize_issuer,
    parse_bearer_token,
)

SECRET = "test-signing-secret-with-enough-length"
ISSUER = "https://clerk.example.test"


def _jwks(kid="key-1"):
    k = base64.urlsafe_b64encode(SECRET.encode("utf-8")).rstrip(b"=").decode("ascii")
    return {"keys": [{"kty": "oct", "kid": kid, "alg": "HS256", "k": k}]}


def _token(kid="key-1", **overrides):
    claims = {
        "sub": "user_abc",
        "iss": ISSUER,
        "aud": "convex",
        "exp": int(time.time()) + 300,
        "email": "user@example.com",
        "name": "Test User",
        "picture": "https://img.example.test/u.png",
    }
    claims.update(overrides)
    return jwt.encode(claims, SECRET, algorithm="HS256", headers={"kid": kid})


def _response(payload):
    response = MagicMock()
    response.json.return_value = payload
    response.raise_for_status.return_value = None
    return response


class ClerkJwtVerifierTests(unittest.TestCase):
    def setUp(self):
        self.verifier = ClerkJwtVerifier(
            "clerk.example.test/", algorithms=["HS256"], cache_seconds=3600
        )

    @patch("qa_backend.identity.requests.get")
    def test_valid_token(self, mock_get):
        mock_get.return_value = _response(_jwks())
        identity = self.verifier.verify(_token())
        self.assertEqual(
            identity,
            Identity(
                subject="user_abc",
                email="user@example.com",
                name="Test User",
                picture_url="https://img.example.test/u.png",
            ),
        )
        mock_get.assert_called_once_with(
            "https://clerk.example.test/.well-known/jwks.json", timeout=10
        )

    @patch("qa_backend.identity.requests.get")
    def test_jwks_is_cached(self, mock_get):
        mock_get.return_value = _response(_jwks())
        self.verifier.verify(_token())
        self.verifier.verify(_token())
        self.assertEqual(mock_get.call_count, 1)

    @patch("qa_backend.identity.requests.get")
    def test_unknown_kid_refreshes_once(self, mock_get):
        mock_get.side_effect = [_response(_jwks("old")), _response(_jwks("new"))]
        identity = self.verifier.verify(_token(kid="new"))
        self.assertEqual(identity.subject, "user_abc")
        self.assertEqual(mock_get.call_count, 2)

    @patch("qa_backend.identity.requests.get")
    def test_rejects_bad_claims(self, mock_get):
        mock_get.return_value = _response(_jwks())
        self.assertIsNone(self.verifier.verify(_token(exp=int(time.time()) - 60)))
        self.assertIsNone(self.verifier.verify(_token(iss="https://evil.example.test")))
        self.assertIsNone(self.verifier.verify(_token(aud="other")))
        self.assertIsNone(self.verifier.verify("not-a-jwt"))

    @patch("qa_backend.identity.requests.get")
    def test_rejects_wrong_signature(self, mock_get):
        mock_get.return_value = _response(_jwks())
        forged = jwt.encode(
            {"sub": "x", "iss": ISSUER, "aud": "convex"},
            "another-secret-of-some-length",
            algorithm="HS256",
            headers={"kid": "key-1"},
        )
        self.assertIsNone(self.verifier.verify(forged))

    @patch("qa_backend.identity.requests.get")
    def test_jwks_fetch_failure_is_anonymous(self, mock_get):
        mock_get.side_effect = requests.ConnectionError("down")
        self.assertIsNone(self.verifier.verify(_token()))


class HelperTests(unittest.TestCase):
    def test_parse_bearer_token(self):
        self.assertEqual(parse_bearer_token("Bearer abc"), "abc")
        self.assertEqual(parse_bearer_token("bearer abc"), "abc")
        self.assertIsNone(parse_bearer_token(None))
        self.assertIsNone(parse_bearer_token("Basic abc"))
        self.assertIsNone(parse_bearer_token("Bearer"))

    def test_normalize_issuer(self):
        self.assertEqual(normalize_issuer("clerk.example.test"), ISSUER)
        self.assertEqual(normalize_issuer("https://clerk.example.test/"), ISSUER)

    def test_in_memory_verifier(self):
        verifier = InMemoryIdentityVerifier()
        identity = Identity(subject="s")
        verifier.register("token", identity)
        self.assertEqual(verifier.verify("token"), identity)
        self.assertIsNone(verifier.verify("other"))


if __name__ == "__main__":
    unittest.main()
