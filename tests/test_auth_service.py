import datetime as dt

import pytest
from jose import jwt

from keepthisfile.services.auth_service import ISSUER, CredentialVerifier, Identity, extract_token


def test_mint_and_verify(verifier):
    token = verifier.mint("user-1", "user@example.com")

    assert verifier.verify(token) == Identity(user_id="user-1", email="user@example.com")


def test_token_lifetime_is_seven_days(verifier):
    claims = jwt.get_unverified_claims(verifier.mint("user-1", "user@example.com"))

    assert claims["exp"] - claims["iat"] == 7 * 24 * 3600


@pytest.mark.parametrize("token", [None, "", "garbage", "a.b.c"])
def test_verify_rejects_malformed_tokens(verifier, token):
    assert verifier.verify(token) is None


def test_verify_rejects_other_secret(verifier):
    token = CredentialVerifier("another-secret").mint("user-1", "user@example.com")

    assert verifier.verify(token) is None


def test_verify_rejects_expired_token(verifier):
    now = dt.datetime.now(dt.timezone.utc)
    token = jwt.encode(
        {
            "iss": ISSUER,
            "sub": "user-1",
            "email": "user@example.com",
            "iat": int((now - dt.timedelta(days=8)).timestamp()),
            "exp": int((now - dt.timedelta(days=1)).timestamp()),
        },
        "test-secret",
        algorithm="HS256",
    )

    assert verifier.verify(token) is None


def test_verify_requires_identity_claims(verifier):
    token = jwt.encode({"iss": ISSUER, "sub": "user-1"}, "test-secret", algorithm="HS256")

    assert verifier.verify(token) is None


@pytest.mark.parametrize("authorization, cookie, expected", [
    ("Bearer abc", None, "abc"),
    ("bearer abc", "cookie-token", "abc"),
    (None, "cookie-token", "cookie-token"),
    ("Basic xyz", "cookie-token", "cookie-token"),
    ("Bearer ", None, None),
    (None, None, None),
])
def test_extract_token(authorization, cookie, expected):
    assert extract_token(authorization, cookie) == expected
