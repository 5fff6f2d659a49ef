"""Token codec and password hashing."""
from datetime import datetime, timedelta, timezone

import jwt
import pytest

from quillgraph.config import settings
from quillgraph.errors import AuthenticationRequired, InvalidCredential
from quillgraph.security import (
    ANONYMOUS,
    Identity,
    bearer_token,
    hash_password,
    issue_token,
    verify_password,
    verify_token,
)


def test_issue_then_verify_returns_same_identity():
    token = issue_token(Identity(user_id="u-1"))
    assert verify_token(token) == Identity(user_id="u-1")


def test_issue_accepts_plain_user_id():
    assert verify_token(issue_token("u-2")).user_id == "u-2"


def test_issue_for_anonymous_is_rejected():
    with pytest.raises(ValueError):
        issue_token(ANONYMOUS)


def test_missing_credential_required_raises_unauthenticated():
    with pytest.raises(AuthenticationRequired) as exc:
        verify_token(None, require_auth=True)
    assert exc.value.extensions == {"code": "UNAUTHENTICATED"}


def test_missing_credential_optional_is_anonymous():
    identity = verify_token(None, require_auth=False)
    assert identity == ANONYMOUS
    assert identity.is_authenticated is False


def test_garbage_credential_is_invalid_even_when_optional():
    with pytest.raises(InvalidCredential):
        verify_token("not-a-jwt", require_auth=False)


def test_token_signed_with_other_key_is_invalid():
    forged = jwt.encode(
        {"sub": "u-1", "exp": datetime.now(timezone.utc) + timedelta(hours=1)},
        "some-other-secret-key-with-enough-length",
        algorithm="HS256",
    )
    with pytest.raises(InvalidCredential):
        verify_token(forged)


def test_expired_token_is_invalid():
    token = issue_token("u-1", ttl=timedelta(seconds=-5))
    with pytest.raises(InvalidCredential) as exc:
        verify_token(token)
    assert "expired" in exc.value.message


def test_token_without_subject_is_invalid():
    token = jwt.encode(
        {"exp": datetime.now(timezone.utc) + timedelta(hours=1)},
        settings.SECRET_KEY,
        algorithm=settings.JWT_ALGORITHM,
    )
    with pytest.raises(InvalidCredential):
        verify_token(token)


def test_default_ttl_is_24_hours():
    payload = jwt.decode(
        issue_token("u-1"), settings.SECRET_KEY, algorithms=[settings.JWT_ALGORITHM]
    )
    assert payload["exp"] - payload["iat"] == settings.TOKEN_TTL_HOURS * 3600


@pytest.mark.parametrize(
    "header,expected",
    [
        ("Bearer abc", "abc"),
        ("bearer abc", "abc"),
        ("  Bearer   abc ", "abc"),
        ("abc", "abc"),
        ("Bearer ", None),
        ("", None),
        (None, None),
    ],
)
def test_bearer_token_extraction(header, expected):
    assert bearer_token(header) == expected


def test_password_hash_round_trip():
    hashed = hash_password("secret123")
    assert hashed != "secret123"
    assert verify_password("secret123", hashed)
    assert not verify_password("wrong", hashed)
