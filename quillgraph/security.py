"""
Token codec and password hashing.

Tokens are stateless HS256 JWTs carrying the user id in ``sub`` and a
24-hour ``exp``.  Verification is a pure function of the token and
``settings.SECRET_KEY``; nothing is looked up in the database.

``verify_token`` distinguishes three outcomes:

- no credential, auth optional  -> ``ANONYMOUS``
- no credential, auth required  -> ``AuthenticationRequired``
- credential present but bad    -> ``InvalidCredential`` (always, even when
  auth is optional; a broken token is never silently downgraded)
"""
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

import jwt
from passlib.context import CryptContext

from quillgraph.config import settings
from quillgraph.errors import AuthenticationRequired, InvalidCredential

logger = logging.getLogger(__name__)

pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")

_BEARER_PREFIX = "bearer "


@dataclass(frozen=True)
class Identity:
    """The caller of one request.  ``user_id == ""`` means anonymous."""

    user_id: str

    @property
    def is_authenticated(self) -> bool:
        return bool(self.user_id)


ANONYMOUS = Identity(user_id="")


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(password: str, hashed: str) -> bool:
    return pwd_context.verify(password, hashed)


def bearer_token(header: str | None) -> str | None:
    """Return the token from an ``Authorization: Bearer <token>`` value."""
    if not header:
        return None
    header = header.strip()
    if header.lower() == _BEARER_PREFIX.strip():
        return None
    if header.lower().startswith(_BEARER_PREFIX):
        header = header[len(_BEARER_PREFIX):].strip()
    return header or None


def issue_token(identity: Identity | str, ttl: timedelta | None = None) -> str:
    """Sign a token for *identity* valid for ``TOKEN_TTL_HOURS`` by default."""
    user_id = identity.user_id if isinstance(identity, Identity) else identity
    if not user_id:
        raise ValueError("Cannot issue a token for an anonymous identity")
    now = datetime.now(timezone.utc)
    payload = {
        "sub": user_id,
        "iat": now,
        "exp": now + (ttl if ttl is not None else timedelta(hours=settings.TOKEN_TTL_HOURS)),
    }
    return jwt.encode(payload, settings.SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def verify_token(credential: str | None, require_auth: bool = True) -> Identity:
    if not credential:
        if require_auth:
            raise AuthenticationRequired()
        return ANONYMOUS

    try:
        payload = jwt.decode(
            credential,
            settings.SECRET_KEY,
            algorithms=[settings.JWT_ALGORITHM],
            options={"require": ["exp", "sub"]},
        )
    except jwt.ExpiredSignatureError:
        logger.debug("Rejected expired token")
        raise InvalidCredential("Token has expired")
    except jwt.InvalidTokenError as exc:
        logger.debug("Rejected invalid token: %s", exc)
        raise InvalidCredential()

    user_id = payload.get("sub")
    if not isinstance(user_id, str) or not user_id:
        raise InvalidCredential()
    return Identity(user_id=user_id)
