"""
Identity resolution and credentials for Happy Thoughts.

Access tokens are static, opaque strings created at sign-up. Clients send the
raw token as the ``Authorization`` header value.
"""

import logging
import secrets
from dataclasses import dataclass
from typing import Optional

import bcrypt
from pymongo.database import Database
from pymongo.errors import PyMongoError

logger = logging.getLogger(__name__)

BCRYPT_MAX_BYTES = 72
ACCESS_TOKEN_BYTES = 128


@dataclass(frozen=True)
class Identity:
    user: Optional[dict] = None

    @property
    def is_authenticated(self) -> bool:
        return self.user is not None

    @property
    def user_id(self):
        return self.user["_id"] if self.user else None


ANONYMOUS = Identity()


def resolve_identity(db: Optional[Database], token: Optional[str]) -> Identity:
    """Find the user owning ``token``.

    Never raises: a missing token, an unknown token and an unreachable store
    all resolve to the anonymous identity.
    """
    if not token:
        return ANONYMOUS
    if db is None:
        return ANONYMOUS
    try:
        user = db["user"].find_one({"accessToken": token})
    except PyMongoError as e:
        logger.warning("Access token lookup failed, continuing anonymously: %s", e)
        return ANONYMOUS
    if not user:
        return ANONYMOUS
    return Identity(user=user)


def generate_access_token() -> str:
    return secrets.token_hex(ACCESS_TOKEN_BYTES)


def _password_bytes(password: str) -> bytes:
    # bcrypt only reads the first 72 bytes
    return password.encode("utf-8")[:BCRYPT_MAX_BYTES]


def hash_password(password: str) -> str:
    return bcrypt.hashpw(_password_bytes(password), bcrypt.gensalt()).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    if not password_hash:
        return False
    try:
        return bcrypt.checkpw(_password_bytes(password), password_hash.encode("utf-8"))
    except ValueError:
        return False
