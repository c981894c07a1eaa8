"""
Identity resolution tests
=========================

Tokens are matched exactly against stored users; every failure degrades to
the anonymous identity instead of raising.
"""

from unittest.mock import MagicMock

from bson import ObjectId
from pymongo.errors import ServerSelectionTimeoutError

from auth import (
    ANONYMOUS,
    generate_access_token,
    hash_password,
    resolve_identity,
    verify_password,
)


class TestResolveIdentity:
    def test_absent_token_skips_lookup(self):
        db = MagicMock()
        assert resolve_identity(db, None) is ANONYMOUS
        assert resolve_identity(db, "") is ANONYMOUS
        db.__getitem__.assert_not_called()

    def test_matching_token(self, db):
        user_id = db["user"].insert_one({"name": "Alice", "accessToken": "abc123"}).inserted_id
        identity = resolve_identity(db, "abc123")
        assert identity.is_authenticated
        assert identity.user_id == user_id

    def test_match_is_exact_and_case_sensitive(self, db):
        db["user"].insert_one({"name": "Alice", "accessToken": "abc123"})
        assert not resolve_identity(db, "ABC123").is_authenticated
        assert not resolve_identity(db, "Bearer abc123").is_authenticated
        assert not resolve_identity(db, "abc12").is_authenticated

    def test_store_failure_is_anonymous(self):
        db = MagicMock()
        db["user"].find_one.side_effect = ServerSelectionTimeoutError("no servers")
        identity = resolve_identity(db, "abc123")
        assert identity is ANONYMOUS
        assert identity.user_id is None

    def test_no_database_is_anonymous(self):
        assert resolve_identity(None, "abc123") is ANONYMOUS


class TestCredentials:
    def test_hash_round_trip(self):
        hashed = hash_password("hunter22")
        assert hashed != "hunter22"
        assert verify_password("hunter22", hashed)
        assert not verify_password("hunter23", hashed)

    def test_hash_is_bcrypt(self):
        assert hash_password("hunter22").startswith("$2b$")

    def test_only_first_72_bytes_count(self):
        long_password = "x" * 72
        hashed = hash_password(long_password + "tail")
        assert verify_password(long_password, hashed)

    def test_hash_is_salted(self):
        assert hash_password("same") != hash_password("same")

    def test_malformed_hash_never_verifies(self):
        assert not verify_password("x", "")
        assert not verify_password("x", "plaintext")
        assert not verify_password("x", "md5$1$salt$abc")
        assert not verify_password("x", "pbkdf2_sha256$many$salt$abc")

    def test_access_tokens_are_unique_hex(self):
        token = generate_access_token()
        assert len(token) == 256
        int(token, 16)
        assert token != generate_access_token()
