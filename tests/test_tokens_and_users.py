from datetime import datetime, timedelta, timezone

import jwt
import pytest

from testmgmt.models.user import UserRole
from testmgmt.services.tokens import TokenError, TokenIssuer
from testmgmt.services.users import verify_password

SECRET = "unit-test-secret-with-enough-length-123"


def test_access_token_roundtrip():
    issuer = TokenIssuer(SECRET)
    token = issuer.create_access_token(7, "alice@x.com", "tester")

    data = issuer.decode_access_token(token)
    assert (data.user_id, data.email, data.role) == (7, "alice@x.com", "tester")


def test_refresh_token_is_not_an_access_token():
    issuer = TokenIssuer(SECRET)
    refresh = issuer.create_refresh_token(7, "alice@x.com", "tester")

    with pytest.raises(TokenError, match="Invalid token type"):
        issuer.decode_access_token(refresh)
    assert issuer.decode_refresh_token(refresh).user_id == 7


def test_expired_and_garbage_tokens_are_rejected():
    issuer = TokenIssuer(SECRET)
    past = datetime.now(timezone.utc) - timedelta(hours=1)
    expired = jwt.encode(
        {"sub": "1", "type": "access", "exp": int(past.timestamp())},
        SECRET,
        algorithm="HS256",
    )

    with pytest.raises(TokenError, match="expired"):
        issuer.decode_access_token(expired)
    with pytest.raises(TokenError, match="Invalid token"):
        issuer.decode_access_token("invalid-token")


def test_missing_secret_refuses_to_sign():
    with pytest.raises(TokenError):
        TokenIssuer("").create_access_token(1, "alice@x.com", "viewer")
    with pytest.raises(TokenError, match="not configured"):
        TokenIssuer("").ensure_configured()


def test_create_user_hashes_password_and_rejects_duplicates(user_store):
    entry = user_store.create_user("alice@x.com", "Secret123", UserRole.tester)

    assert entry.password_hash != "Secret123"
    assert verify_password(entry.password_hash, "Secret123")
    assert entry.email_verified is False
    assert entry.role is UserRole.tester

    with pytest.raises(ValueError, match="Email already in use"):
        user_store.create_user("alice@x.com", "Other123")


def test_authenticate_and_password_change(user_store):
    entry = user_store.create_user("bob@x.com", "Secret123")

    assert user_store.authenticate("bob@x.com", "Secret123").id == entry.id
    assert user_store.authenticate("bob@x.com", "wrong") is None
    assert user_store.authenticate("nobody@x.com", "Secret123") is None

    user_store.set_password(entry.id, "Changed456")
    assert user_store.authenticate("bob@x.com", "Secret123") is None
    assert user_store.authenticate("bob@x.com", "Changed456") is not None


def test_mark_email_verified(user_store):
    entry = user_store.create_user("carol@x.com", "Secret123")

    assert user_store.mark_email_verified(entry.id).email_verified is True
    assert user_store.get_user(entry.id).email_verified is True
    with pytest.raises(ValueError, match="User not found"):
        user_store.mark_email_verified(9999)
