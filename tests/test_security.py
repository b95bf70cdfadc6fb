from datetime import timedelta

import pytest

from eduai.core.config import Settings
from eduai.core.errors import AuthError
from eduai.core.security import (
    create_access_token,
    decode_token,
    get_password_hash,
    verify_password,
)


@pytest.fixture
def settings():
    return Settings(_env_file=None, JWT_SECRET="unit-secret", DATABASE_URL="sqlite://")


def test_password_hash_uses_bcrypt_cost_10():
    hashed = get_password_hash("secret1")
    assert hashed.startswith("$2b$10$")
    assert verify_password("secret1", hashed)
    assert not verify_password("secret2", hashed)


def test_hashes_are_salted():
    assert get_password_hash("secret1") != get_password_hash("secret1")


def test_long_passwords_are_truncated_consistently():
    password = "é" * 100
    hashed = get_password_hash(password)
    assert verify_password(password, hashed)


def test_token_carries_identity_claims(settings):
    token = create_access_token(7, "ana@x.com", "Ana", settings)
    payload = decode_token(token, settings)
    assert payload["sub"] == "7"
    assert payload["email"] == "ana@x.com"
    assert payload["name"] == "Ana"
    assert "exp" in payload


def test_expired_token_is_rejected(settings):
    token = create_access_token(7, "ana@x.com", "Ana", settings, expires_delta=timedelta(seconds=-5))
    with pytest.raises(AuthError):
        decode_token(token, settings)


def test_token_signed_with_other_secret_is_rejected(settings):
    other = Settings(_env_file=None, JWT_SECRET="other-secret", DATABASE_URL="sqlite://")
    token = create_access_token(7, "ana@x.com", "Ana", other)
    with pytest.raises(AuthError):
        decode_token(token, settings)


def test_garbage_token_is_rejected(settings):
    with pytest.raises(AuthError):
        decode_token("not-a-jwt", settings)
