import time

import jwt
import pytest

from app.core.jwt import SessionTokenService
from app.core.security import generate_verification_code, hash_password, text_hash, verify_password


def test_password_round_trip():
    hashed = hash_password("s3cret!pass", rounds=4)

    assert hashed != "s3cret!pass"
    assert verify_password("s3cret!pass", hashed)
    assert not verify_password("wrong!pass1", hashed)


def test_malformed_hash_does_not_verify():
    assert verify_password("anything", "not-a-bcrypt-hash") is False


def test_overlong_password_does_not_verify():
    hashed = hash_password("s3cret!pass", rounds=4)

    assert verify_password("x" * 100, hashed) is False


def test_verification_code_is_six_digits():
    code = generate_verification_code()

    assert len(code) == 6
    assert code.isdigit()


def test_text_hash_is_md5_hex():
    assert text_hash("hello") == "5d41402abc4b2a76b9719d911017c592"


@pytest.fixture
def tokens():
    return SessionTokenService(secret="unit-test-secret-long-enough-for-hs256", max_age=60)


@pytest.mark.asyncio
async def test_issue_and_verify(tokens):
    token = tokens.issue_token("2b1f6a52-6f5c-4c1a-9f5e-0c6a1c1e7a11", "a@example.com", "Resident", "A")

    claims = await tokens.verify_token(token)

    assert claims.sub == "2b1f6a52-6f5c-4c1a-9f5e-0c6a1c1e7a11"
    assert claims.role == "Resident"
    assert claims.exp - claims.iat == 60


@pytest.mark.asyncio
async def test_tampered_token_is_rejected(tokens):
    other = SessionTokenService(secret="a-different-secret-also-long-enough")
    token = other.issue_token("id", "a@example.com", "Admin")

    with pytest.raises(jwt.InvalidTokenError):
        await tokens.verify_token(token)


@pytest.mark.asyncio
async def test_expired_token_is_rejected(tokens):
    now = int(time.time())
    token = jwt.encode(
        {"sub": "id", "email": "a@example.com", "role": "Guest", "iat": now - 120, "exp": now - 60},
        tokens.secret,
        algorithm="HS256",
    )

    with pytest.raises(jwt.ExpiredSignatureError):
        await tokens.verify_token(token)
