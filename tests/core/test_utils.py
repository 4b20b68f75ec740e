"""
Test suite for security and time helpers.

Run tests:
    pytest tests/core/test_utils.py -v
"""

from datetime import datetime, timedelta, timezone
from unittest.mock import patch

import pytest

from taskgate.core.utils import (
    as_utc,
    create_jwt_token,
    decode_jwt_token,
    generate_otp_code,
    hash_password,
    hmac_hash_otp,
    normalize_email,
    verify_password,
)


class TestPasswordHashing:
    def test_hash_and_verify(self):
        hashed = hash_password("correct-horse")

        assert hashed.startswith("$2b$")
        assert verify_password("correct-horse", hashed) is True
        assert verify_password("wrong-horse", hashed) is False

    def test_hash_password_rejects_none(self):
        with pytest.raises(ValueError):
            hash_password(None)

    def test_verify_password_invalid_input(self):
        assert verify_password(None, "hash") is False
        assert verify_password("password", None) is False
        assert verify_password("password", "not-a-bcrypt-hash") is False


class TestOtpHelpers:
    def test_generate_otp_code_length_and_digits(self):
        for _ in range(50):
            code = generate_otp_code(6)
            assert len(code) == 6
            assert code.isdigit()

    def test_generate_otp_code_keeps_leading_zeros(self):
        with patch("taskgate.core.utils.secrets.randbelow", return_value=42):
            assert generate_otp_code(6) == "000042"

    def test_hmac_hash_is_deterministic_and_not_the_code(self):
        first = hmac_hash_otp("123456", "secret")
        second = hmac_hash_otp("123456", "secret")

        assert first == second
        assert len(first) == 64
        assert first != "123456"
        assert hmac_hash_otp("123456", "other-secret") != first

    def test_hmac_hash_rejects_empty_values(self):
        with pytest.raises(ValueError):
            hmac_hash_otp("", "secret")
        with pytest.raises(ValueError):
            hmac_hash_otp("123456", None)


class TestJwt:
    def test_round_trip(self):
        token = create_jwt_token(
            {"sub": "user-1"}, "secret", "HS256", timedelta(minutes=5)
        )
        claims = decode_jwt_token(token, "secret", "HS256")

        assert claims is not None
        assert claims["sub"] == "user-1"
        assert {"exp", "iat", "jti"} <= set(claims)

    def test_expired_token_is_rejected(self):
        token = create_jwt_token(
            {"sub": "user-1"}, "secret", "HS256", timedelta(seconds=-1)
        )
        assert decode_jwt_token(token, "secret", "HS256") is None

    def test_wrong_secret_is_rejected(self):
        token = create_jwt_token(
            {"sub": "user-1"}, "secret", "HS256", timedelta(minutes=5)
        )
        assert decode_jwt_token(token, "another", "HS256") is None

    def test_empty_token(self):
        assert decode_jwt_token("", "secret", "HS256") is None

    def test_create_rejects_none(self):
        with pytest.raises(ValueError):
            create_jwt_token(None, "secret", "HS256", timedelta(minutes=5))


class TestMisc:
    def test_normalize_email(self):
        assert normalize_email("  Ada@Example.COM ") == "ada@example.com"

    def test_as_utc(self):
        naive = datetime(2026, 1, 1, 12, 0)
        assert as_utc(naive) == datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)
        assert as_utc(None) is None
