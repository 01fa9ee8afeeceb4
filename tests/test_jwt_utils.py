import jwt

from oauth.jwt_utils import (
    REFRESH_TOKEN_EXPIRE_SECONDS,
    create_access_token,
    create_refresh_token,
    verify_access_token,
    verify_refresh_token,
)

SECRET = "unit-test-secret-with-enough-bytes-for-hs256"
ISSUER = "https://mcp.example.com"


def test_access_token_claims():
    token = create_access_token("owner@example.com", SECRET, issuer=ISSUER, expires_in=3600)
    payload = verify_access_token(token, SECRET, issuer=ISSUER)

    assert payload["type"] == "access"
    assert payload["email"] == "owner@example.com"
    assert payload["sub"] == "owner@example.com"
    assert payload["exp"] - payload["iat"] == 3600


def test_refresh_token_lifetime_is_30_days():
    payload = verify_refresh_token(create_refresh_token("owner@example.com", SECRET, issuer=ISSUER), SECRET)
    assert payload["exp"] - payload["iat"] == REFRESH_TOKEN_EXPIRE_SECONDS == 30 * 24 * 60 * 60


def test_token_types_are_not_interchangeable():
    access = create_access_token("owner@example.com", SECRET, issuer=ISSUER)
    refresh = create_refresh_token("owner@example.com", SECRET, issuer=ISSUER)

    assert verify_access_token(refresh, SECRET, issuer=ISSUER) is None
    assert verify_refresh_token(access, SECRET, issuer=ISSUER) is None


def test_wrong_secret_and_wrong_issuer_are_rejected():
    token = create_access_token("owner@example.com", SECRET, issuer=ISSUER)

    assert verify_access_token(token, "a-different-secret-with-enough-bytes", issuer=ISSUER) is None
    assert verify_access_token(token, SECRET, issuer="https://elsewhere.example") is None


def test_token_without_type_claim_is_rejected():
    token = jwt.encode({"sub": "owner@example.com", "exp": 2**31}, SECRET, algorithm="HS256")
    assert verify_access_token(token, SECRET) is None
    assert verify_refresh_token(token, SECRET) is None


def test_expired_token_is_rejected():
    token = create_access_token("owner@example.com", SECRET, expires_in=-1)
    assert verify_access_token(token, SECRET) is None
