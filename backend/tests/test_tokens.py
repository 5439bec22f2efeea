import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from jose import jwt

from journal_auth.core.config import Settings
from journal_auth.core.errors import InvalidToken, TokenExpired
from journal_auth.core.tokens import TokenSigner
from tests.testkit import TEST_SECRET, build_signer


def test_sign_and_verify_roundtrip():
    signer = build_signer()
    token = signer.sign("0b7c1d1e-0000-4000-8000-000000000001", "a@example.com", "user")
    claims = signer.verify(token)
    assert claims.user_id == "0b7c1d1e-0000-4000-8000-000000000001"
    assert claims.email == "a@example.com"
    assert claims.role == "user"
    assert signer.lifetime_seconds == 900


def test_expired_token():
    signer = build_signer(access_minutes=-1)
    token = signer.sign("u1", "a@example.com", "user")
    with pytest.raises(TokenExpired):
        signer.verify(token)


def test_tampered_token_is_invalid():
    signer = build_signer()
    token = signer.sign("u1", "a@example.com", "user")
    other = TokenSigner(
        algorithm="HS256",
        signing_key="another-secret",
        verifying_key="another-secret",
        access_minutes=15,
        issuer="journal-auth-tests",
    )
    with pytest.raises(InvalidToken):
        other.verify(token)
    with pytest.raises(InvalidToken):
        signer.verify(token + "x")


def test_non_access_token_is_invalid():
    signer = build_signer()
    forged = jwt.encode(
        {"sub": "u1", "type": "refresh", "iss": "journal-auth-tests"}, TEST_SECRET, algorithm="HS256"
    )
    with pytest.raises(InvalidToken):
        signer.verify(forged)


def test_rs256_from_settings(tmp_path):
    key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    private_pem = key.private_bytes(
        serialization.Encoding.PEM,
        serialization.PrivateFormat.PKCS8,
        serialization.NoEncryption(),
    )
    public_pem = key.public_key().public_bytes(
        serialization.Encoding.PEM,
        serialization.PublicFormat.SubjectPublicKeyInfo,
    )
    (tmp_path / "jwt_private.pem").write_bytes(private_pem)
    (tmp_path / "jwt_public.pem").write_bytes(public_pem)

    cfg = Settings(
        JWT_PRIVATE_KEY_PATH=str(tmp_path / "jwt_private.pem"),
        JWT_PUBLIC_KEY_PATH=str(tmp_path / "jwt_public.pem"),
    )
    signer = TokenSigner.from_settings(cfg)
    assert signer.algorithm == "RS256"
    claims = signer.verify(signer.sign("u1", "a@example.com", "admin"))
    assert claims.role == "admin"


def test_hs256_is_default():
    assert Settings(JWT_ALGORITHM=None).jwt_algorithm == "HS256"
