import hashlib
import hmac
import secrets
from datetime import datetime, timezone

import bcrypt

REFRESH_TOKEN_BYTES = 32


def now_utc() -> datetime:
    return datetime.now(timezone.utc)


def otp_hash(code: str, pepper: str) -> str:
    # Stable hash for OTP verification (peppered)
    raw = (pepper + ":" + code).encode("utf-8")
    return hashlib.sha256(raw).hexdigest()


def verify_otp(code: str, pepper: str, code_hash: str) -> bool:
    return hmac.compare_digest(otp_hash(code, pepper), code_hash)


def random_otp_code() -> str:
    # 6 digits
    return f"{secrets.randbelow(1_000_000):06d}"


def random_refresh_token() -> str:
    return secrets.token_urlsafe(REFRESH_TOKEN_BYTES)


def hash_refresh_token(token: str, pepper: str = "") -> str:
    raw = (pepper + ":" + token).encode("utf-8")
    return hashlib.sha256(raw).hexdigest()


def hash_password(password: str) -> str:
    raw = password.encode("utf-8")
    return bcrypt.hashpw(raw, bcrypt.gensalt()).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        # malformed stored hash
        return False
