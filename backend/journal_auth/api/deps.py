import uuid
from dataclasses import dataclass
from functools import lru_cache

from fastapi import Depends, HTTPException, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from journal_auth.core.config import settings
from journal_auth.core.errors import AuthError
from journal_auth.core.security import now_utc
from journal_auth.core.tokens import TokenSigner
from journal_auth.db.session import get_db
from journal_auth.repositories.sql import (
    SqlAuthEventRepository,
    SqlOTPRepository,
    SqlRefreshTokenRepository,
    SqlUserRepository,
)
from journal_auth.services.credentials import CredentialPolicy, CredentialService
from journal_auth.services.mailer import OTPMailer, build_mailer
from journal_auth.services.rate_limit import FixedWindowRateLimiter

bearer = HTTPBearer()


@dataclass(frozen=True)
class ClientMeta:
    ip: str | None
    user_agent: str | None


@dataclass(frozen=True)
class Principal:
    user_id: uuid.UUID
    email: str
    role: str


@lru_cache
def get_signer() -> TokenSigner:
    return TokenSigner.from_settings(settings)


@lru_cache
def get_mailer() -> OTPMailer:
    return build_mailer(settings)


@lru_cache
def get_rate_limiter() -> FixedWindowRateLimiter:
    return FixedWindowRateLimiter(settings.RATE_LIMIT_REQUESTS, settings.RATE_LIMIT_WINDOW_SECONDS)


def get_credential_service(
    db: Session = Depends(get_db),
    signer: TokenSigner = Depends(get_signer),
    mailer: OTPMailer = Depends(get_mailer),
) -> CredentialService:
    return CredentialService(
        users=SqlUserRepository(db),
        otps=SqlOTPRepository(db),
        refresh_tokens=SqlRefreshTokenRepository(db),
        events=SqlAuthEventRepository(db),
        signer=signer,
        mailer=mailer,
        policy=CredentialPolicy.from_settings(settings),
    )


def client_ip(request: Request) -> str | None:
    ip = request.headers.get("x-real-ip")
    if not ip:
        forwarded = request.headers.get("x-forwarded-for")
        if forwarded:
            ip = forwarded.split(",")[0].strip()
    if not ip and request.client:
        ip = request.client.host
    return ip or None


def get_client_meta(request: Request) -> ClientMeta:
    return ClientMeta(ip=client_ip(request), user_agent=request.headers.get("user-agent"))


def rate_limit(request: Request, limiter: FixedWindowRateLimiter = Depends(get_rate_limiter)) -> None:
    now = now_utc()
    limiter.sweep_if_due(now)
    if not limiter.allow(client_ip(request) or "unknown", now):
        raise HTTPException(status_code=429, detail="Rate limit exceeded")


def get_principal(
    creds: HTTPAuthorizationCredentials = Depends(bearer),
    signer: TokenSigner = Depends(get_signer),
) -> Principal:
    try:
        claims = signer.verify(creds.credentials)
        user_id = uuid.UUID(claims.user_id)
    except (AuthError, ValueError):
        raise HTTPException(status_code=401, detail="Invalid token")
    return Principal(user_id=user_id, email=claims.email, role=claims.role)
