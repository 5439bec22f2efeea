from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from pathlib import Path

from jose import ExpiredSignatureError, JWTError, jwt

from journal_auth.core.config import Settings
from journal_auth.core.errors import InvalidToken, SigningError, TokenExpired
from journal_auth.core.security import now_utc

ACCESS_TOKEN_TYPE = "access"


@dataclass(frozen=True)
class AccessClaims:
    user_id: str
    email: str
    role: str
    expires_at: datetime


class TokenSigner:
    """Issues and verifies short-lived access tokens.

    With an asymmetric algorithm ``signing_key`` is the private key PEM and
    ``verifying_key`` the public key PEM; with HMAC both are the shared secret.
    """

    def __init__(
        self,
        *,
        algorithm: str,
        signing_key: str,
        verifying_key: str,
        access_minutes: int,
        issuer: str | None = None,
    ) -> None:
        self.algorithm = algorithm
        self._signing_key = signing_key
        self._verifying_key = verifying_key
        self.access_lifetime = timedelta(minutes=access_minutes)
        self.issuer = issuer

    @classmethod
    def from_settings(cls, cfg: Settings) -> "TokenSigner":
        algorithm = cfg.jwt_algorithm
        if algorithm.startswith("HS"):
            signing_key = verifying_key = cfg.JWT_SECRET
        else:
            if not cfg.JWT_PRIVATE_KEY_PATH or not cfg.JWT_PUBLIC_KEY_PATH:
                raise ValueError(f"{algorithm} requires JWT_PRIVATE_KEY_PATH and JWT_PUBLIC_KEY_PATH")
            signing_key = Path(cfg.JWT_PRIVATE_KEY_PATH).read_text(encoding="utf-8")
            verifying_key = Path(cfg.JWT_PUBLIC_KEY_PATH).read_text(encoding="utf-8")
        return cls(
            algorithm=algorithm,
            signing_key=signing_key,
            verifying_key=verifying_key,
            access_minutes=cfg.JWT_ACCESS_MINUTES,
            issuer=cfg.JWT_ISSUER,
        )

    @property
    def lifetime_seconds(self) -> int:
        return int(self.access_lifetime.total_seconds())

    def sign(self, user_id: str, email: str, role: str) -> str:
        issued_at = now_utc()
        payload = {
            "sub": str(user_id),
            "email": email,
            "role": role,
            "type": ACCESS_TOKEN_TYPE,
            "iat": issued_at,
            "exp": issued_at + self.access_lifetime,
        }
        if self.issuer:
            payload["iss"] = self.issuer
        try:
            return jwt.encode(payload, self._signing_key, algorithm=self.algorithm)
        except JWTError as exc:
            raise SigningError("could not sign access token") from exc

    def verify(self, token: str) -> AccessClaims:
        options = {"verify_iss": self.issuer is not None}
        try:
            payload = jwt.decode(
                token,
                self._verifying_key,
                algorithms=[self.algorithm],
                issuer=self.issuer,
                options=options,
            )
        except ExpiredSignatureError as exc:
            raise TokenExpired("access token expired") from exc
        except JWTError as exc:
            raise InvalidToken("invalid access token") from exc

        if payload.get("type") != ACCESS_TOKEN_TYPE or not payload.get("sub"):
            raise InvalidToken("invalid access token")
        return AccessClaims(
            user_id=payload["sub"],
            email=payload.get("email", ""),
            role=payload.get("role", ""),
            expires_at=datetime.fromtimestamp(payload["exp"], tz=timezone.utc),
        )
