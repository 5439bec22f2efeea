"""Error taxonomy for the credential service.

Domain errors (``AuthError``) are deliberately coarse so callers cannot learn
whether an account exists. Infrastructure errors (``InfrastructureError``) are
opaque and never carry domain meaning; the HTTP layer turns them into 5xx.
"""
from __future__ import annotations

from typing import ClassVar


class AuthError(Exception):
    code: ClassVar[str] = "auth_error"
    message: ClassVar[str] = "Authentication failed"

    def __init__(self, detail: str | None = None):
        super().__init__(detail or self.message)


class InvalidCredentials(AuthError):
    code = "invalid_credentials"
    message = "invalid credentials"


class AccountNotVerified(AuthError):
    code = "account_not_verified"
    message = "account not verified"


class AccountNotActive(AuthError):
    code = "account_not_active"
    message = "account not active"


class OTPExpired(AuthError):
    code = "otp_expired"
    message = "otp has expired"


class OTPConsumed(AuthError):
    code = "otp_consumed"
    message = "otp already consumed"


class OTPMaxAttempts(AuthError):
    code = "otp_max_attempts"
    message = "maximum otp attempts exceeded"


class InvalidOTP(AuthError):
    code = "invalid_otp"
    message = "invalid otp"


class InvalidToken(AuthError):
    code = "invalid_token"
    message = "invalid refresh token"


class TokenExpired(AuthError):
    code = "token_expired"
    message = "refresh token expired"


class TokenRevoked(AuthError):
    code = "token_revoked"
    message = "refresh token revoked"


class InfrastructureError(Exception):
    code: ClassVar[str] = "infrastructure_error"


class PersistenceError(InfrastructureError):
    code = "persistence_error"


class DeliveryError(InfrastructureError):
    code = "delivery_error"


class SigningError(InfrastructureError):
    code = "signing_error"


OTP_ERRORS = (OTPConsumed, OTPExpired, OTPMaxAttempts, InvalidOTP)

# Domain errors each public operation may raise. Anything else escaping an
# operation is an InfrastructureError.
REGISTER_ERRORS: tuple[type[AuthError], ...] = ()
VERIFY_OTP_ERRORS = OTP_ERRORS
LOGIN_ERRORS = (InvalidCredentials, AccountNotVerified, AccountNotActive)
FORGOT_PASSWORD_ERRORS: tuple[type[AuthError], ...] = ()
RESET_PASSWORD_ERRORS = OTP_ERRORS
CHANGE_PASSWORD_ERRORS = (InvalidCredentials,)
REQUEST_OTP_ERRORS: tuple[type[AuthError], ...] = ()
REFRESH_ERRORS = (InvalidToken, TokenRevoked, TokenExpired)
LOGOUT_ERRORS: tuple[type[AuthError], ...] = ()
