from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from journal_auth.core import errors
from journal_auth.core.logging import get_logger

logger = get_logger("api")

STATUS_BY_ERROR: dict[type[Exception], int] = {
    errors.OTPExpired: 400,
    errors.OTPConsumed: 400,
    errors.OTPMaxAttempts: 400,
    errors.InvalidOTP: 400,
    errors.InvalidCredentials: 401,
    errors.AccountNotVerified: 401,
    errors.AccountNotActive: 401,
    errors.InvalidToken: 401,
    errors.TokenExpired: 401,
    errors.TokenRevoked: 401,
    errors.PersistenceError: 500,
    errors.SigningError: 500,
    errors.DeliveryError: 502,
}

MESSAGE_BY_ERROR: dict[type[Exception], str] = {
    errors.OTPExpired: "OTP has expired. Please request a new one.",
    errors.OTPConsumed: "OTP has already been used. Please request a new one.",
    errors.OTPMaxAttempts: "Maximum OTP attempts exceeded. Please request a new one.",
    errors.InvalidOTP: "Invalid OTP code.",
    errors.InvalidCredentials: "Invalid email or password",
    errors.AccountNotVerified: "Account not verified. Please verify your email first.",
    errors.AccountNotActive: "Account is not active.",
    errors.InvalidToken: "Invalid or expired refresh token",
    errors.TokenExpired: "Invalid or expired refresh token",
    errors.TokenRevoked: "Invalid or expired refresh token",
    errors.PersistenceError: "Internal server error",
    errors.SigningError: "Internal server error",
    errors.DeliveryError: "Failed to deliver verification code",
}


def status_for(exc: Exception) -> int:
    return STATUS_BY_ERROR.get(type(exc), 500)


def error_body(message: str) -> dict:
    return {"success": False, "error": message}


async def auth_error_handler(request: Request, exc: errors.AuthError) -> JSONResponse:
    message = MESSAGE_BY_ERROR.get(type(exc), exc.message)
    return JSONResponse(status_code=status_for(exc), content=error_body(message))


async def infrastructure_error_handler(request: Request, exc: errors.InfrastructureError) -> JSONResponse:
    logger.error("request failed path=%s error=%s detail=%s", request.url.path, exc.code, exc)
    message = MESSAGE_BY_ERROR.get(type(exc), "Internal server error")
    return JSONResponse(status_code=status_for(exc), content=error_body(message))


async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(str(exc.detail)),
        headers=getattr(exc, "headers", None),
    )


def install_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(errors.AuthError, auth_error_handler)
    app.add_exception_handler(errors.InfrastructureError, infrastructure_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_error_handler)
