from dataclasses import asdict

from fastapi import APIRouter, Depends, Query

from journal_auth.api.deps import (
    ClientMeta,
    Principal,
    get_client_meta,
    get_credential_service,
    get_principal,
    rate_limit,
)
from journal_auth.core.errors import InfrastructureError
from journal_auth.core.logging import get_logger
from journal_auth.schemas.auth import (
    AuthEventOut,
    Envelope,
    ForgotPasswordIn,
    LoginIn,
    LogoutIn,
    RefreshIn,
    RegisterIn,
    RequestOTPIn,
    ResetPasswordIn,
    SessionOut,
    UserOut,
    VerifyOTPIn,
)
from journal_auth.services.credentials import CredentialService, SessionPair

logger = get_logger("api.auth")

router = APIRouter(dependencies=[Depends(rate_limit)])


def _session_out(pair: SessionPair) -> dict:
    return SessionOut(
        access_token=pair.access_token,
        refresh_token=pair.refresh_token,
        token_type=pair.token_type,
        expires_in=pair.expires_in,
        user=UserOut(**asdict(pair.user)),
    ).model_dump(mode="json")


@router.post("/register", response_model=Envelope)
def register(
    payload: RegisterIn,
    meta: ClientMeta = Depends(get_client_meta),
    svc: CredentialService = Depends(get_credential_service),
):
    svc.register(payload.email, payload.username, payload.password, ip=meta.ip, user_agent=meta.user_agent)
    return Envelope(message="Registration initiated. Please check your email for OTP.")


@router.post("/verify-otp", response_model=Envelope)
def verify_otp(
    payload: VerifyOTPIn,
    meta: ClientMeta = Depends(get_client_meta),
    svc: CredentialService = Depends(get_credential_service),
):
    pair = svc.verify_otp(payload.email, payload.otp, ip=meta.ip, user_agent=meta.user_agent)
    return Envelope(message="Email verified successfully", data=_session_out(pair))


@router.post("/login", response_model=Envelope)
def login(
    payload: LoginIn,
    meta: ClientMeta = Depends(get_client_meta),
    svc: CredentialService = Depends(get_credential_service),
):
    pair = svc.login(payload.email, payload.password, ip=meta.ip, user_agent=meta.user_agent)
    return Envelope(message="Login successful", data=_session_out(pair))


@router.post("/refresh", response_model=Envelope)
def refresh(
    payload: RefreshIn,
    meta: ClientMeta = Depends(get_client_meta),
    svc: CredentialService = Depends(get_credential_service),
):
    pair = svc.refresh(payload.refresh_token, ip=meta.ip, user_agent=meta.user_agent)
    return Envelope(message="Token refreshed successfully", data=_session_out(pair))


@router.post("/logout", response_model=Envelope)
def logout(
    payload: LogoutIn,
    meta: ClientMeta = Depends(get_client_meta),
    svc: CredentialService = Depends(get_credential_service),
):
    svc.logout(payload.refresh_token, ip=meta.ip, user_agent=meta.user_agent)
    return Envelope(message="Logout successful")


@router.post("/forgot-password", response_model=Envelope)
def forgot_password(
    payload: ForgotPasswordIn,
    meta: ClientMeta = Depends(get_client_meta),
    svc: CredentialService = Depends(get_credential_service),
):
    # Failures only happen for existing accounts; reporting them would enumerate.
    try:
        svc.forgot_password(payload.email, ip=meta.ip, user_agent=meta.user_agent)
    except InfrastructureError as exc:
        logger.error("forgot-password send failed error=%s", exc.code)
    return Envelope(message="If the email exists, a reset code has been sent.")


@router.post("/reset-password", response_model=Envelope)
def reset_password(
    payload: ResetPasswordIn,
    meta: ClientMeta = Depends(get_client_meta),
    svc: CredentialService = Depends(get_credential_service),
):
    svc.reset_password(payload.email, payload.otp, payload.new_password, ip=meta.ip, user_agent=meta.user_agent)
    return Envelope(message="Password reset successfully")


@router.post("/request-otp", response_model=Envelope)
def request_otp(
    payload: RequestOTPIn,
    meta: ClientMeta = Depends(get_client_meta),
    svc: CredentialService = Depends(get_credential_service),
):
    try:
        svc.request_otp(payload.email, payload.purpose, ip=meta.ip, user_agent=meta.user_agent)
    except InfrastructureError as exc:
        logger.error("request-otp send failed error=%s", exc.code)
    return Envelope(message="OTP has been sent if the account exists.")


@router.get("/me", response_model=Envelope)
def me(
    principal: Principal = Depends(get_principal),
    svc: CredentialService = Depends(get_credential_service),
):
    user = svc.get_user(principal.user_id)
    return Envelope(data=UserOut(**asdict(user)).model_dump(mode="json"))


@router.get("/events", response_model=Envelope)
def recent_events(
    limit: int = Query(default=20, ge=1, le=100),
    principal: Principal = Depends(get_principal),
    svc: CredentialService = Depends(get_credential_service),
):
    rows = svc.recent_events(principal.user_id, limit)
    data = [
        AuthEventOut(
            event_type=r.event_type,
            ip=r.ip,
            user_agent=r.user_agent,
            created_at=r.created_at,
            meta=r.meta,
        ).model_dump(mode="json")
        for r in rows
    ]
    return Envelope(data=data)
