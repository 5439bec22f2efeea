from fastapi import APIRouter, Depends

from journal_auth.api.deps import ClientMeta, Principal, get_client_meta, get_credential_service, get_principal
from journal_auth.schemas.auth import ChangePasswordIn, Envelope
from journal_auth.services.credentials import CredentialService

router = APIRouter()


@router.put("/change-password", response_model=Envelope)
def change_password(
    payload: ChangePasswordIn,
    principal: Principal = Depends(get_principal),
    meta: ClientMeta = Depends(get_client_meta),
    svc: CredentialService = Depends(get_credential_service),
):
    svc.change_password(
        principal.user_id,
        payload.old_password,
        payload.new_password,
        ip=meta.ip,
        user_agent=meta.user_agent,
    )
    return Envelope(message="Password changed successfully. Please log in again.")
