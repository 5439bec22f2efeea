from journal_auth.models.user import User
from journal_auth.models.otp import OneTimePassword
from journal_auth.models.refresh_token import RefreshToken
from journal_auth.models.auth_event import AuthEvent
