import uuid

from journal_auth.core.errors import InfrastructureError
from journal_auth.core.logging import get_logger
from journal_auth.models.auth_event import EVENT_TYPES
from journal_auth.repositories.contracts import AuthEventRepository

logger = get_logger("audit")


def audit(
    events: AuthEventRepository,
    user_id: uuid.UUID | None,
    event_type: str,
    ip: str | None,
    user_agent: str | None,
    meta: dict | None = None,
) -> bool:
    if event_type not in EVENT_TYPES:
        raise ValueError(f"unknown auth event type: {event_type}")
    # Best effort: a failed write never fails the operation that triggered it.
    try:
        events.create(user_id, event_type, ip, user_agent, meta)
    except InfrastructureError as exc:
        logger.warning("audit write dropped event=%s user_id=%s error=%s", event_type, user_id, exc)
        return False
    return True
