import json
import logging
from typing import Any

from flask import g, has_request_context, request
from sqlalchemy.orm import Session

from app.bootcamp.models import AuditEvent, User

logger = logging.getLogger(__name__)


def _request_fields() -> tuple[str | None, str | None]:
    """(request_id, client_ip) for the current request; both None in scripts."""
    if not has_request_context():
        return None, None
    return getattr(g, "request_id", None), request.remote_addr


def record_event(
    s: Session,
    *,
    actor: User | None,
    action: str,
    entity_type: str | None = None,
    entity_id: str | None = None,
    reason: str | None = None,
    metadata: dict[str, Any] | None = None,
    request_id: str | None = None,
) -> AuditEvent:
    """
    Append an audit event to the session. The caller owns the commit.
    """
    rid, client_ip = _request_fields()
    ev = AuditEvent(
        request_id=request_id or rid,
        actor_user_id=actor.id if actor else None,
        actor_login_name=actor.login_name if actor else None,
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        reason=reason,
        metadata_json=json.dumps(metadata, sort_keys=True, default=str) if metadata else None,
        client_ip=client_ip,
    )
    s.add(ev)
    logger.info("audit action=%s actor=%s entity=%s:%s", action, ev.actor_login_name, entity_type, entity_id)
    return ev


def record_user_event(s: Session, *, actor: User | None, action: str, user: User, **metadata: Any) -> AuditEvent:
    """Audit an action on a User; the target's login name is always recorded."""
    return record_event(
        s,
        actor=actor,
        action=action,
        entity_type="User",
        entity_id=str(user.id),
        metadata={"login_name": user.login_name, **metadata},
    )
