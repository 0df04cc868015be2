from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from sqlalchemy import or_, select

from app.bootcamp.models import User
from app.bootcamp.modules.talks.models import Talk
from app.bootcamp.modules.users.service import avatar_url, role_labels, role_predicate
from app.bootcamp.targets import TalkTarget

if TYPE_CHECKING:
    from sqlalchemy.orm import Query, Session
    from app.bootcamp.viewer import Viewer

logger = logging.getLogger(__name__)


def ensure_talk(s: "Session", user: User) -> Talk:
    """Every non-admin user owns exactly one talk; login creates it if missing."""
    if user.talk is not None:
        return user.talk
    talk = Talk(user_id=user.id)
    s.add(talk)
    s.flush()
    user.talk = talk
    logger.info("Created talk id=%s for user id=%s", talk.id, user.id)
    return talk


def talk_party(viewer: "Viewer", viewer_user: User, talk: Talk) -> User:
    """The user shown at the top of a talk page: the owner for admins, else the viewer."""
    return talk.user if viewer.admin else viewer_user


def talk_members(s: "Session", talk: Talk) -> list[User]:
    """All admins plus the talk owner, ordered by id."""
    admin_ids = select(User.id).where(User.admin.is_(True))
    return (
        s.query(User)
        .filter(or_(User.id.in_(admin_ids), User.id == talk.user_id))
        .order_by(User.id.asc())
        .all()
    )


def talk_scope(s: "Session", viewer: "Viewer", target: TalkTarget) -> "Query":
    q = s.query(Talk).join(User, Talk.user_id == User.id).filter(User.is_active.is_(True))
    if target is TalkTarget.UNREPLIED:
        q = q.filter(Talk.unreplied.is_(True))
    elif target is not TalkTarget.ALL:
        q = q.filter(role_predicate(target.value, viewer))
    return q.order_by(Talk.id.desc())


def serialize_member(user: User) -> dict:
    return {
        "id": user.id,
        "login_name": user.login_name,
        "name": user.name,
        "avatar_url": avatar_url(user),
        "roles": role_labels(user),
    }


def serialize_talk(talk: Talk) -> dict:
    return {
        "id": talk.id,
        "unreplied": talk.unreplied,
        "user": serialize_member(talk.user),
    }
