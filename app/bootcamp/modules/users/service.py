from __future__ import annotations

import logging
import re
import unicodedata
from datetime import date, datetime, timedelta
from typing import TYPE_CHECKING

from flask import url_for
from sqlalchemy import and_, false, func, nulls_last, or_, select, true

from app.bootcamp.audit import record_user_event
from app.bootcamp.models import FIRST_GENERATION_YEAR, Company, User
from app.bootcamp.modules.users.models import Following
from app.bootcamp.targets import UserTarget

if TYPE_CHECKING:
    from sqlalchemy.orm import Query, Session
    from sqlalchemy.sql.elements import ColumnElement
    from app.bootcamp.viewer import Viewer

logger = logging.getLogger(__name__)

DEFAULT_INACTIVE_DAYS = 30

# Minimum query length before incremental search kicks in.
WIDE_SEARCH_THRESHOLD = 2
NARROW_SEARCH_THRESHOLD = 3

SEARCH_FIELDS = (
    User.login_name,
    User.name,
    User.name_kana,
    User.twitter_account,
    User.discord_account,
    User.github_account,
    User.blog_url,
    User.facebook_url,
    User.description,
)

ROLE_LABELS = (
    ("admin", "Admin"),
    ("mentor", "Mentor"),
    ("adviser", "Adviser"),
    ("trainee", "Trainee"),
    ("graduated", "Graduate"),
    ("retired", "Retired"),
)


# ---------- Scopes ----------
def _student_or_trainee() -> "ColumnElement[bool]":
    return and_(
        User.admin.is_(False),
        User.mentor.is_(False),
        User.adviser.is_(False),
        User.graduated_on.is_(None),
        User.retired_on.is_(None),
    )


def role_predicate(
    name: str,
    viewer: "Viewer",
    *,
    now: datetime | None = None,
    inactive_days: int = DEFAULT_INACTIVE_DAYS,
) -> "ColumnElement[bool]":
    """
    Predicate for a user-listing selector name. Shared by the user directory
    and the talk list, which filter on the same role/status fields.
    """
    not_retired = User.retired_on.is_(None)
    if name == UserTarget.ALL.value:
        return true()
    if name == UserTarget.RETIRED.value:
        return User.retired_on.isnot(None)
    if name == UserTarget.STUDENT_AND_TRAINEE.value:
        return _student_or_trainee()
    if name == UserTarget.MENTOR.value:
        return and_(User.mentor.is_(True), not_retired)
    if name == UserTarget.ADVISER.value:
        return and_(User.adviser.is_(True), not_retired)
    if name == UserTarget.TRAINEE.value:
        return and_(User.trainee.is_(True), not_retired)
    if name == UserTarget.GRADUATE.value:
        return and_(User.graduated_on.isnot(None), not_retired)
    if name == UserTarget.JOB_SEEKING.value:
        return and_(User.job_seeking.is_(True), User.graduated_on.is_(None), not_retired)
    if name == UserTarget.INACTIVE.value:
        cutoff = (now or datetime.utcnow()) - timedelta(days=inactive_days)
        return and_(
            _student_or_trainee(),
            or_(User.last_activity_at.is_(None), User.last_activity_at < cutoff),
        )
    if name == UserTarget.FOLLOWINGS.value:
        if viewer.id is None:
            return false()
        followed = select(Following.followed_id).where(Following.follower_id == viewer.id)
        return and_(User.id.in_(followed), not_retired)
    raise ValueError(f"Unknown user selector: {name}")


def user_scope(
    s: "Session",
    viewer: "Viewer",
    target: UserTarget,
    *,
    now: datetime | None = None,
    inactive_days: int = DEFAULT_INACTIVE_DAYS,
) -> "Query":
    return (
        s.query(User)
        .filter(User.is_active.is_(True))
        .filter(role_predicate(target.value, viewer, now=now, inactive_days=inactive_days))
        .order_by(nulls_last(User.last_activity_at.desc()), User.id.asc())
    )


def is_inactive(user: User, now: datetime | None = None, inactive_days: int = DEFAULT_INACTIVE_DAYS) -> bool:
    if user.staff or user.graduated or user.retired:
        return False
    if user.last_activity_at is None:
        return True
    return user.last_activity_at < (now or datetime.utcnow()) - timedelta(days=inactive_days)


# ---------- Incremental search ----------
def normalize_search_word(word: str | None) -> str:
    return re.sub(r"\s+", " ", (word or "").replace("　", " ")).strip()


def search_threshold(word: str) -> int:
    if any(unicodedata.east_asian_width(ch) in ("W", "F") for ch in word):
        return WIDE_SEARCH_THRESHOLD
    return NARROW_SEARCH_THRESHOLD


def search_active(word: str | None) -> bool:
    normalized = normalize_search_word(word)
    return bool(normalized) and len(normalized) >= search_threshold(normalized)


def _escape_like(term: str) -> str:
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def search_users(
    s: "Session",
    viewer: "Viewer",
    target: UserTarget,
    word: str | None,
    *,
    now: datetime | None = None,
    inactive_days: int = DEFAULT_INACTIVE_DAYS,
) -> list[User]:
    """
    Users in ``target`` whose indexed fields match every term of ``word``.
    Below the activation threshold (or on a non-searchable target) nothing matches.
    """
    normalized = normalize_search_word(word)
    if not target.searchable or not search_active(normalized):
        return []

    q = user_scope(s, viewer, target, now=now, inactive_days=inactive_days)
    for term in normalized.split(" "):
        like = f"%{_escape_like(term)}%"
        q = q.filter(or_(*(field.ilike(like, escape="\\") for field in SEARCH_FIELDS)))
    users = q.all()
    logger.debug("User search target=%s word=%r hits=%d", target.value, normalized, len(users))
    return users


# ---------- Browsing ----------
def generation_range(generation: int) -> tuple[datetime, datetime]:
    if generation < 1:
        raise ValueError("Generation numbers start at 1.")
    year = FIRST_GENERATION_YEAR + (generation - 1) // 4
    if year >= datetime.max.year:
        raise ValueError(f"Generation {generation} is out of range.")
    month = ((generation - 1) % 4) * 3 + 1
    start = datetime(year, month, 1)
    end = datetime(year + 1, 1, 1) if month == 10 else datetime(year, month + 3, 1)
    return start, end


def generation_users(s: "Session", generation: int) -> list[User]:
    start, end = generation_range(generation)
    return (
        s.query(User)
        .filter(User.is_active.is_(True))
        .filter(User.created_at >= start, User.created_at < end)
        .order_by(User.id.asc())
        .all()
    )


def generation_counts(s: "Session") -> dict[int, int]:
    counts: dict[int, int] = {}
    for (created_at,) in s.query(User.created_at).filter(User.is_active.is_(True)).all():
        generation = (created_at.year - FIRST_GENERATION_YEAR) * 4 + (created_at.month - 1) // 3 + 1
        counts[generation] = counts.get(generation, 0) + 1
    return dict(sorted(counts.items(), reverse=True))


def company_counts(s: "Session") -> list[tuple[Company, int]]:
    rows = (
        s.query(Company, func.count(User.id))
        .outerjoin(User, and_(User.company_id == Company.id, User.is_active.is_(True)))
        .group_by(Company.id)
        .order_by(Company.name.asc())
        .all()
    )
    return [(company, count) for company, count in rows]


def company_users(s: "Session", company: Company) -> list[User]:
    return (
        s.query(User)
        .filter(User.company_id == company.id)
        .filter(User.is_active.is_(True))
        .order_by(User.id.asc())
        .all()
    )


# ---------- Presentation payloads ----------
def avatar_url(user: User) -> str:
    return url_for("users.user_avatar", user_id=user.id)


def role_labels(user: User) -> list[str]:
    labels = [label for attr, label in ROLE_LABELS if getattr(user, attr)]
    return labels or ["Student"]


def days_to_graduate(user: User) -> int | None:
    if user.graduated_on is None or user.created_at is None:
        return None
    days = (user.graduated_on - user.created_at.date()).days
    return days if days > 0 else None


def is_own_trainee(viewer: "Viewer", user: User) -> bool:
    return (
        viewer.adviser
        and user.trainee
        and viewer.company_id is not None
        and viewer.company_id == user.company_id
    )


def _talk_id_for(viewer: "Viewer", user: User) -> int | None:
    # Admins do not have consultation rooms of their own.
    if not viewer.admin or user.admin or user.talk is None:
        return None
    return user.talk.id


def list_item(
    viewer: "Viewer",
    user: User,
    *,
    now: datetime | None = None,
    inactive_days: int = DEFAULT_INACTIVE_DAYS,
) -> dict:
    item = {
        "id": user.id,
        "login_name": user.login_name,
        "name": user.name,
        "avatar_url": avatar_url(user),
        "roles": role_labels(user),
        "times_url": user.times_url,
        "talk_id": _talk_id_for(viewer, user),
    }
    if viewer.staff:
        item["inactive"] = is_inactive(user, now, inactive_days)
    return item


def profile_view(viewer: "Viewer", user: User) -> dict:
    """Role-conditional profile payload for ``user`` as seen by ``viewer``."""
    own_trainee = is_own_trainee(viewer, user)
    view = {
        "id": user.id,
        "login_name": user.login_name,
        "name": user.name,
        "name_kana": user.name_kana,
        "description": user.description,
        "avatar_url": avatar_url(user),
        "roles": role_labels(user),
        "generation": user.generation,
        "company": user.company.name if user.company else None,
        "twitter_account": user.twitter_account,
        "discord_account": user.discord_account,
        "github_account": user.github_account,
        "blog_url": user.blog_url,
        "facebook_url": user.facebook_url,
        "times_url": user.times_url,
        "graduated_on": user.graduated_on.isoformat() if user.graduated_on else None,
        "retired_on": user.retired_on.isoformat() if user.retired_on else None,
        "days_to_graduate": days_to_graduate(user),
        "training_ends_on": user.training_ends_on.isoformat() if user.trainee and user.training_ends_on else None,
        "talk_id": _talk_id_for(viewer, user),
        "own_trainee": own_trainee,
        "can_follow": viewer.id != user.id and not own_trainee,
        "can_edit": viewer.id == user.id,
        "can_download_reports": viewer.staff,
        "can_graduate": viewer.admin and not user.graduated,
    }
    if viewer.admin:
        view["retire_reason"] = user.retire_reason if user.retired else None
        view["job_seeking"] = user.job_seeking
    if viewer.staff:
        view["last_activity_at"] = user.last_activity_at.isoformat() if user.last_activity_at else None
    return view


# ---------- Admin mutations ----------
def graduate_user(s: "Session", user: User, actor: User, today: date | None = None) -> User:
    graduated_on = today or date.today()
    user.graduated_on = graduated_on
    user.job_seeking = False
    record_user_event(s, actor=actor, action="user.graduate", user=user, graduated_on=graduated_on.isoformat())
    return user


def set_job_seeking(s: "Session", user: User, actor: User, value: bool) -> User:
    changes = {"old": user.job_seeking, "new": value}
    user.job_seeking = value
    record_user_event(s, actor=actor, action="user.job_seeking", user=user, changes=changes)
    return user


def set_avatar(s: "Session", user: User, key: str) -> User:
    user.avatar_key = key
    record_user_event(s, actor=user, action="user.avatar_upload", user=user, key=key)
    return user
