from __future__ import annotations

import uuid
from collections import defaultdict
from datetime import datetime, timedelta

from flask import Blueprint, current_app, flash, g, redirect, render_template, request, session, url_for
from sqlalchemy import func, or_
from werkzeug.security import check_password_hash

from app.bootcamp.audit import record_event, record_user_event
from app.bootcamp.db import db_session
from app.bootcamp.models import User
from app.bootcamp.modules.talks.service import ensure_talk

bp = Blueprint("auth", __name__)

# Paths that never load a user.
_ANONYMOUS_PREFIXES = ("/static/", "/health", "/healthz")
# Paths that load the user but do not count as activity.
_NOT_ACTIVITY_PREFIXES = _ANONYMOUS_PREFIXES + ("/auth/logout",)


class LoginThrottle:
    """Failed-login counter per client IP over a sliding window."""

    def __init__(self, limit: int = 5, window: timedelta = timedelta(minutes=5)):
        self.limit = limit
        self.window = window
        self._attempts: dict[str, list[datetime]] = defaultdict(list)

    def blocked(self, ip: str, now: datetime | None = None) -> bool:
        cutoff = (now or datetime.utcnow()) - self.window
        self._attempts[ip] = [t for t in self._attempts[ip] if t > cutoff]
        return len(self._attempts[ip]) >= self.limit

    def record(self, ip: str) -> None:
        self._attempts[ip].append(datetime.utcnow())

    def reset(self, ip: str | None = None) -> None:
        if ip is None:
            self._attempts.clear()
        else:
            self._attempts.pop(ip, None)


throttle = LoginThrottle()


def load_current_user() -> None:
    """
    Puts the signed-in User on ``g.current_user`` (or None) and a request id on
    ``g.request_id``. Member requests also stamp ``last_activity_at``, which
    drives the "inactive" listing.
    """
    if not getattr(g, "request_id", None):
        g.request_id = uuid.uuid4().hex
    g.current_user = None
    if request.path.startswith(_ANONYMOUS_PREFIXES):
        return

    user_id = session.get("user_id")
    if not user_id:
        return
    s = db_session()
    user = s.get(User, int(user_id))
    if user is None or not user.is_active:
        session.pop("user_id", None)
        return

    g.current_user = user
    if not request.path.startswith(_NOT_ACTIVITY_PREFIXES):
        user.last_activity_at = datetime.utcnow()
        s.commit()


def authenticate(s, identifier: str, password: str) -> User | None:
    """Match ``identifier`` against login name or email, case-insensitively."""
    user = (
        s.query(User)
        .filter(or_(func.lower(User.login_name) == identifier, func.lower(User.email) == identifier))
        .one_or_none()
    )
    if user is None or not user.is_active or not check_password_hash(user.password_hash, password):
        return None
    return user


def _safe_next(raw: str) -> str | None:
    # Local paths only; "//host" would be an open redirect.
    if raw.startswith("/") and not raw.startswith("//"):
        return raw
    return None


@bp.get("/login")
def login_get():
    return render_template("auth/login.html", next=(request.args.get("next") or "").strip())


@bp.post("/login")
def login_post():
    identifier = (request.form.get("login") or request.form.get("email") or "").strip().lower()
    password = request.form.get("password") or ""
    nxt = _safe_next((request.form.get("next") or "").strip())
    ip = request.remote_addr or "unknown"

    if throttle.blocked(ip):
        current_app.logger.warning("Login throttled: ip=%s", ip)
        flash("Too many login attempts. Please wait 5 minutes.", "danger")
        return redirect(url_for("auth.login_get"))

    s = db_session()
    user = authenticate(s, identifier, password)
    if user is None:
        throttle.record(ip)
        record_event(
            s,
            actor=None,
            action="auth.login_failed",
            entity_type="User",
            entity_id=identifier,
            reason="Invalid credentials",
        )
        s.commit()
        flash("Invalid login name, email or password.", "danger")
        return redirect(url_for("auth.login_get", next=nxt) if nxt else url_for("auth.login_get"))

    throttle.reset(ip)
    session["user_id"] = user.id
    user.last_activity_at = datetime.utcnow()
    if not user.admin:
        ensure_talk(s, user)
    record_user_event(s, actor=user, action="auth.login", user=user)
    s.commit()
    return redirect(nxt or url_for("routes.index"))


@bp.get("/logout")
def logout():
    user = getattr(g, "current_user", None)
    if user is not None:
        s = db_session()
        record_user_event(s, actor=user, action="auth.logout", user=user)
        s.commit()
    session.pop("user_id", None)
    return redirect(url_for("routes.index"))
