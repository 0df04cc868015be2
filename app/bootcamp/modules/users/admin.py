from __future__ import annotations

from flask import Blueprint, abort, flash, g, redirect, request, url_for

from app.bootcamp.db import db_session
from app.bootcamp.models import User
from app.bootcamp.modules.users.service import graduate_user, set_job_seeking
from app.bootcamp.policy import Resource
from app.bootcamp.rbac import require

bp = Blueprint("users_admin", __name__)


def _current_user() -> User:
    u = getattr(g, "current_user", None)
    if not u:
        raise RuntimeError("No current user")
    return u


def _target_user(user_id: int) -> User:
    user = db_session().get(User, user_id)
    if not user:
        abort(404)
    return user


@bp.post("/users/<int:user_id>/graduate")
@require(Resource.USER_ADMIN)
def user_graduate(user_id: int):
    s = db_session()
    user = _target_user(user_id)
    if user.graduated:
        flash(f"{user.login_name} has already graduated.", "warning")
        return redirect(url_for("users.user_show", user_id=user.id))

    graduate_user(s, user, _current_user())
    s.commit()
    flash(f"{user.login_name} is now a graduate.", "success")
    return redirect(url_for("users.user_show", user_id=user.id))


@bp.post("/users/<int:user_id>/job_seeking")
@require(Resource.USER_ADMIN)
def user_job_seeking(user_id: int):
    s = db_session()
    user = _target_user(user_id)
    value = (request.form.get("job_seeking") or "").strip().lower() in ("1", "true", "on", "yes")
    set_job_seeking(s, user, _current_user(), value)
    s.commit()
    flash("Job seeking status updated.", "success")
    return redirect(url_for("users.user_show", user_id=user.id))
