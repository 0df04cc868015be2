from __future__ import annotations

from datetime import datetime

from flask import Blueprint, abort, current_app, flash, redirect, render_template, request, send_file, url_for

from app.bootcamp.db import db_session, paginate, parse_page
from app.bootcamp.models import Company, User
from app.bootcamp.modules.users.service import (
    company_counts,
    company_users,
    generation_counts,
    generation_users,
    list_item,
    normalize_search_word,
    profile_view,
    search_active,
    search_users,
    set_avatar,
    user_scope,
)
from app.bootcamp.policy import Resource, authorize
from app.bootcamp.rbac import current_viewer, enforce, require_login
from app.bootcamp.storage import StorageError, avatar_content_type, avatar_store
from app.bootcamp.targets import UserTarget

bp = Blueprint("users", __name__)

DEFAULT_AVATAR = "images/default-avatar.svg"


def _scoped_listing():
    """
    Shared by the HTML and JSON directory. Returns (denied_response, None) or
    (None, context) with the normalized target and the requested page.
    """
    viewer = current_viewer()
    raw_target = request.args.get("target")
    denied = enforce(authorize(viewer, Resource.USER_LIST, raw_target or "view"))
    if denied is not None:
        return denied, None

    s = db_session()
    target = UserTarget.parse(raw_target, viewer)
    now = datetime.utcnow()
    inactive_days = current_app.config["INACTIVE_DAYS"]
    page = paginate(
        user_scope(s, viewer, target, now=now, inactive_days=inactive_days),
        parse_page(request.args.get("page")),
        current_app.config["USERS_PER_PAGE"],
    )
    items = [list_item(viewer, u, now=now, inactive_days=inactive_days) for u in page.items]
    return None, {
        "viewer": viewer,
        "target": target,
        "targets": UserTarget.allowed_for(viewer),
        "page": page,
        "items": items,
        # Nothing to search when the listing is empty.
        "search_enabled": target.searchable and page.total > 0,
        "now": now,
        "inactive_days": inactive_days,
    }


# ---------- Directory ----------
@bp.get("/users")
@require_login
def users_index():
    denied, ctx = _scoped_listing()
    if denied is not None:
        return denied
    return render_template("users/index.html", **ctx)


@bp.get("/api/users")
@require_login
def users_index_api():
    denied, ctx = _scoped_listing()
    if denied is not None:
        return denied

    payload = {
        "target": ctx["target"].value,
        "search_enabled": ctx["search_enabled"],
        "pagination": ctx["page"].as_dict(),
        "users": ctx["items"],
    }
    if "search_word" in request.args:
        word = normalize_search_word(request.args.get("search_word"))
        hits = search_users(
            db_session(),
            ctx["viewer"],
            ctx["target"],
            word,
            now=ctx["now"],
            inactive_days=ctx["inactive_days"],
        )
        payload["search"] = {
            "word": word,
            "active": ctx["target"].searchable and search_active(word),
            "users": [list_item(ctx["viewer"], u, now=ctx["now"], inactive_days=ctx["inactive_days"]) for u in hits],
        }
    return payload


# ---------- Profile ----------
def _get_user_or_404(user_id: int) -> User:
    user = db_session().get(User, user_id)
    if not user:
        abort(404)
    return user


@bp.get("/users/<int:user_id>")
@require_login
def user_show(user_id: int):
    user = _get_user_or_404(user_id)
    return render_template("users/show.html", user=user, profile=profile_view(current_viewer(), user))


@bp.get("/api/users/<int:user_id>")
@require_login
def user_show_api(user_id: int):
    user = _get_user_or_404(user_id)
    return profile_view(current_viewer(), user)


# ---------- Avatar ----------
@bp.get("/users/<int:user_id>/avatar")
@require_login
def user_avatar(user_id: int):
    user = _get_user_or_404(user_id)
    image = avatar_store(current_app.config).load(user.avatar_key)
    if image is None:
        return redirect(url_for("static", filename=DEFAULT_AVATAR))
    return send_file(image, mimetype=avatar_content_type(user.avatar_key))


@bp.post("/users/<int:user_id>/avatar")
@require_login
def user_avatar_upload(user_id: int):
    s = db_session()
    user = _get_user_or_404(user_id)
    back = redirect(url_for("users.user_show", user_id=user.id))
    if user.id != current_viewer().id:
        flash("You can only change your own avatar.", "danger")
        return back

    f = request.files.get("avatar")
    if not f or not f.filename:
        flash("Choose an image to upload.", "danger")
        return back
    try:
        key = avatar_store(current_app.config).save(user.id, f.filename, f.read())
    except StorageError as e:
        flash(str(e), "danger")
        return back

    set_avatar(s, user, key)
    s.commit()
    flash("Avatar updated.", "success")
    return back


# ---------- Company / generation browsing (no search) ----------
@bp.get("/users/companies")
@require_login
def companies_index():
    return render_template("users/companies.html", companies=company_counts(db_session()), search_enabled=False)


@bp.get("/users/companies/<int:company_id>")
@require_login
def company_show(company_id: int):
    s = db_session()
    company = s.get(Company, company_id)
    if not company:
        abort(404)
    viewer = current_viewer()
    items = [list_item(viewer, u) for u in company_users(s, company)]
    return render_template("users/company.html", company=company, items=items, search_enabled=False)


@bp.get("/generations")
@require_login
def generations_index():
    return render_template("users/generations.html", generations=generation_counts(db_session()), search_enabled=False)


@bp.get("/generations/<int:generation>")
@require_login
def generation_show(generation: int):
    try:
        members = generation_users(db_session(), generation)
    except ValueError:
        abort(404)
    viewer = current_viewer()
    items = [list_item(viewer, u) for u in members]
    return render_template("users/generation.html", generation=generation, items=items, search_enabled=False)
