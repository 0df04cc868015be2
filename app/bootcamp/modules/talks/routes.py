from __future__ import annotations

from flask import Blueprint, abort, current_app, g, render_template, request

from app.bootcamp.db import db_session, paginate, parse_page
from app.bootcamp.modules.talks.models import Talk
from app.bootcamp.modules.talks.service import (
    serialize_member,
    serialize_talk,
    talk_members,
    talk_party,
    talk_scope,
)
from app.bootcamp.policy import Resource, authorize
from app.bootcamp.rbac import current_viewer, enforce, require, require_login
from app.bootcamp.targets import TalkTarget

bp = Blueprint("talks", __name__)


def _talk_list_page():
    s = db_session()
    target = TalkTarget.parse(request.args.get("target"))
    page = paginate(
        talk_scope(s, current_viewer(), target),
        parse_page(request.args.get("page")),
        current_app.config["USERS_PER_PAGE"],
    )
    return target, page


@bp.get("/talks")
@require(Resource.TALK_LIST)
def talks_index():
    target, page = _talk_list_page()
    return render_template("talks/index.html", target=target, targets=list(TalkTarget), page=page)


@bp.get("/api/talks")
@require(Resource.TALK_LIST)
def talks_index_api():
    target, page = _talk_list_page()
    return {
        "target": target.value,
        "pagination": page.as_dict(),
        "talks": [serialize_talk(t) for t in page.items],
    }


def _load_visible_talk(talk_id: int):
    """
    Returns (denied_response, None) for viewers who may not see this talk,
    otherwise (None, (talk, party, members)).
    """
    s = db_session()
    talk = s.get(Talk, talk_id)
    if not talk:
        abort(404)

    viewer = current_viewer()
    viewer_user = g.current_user
    own_talk = viewer_user.talk if not viewer.admin else None
    decision = authorize(
        viewer,
        Resource.TALK,
        owner_id=talk.user_id,
        own_talk_id=own_talk.id if own_talk else None,
    )
    denied = enforce(decision)
    if denied is not None:
        return denied, None
    return None, (talk, talk_party(viewer, viewer_user, talk), talk_members(s, talk))


@bp.get("/talks/<int:talk_id>")
@require_login
def talk_show(talk_id: int):
    denied, loaded = _load_visible_talk(talk_id)
    if denied is not None:
        return denied
    talk, party, members = loaded
    return render_template("talks/show.html", talk=talk, user=party, members=members)


@bp.get("/api/talks/<int:talk_id>")
@require_login
def talk_show_api(talk_id: int):
    denied, loaded = _load_visible_talk(talk_id)
    if denied is not None:
        return denied
    talk, party, members = loaded
    return {
        "talk": serialize_talk(talk),
        "user": serialize_member(party),
        "members": [serialize_member(m) for m in members],
    }
