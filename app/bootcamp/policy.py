"""
Authorization policy.

``authorize`` is a pure function of the viewer, the resource and the action.
The HTTP layer (``rbac.py``) turns decisions into redirects or JSON errors.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Union

from app.bootcamp.targets import UserTarget, lookup
from app.bootcamp.viewer import Viewer

LOGIN_ENDPOINT = "auth.login_get"
ADMIN_REQUIRED_MESSAGE = "Please log in as an administrator."
STAFF_REQUIRED_MESSAGE = "Please log in as a mentor or administrator."


class Resource(str, Enum):
    MEMBER_PAGE = "member_page"
    STAFF_QUEUE = "staff_queue"
    TALK_LIST = "talk_list"
    TALK = "talk"
    USER_LIST = "user_list"
    USER_ADMIN = "user_admin"


@dataclass(frozen=True)
class Allow:
    pass


@dataclass(frozen=True)
class Deny:
    reason: str


@dataclass(frozen=True)
class RedirectTo:
    endpoint: str
    params: dict[str, Any] = field(default_factory=dict)
    message: str | None = None


Decision = Union[Allow, Deny, RedirectTo]

ALLOW = Allow()


def authorize(
    viewer: Viewer,
    resource: Resource,
    action: str = "view",
    *,
    owner_id: int | None = None,
    own_talk_id: int | None = None,
) -> Decision:
    """
    Decide whether ``viewer`` may perform ``action`` on ``resource``.

    ``owner_id`` is the owning user of a Talk; ``own_talk_id`` is the viewer's
    own Talk, used as the redirect destination for non-owners. For
    ``USER_LIST`` the action is the raw ``target`` value.
    """
    if not viewer.authenticated:
        return RedirectTo(LOGIN_ENDPOINT)

    if resource is Resource.MEMBER_PAGE:
        return ALLOW

    if resource is Resource.STAFF_QUEUE:
        return ALLOW if viewer.staff else Deny(STAFF_REQUIRED_MESSAGE)

    if resource in (Resource.TALK_LIST, Resource.USER_ADMIN):
        return ALLOW if viewer.admin else Deny(ADMIN_REQUIRED_MESSAGE)

    if resource is Resource.TALK:
        if viewer.admin or (owner_id is not None and owner_id == viewer.id):
            return ALLOW
        if own_talk_id is None:
            return Deny("No consultation room for this user.")
        return RedirectTo("talks.talk_show", {"talk_id": own_talk_id})

    if resource is Resource.USER_LIST:
        target = lookup(UserTarget, action)
        # Unknown selectors are coerced later by UserTarget.parse; only a known
        # but forbidden target is a denial.
        if target is None or target.is_permitted(viewer):
            return ALLOW
        return RedirectTo("users.users_index")

    return Deny(f"Unknown resource {resource!r}")
