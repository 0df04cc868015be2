from collections.abc import Callable
from functools import wraps
from typing import Any

from flask import current_app, flash, g, jsonify, redirect, request, url_for

from app.bootcamp.policy import LOGIN_ENDPOINT, Allow, Decision, Deny, RedirectTo, Resource, authorize
from app.bootcamp.viewer import Viewer


def current_viewer() -> Viewer:
    return Viewer.from_user(getattr(g, "current_user", None))


def _is_api_request() -> bool:
    return request.path.startswith("/api/")


def _next_path() -> str:
    nxt = request.full_path or request.path
    # Avoid trailing '?' from full_path when there is no query string.
    if nxt.endswith("?"):
        nxt = nxt[:-1]
    return nxt


def enforce(decision: Decision):
    """
    Turn a policy decision into a response, or None when the request may proceed.
    Denials are redirects for pages and JSON errors for the API; never an error page.
    """
    if isinstance(decision, Allow):
        return None

    rid = getattr(g, "request_id", None)
    if isinstance(decision, RedirectTo):
        if decision.endpoint == LOGIN_ENDPOINT:
            if _is_api_request():
                return jsonify({"error": "login required", "location": url_for(LOGIN_ENDPOINT)}), 401
            return redirect(url_for(LOGIN_ENDPOINT, next=_next_path()))
        endpoint = decision.endpoint
        if _is_api_request() and f"{endpoint}_api" in current_app.view_functions:
            endpoint = f"{endpoint}_api"
        location = url_for(endpoint, **decision.params)
        current_app.logger.info("Access redirected: path=%s to=%s request_id=%s", request.path, location, rid)
        if decision.message and not _is_api_request():
            flash(decision.message, "warning")
        return redirect(location)

    if not isinstance(decision, Deny):
        raise TypeError(f"Not a policy decision: {decision!r}")
    current_app.logger.warning("Access denied: path=%s reason=%s request_id=%s", request.path, decision.reason, rid)
    if _is_api_request():
        return jsonify({"error": decision.reason}), 403
    flash(decision.reason, "danger")
    return redirect(url_for("routes.index"))


def require(resource: Resource) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    """Gate a view on a resource that needs no per-record context."""

    def decorator(fn: Callable[..., Any]) -> Callable[..., Any]:
        @wraps(fn)
        def wrapped(*args: Any, **kwargs: Any):
            denied = enforce(authorize(current_viewer(), resource))
            if denied is not None:
                return denied
            return fn(*args, **kwargs)

        return wrapped

    return decorator


def require_login(fn: Callable[..., Any]) -> Callable[..., Any]:
    return require(Resource.MEMBER_PAGE)(fn)
