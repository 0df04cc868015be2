from flask import Blueprint, g, render_template

from app.bootcamp.rbac import current_viewer

bp = Blueprint("routes", __name__)


def dashboard_cards(user) -> list[dict]:
    """Reminder cards for profile gaps shown at the top of the dashboard."""
    cards = []
    if not user.github_account:
        cards.append({"key": "github_account", "message": "Please register your GitHub account."})
    if not user.discord_account:
        cards.append({"key": "discord_account", "message": "Please register your Discord account."})
    return cards


@bp.get("/")
def index():
    user = getattr(g, "current_user", None)
    if user is None:
        return render_template("public/index.html")

    viewer = current_viewer()
    return render_template(
        "dashboard.html",
        cards=dashboard_cards(user),
        # The emotion calendar is for students still in the course.
        show_calendar=not viewer.admin and not user.graduated,
    )


@bp.get("/health")
def health():
    """Health check endpoint. Returns JSON."""
    return {"ok": True}


@bp.get("/healthz")
def healthz():
    """
    Fast health check for load balancers. No DB access, minimal overhead.
    """
    return "ok", 200
