from datetime import datetime, timedelta

import pytest

from app.bootcamp.db import MAX_PAGE, session_scope
from app.bootcamp.modules.products.models import Comment, Product
from app.bootcamp.modules.products.service import (
    elapsed_bucket,
    elapsed_days,
    summarize_by_elapsed_days,
    unchecked_products,
)
from app.bootcamp.targets import ProductTarget
from app.bootcamp.viewer import Viewer
from tests.conftest import login

NOW = datetime(2024, 6, 10, 12, 0, 0)


@pytest.fixture()
def products(app, users) -> dict[str, int]:
    """Submissions at a spread of ages; returns title -> product id."""
    now = datetime.utcnow()
    rows = [
        # title, author, days ago, wip, checked
        ("fresh", "kimura", 0, False, False),
        ("two-days", "hatsuno", 2, False, False),
        ("six-days", "kimura", 6, False, False),
        ("ten-days", "hajime", 10, False, False),
        ("thirty-days", "kimuramitai", 30, False, False),
        ("draft", "kimura", 20, True, False),
        ("checked", "hatsuno", 25, False, True),
    ]
    ids: dict[str, int] = {}
    with session_scope(app) as s:
        for title, author, days_ago, wip, checked in rows:
            p = Product(
                user_id=users[author],
                practice_title=title,
                wip=wip,
                published_at=None if wip else now - timedelta(days=days_ago, hours=1),
                created_at=now - timedelta(days=days_ago + 1),
                checker_id=users["mentormentaro"] if checked else None,
                checked_at=now if checked else None,
            )
            s.add(p)
            s.flush()
            ids[title] = p.id
        s.add(Comment(product_id=ids["ten-days"], user_id=users["mentormentaro"], body="Looks good so far."))
        s.add(Comment(product_id=ids["two-days"], user_id=users["machida"], body="Please fix the README."))
    return ids


def _titles(q) -> list[str]:
    return [p.practice_title for p in q.all()]


def test_unchecked_all_is_oldest_first_without_wip_or_checked(app, users, products):
    with session_scope(app) as s:
        viewer = Viewer(id=users["mentormentaro"], mentor=True)
        titles = _titles(unchecked_products(s, viewer, ProductTarget.UNCHECKED_ALL))
    assert titles == ["thirty-days", "ten-days", "six-days", "two-days", "fresh"]


def test_unchecked_no_replied_drops_products_the_viewer_commented_on(app, users, products):
    with session_scope(app) as s:
        mentor = Viewer(id=users["mentormentaro"], mentor=True)
        assert _titles(unchecked_products(s, mentor, ProductTarget.UNCHECKED_NO_REPLIED)) == [
            "thirty-days",
            "six-days",
            "two-days",
            "fresh",
        ]
        # Another reviewer's comment does not hide the product from this one.
        admin = Viewer(id=users["machida"], admin=True, mentor=True)
        assert "ten-days" in _titles(unchecked_products(s, admin, ProductTarget.UNCHECKED_NO_REPLIED))
        assert "two-days" not in _titles(unchecked_products(s, admin, ProductTarget.UNCHECKED_NO_REPLIED))


def test_unchecked_no_replied_is_per_product_not_per_author(app, users, products):
    # kimura has two unchecked products; a reply on one leaves the other queued.
    with session_scope(app) as s:
        s.add(Comment(product_id=products["six-days"], user_id=users["mentormentaro"], body="Nice."))
    with session_scope(app) as s:
        mentor = Viewer(id=users["mentormentaro"], mentor=True)
        titles = _titles(unchecked_products(s, mentor, ProductTarget.UNCHECKED_NO_REPLIED))
    assert "six-days" not in titles
    assert "fresh" in titles


def test_publishing_date_falls_back_to_created_at():
    p = Product(practice_title="x", published_at=None, created_at=NOW - timedelta(days=3))
    assert p.date_of_publishing == NOW - timedelta(days=3)
    assert elapsed_days(p, NOW) == 3


def test_elapsed_days_never_negative_and_caps_at_seven():
    future = Product(practice_title="x", published_at=NOW + timedelta(days=1), created_at=NOW)
    assert elapsed_days(future, NOW) == 0
    old = Product(practice_title="y", published_at=NOW - timedelta(days=45), created_at=NOW - timedelta(days=50))
    assert elapsed_days(old, NOW) == 45
    assert elapsed_bucket(old, NOW) == 7


def test_summary_keeps_earliest_product_per_bucket():
    def product(pid: int, days: float) -> Product:
        return Product(id=pid, practice_title=f"p{pid}", published_at=NOW - timedelta(days=days), created_at=NOW)

    items = [
        product(1, 0.2),
        product(2, 0.5),
        product(3, 3.1),
        product(4, 9),
        product(5, 40),
        product(6, 7.5),
    ]
    summary = summarize_by_elapsed_days(items, NOW)

    assert list(summary) == [0, 3, 7]
    assert summary[0].id == 2
    assert summary[3].id == 3
    assert summary[7].id == 5


def test_summary_breaks_publishing_ties_by_id():
    same = NOW - timedelta(days=1)
    items = [
        Product(id=9, practice_title="late-id", published_at=same, created_at=same),
        Product(id=4, practice_title="early-id", published_at=same, created_at=same),
    ]
    assert summarize_by_elapsed_days(items, NOW)[1].id == 4


def test_summary_of_nothing_is_empty():
    assert summarize_by_elapsed_days([], NOW) == {}


# ---------- HTTP ----------
def test_unchecked_api_requires_login(client, products):
    r = client.get("/api/products/unchecked")
    assert r.status_code == 401


def test_unchecked_api_denies_students_and_advisers(client, products):
    login(client, "kimura")
    r = client.get("/api/products/unchecked")
    assert r.status_code == 403

    client.get("/auth/logout")
    login(client, "advijirou")
    assert client.get("/api/products/unchecked").status_code == 403


def test_unchecked_api_for_mentor(client, users, products):
    login(client, "mentormentaro")
    r = client.get("/api/products/unchecked")
    assert r.status_code == 200

    data = r.json
    assert data["target"] == "unchecked_all"
    assert [p["practice_title"] for p in data["products"]] == [
        "thirty-days",
        "ten-days",
        "six-days",
        "two-days",
        "fresh",
    ]
    assert data["pagination"]["total"] == 5
    assert list(data["summary"]) == ["0", "2", "6", "7"]
    assert data["summary"]["7"]["practice_title"] == "thirty-days"
    assert data["summary"]["0"]["elapsed_days"] == 0
    assert data["products"][1]["comments_count"] == 1


def test_unchecked_api_no_replied_target(client, products):
    login(client, "mentormentaro")
    r = client.get("/api/products/unchecked?target=unchecked_no_replied")
    assert r.json["target"] == "unchecked_no_replied"
    assert "ten-days" not in [p["practice_title"] for p in r.json["products"]]


def test_unchecked_api_unknown_target_falls_back(client, products):
    login(client, "komagata")
    r = client.get("/api/products/unchecked?target=everything")
    assert r.status_code == 200
    assert r.json["target"] == "unchecked_all"
    assert len(r.json["products"]) == 5


def test_unchecked_api_paginates(app, client, products):
    app.config["PRODUCTS_PER_PAGE"] = 2
    login(client, "mentormentaro")
    r = client.get("/api/products/unchecked?page=3")
    assert [p["practice_title"] for p in r.json["products"]] == ["fresh"]
    assert r.json["pagination"]["has_next"] is False
    assert r.json["pagination"]["total_pages"] == 3

    r = client.get("/api/products/unchecked?page=zero")
    assert r.json["pagination"]["page"] == 1


def test_unchecked_api_huge_page_is_an_empty_last_page(client, products):
    login(client, "mentormentaro")
    r = client.get("/api/products/unchecked?page=99999999999999999999")
    assert r.status_code == 200
    assert r.json["products"] == []
    assert r.json["summary"] == {}
    assert r.json["pagination"]["page"] == MAX_PAGE
    assert r.json["pagination"]["has_next"] is False
