import io
from datetime import datetime, timedelta

import pytest

from app.bootcamp.db import MAX_PAGE, parse_page, session_scope
from app.bootcamp.models import AuditEvent, User
from app.bootcamp.modules.users.models import Following
from app.bootcamp.modules.users.service import generation_range
from tests.conftest import login, set_csrf

STUDENT_AND_TRAINEE = {"kensyu", "kimura", "kimuramitai", "hatsuno", "hajime", "kananashi"}


def _logins(r) -> set[str]:
    return {u["login_name"] for u in r.json["users"]}


# ---------- Directory listings ----------
def test_student_default_listing(client, users):
    login(client, "kimura")
    r = client.get("/api/users")
    assert r.status_code == 200
    assert r.json["target"] == "student_and_trainee"
    assert _logins(r) == STUDENT_AND_TRAINEE
    # Staff-only annotations stay hidden.
    assert all("inactive" not in u for u in r.json["users"])


def test_admin_default_listing_includes_everyone(client, users):
    login(client, "komagata")
    r = client.get("/api/users")
    assert r.json["target"] == "all"
    assert _logins(r) == set(users)


def test_listing_orders_by_recent_activity(client, users):
    login(client, "yameo")
    login(client, "komagata")
    r = client.get("/api/users")
    names = [u["login_name"] for u in r.json["users"]]
    assert names[:2] == ["komagata", "yameo"]


def test_unknown_target_falls_back_silently(client, users):
    login(client, "kimura")
    r = client.get("/api/users?target=nonsense")
    assert r.status_code == 200
    assert r.json["target"] == "student_and_trainee"


def test_forbidden_target_redirects_to_default_listing(client, users):
    login(client, "kimura")
    r = client.get("/users?target=mentor")
    assert r.status_code == 302
    assert r.headers["Location"].endswith("/users")

    r = client.get("/api/users?target=retired")
    assert r.status_code == 302
    assert r.headers["Location"].endswith("/api/users")


def test_adviser_targets(client, users):
    login(client, "advijirou")
    assert _logins(client.get("/api/users?target=mentor")) == {"machida", "mentormentaro"}
    assert _logins(client.get("/api/users?target=job_seeking")) == {"hajime"}
    assert client.get("/api/users?target=retired").status_code == 302


def test_role_targets_for_mentor(client, users):
    login(client, "mentormentaro")
    assert _logins(client.get("/api/users?target=retired")) == {"yameo"}
    assert _logins(client.get("/api/users?target=graduate")) == {"sotugyou"}
    assert _logins(client.get("/api/users?target=trainee")) == {"kensyu"}
    assert _logins(client.get("/api/users?target=adviser")) == {"advijirou", "senpai"}


def test_inactive_target_and_marker(app, client, users):
    with session_scope(app) as s:
        s.get(User, users["kimuramitai"]).last_activity_at = datetime.utcnow() - timedelta(days=40)

    login(client, "mentormentaro")
    r = client.get("/api/users?target=inactive")
    assert _logins(r) == {"kimuramitai"}
    assert r.json["users"][0]["inactive"] is True

    r = client.get("/users?target=inactive")
    assert b"No login for over a month" in r.data

    client.get("/auth/logout")
    login(client, "kimura")
    r = client.get("/users")
    assert b"No login for over a month" not in r.data


def test_retired_users_are_excluded_from_role_listings(app, client, users):
    with session_scope(app) as s:
        s.get(User, users["senpai"]).retired_on = datetime(2023, 1, 1).date()

    login(client, "kimura")
    assert _logins(client.get("/api/users?target=adviser")) == {"advijirou"}


def test_followings_listing_has_no_search(app, client, users):
    with session_scope(app) as s:
        s.add(Following(follower_id=users["kimura"], followed_id=users["hatsuno"]))
        s.add(Following(follower_id=users["kimura"], followed_id=users["yameo"]))

    login(client, "kimura")
    r = client.get("/api/users?target=followings")
    assert _logins(r) == {"hatsuno"}
    assert r.json["search_enabled"] is False

    r = client.get("/users?target=followings")
    assert b"js-user-search-input" not in r.data


def test_search_input_shown_on_role_listing(client, users):
    login(client, "kimura")
    r = client.get("/users")
    assert r.status_code == 200
    assert b"js-user-search-input" in r.data


def test_search_input_hidden_on_empty_listing(app, client, users):
    login(client, "mentormentaro")
    r = client.get("/users?target=inactive")
    assert b"js-user-search-input" not in r.data


def test_listing_pagination(app, client, users):
    app.config["USERS_PER_PAGE"] = 5
    login(client, "komagata")
    r = client.get("/api/users?page=3")
    assert r.json["pagination"] == {
        "page": 3,
        "per_page": 5,
        "total": len(users),
        "total_pages": 3,
        "has_prev": True,
        "has_next": False,
    }
    assert len(r.json["users"]) == len(users) - 10


def test_listing_huge_page_does_not_overflow(client, users):
    login(client, "komagata")
    r = client.get("/api/users?page=99999999999999999999")
    assert r.status_code == 200
    assert r.json["users"] == []
    assert r.json["pagination"]["page"] == MAX_PAGE

    assert client.get("/users?page=99999999999999999999").status_code == 200
    assert client.get("/api/talks?page=99999999999999999999").status_code == 200


@pytest.mark.parametrize(
    "raw, page",
    [(None, 1), ("", 1), ("2", 2), ("-4", 1), ("abc", 1), (str(MAX_PAGE + 1), MAX_PAGE), ("9" * 30, MAX_PAGE)],
)
def test_parse_page(raw, page):
    assert parse_page(raw) == page


def test_talk_link_only_for_admins(client, users):
    login(client, "komagata")
    items = {u["login_name"]: u for u in client.get("/api/users").json["users"]}
    assert items["kimura"]["talk_id"] is not None
    assert items["machida"]["talk_id"] is None

    client.get("/auth/logout")
    login(client, "mentormentaro")
    items = {u["login_name"]: u for u in client.get("/api/users").json["users"]}
    assert items["kimura"]["talk_id"] is None


# ---------- Profile ----------
def test_profile_retire_reason_is_admin_only(client, users):
    login(client, "komagata")
    r = client.get(f"/api/users/{users['yameo']}")
    assert r.json["retire_reason"] == "Too busy with work."
    assert b"Too busy with work." in client.get(f"/users/{users['yameo']}").data

    client.get("/auth/logout")
    login(client, "mentormentaro")
    r = client.get(f"/api/users/{users['yameo']}")
    assert "retire_reason" not in r.json
    assert "last_activity_at" in r.json


def test_profile_hides_staff_fields_from_students(client, users):
    login(client, "kimura")
    r = client.get(f"/api/users/{users['hatsuno']}")
    assert r.status_code == 200
    assert "last_activity_at" not in r.json
    assert "job_seeking" not in r.json
    assert r.json["can_download_reports"] is False
    assert r.json["talk_id"] is None


def test_profile_admin_sees_consultation_room_link(client, users):
    login(client, "komagata")
    r = client.get(f"/users/{users['kimura']}")
    assert b"Consultation room" in r.data

    client.get("/auth/logout")
    login(client, "hatsuno")
    r = client.get(f"/users/{users['kimura']}")
    assert b"Consultation room" not in r.data


def test_profile_own_trainee_for_same_company_adviser(client, users):
    login(client, "senpai")
    r = client.get(f"/api/users/{users['kensyu']}")
    assert r.json["own_trainee"] is True
    assert r.json["can_follow"] is False
    assert r.json["training_ends_on"] == "2022-04-01"
    page = client.get(f"/users/{users['kensyu']}").data
    assert b"Your company's trainee" in page
    assert b"Follow" not in page

    client.get("/auth/logout")
    login(client, "advijirou")
    r = client.get(f"/api/users/{users['kensyu']}")
    assert r.json["own_trainee"] is False
    assert r.json["can_follow"] is True


def test_profile_self_view(client, users):
    login(client, "kimura")
    r = client.get(f"/api/users/{users['kimura']}")
    assert r.json["can_edit"] is True
    assert r.json["can_follow"] is False
    page = client.get(f"/users/{users['kimura']}").data
    assert b"Edit registration" in page


def test_profile_graduate_details(client, users):
    login(client, "kimura")
    r = client.get(f"/api/users/{users['sotugyou']}")
    assert r.json["graduated_on"] == "2022-01-01"
    assert r.json["days_to_graduate"] == 354
    assert r.json["generation"] == 33
    assert "Graduate" in r.json["roles"]


def test_unknown_profile_is_404(client, users):
    login(client, "kimura")
    assert client.get("/users/99999").status_code == 404
    assert client.get("/api/users/99999").status_code == 404


# ---------- Admin actions ----------
def test_admin_graduates_user(app, client, users):
    login(client, "komagata")
    token = set_csrf(client)
    r = client.post(f"/admin/users/{users['hajime']}/graduate", data={"csrf_token": token})
    assert r.status_code == 302
    assert r.headers["Location"].endswith(f"/users/{users['hajime']}")

    with session_scope(app) as s:
        u = s.get(User, users["hajime"])
        assert u.graduated_on is not None
        assert u.job_seeking is False
        ev = s.query(AuditEvent).filter(AuditEvent.action == "user.graduate").one()
        assert ev.entity_id == str(users["hajime"])
        assert ev.actor_login_name == "komagata"


def test_graduating_twice_is_a_no_op(app, client, users):
    login(client, "komagata")
    token = set_csrf(client)
    client.post(f"/admin/users/{users['sotugyou']}/graduate", data={"csrf_token": token})

    with session_scope(app) as s:
        assert s.get(User, users["sotugyou"]).graduated_on == datetime(2022, 1, 1).date()
        assert s.query(AuditEvent).filter(AuditEvent.action == "user.graduate").count() == 0


def test_non_admin_cannot_graduate(app, client, users):
    login(client, "mentormentaro")
    token = set_csrf(client)
    r = client.post(f"/admin/users/{users['kimura']}/graduate", data={"csrf_token": token})
    assert r.status_code == 302
    assert r.headers["Location"].endswith("/")

    with session_scope(app) as s:
        assert s.get(User, users["kimura"]).graduated_on is None


def test_admin_sets_job_seeking(app, client, users):
    login(client, "machida")
    token = set_csrf(client)
    client.post(f"/admin/users/{users['kimura']}/job_seeking", data={"csrf_token": token, "job_seeking": "1"})

    with session_scope(app) as s:
        assert s.get(User, users["kimura"]).job_seeking is True
        assert s.query(AuditEvent).filter(AuditEvent.action == "user.job_seeking").count() == 1


# ---------- Browsing ----------
def test_companies_and_generations_have_no_search(client, users):
    login(client, "kimura")
    for path in ("/users/companies", "/generations", "/generations/33"):
        r = client.get(path)
        assert r.status_code == 200, path
        assert b"js-user-search-input" not in r.data, path


def test_companies_index_counts(client, users):
    login(client, "kimura")
    r = client.get("/users/companies")
    assert b"Kensyu Corp</a> (2)" in r.data
    assert b"Advice Inc</a> (1)" in r.data


def test_company_show_lists_members(app, client, users):
    with session_scope(app) as s:
        company_id = s.get(User, users["kensyu"]).company_id

    login(client, "kimura")
    r = client.get(f"/users/companies/{company_id}")
    assert r.status_code == 200
    assert b"kensyu" in r.data
    assert b"senpai" in r.data
    assert client.get("/users/companies/99999").status_code == 404


def test_generation_pages(client, users):
    login(client, "kimura")
    r = client.get("/generations")
    assert b"Generation 33</a> (13)" in r.data

    r = client.get("/generations/33")
    assert b"hatsuno" in r.data
    assert client.get("/generations/0").status_code == 404
    assert client.get("/generations/40000").status_code == 404


def test_generation_range_quarters():
    assert generation_range(1) == (datetime(2013, 1, 1), datetime(2013, 4, 1))
    assert generation_range(4) == (datetime(2013, 10, 1), datetime(2014, 1, 1))
    assert generation_range(33) == (datetime(2021, 1, 1), datetime(2021, 4, 1))
    with pytest.raises(ValueError):
        generation_range(0)
    with pytest.raises(ValueError):
        generation_range(40000)


# ---------- Avatar ----------
def test_default_avatar(client, users):
    login(client, "kimura")
    r = client.get(f"/users/{users['kimura']}/avatar")
    assert r.status_code == 302
    assert r.headers["Location"].endswith("/static/images/default-avatar.svg")


def test_avatar_upload_and_serve(app, client, users):
    login(client, "kimura")
    token = set_csrf(client)
    r = client.post(
        f"/users/{users['kimura']}/avatar",
        data={"csrf_token": token, "avatar": (io.BytesIO(b"\x89PNG fake"), "me.PNG")},
        content_type="multipart/form-data",
    )
    assert r.status_code == 302

    with session_scope(app) as s:
        assert s.get(User, users["kimura"]).avatar_key == f"avatars/{users['kimura']}/avatar.png"

    r = client.get(f"/users/{users['kimura']}/avatar")
    assert r.status_code == 200
    assert r.mimetype == "image/png"
    assert r.data == b"\x89PNG fake"


def test_avatar_upload_rejects_other_users_and_bad_types(app, client, users):
    login(client, "kimura")
    token = set_csrf(client)
    client.post(
        f"/users/{users['hatsuno']}/avatar",
        data={"csrf_token": token, "avatar": (io.BytesIO(b"x"), "x.png")},
        content_type="multipart/form-data",
    )
    client.post(
        f"/users/{users['kimura']}/avatar",
        data={"csrf_token": token, "avatar": (io.BytesIO(b"x"), "x.exe")},
        content_type="multipart/form-data",
    )

    with session_scope(app) as s:
        assert s.get(User, users["hatsuno"]).avatar_key is None
        assert s.get(User, users["kimura"]).avatar_key is None
