from datetime import date, datetime, timedelta

import pytest
from werkzeug.security import generate_password_hash

from app.bootcamp import create_app
from app.bootcamp.db import session_scope
from app.bootcamp.models import Base, Company, User
from app.bootcamp.modules.talks.models import Talk

PASSWORD = "testtest"

# A small cast covering every role the directory and policy care about.
CAST = {
    "komagata": dict(name="Komagata Masaki", admin=True, github_account="komagata", discord_account="komagata#0001"),
    "machida": dict(name="Machida Teppei", admin=True, mentor=True),
    "mentormentaro": dict(name="Mentor Mentaro", mentor=True),
    "advijirou": dict(name="アドバイ 次郎", adviser=True, company="Advice Inc"),
    "senpai": dict(name="Senpai Sentaro", adviser=True, company="Kensyu Corp"),
    "kensyu": dict(name="Kensyu Seiko", trainee=True, company="Kensyu Corp", training_ends_on=date(2022, 4, 1)),
    "kimura": dict(
        name="Kimura Tadasi",
        name_kana="キムラ タダシ",
        discord_account="kimura#1234",
        description="木村です。ブートキャンプはじめました。",
    ),
    "kimuramitai": dict(
        name="Kimura Mitai",
        name_kana="キムラ ミタイ",
        facebook_url="https://www.facebook.com/kimurafacebook",
    ),
    "hatsuno": dict(name="Hatsuno Shinji", twitter_account="hatsuno", blog_url="https://hatsuno.org"),
    "hajime": dict(name="Hajime Tayo", job_seeking=True),
    "kananashi": dict(name="ユーザーです 読み方のカナが無い", github_account="kananashi"),
    "sotugyou": dict(name="卒業 就職済美", graduated_on=date(2022, 1, 1)),
    "yameo": dict(name="Yameo Yameko", retired_on=date(2022, 2, 1), retire_reason="Too busy with work."),
}


@pytest.fixture(autouse=True)
def _reset_login_rate_limit():
    from app.bootcamp.auth import throttle

    throttle.reset()
    yield
    throttle.reset()


@pytest.fixture()
def app(tmp_path, monkeypatch):
    monkeypatch.setenv("SECRET_KEY", "test-secret")
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path/'test.db'}")
    monkeypatch.setenv("ENV", "test")
    monkeypatch.setenv("STORAGE_BACKEND", "local")
    monkeypatch.setenv("STORAGE_ROOT", str(tmp_path / "storage"))
    for k in ("S3_ENDPOINT", "S3_REGION", "S3_BUCKET", "S3_ACCESS_KEY_ID", "S3_SECRET_ACCESS_KEY", "USERS_PER_PAGE", "PRODUCTS_PER_PAGE", "INACTIVE_DAYS"):
        monkeypatch.delenv(k, raising=False)

    app = create_app()
    engine = app.extensions["sqlalchemy_engine"]
    Base.metadata.create_all(bind=engine)
    return app


@pytest.fixture()
def users(app) -> dict[str, int]:
    """Seed the cast; returns login_name -> user id."""
    now = datetime.utcnow()
    ids: dict[str, int] = {}
    with session_scope(app) as s:
        companies: dict[str, Company] = {}
        for offset, (login_name, attrs) in enumerate(CAST.items()):
            attrs = dict(attrs)
            company_name = attrs.pop("company", None)
            if company_name and company_name not in companies:
                companies[company_name] = Company(name=company_name)
                s.add(companies[company_name])
            u = User(
                login_name=login_name,
                email=f"{login_name}@example.com",
                password_hash=generate_password_hash(PASSWORD),
                is_active=True,
                last_activity_at=now - timedelta(minutes=offset),
                created_at=datetime(2021, 1, 1) + timedelta(days=offset),
                company=companies.get(company_name) if company_name else None,
                **attrs,
            )
            s.add(u)
            s.flush()
            if not u.admin:
                s.add(Talk(user_id=u.id))
            ids[login_name] = u.id
    return ids


@pytest.fixture()
def client(app):
    return app.test_client()


def login(client, login_name: str):
    r = client.post("/auth/login", data={"login": login_name, "password": PASSWORD}, follow_redirects=False)
    assert r.status_code == 302
    return r


def set_csrf(client, token: str = "test-csrf-token") -> str:
    with client.session_transaction() as sess:
        sess["csrf_token"] = token
    return token
