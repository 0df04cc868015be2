from __future__ import annotations

from datetime import date, datetime
from typing import TYPE_CHECKING, Optional

from sqlalchemy import Boolean, Date, DateTime, ForeignKey, Index, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

if TYPE_CHECKING:
    from app.bootcamp.modules.talks.models import Talk

# Generations are counted in quarters from the first cohort.
FIRST_GENERATION_YEAR = 2013


class Base(DeclarativeBase):
    pass


class Company(Base):
    __tablename__ = "companies"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)

    users: Mapped[list["User"]] = relationship(back_populates="company", lazy="selectin")


class User(Base):
    __tablename__ = "users"
    __table_args__ = (
        Index("idx_users_last_activity_at", "last_activity_at"),
        Index("idx_users_company_id", "company_id"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    login_name: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)
    email: Mapped[str] = mapped_column(String(320), nullable=False, unique=True)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    name: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    name_kana: Mapped[str | None] = mapped_column(String(255), nullable=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Social / contact handles (all searchable)
    twitter_account: Mapped[str | None] = mapped_column(String(255), nullable=True)
    discord_account: Mapped[str | None] = mapped_column(String(255), nullable=True)
    github_account: Mapped[str | None] = mapped_column(String(255), nullable=True)
    blog_url: Mapped[str | None] = mapped_column(String(512), nullable=True)
    facebook_url: Mapped[str | None] = mapped_column(String(512), nullable=True)
    times_url: Mapped[str | None] = mapped_column(String(512), nullable=True)

    avatar_key: Mapped[str | None] = mapped_column(String(512), nullable=True)

    # Role flags; a user may hold several (e.g. mentor + graduate)
    admin: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    mentor: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    adviser: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    trainee: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    job_seeking: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    graduated_on: Mapped[date | None] = mapped_column(Date, nullable=True)
    retired_on: Mapped[date | None] = mapped_column(Date, nullable=True)
    retire_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    training_ends_on: Mapped[date | None] = mapped_column(Date, nullable=True)

    company_id: Mapped[int | None] = mapped_column(ForeignKey("companies.id", ondelete="SET NULL"), nullable=True)

    last_activity_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)

    company: Mapped[Optional[Company]] = relationship("Company", back_populates="users", lazy="selectin")
    talk: Mapped[Optional["Talk"]] = relationship("Talk", back_populates="user", uselist=False, lazy="selectin")

    @property
    def graduated(self) -> bool:
        return self.graduated_on is not None

    @property
    def retired(self) -> bool:
        return self.retired_on is not None

    @property
    def staff(self) -> bool:
        return self.admin or self.mentor or self.adviser

    @property
    def student(self) -> bool:
        return not (self.staff or self.trainee or self.graduated or self.retired)

    @property
    def generation(self) -> int:
        created = self.created_at or datetime.utcnow()
        return (created.year - FIRST_GENERATION_YEAR) * 4 + (created.month - 1) // 3 + 1

    def __repr__(self) -> str:
        return f"<User id={self.id} login_name={self.login_name!r}>"


class AuditEvent(Base):
    """
    Append-only audit trail event.
    Keep this table generic; feature tables can refer to it by id if needed.
    """

    __tablename__ = "audit_events"
    __table_args__ = (
        UniqueConstraint("request_id", "id", name="uq_audit_request_id_id"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
    request_id: Mapped[str | None] = mapped_column(String(64), nullable=True)

    actor_user_id: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    actor_login_name: Mapped[str | None] = mapped_column(String(64), nullable=True)

    action: Mapped[str] = mapped_column(String(128), nullable=False)  # e.g. "auth.login"
    entity_type: Mapped[str | None] = mapped_column(String(128), nullable=True)  # e.g. "User"
    entity_id: Mapped[str | None] = mapped_column(String(128), nullable=True)

    reason: Mapped[str | None] = mapped_column(String(512), nullable=True)
    metadata_json: Mapped[str | None] = mapped_column(Text, nullable=True)  # small JSON string
    client_ip: Mapped[str | None] = mapped_column(String(64), nullable=True)


# Ensure module models are imported so Base.metadata includes their tables.
# (Kept at bottom to avoid circular imports.)
from app.bootcamp.modules.products.models import Comment, Product  # noqa: E402,F401
from app.bootcamp.modules.talks.models import Talk  # noqa: E402,F401,F811
from app.bootcamp.modules.users.models import Following  # noqa: E402,F401
