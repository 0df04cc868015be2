"""
Explicit request context for queries and policy checks.

Handlers build a Viewer once from ``g.current_user`` and pass it down; nothing
below the HTTP boundary reads the session.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from app.bootcamp.models import User


class Role(str, Enum):
    ADMIN = "admin"
    MENTOR = "mentor"
    ADVISER = "adviser"
    TRAINEE = "trainee"
    GRADUATE = "graduate"
    RETIRED = "retired"
    STUDENT = "student"
    GUEST = "guest"


@dataclass(frozen=True)
class Viewer:
    id: int | None
    admin: bool = False
    mentor: bool = False
    adviser: bool = False
    trainee: bool = False
    graduated: bool = False
    retired: bool = False
    company_id: int | None = None

    @classmethod
    def anonymous(cls) -> "Viewer":
        return cls(id=None)

    @classmethod
    def from_user(cls, user: "User | None") -> "Viewer":
        if user is None or not user.is_active:
            return cls.anonymous()
        return cls(
            id=user.id,
            admin=bool(user.admin),
            mentor=bool(user.mentor),
            adviser=bool(user.adviser),
            trainee=bool(user.trainee),
            graduated=user.graduated,
            retired=user.retired,
            company_id=user.company_id,
        )

    @property
    def authenticated(self) -> bool:
        return self.id is not None

    @property
    def staff(self) -> bool:
        return self.admin or self.mentor

    @property
    def role(self) -> Role:
        # Highest-privilege flag wins.
        if not self.authenticated:
            return Role.GUEST
        if self.admin:
            return Role.ADMIN
        if self.mentor:
            return Role.MENTOR
        if self.adviser:
            return Role.ADVISER
        if self.trainee:
            return Role.TRAINEE
        if self.graduated:
            return Role.GRADUATE
        if self.retired:
            return Role.RETIRED
        return Role.STUDENT
