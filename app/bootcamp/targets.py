"""
Closed ``target`` selectors for the filterable listings.

Each listing parses its raw query-string value exactly once. Unknown or
missing values become the listing's default, so handlers and queries only
ever see a valid member.
"""
from __future__ import annotations

import logging
from enum import Enum
from typing import TypeVar

from app.bootcamp.viewer import Role, Viewer

logger = logging.getLogger(__name__)

E = TypeVar("E", bound=Enum)


def lookup(enum_cls: type[E], raw: str | None) -> E | None:
    value = (raw or "").strip()
    if not value:
        return None
    try:
        return enum_cls(value)
    except ValueError:
        logger.info("Unknown %s %r; using default", enum_cls.__name__, value)
        return None


class ProductTarget(str, Enum):
    UNCHECKED_ALL = "unchecked_all"
    UNCHECKED_NO_REPLIED = "unchecked_no_replied"

    @classmethod
    def default(cls) -> "ProductTarget":
        return cls.UNCHECKED_ALL

    @classmethod
    def parse(cls, raw: str | None) -> "ProductTarget":
        return lookup(cls, raw) or cls.default()


class TalkTarget(str, Enum):
    ALL = "all"
    UNREPLIED = "unreplied"
    STUDENT_AND_TRAINEE = "student_and_trainee"
    MENTOR = "mentor"
    GRADUATE = "graduate"
    ADVISER = "adviser"
    TRAINEE = "trainee"
    RETIRED = "retired"

    @classmethod
    def default(cls) -> "TalkTarget":
        return cls.ALL

    @classmethod
    def parse(cls, raw: str | None) -> "TalkTarget":
        return lookup(cls, raw) or cls.default()


class UserTarget(str, Enum):
    STUDENT_AND_TRAINEE = "student_and_trainee"
    FOLLOWINGS = "followings"
    MENTOR = "mentor"
    GRADUATE = "graduate"
    ADVISER = "adviser"
    TRAINEE = "trainee"
    JOB_SEEKING = "job_seeking"
    RETIRED = "retired"
    INACTIVE = "inactive"
    ALL = "all"

    @classmethod
    def allowed_for(cls, viewer: Viewer) -> tuple["UserTarget", ...]:
        if not viewer.authenticated:
            return ()
        if viewer.role in (Role.ADMIN, Role.MENTOR):
            return tuple(cls)
        allowed = [
            cls.STUDENT_AND_TRAINEE,
            cls.FOLLOWINGS,
            cls.GRADUATE,
            cls.ADVISER,
            cls.TRAINEE,
        ]
        if viewer.role == Role.ADVISER:
            allowed.extend([cls.MENTOR, cls.JOB_SEEKING])
        return tuple(allowed)

    @classmethod
    def default_for(cls, viewer: Viewer) -> "UserTarget":
        if viewer.role in (Role.ADMIN, Role.MENTOR):
            return cls.ALL
        return cls.STUDENT_AND_TRAINEE

    @classmethod
    def parse(cls, raw: str | None, viewer: Viewer) -> "UserTarget":
        target = lookup(cls, raw)
        if target is None or not target.is_permitted(viewer):
            return cls.default_for(viewer)
        return target

    def is_permitted(self, viewer: Viewer) -> bool:
        return self in self.allowed_for(viewer)

    @property
    def searchable(self) -> bool:
        return self is not UserTarget.FOLLOWINGS
