from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.bootcamp.models import Base

if TYPE_CHECKING:
    from app.bootcamp.models import User


class Product(Base):
    """A practice submission waiting for (or past) mentor review."""

    __tablename__ = "products"
    __table_args__ = (
        Index("idx_products_checker_id", "checker_id"),
        Index("idx_products_published_at", "published_at"),
        Index("idx_products_user_id", "user_id"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False)

    practice_title: Mapped[str] = mapped_column(String(255), nullable=False)
    body: Mapped[str] = mapped_column(Text, nullable=False, default="")
    wip: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    # NULL until the product leaves WIP
    published_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)

    checker_id: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    checked_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)

    user: Mapped["User"] = relationship(foreign_keys=[user_id], lazy="selectin")
    comments: Mapped[list["Comment"]] = relationship(
        back_populates="product",
        cascade="all, delete-orphan",
        order_by="Comment.created_at",
        lazy="selectin",
    )

    @property
    def checked(self) -> bool:
        return self.checker_id is not None

    @property
    def date_of_publishing(self) -> datetime:
        return self.published_at or self.created_at


class Comment(Base):
    """A reply on a product; reviewers comment, submitters answer."""

    __tablename__ = "comments"
    __table_args__ = (
        Index("idx_comments_product_id_user_id", "product_id", "user_id"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    product_id: Mapped[int] = mapped_column(ForeignKey("products.id", ondelete="CASCADE"), nullable=False)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    body: Mapped[str] = mapped_column(Text, nullable=False, default="")
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)

    product: Mapped[Product] = relationship(back_populates="comments")
    user: Mapped["User"] = relationship(lazy="selectin")
