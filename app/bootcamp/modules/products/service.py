from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Iterable

from sqlalchemy import func, select

from app.bootcamp.modules.products.models import Comment, Product
from app.bootcamp.targets import ProductTarget

if TYPE_CHECKING:
    from sqlalchemy.orm import Query, Session
    from app.bootcamp.viewer import Viewer


# Everything submitted a week or more ago shares the last bucket.
ELAPSED_DAYS_CEILING = 7

date_of_publishing = func.coalesce(Product.published_at, Product.created_at)


def unchecked_products(s: "Session", viewer: "Viewer", target: ProductTarget) -> "Query":
    """
    Non-WIP, unchecked products, oldest first.

    ``unchecked_no_replied`` additionally drops products the viewer has
    already commented on. The filter is per product: other submissions by
    the same author stay queued until the viewer replies to them too.
    """
    q = s.query(Product).filter(Product.checker_id.is_(None)).filter(Product.wip.is_(False))
    if target is ProductTarget.UNCHECKED_NO_REPLIED:
        replied = select(Comment.product_id).where(Comment.user_id == viewer.id)
        q = q.filter(Product.id.not_in(replied))
    return q.order_by(date_of_publishing.asc(), Product.id.asc())


def elapsed_days(product: Product, now: datetime | None = None) -> int:
    now = now or datetime.utcnow()
    return max(0, (now - product.date_of_publishing).days)


def elapsed_bucket(product: Product, now: datetime | None = None) -> int:
    return min(elapsed_days(product, now), ELAPSED_DAYS_CEILING)


def summarize_by_elapsed_days(products: Iterable[Product], now: datetime | None = None) -> dict[int, Product]:
    """Earliest product per elapsed-days bucket (0..6, 7 meaning 7+), keyed in bucket order."""
    now = now or datetime.utcnow()
    earliest: dict[int, Product] = {}
    for product in products:
        bucket = elapsed_bucket(product, now)
        current = earliest.get(bucket)
        if current is None or (product.date_of_publishing, product.id) < (current.date_of_publishing, current.id):
            earliest[bucket] = product
    return {bucket: earliest[bucket] for bucket in sorted(earliest)}


def serialize_product(product: Product, now: datetime | None = None) -> dict:
    return {
        "id": product.id,
        "practice_title": product.practice_title,
        "user": {"id": product.user.id, "login_name": product.user.login_name} if product.user else None,
        "published_at": product.date_of_publishing.isoformat(),
        "elapsed_days": elapsed_days(product, now),
        "comments_count": len(product.comments),
        "wip": product.wip,
        "checked": product.checked,
    }
