from __future__ import annotations

from datetime import datetime

from flask import Blueprint, current_app, request

from app.bootcamp.db import db_session, paginate, parse_page
from app.bootcamp.modules.products.service import (
    serialize_product,
    summarize_by_elapsed_days,
    unchecked_products,
)
from app.bootcamp.policy import Resource
from app.bootcamp.rbac import current_viewer, require
from app.bootcamp.targets import ProductTarget

bp = Blueprint("products", __name__)


@bp.get("/api/products/unchecked")
@require(Resource.STAFF_QUEUE)
def unchecked_index():
    s = db_session()
    viewer = current_viewer()
    target = ProductTarget.parse(request.args.get("target"))
    page = paginate(
        unchecked_products(s, viewer, target),
        parse_page(request.args.get("page")),
        current_app.config["PRODUCTS_PER_PAGE"],
    )

    now = datetime.utcnow()
    summary = summarize_by_elapsed_days(page.items, now)
    return {
        "target": target.value,
        "pagination": page.as_dict(),
        "products": [serialize_product(p, now) for p in page.items],
        "summary": {str(bucket): serialize_product(p, now) for bucket, p in summary.items()},
    }
