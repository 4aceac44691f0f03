from __future__ import annotations

import logging

from posapp.exceptions import NotFoundError
from posapp.extensions import db
from posapp.models import Product


logger = logging.getLogger("posapp.stock")


def _locked_product(product_id: int) -> Product | None:
    return (
        db.session.query(Product)
        .filter(Product.id == product_id)
        .with_for_update()
        .one_or_none()
    )


def adjust_stock(product_id: int, delta: int, *, missing_ok: bool = False) -> Product | None:
    """Consume ``delta`` units of stock (negative values put stock back).

    Callers own the surrounding transaction; this never commits. There is no
    floor at zero, an over-committed product simply goes negative.
    """

    product = _locked_product(product_id)
    if product is None:
        if missing_ok:
            logger.warning(
                "Stock adjustment of %s skipped for missing product %s", delta, product_id
            )
            return None
        raise NotFoundError(f"Product {product_id} does not exist.")

    product.stock = int(product.stock or 0) - int(delta)
    return product


def restore_stock(product_id: int, qty: int, *, missing_ok: bool = False) -> Product | None:
    return adjust_stock(product_id, -int(qty), missing_ok=missing_ok)
