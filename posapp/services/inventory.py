from __future__ import annotations

import logging
from decimal import Decimal

from posapp.exceptions import IntegrityWarning, NotFoundError, ValidationError
from posapp.extensions import db
from posapp.models import Product, Vendor
from posapp.services import sync_bus
from posapp.services.pricing import round2, to_decimal
from posapp.storage import atomic


logger = logging.getLogger("posapp.inventory")

PRODUCT_FIELDS = (
    "name",
    "category",
    "vendor",
    "cost_price",
    "retail_price",
    "wholesale_price",
    "stock",
)
_MONEY_FIELDS = ("cost_price", "retail_price", "wholesale_price")


def price_warnings(cost_price, retail_price, wholesale_price=None) -> list[str]:
    cost = to_decimal(cost_price, field_name="cost price")
    warnings = []
    if to_decimal(retail_price, field_name="retail price") < cost:
        warnings.append("Retail price is lower than cost price.")
    if wholesale_price not in (None, "") and to_decimal(wholesale_price, field_name="wholesale price") < cost:
        warnings.append("Wholesale price is lower than cost price.")
    return warnings


def _normalize(data: dict, *, partial: bool) -> dict:
    values: dict = {}
    for key in PRODUCT_FIELDS:
        if key not in data:
            continue
        value = data[key]
        if key in _MONEY_FIELDS:
            value = round2(to_decimal(value, field_name=key.replace("_", " ")))
        elif key == "stock":
            try:
                value = int(value or 0)
            except (TypeError, ValueError):
                raise ValidationError("Stock must be a whole number.")
        elif isinstance(value, str):
            value = value.strip()
        values[key] = value

    if not partial and not values.get("name"):
        raise ValidationError("Product name is required.")
    if "name" in values and not values["name"]:
        raise ValidationError("Product name is required.")
    return values


def _check_warnings(product: Product | None, values: dict, acknowledge: bool) -> None:
    if acknowledge:
        return

    def current(key):
        if key in values:
            return values[key]
        return getattr(product, key, None) if product is not None else Decimal("0")

    warnings = price_warnings(current("cost_price"), current("retail_price"), current("wholesale_price"))
    if warnings:
        raise IntegrityWarning(warnings)


def add_product(data: dict, *, acknowledge_warnings: bool = False) -> Product:
    values = _normalize(data, partial=False)
    values.setdefault("vendor", "General")
    values.setdefault("stock", 0)
    values.setdefault("cost_price", Decimal("0.00"))
    values.setdefault("retail_price", Decimal("0.00"))
    values.setdefault("wholesale_price", values["retail_price"])
    _check_warnings(None, values, acknowledge_warnings)

    with atomic("product creation"):
        product = Product(**values)
        db.session.add(product)
        db.session.flush()
        product_id = product.id

    logger.info("Added product %s (%s)", product_id, values["name"])
    sync_bus.publish_refresh("inventory")
    return product


def update_product(product_id: int, data: dict, *, acknowledge_warnings: bool = False) -> Product:
    values = _normalize(data, partial=True)

    with atomic("product update"):
        product = get_product(product_id)
        _check_warnings(product, values, acknowledge_warnings)
        for key, value in values.items():
            setattr(product, key, value)

    sync_bus.publish_refresh("inventory")
    return product


def delete_product(product_id: int) -> None:
    with atomic("product deletion"):
        product = get_product(product_id)
        db.session.delete(product)

    logger.info("Deleted product %s", product_id)
    sync_bus.publish_refresh("inventory")


def get_product(product_id: int) -> Product:
    product = db.session.get(Product, product_id)
    if product is None:
        raise NotFoundError(f"Product {product_id} does not exist.")
    return product


def list_products(search: str | None = None, category: str | None = None) -> list[Product]:
    query = Product.query
    if search:
        query = query.filter(Product.name.ilike(f"%{search.strip()}%"))
    if category:
        query = query.filter(Product.category == category)
    return query.order_by(Product.name.asc(), Product.id.asc()).all()


def low_stock_products(threshold: int = 5) -> list[Product]:
    return Product.query.filter(Product.stock < threshold).order_by(Product.stock.asc()).all()


def list_vendors() -> list[Vendor]:
    return Vendor.query.order_by(Vendor.id.asc()).all()


def add_vendor(name: str, contact: str | None = None) -> Vendor:
    name = (name or "").strip()
    if not name:
        raise ValidationError("Vendor name is required.")

    with atomic("vendor creation"):
        vendor = Vendor(name=name, contact=(contact or "").strip())
        db.session.add(vendor)
        db.session.flush()

    sync_bus.publish_refresh("vendors")
    return vendor


def seed_default_vendors(defaults) -> None:
    if Vendor.query.first() is not None:
        return
    with atomic("vendor seeding"):
        db.session.add_all([Vendor(name=name, contact=contact) for name, contact in defaults])
