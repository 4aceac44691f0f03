"""Shipment intake: landed cost calculation and bulk product creation."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Iterable

from sqlalchemy import or_

from posapp.exceptions import NotFoundError, ValidationError
from posapp.extensions import db
from posapp.models import Product, Shipment
from posapp.services import sync_bus
from posapp.services.pricing import round2, to_decimal
from posapp.services.sequence import SHIPMENT, advance_counter, next_number
from posapp.storage import atomic


logger = logging.getLogger("posapp.shipments")


@dataclass
class ShipmentLine:
    name: str
    category: str | None = None
    qty: int | None = 1
    base_cost: Decimal | float | str | None = 0
    retail_price: Decimal | float | str | None = 0

    @property
    def is_blank(self) -> bool:
        return not (self.name or "").strip()

    @property
    def quantity(self) -> int:
        # An empty or zero quantity on an intake row means a single unit.
        try:
            qty = int(self.qty or 0)
        except (TypeError, ValueError):
            raise ValidationError(f"Invalid quantity for {self.name}.")
        if qty < 0:
            raise ValidationError(f"Quantity for {self.name} cannot be negative.")
        return qty or 1

    @classmethod
    def from_dict(cls, data: dict) -> "ShipmentLine":
        return cls(
            name=(data.get("name") or "").strip(),
            category=data.get("category"),
            qty=data.get("qty"),
            base_cost=data.get("base_cost", data.get("cost")),
            retail_price=data.get("retail_price", data.get("retail")),
        )


@dataclass
class LandedLine:
    line: ShipmentLine
    qty: int
    landed_cost: Decimal
    retail_price: Decimal


@dataclass
class ShipmentPreview:
    total_qty: int = 0
    shipping_per_unit: Decimal = Decimal("0")
    exchange_rate: Decimal = Decimal("1")
    lines: list[LandedLine] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "total_qty": self.total_qty,
            "shipping_per_unit": f"{round2(self.shipping_per_unit):.2f}",
            "exchange_rate": str(self.exchange_rate),
            "lines": [
                {
                    "name": landed.line.name,
                    "qty": landed.qty,
                    "landed_cost": f"{landed.landed_cost:.2f}",
                    "retail_price": f"{landed.retail_price:.2f}",
                }
                for landed in self.lines
            ],
        }


def preview_shipment(shipping_cost, exchange_rate, lines: Iterable[ShipmentLine]) -> ShipmentPreview:
    """Spread freight evenly per unit and convert base costs to local currency.

    Freight is a single blended amount per unit regardless of item size or
    value. Rows without a name are ignored.
    """

    shipping = to_decimal(shipping_cost, field_name="shipping cost")
    rate = to_decimal(exchange_rate, field_name="exchange rate") or Decimal("1")
    if shipping < 0 or rate < 0:
        raise ValidationError("Shipping cost and exchange rate cannot be negative.")

    valid = [line for line in lines if not line.is_blank]
    total_qty = sum(line.quantity for line in valid)

    per_unit = Decimal("0")
    if total_qty > 0 and shipping > 0:
        per_unit = shipping / Decimal(total_qty)

    landed = []
    for line in valid:
        base = to_decimal(line.base_cost, field_name=f"cost of {line.name}")
        landed.append(
            LandedLine(
                line=line,
                qty=line.quantity,
                landed_cost=round2(base * rate + per_unit),
                retail_price=round2(to_decimal(line.retail_price, field_name=f"price of {line.name}")),
            )
        )

    return ShipmentPreview(
        total_qty=total_qty,
        shipping_per_unit=per_unit,
        exchange_rate=rate,
        lines=landed,
    )


def commit_shipment(vendor: str, shipping_cost, exchange_rate, lines: Iterable[ShipmentLine]) -> Shipment:
    """Record a shipment and add every line as a brand-new product.

    Lines are never merged into existing products, even when the names
    match; each intake is its own cost lot.
    """

    preview = preview_shipment(shipping_cost, exchange_rate, list(lines))
    if preview.total_qty == 0:
        raise ValidationError("No items to add.")

    vendor_name = (vendor or "").strip() or "General"

    with atomic("shipment intake"):
        shipment_no = next_number(SHIPMENT)
        shipment = Shipment(
            shipment_id=shipment_no,
            date=datetime.now(),
            vendor=vendor_name,
            shipping_cost=round2(to_decimal(shipping_cost)),
            exchange_rate=preview.exchange_rate,
            item_count=preview.total_qty,
            product_count=len(preview.lines),
            status=Shipment.STATUS_COMPLETED,
        )
        db.session.add(shipment)
        db.session.add_all(
            [
                Product(
                    name=landed.line.name,
                    category=landed.line.category,
                    vendor=vendor_name,
                    stock=landed.qty,
                    cost_price=landed.landed_cost,
                    retail_price=landed.retail_price,
                    wholesale_price=landed.retail_price,
                )
                for landed in preview.lines
            ]
        )
        advance_counter(SHIPMENT, shipment_no)
        db.session.flush()

    logger.info(
        "Shipment %s committed: %d product(s), %d unit(s)",
        shipment_no,
        len(preview.lines),
        preview.total_qty,
    )
    sync_bus.publish_refresh("shipments")
    return shipment


def delete_shipment(shipment_pk: int) -> None:
    """Remove the shipment record only. Products it created stay in inventory."""

    with atomic("shipment deletion"):
        shipment = get_shipment(shipment_pk)
        shipment_no = shipment.shipment_id
        db.session.delete(shipment)

    logger.info("Deleted shipment record %s; imported products kept", shipment_no)
    sync_bus.publish_refresh("shipments")


def get_shipment(shipment_pk: int) -> Shipment:
    shipment = db.session.get(Shipment, shipment_pk)
    if shipment is None:
        raise NotFoundError(f"Shipment {shipment_pk} does not exist.")
    return shipment


def list_shipments(search: str | None = None) -> list[Shipment]:
    query = Shipment.query
    if search:
        pattern = f"%{search.strip()}%"
        query = query.filter(
            or_(Shipment.shipment_id.ilike(pattern), Shipment.vendor.ilike(pattern))
        )
    return query.order_by(Shipment.id.desc()).all()
