"""In-memory checkout cart mirroring the POS screen."""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Iterable

from posapp.exceptions import NotFoundError, ValidationError
from posapp.extensions import db
from posapp.models import Product
from posapp.services.pricing import CartLine, check_price_type


@dataclass
class Cart:
    price_type: str = "retail"
    lines: list[CartLine] = field(default_factory=list)

    def __post_init__(self) -> None:
        check_price_type(self.price_type)

    def is_empty(self) -> bool:
        return not self.lines

    def find(self, product_id: int) -> CartLine | None:
        for line in self.lines:
            if line.product_id == product_id:
                return line
        return None

    def add_product(self, product: Product, qty: int = 1, *, enforce_stock: bool = True) -> CartLine:
        """Add ``qty`` units, snapshotting the product's current prices.

        The stock check here is the soft UI check only; the ledger itself
        lets stock go negative.
        """

        qty = int(qty)
        if qty <= 0:
            raise ValidationError("Quantity must be greater than zero.")

        stock = int(product.stock or 0)
        existing = self.find(product.id)
        if enforce_stock:
            if stock <= 0:
                raise ValidationError(f"{product.name} is out of stock.")
            already = existing.qty if existing else 0
            if already + qty > stock:
                raise ValidationError(f"Max stock reached for {product.name}.")

        if existing:
            existing.qty += qty
            return existing

        line = CartLine(
            product_id=product.id,
            name=product.name,
            qty=qty,
            cost_price=Decimal(product.cost_price or 0),
            retail_price=Decimal(product.retail_price or 0),
            wholesale_price=Decimal(product.wholesale_price or 0),
        )
        self.lines.append(line)
        return line

    def add_product_id(self, product_id: int, qty: int = 1, *, enforce_stock: bool = True) -> CartLine:
        product = db.session.get(Product, product_id)
        if product is None:
            raise NotFoundError(f"Product {product_id} does not exist.")
        return self.add_product(product, qty, enforce_stock=enforce_stock)

    def update_qty(self, product_id: int, change: int) -> None:
        line = self.find(product_id)
        if line is None:
            return
        line.qty += int(change)
        if line.qty <= 0:
            self.remove(product_id)

    def remove(self, product_id: int) -> None:
        self.lines = [line for line in self.lines if line.product_id != product_id]

    def clear(self) -> None:
        self.lines = []

    @classmethod
    def from_items(cls, items: Iterable[dict], price_type: str = "retail") -> "Cart":
        """Rebuild a cart from stored line items at CURRENT product prices.

        Products deleted since the document was written are dropped.
        """

        cart = cls(price_type=price_type)
        for item in items or []:
            product = db.session.get(Product, item.get("product_id"))
            if product is None:
                continue
            cart.add_product(product, int(item.get("qty") or 0), enforce_stock=False)
        return cart

    @classmethod
    def from_request(cls, payload: dict, *, enforce_stock: bool = True) -> "Cart":
        """Build a cart from ``{"price_type": ..., "items": [{"product_id", "qty"}]}``."""

        cart = cls(price_type=payload.get("price_type") or payload.get("customer_type") or "retail")
        for entry in payload.get("items") or []:
            try:
                product_id = int(entry["product_id"])
                qty = int(entry.get("qty", 1))
            except (KeyError, TypeError, ValueError):
                raise ValidationError("Each cart item needs a product_id and a whole quantity.")
            cart.add_product_id(product_id, qty, enforce_stock=enforce_stock)
        return cart
