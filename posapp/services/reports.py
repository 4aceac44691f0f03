from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from datetime import date
from decimal import Decimal

from posapp.models import Product, Sale
from posapp.services.pricing import money_str
from posapp.services.sales import sales_on_date


@dataclass
class ItemMovement:
    product_id: int
    name: str
    qty_sold: int
    stock: int | None = None

    def to_dict(self) -> dict:
        return {
            "product_id": self.product_id,
            "name": self.name,
            "qty_sold": self.qty_sold,
            "stock": self.stock,
        }


def _quantities_sold() -> dict[int, int]:
    sold: dict[int, int] = defaultdict(int)
    for items in Sale.query.with_entities(Sale.items).all():
        for item in items[0] or []:
            try:
                sold[int(item["product_id"])] += int(item.get("qty") or 0)
            except (KeyError, TypeError, ValueError):
                continue
    return sold


def dashboard_summary(day: date | None = None, low_stock_threshold: int = 5) -> dict:
    day = day or date.today()
    todays_sales = sales_on_date(day)
    recent = Sale.query.order_by(Sale.id.desc()).limit(5).all()

    return {
        "date": day.isoformat(),
        "today_sales": money_str(sum((Decimal(s.total_amount or 0) for s in todays_sales), Decimal("0"))),
        "today_profit": money_str(sum((Decimal(s.profit or 0) for s in todays_sales), Decimal("0"))),
        "today_count": len(todays_sales),
        "product_count": Product.query.count(),
        "low_stock_count": Product.query.filter(Product.stock < low_stock_threshold).count(),
        "recent_sales": [sale.to_dict() for sale in recent],
    }


def profit_and_loss() -> dict:
    """Lifetime totals. Cost of goods is derived as revenue minus profit."""

    revenue = Decimal("0")
    profit = Decimal("0")
    discounts = Decimal("0")
    delivery = Decimal("0")
    count = 0
    for sale in Sale.query.all():
        revenue += Decimal(sale.total_amount or 0)
        profit += Decimal(sale.profit or 0)
        discounts += Decimal(sale.discount_amount or 0)
        delivery += Decimal(sale.delivery_charge or 0)
        count += 1

    return {
        "sale_count": count,
        "revenue": money_str(revenue),
        "cost_of_goods": money_str(revenue - profit),
        "profit": money_str(profit),
        "discounts": money_str(discounts),
        "delivery_charges": money_str(delivery),
    }


def item_movement(limit: int = 5) -> dict:
    sold = _quantities_sold()
    products = {product.id: product for product in Product.query.all()}

    fast = [
        ItemMovement(
            product_id=product_id,
            name=products[product_id].name if product_id in products else f"#{product_id}",
            qty_sold=qty,
            stock=products[product_id].stock if product_id in products else None,
        )
        for product_id, qty in sold.items()
        if qty > 0
    ]
    fast.sort(key=lambda movement: (-movement.qty_sold, movement.product_id))

    slow = [
        ItemMovement(product_id=product.id, name=product.name, qty_sold=sold.get(product.id, 0), stock=product.stock)
        for product in products.values()
        if (product.stock or 0) > 0
    ]
    slow.sort(key=lambda movement: (movement.qty_sold, movement.product_id))

    return {
        "fast_movers": [movement.to_dict() for movement in fast[:limit]],
        "slow_movers": [movement.to_dict() for movement in slow[:limit]],
    }
