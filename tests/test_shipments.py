import os
import sys
from datetime import datetime
from decimal import Decimal

import pytest

sys.path.append(os.path.join(os.path.dirname(__file__), ".."))

from posapp import create_app
from posapp.exceptions import NotFoundError, ValidationError
from posapp.extensions import db
from posapp.models import PosSettings, Product, Shipment
from posapp.services import shipments, sync_bus
from posapp.services.inventory import add_product
from posapp.services.shipments import ShipmentLine


YEAR = datetime.now().year


@pytest.fixture
def app():
    sync_bus.reset()
    app = create_app({"TESTING": True, "SQLALCHEMY_DATABASE_URI": "sqlite:///:memory:"})
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()
    sync_bus.reset()


def _lines():
    return [
        ShipmentLine(name="Silk Scarf", category="Textiles", qty=1, base_cost="10", retail_price="180"),
        ShipmentLine(name="Wood Elephant", category="Carvings", qty=1, base_cost="10", retail_price="200"),
        ShipmentLine(name="Tea Caddy", category="Tins", qty=1, base_cost="10", retail_price="150"),
    ]


def test_freight_is_spread_per_unit():
    preview = shipments.preview_shipment("300", "2", _lines())

    assert preview.total_qty == 3
    assert preview.shipping_per_unit == Decimal("100")
    assert [line.landed_cost for line in preview.lines] == [Decimal("120.00")] * 3
    assert preview.to_dict()["lines"][0]["landed_cost"] == "120.00"


def test_blank_rows_and_rate_defaults():
    lines = [
        ShipmentLine(name="Silk Scarf", qty=0, base_cost="10"),
        ShipmentLine(name="   ", qty=5, base_cost="99"),
        ShipmentLine(name="Tea Caddy", qty=3, base_cost="4.5"),
    ]

    preview = shipments.preview_shipment("", "0", lines)

    assert preview.exchange_rate == Decimal("1")
    assert preview.total_qty == 4
    assert preview.shipping_per_unit == Decimal("0")
    assert [line.landed_cost for line in preview.lines] == [Decimal("10.00"), Decimal("4.50")]


def test_negative_values_are_rejected():
    with pytest.raises(ValidationError):
        shipments.preview_shipment("-1", "1", _lines())
    with pytest.raises(ValidationError):
        shipments.preview_shipment("0", "1", [ShipmentLine(name="Scarf", qty=-2)])


def test_line_from_dict_accepts_short_keys():
    line = ShipmentLine.from_dict({"name": " Scarf ", "qty": "2", "cost": "3.5", "retail": "9"})

    assert line.name == "Scarf"
    assert line.quantity == 2
    assert line.base_cost == "3.5"
    assert line.retail_price == "9"


def test_commit_creates_products_at_landed_cost(app):
    shipment = shipments.commit_shipment("Saman Crafts", "300", "2", _lines())

    assert shipment.shipment_id == f"SHP-{YEAR}-0001"
    assert shipment.item_count == 3
    assert shipment.product_count == 3
    assert shipment.status == "Completed"
    assert PosSettings.get_or_create().last_shipment_id == 1

    scarf = Product.query.filter_by(name="Silk Scarf").one()
    assert scarf.cost_price == Decimal("120.00")
    assert scarf.retail_price == Decimal("180.00")
    assert scarf.wholesale_price == Decimal("180.00")
    assert scarf.vendor == "Saman Crafts"
    assert scarf.stock == 1


def test_commit_never_merges_with_existing_products(app):
    add_product({"name": "Silk Scarf", "stock": 4, "cost_price": "50", "retail_price": "180"})

    shipments.commit_shipment("", "0", "1", _lines())

    scarves = Product.query.filter_by(name="Silk Scarf").order_by(Product.id).all()
    assert [scarf.stock for scarf in scarves] == [4, 1]
    assert scarves[1].vendor == "General"


def test_commit_requires_items(app):
    with pytest.raises(ValidationError, match="No items to add."):
        shipments.commit_shipment("Saman Crafts", "100", "1", [ShipmentLine(name="")])

    assert Shipment.query.count() == 0
    assert PosSettings.get_or_create().last_shipment_id == 0


def test_deleting_shipment_keeps_its_products(app):
    shipment = shipments.commit_shipment("Saman Crafts", "300", "2", _lines())
    before = [(p.id, p.name, p.stock, p.cost_price) for p in Product.query.order_by(Product.id)]

    shipments.delete_shipment(shipment.id)

    after = [(p.id, p.name, p.stock, p.cost_price) for p in Product.query.order_by(Product.id)]
    assert after == before
    assert Shipment.query.count() == 0
    with pytest.raises(NotFoundError):
        shipments.get_shipment(shipment.id)


def test_list_and_search(app):
    shipments.commit_shipment("Saman Crafts", "0", "1", _lines())
    shipments.commit_shipment("Galle Traders", "0", "1", _lines())

    assert len(shipments.list_shipments()) == 2
    assert [s.vendor for s in shipments.list_shipments("galle")] == ["Galle Traders"]
