import os
import sys
from datetime import date

import pytest

sys.path.append(os.path.join(os.path.dirname(__file__), ".."))

from posapp import create_app
from posapp.extensions import db
from posapp.services import reports, sales, sync_bus
from posapp.services.cart import Cart
from posapp.services.inventory import add_product


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


@pytest.fixture
def store(app):
    lamp = add_product({"name": "Brass Lamp", "stock": 10, "cost_price": "60", "retail_price": "100"})
    vase = add_product({"name": "Clay Vase", "stock": 6, "cost_price": "5", "retail_price": "8"})
    mask = add_product({"name": "Kolam Mask", "stock": 3, "cost_price": "10", "retail_price": "25"})

    cart = Cart()
    cart.add_product(lamp, 2)
    cart.add_product(vase, 3)
    sales.checkout(cart)

    cart = Cart()
    cart.add_product(vase, 2)
    sales.checkout(cart, discount_type="fixed", discount_value="4")

    cart = Cart()
    cart.add_product(lamp, 1)
    sales.checkout(cart, sale_date="2024-01-15")
    return {"lamp": lamp.id, "vase": vase.id, "mask": mask.id}


def test_dashboard_summary_for_today(store):
    summary = reports.dashboard_summary(date.today())

    assert summary["today_count"] == 2
    assert summary["today_sales"] == "236.00"
    assert summary["today_profit"] == "91.00"
    assert summary["product_count"] == 3
    assert summary["low_stock_count"] == 2
    assert len(summary["recent_sales"]) == 3


def test_profit_and_loss_derives_cost_of_goods(store):
    report = reports.profit_and_loss()

    assert report["sale_count"] == 3
    assert report["revenue"] == "336.00"
    assert report["profit"] == "131.00"
    assert report["cost_of_goods"] == "205.00"
    assert report["discounts"] == "4.00"


def test_item_movement(store):
    movement = reports.item_movement(limit=5)

    assert [row["name"] for row in movement["fast_movers"]] == ["Clay Vase", "Brass Lamp"]
    assert movement["fast_movers"][0]["qty_sold"] == 5
    assert [row["name"] for row in movement["slow_movers"]] == ["Kolam Mask", "Brass Lamp", "Clay Vase"]
    assert movement["slow_movers"][0]["qty_sold"] == 0
