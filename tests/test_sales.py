import os
import sys
from datetime import date, datetime
from decimal import Decimal

import pytest
from sqlalchemy.exc import OperationalError

sys.path.append(os.path.join(os.path.dirname(__file__), ".."))

from posapp import create_app
from posapp.exceptions import NotFoundError, StorageError, ValidationError
from posapp.extensions import db
from posapp.models import PosSettings, Product, Sale, SaleEditJournal
from posapp.services import sales, sync_bus
from posapp.services.cart import Cart
from posapp.services.inventory import add_product, delete_product


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


def _product(name="Brass Lamp", stock=10, cost="60", retail="100", wholesale="90"):
    return add_product(
        {
            "name": name,
            "stock": stock,
            "cost_price": cost,
            "retail_price": retail,
            "wholesale_price": wholesale,
        }
    )


def _cart(product, qty, price_type="retail"):
    cart = Cart(price_type=price_type)
    cart.add_product(product, qty, enforce_stock=False)
    return cart


def _stock(product_id):
    return db.session.get(Product, product_id).stock


def _invoice_counter():
    return PosSettings.get_or_create().last_invoice_no


def test_sale_round_trip_restores_stock(app):
    lamp = _product()
    vase = _product("Clay Vase", stock=4, cost="5", retail="8", wholesale="7")
    cart = Cart()
    cart.add_product(lamp, 3)
    cart.add_product(vase, 2)

    sale = sales.checkout(cart)

    assert _stock(lamp.id) == 7
    assert _stock(vase.id) == 2
    assert sale.total_amount == Decimal("316.00")
    assert sale.profit == Decimal("126.00")

    snapshot = sales.delete_sale(sale.id)

    assert snapshot["invoice_no"] == f"INV-{YEAR}-0001"
    assert _stock(lamp.id) == 10
    assert _stock(vase.id) == 4
    assert Sale.query.count() == 0


def test_invoice_numbers_strictly_increase(app):
    lamp = _product()

    numbers = [sales.checkout(_cart(lamp, 1)).invoice_no for _ in range(3)]
    assert numbers == [f"INV-{YEAR}-0001", f"INV-{YEAR}-0002", f"INV-{YEAR}-0003"]

    last = Sale.query.filter_by(invoice_no=numbers[-1]).one()
    sales.delete_sale(last.id)

    assert sales.checkout(_cart(lamp, 1)).invoice_no == f"INV-{YEAR}-0004"
    assert _invoice_counter() == 4


def test_custom_invoice_numbers_only_move_the_counter_forward(app):
    lamp = _product()

    high = sales.checkout(_cart(lamp, 1), custom_invoice_no="50")
    assert high.invoice_no == f"INV-{YEAR}-0050"
    assert _invoice_counter() == 50

    low = sales.checkout(_cart(lamp, 1), custom_invoice_no="7")
    assert low.invoice_no == f"INV-{YEAR}-0007"
    assert _invoice_counter() == 50

    assert sales.checkout(_cart(lamp, 1)).invoice_no == f"INV-{YEAR}-0051"


def test_duplicate_custom_numbers_are_accepted(app):
    lamp = _product()

    sales.checkout(_cart(lamp, 1), custom_invoice_no="12")
    sales.checkout(_cart(lamp, 1), custom_invoice_no="12")

    assert Sale.query.filter_by(invoice_no=f"INV-{YEAR}-0012").count() == 2


def test_non_numeric_custom_number_is_rejected(app):
    lamp = _product()

    with pytest.raises(ValidationError):
        sales.checkout(_cart(lamp, 1), custom_invoice_no="A12")
    assert _stock(lamp.id) == 10


def test_discount_larger_than_subtotal_clamps_total(app):
    lamp = _product()

    sale = sales.checkout(_cart(lamp, 1), discount_type="fixed", discount_value="150")

    assert sale.total_amount == Decimal("0.00")
    assert sale.profit == Decimal("-110.00")
    assert sale.discount_amount == Decimal("150.00")


def test_ledger_allows_overselling(app):
    lamp = _product()

    sales.checkout(_cart(lamp, 12))

    assert _stock(lamp.id) == -2


def test_empty_cart_is_rejected(app):
    with pytest.raises(ValidationError):
        sales.checkout(Cart())


def test_missing_product_rolls_back_the_whole_sale(app):
    lamp = _product()
    data = sales.build_sale_data(_cart(lamp, 2))
    data["items"].append(
        {"product_id": 999, "name": "Ghost", "qty": 1, "unit_price": "1.00", "cost_price": "0.00", "total": "1.00"}
    )

    with pytest.raises(NotFoundError):
        sales.create_sale(data)

    assert _stock(lamp.id) == 10
    assert Sale.query.count() == 0
    assert _invoice_counter() == 0


def test_failed_commit_surfaces_storage_error(app, monkeypatch):
    lamp = _product()
    cart = _cart(lamp, 2)

    def broken_commit():
        raise OperationalError("COMMIT", {}, Exception("database is locked"))

    monkeypatch.setattr(db.session, "commit", broken_commit)
    with pytest.raises(StorageError) as excinfo:
        sales.checkout(cart)
    monkeypatch.undo()

    assert excinfo.value.operation == "sale creation"
    assert _stock(lamp.id) == 10
    assert Sale.query.count() == 0


def test_deleting_sale_skips_products_removed_since(app):
    lamp = _product()
    vase = _product("Clay Vase", stock=4, cost="5", retail="8", wholesale="7")
    cart = _cart(lamp, 1)
    cart.add_product(vase, 1)
    sale = sales.checkout(cart)

    delete_product(vase.id)
    sales.delete_sale(sale.id)

    assert _stock(lamp.id) == 10
    assert Sale.query.count() == 0


def test_delete_unknown_sale(app):
    with pytest.raises(NotFoundError):
        sales.delete_sale(404)


def test_edit_sale_keeps_invoice_and_nets_stock(app):
    lamp = _product()
    sale = sales.checkout(_cart(lamp, 3))
    invoice_no = sale.invoice_no

    edited = sales.edit_sale(sale.id, _cart(lamp, 5), customer_name="Nimal")

    assert edited.invoice_no == invoice_no
    assert edited.customer_name == "Nimal"
    assert edited.items[0]["qty"] == 5
    assert _stock(lamp.id) == 5
    assert Sale.query.count() == 1
    assert sales.pending_sale_edits() == []
    assert _invoice_counter() == 1


def test_edit_sale_carries_over_terms_not_passed(app):
    lamp = _product()
    sale = sales.checkout(
        _cart(lamp, 3, price_type="wholesale"),
        customer_name="Acme",
        customer_address="12 Temple Road",
        delivery_charge="50",
        discount_type="fixed",
        discount_value="10",
        sale_date="2024-03-05",
    )
    sale_id = sale.id
    original_date = sale.date

    edited = sales.edit_sale(sale_id, _cart(lamp, 2, price_type="wholesale"))

    assert edited.customer_name == "Acme"
    assert edited.customer_address == "12 Temple Road"
    assert edited.customer_type == "wholesale"
    assert edited.date == original_date
    assert edited.delivery_charge == Decimal("50.00")
    assert edited.discount_amount == Decimal("10.00")
    assert edited.total_amount == Decimal("220.00")
    assert edited.profit == Decimal("50.00")
    assert [s.id for s in sales.sales_on_date(date(2024, 3, 5))] == [edited.id]


def test_interrupted_edit_can_be_resumed(app, monkeypatch):
    lamp = _product()
    sale = sales.checkout(_cart(lamp, 3))
    invoice_no = sale.invoice_no
    replacement_cart = _cart(lamp, 5)

    def power_cut(journal_id):
        raise StorageError("power cut", operation="sale edit completion")

    monkeypatch.setattr(sales, "resume_sale_edit", power_cut)
    with pytest.raises(StorageError):
        sales.edit_sale(sale.id, replacement_cart)
    monkeypatch.undo()

    pending = sales.pending_sale_edits()
    assert len(pending) == 1
    assert pending[0].to_dict()["invoice_no"] == invoice_no
    assert _stock(lamp.id) == 10
    assert Sale.query.count() == 0

    resumed = sales.resume_sale_edit(pending[0].id)

    assert resumed.invoice_no == invoice_no
    assert _stock(lamp.id) == 5
    assert SaleEditJournal.query.count() == 0


def test_interrupted_edit_can_be_abandoned(app, monkeypatch):
    lamp = _product()
    sale = sales.checkout(_cart(lamp, 3), customer_name="Kamal")
    sale_id = sale.id
    replacement_cart = _cart(lamp, 5)

    def power_cut(journal_id):
        raise StorageError("power cut", operation="sale edit completion")

    monkeypatch.setattr(sales, "resume_sale_edit", power_cut)
    with pytest.raises(StorageError):
        sales.edit_sale(sale_id, replacement_cart)
    monkeypatch.undo()

    journal = sales.pending_sale_edits()[0]
    restored = sales.abandon_sale_edit(journal.id)

    assert restored.id == sale_id
    assert restored.customer_name == "Kamal"
    assert restored.items[0]["qty"] == 3
    assert _stock(lamp.id) == 7
    assert SaleEditJournal.query.count() == 0


def test_cart_for_sale_uses_current_prices(app):
    lamp = _product()
    sale = sales.checkout(_cart(lamp, 2, price_type="wholesale"))

    cart = sales.cart_for_sale(sale.id)

    assert cart.price_type == "wholesale"
    assert cart.lines[0].qty == 2


def test_search_and_date_lookup(app):
    lamp = _product()
    sales.checkout(_cart(lamp, 1), customer_name="Nimal Perera")
    back_dated = sales.checkout(_cart(lamp, 1), sale_date="2024-03-05")

    assert [sale.customer_name for sale in sales.list_sales("nimal")] == ["Nimal Perera"]
    assert len(sales.list_sales()) == 2
    assert back_dated.date.date() == date(2024, 3, 5)
    assert [sale.id for sale in sales.sales_on_date(date(2024, 3, 5))] == [back_dated.id]
    assert sales.get_sale_by_invoice(back_dated.invoice_no).id == back_dated.id

    with pytest.raises(ValidationError):
        sales.resolve_sale_date("05/03/2024")


def test_mutations_publish_refresh(app):
    lamp = _product()
    before = sync_bus.current_generation()

    sale = sales.checkout(_cart(lamp, 1))
    sales.delete_sale(sale.id)

    assert sync_bus.current_generation() == before + 2
    assert [event["source"] for event in sync_bus.get_recent_events(2)] == ["sales", "sales"]
