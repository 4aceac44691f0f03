import json
import os
import sys
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal

import pytest

sys.path.append(os.path.join(os.path.dirname(__file__), ".."))

from posapp import create_app
from posapp.exceptions import ValidationError
from posapp.extensions import db
from posapp.models import PosSettings, Product, Quotation, Sale, Shipment, User, Vendor
from posapp.services import backup, quotations, sales, shipments, sync_bus
from posapp.services.accounts import register_user
from posapp.services.cart import Cart
from posapp.services.inventory import add_product
from posapp.services.shipments import ShipmentLine


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


def _seed_store():
    lamp = add_product(
        {"name": "Brass Lamp", "stock": 10, "cost_price": "60", "retail_price": "100", "wholesale_price": "90"}
    )
    cart = Cart()
    cart.add_product(lamp, 2)
    sales.checkout(cart, customer_name="Nimal", delivery_charge="25")
    quotations.save_quotation(cart, customer_name="Kamal")
    shipments.commit_shipment(
        "Saman Crafts", "150", "2.5", [ShipmentLine(name="Silk Scarf", qty=3, base_cost="12", retail_price="90")]
    )
    register_user("cashier", "till-1", "staff")
    return lamp


def _without_timestamp(snapshot):
    snapshot = dict(snapshot)
    snapshot.pop("exported_at")
    return snapshot


def test_export_then_import_is_idempotent(app):
    _seed_store()
    first = backup.export_snapshot()

    counts = backup.import_snapshot(json.loads(json.dumps(first)))
    second = backup.export_snapshot()

    assert counts["products"] == 2
    assert counts["sales"] == 1
    assert counts["users"] == 2
    assert _without_timestamp(first) == _without_timestamp(second)


def test_timestamps_are_naive_utc(app):
    lamp = _seed_store()
    now = datetime.now(timezone.utc).replace(tzinfo=None)

    exported_at = datetime.fromisoformat(backup.export_snapshot()["exported_at"])

    assert exported_at.tzinfo is None
    assert abs(exported_at - now) < timedelta(minutes=1)
    assert lamp.created_at.tzinfo is None
    assert abs(lamp.created_at - now) < timedelta(minutes=1)


def test_import_preserves_record_ids(app):
    lamp_id = _seed_store().id
    snapshot = backup.export_snapshot()
    sale_id = Sale.query.one().id

    backup.import_snapshot(snapshot)

    assert db.session.get(Product, lamp_id).name == "Brass Lamp"
    restored = db.session.get(Sale, sale_id)
    assert restored.items[0]["product_id"] == lamp_id
    sales.delete_sale(sale_id)
    assert db.session.get(Product, lamp_id).stock == 10


def test_import_replaces_everything(app):
    _seed_store()

    backup.import_snapshot({"products": [{"id": 7, "name": "Moonstone", "stock": 1}]})

    assert [p.name for p in Product.query.all()] == ["Moonstone"]
    assert Sale.query.count() == 0
    assert Quotation.query.count() == 0
    assert Shipment.query.count() == 0
    assert Vendor.query.count() == 0
    assert User.query.count() == 0
    assert PosSettings.query.count() == 0


def test_legacy_backup_is_upgraded(app):
    legacy = {
        "users": [{"id": 1, "username": "owner", "password": "secret", "role": "admin"}],
        "products": [
            {
                "id": 5,
                "name": "Kolam Mask",
                "costPrice": 10,
                "retailPrice": 25,
                "wholesalePrice": 20,
                "stock": 3,
                "createdAt": "2024-01-02T03:04:05.000Z",
            }
        ],
        "sales": [
            {
                "id": 1,
                "invoiceNo": "INV-2024-0009",
                "date": "2024-01-03T10:00:00Z",
                "customerType": "retail",
                "items": [{"productId": 5, "name": "Kolam Mask", "qty": 1, "price": 25, "total": 25}],
                "totalAmount": 25,
                "profit": 15,
            }
        ],
        "settings": [{"id": "config", "lastInvoiceNo": 9}],
    }

    backup.import_snapshot(json.dumps(legacy))

    owner = User.query.filter_by(username="owner").one()
    assert owner.password_hash != "secret"
    assert owner.check_password("secret")
    mask = db.session.get(Product, 5)
    assert mask.cost_price == Decimal("10")
    assert mask.created_at == datetime(2024, 1, 2, 3, 4, 5)
    assert PosSettings.get_or_create().last_invoice_no == 9

    sales.delete_sale(1)
    assert db.session.get(Product, 5).stock == 4


def test_invalid_documents_leave_store_untouched(app):
    lamp_id = _seed_store().id

    with pytest.raises(ValidationError):
        backup.import_snapshot("not json")
    with pytest.raises(ValidationError):
        backup.import_snapshot(["products"])
    with pytest.raises(ValidationError):
        backup.import_snapshot({"products": "Brass Lamp"})
    with pytest.raises(ValidationError):
        backup.import_snapshot({"products": [{"id": 1, "name": "Lamp", "cost_price": "abc"}]})

    assert db.session.get(Product, lamp_id).stock == 8
    assert Sale.query.count() == 1


def test_backup_file_round_trip(app, tmp_path):
    lamp_id = _seed_store().id

    path = backup.write_backup_file(tmp_path, day=date(2024, 5, 1))
    assert path.name == "mirage_pos_backup_2024-05-01.json"
    assert [entry["filename"] for entry in backup.list_backup_files(tmp_path)] == [path.name]

    sales.delete_sale(Sale.query.one().id)
    backup.read_backup_file(path)

    assert Sale.query.count() == 1
    assert db.session.get(Product, lamp_id).stock == 8


def test_reset_database_reseeds_defaults(app):
    _seed_store()

    backup.reset_database(app.config["DEFAULT_VENDORS"])

    assert Product.query.count() == 0
    assert Sale.query.count() == 0
    assert [v.name for v in Vendor.query.order_by(Vendor.id)] == ["General Vendor", "Saman Crafts"]
    assert [u.username for u in User.query.all()] == ["Administrator"]
    assert PosSettings.get_or_create().last_invoice_no == 0


def test_scheduler_disabled_while_testing(app):
    assert app.config["BACKUPS_ENABLED"] is False
    assert "backup_scheduler" not in app.extensions


def test_backup_job_writes_into_configured_dir(app, tmp_path, monkeypatch):
    monkeypatch.delenv("BACKUP_DIR", raising=False)
    app.config["BACKUP_DIR"] = str(tmp_path)

    backup.run_backup_job(app)

    assert (tmp_path / backup.backup_filename()).exists()
