from datetime import datetime, timezone
from decimal import Decimal

from flask_login import UserMixin
from werkzeug.security import check_password_hash, generate_password_hash

from posapp.extensions import db


def _money(value) -> str:
    if value is None:
        return "0.00"
    return f"{Decimal(value):.2f}"


def utcnow() -> datetime:
    """Naive UTC timestamp, the form every DateTime column stores."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _iso(value):
    return value.isoformat() if value else None


class Product(db.Model):
    __tablename__ = "product"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(200), nullable=False)
    category = db.Column(db.String(100))
    vendor = db.Column(db.String(200))  # free text, not a vendor id
    cost_price = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    retail_price = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    wholesale_price = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    stock = db.Column(db.Integer, nullable=False, default=0)
    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)
    updated_at = db.Column(
        db.DateTime, default=utcnow, onupdate=utcnow, nullable=False
    )

    def price_for(self, price_type: str) -> Decimal:
        if price_type == "wholesale":
            return Decimal(self.wholesale_price or 0)
        return Decimal(self.retail_price or 0)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "category": self.category,
            "vendor": self.vendor,
            "cost_price": _money(self.cost_price),
            "retail_price": _money(self.retail_price),
            "wholesale_price": _money(self.wholesale_price),
            "stock": self.stock,
        }

    def __repr__(self) -> str:  # pragma: no cover - debug helper
        return f"<Product {self.id} {self.name}>"


class Sale(db.Model):
    __tablename__ = "sale"

    id = db.Column(db.Integer, primary_key=True)
    # Custom invoice numbers may repeat, so no unique constraint here.
    invoice_no = db.Column(db.String(32), nullable=False, index=True)
    date = db.Column(db.DateTime, default=utcnow, nullable=False, index=True)
    customer_type = db.Column(db.String(16), nullable=False, default="retail")
    customer_name = db.Column(db.String(200))
    customer_address = db.Column(db.Text)
    items = db.Column(db.JSON, nullable=False, default=list)
    total_amount = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    profit = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    delivery_charge = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    discount_type = db.Column(db.String(16), nullable=False, default="fixed")
    discount_value = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    discount_amount = db.Column(db.Numeric(12, 2), nullable=False, default=0)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "invoice_no": self.invoice_no,
            "date": _iso(self.date),
            "customer_type": self.customer_type,
            "customer_name": self.customer_name,
            "customer_address": self.customer_address,
            "items": list(self.items or []),
            "total_amount": _money(self.total_amount),
            "profit": _money(self.profit),
            "delivery_charge": _money(self.delivery_charge),
            "discount_type": self.discount_type,
            "discount_value": _money(self.discount_value),
            "discount_amount": _money(self.discount_amount),
        }


class Quotation(db.Model):
    __tablename__ = "quotation"

    id = db.Column(db.Integer, primary_key=True)
    quotation_no = db.Column(db.String(32), nullable=False, index=True)
    date = db.Column(db.DateTime, default=utcnow, nullable=False)
    customer_type = db.Column(db.String(16), nullable=False, default="retail")
    customer_name = db.Column(db.String(200))
    customer_address = db.Column(db.Text)
    items = db.Column(db.JSON, nullable=False, default=list)
    total_amount = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    delivery_charge = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    discount_type = db.Column(db.String(16), nullable=False, default="fixed")
    discount_value = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    discount_amount = db.Column(db.Numeric(12, 2), nullable=False, default=0)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "quotation_no": self.quotation_no,
            "date": _iso(self.date),
            "customer_type": self.customer_type,
            "customer_name": self.customer_name,
            "customer_address": self.customer_address,
            "items": list(self.items or []),
            "total_amount": _money(self.total_amount),
            "delivery_charge": _money(self.delivery_charge),
            "discount_type": self.discount_type,
            "discount_value": _money(self.discount_value),
            "discount_amount": _money(self.discount_amount),
        }


class Shipment(db.Model):
    __tablename__ = "shipment"

    STATUS_COMPLETED = "Completed"

    id = db.Column(db.Integer, primary_key=True)
    shipment_id = db.Column(db.String(32), nullable=False, index=True)
    date = db.Column(db.DateTime, default=utcnow, nullable=False)
    vendor = db.Column(db.String(200))
    shipping_cost = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    exchange_rate = db.Column(db.Numeric(12, 4), nullable=False, default=1)
    item_count = db.Column(db.Integer, nullable=False, default=0)
    product_count = db.Column(db.Integer, nullable=False, default=0)
    status = db.Column(db.String(32), nullable=False, default=STATUS_COMPLETED)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "shipment_id": self.shipment_id,
            "date": _iso(self.date),
            "vendor": self.vendor,
            "shipping_cost": _money(self.shipping_cost),
            "exchange_rate": str(Decimal(self.exchange_rate or 0)),
            "item_count": self.item_count,
            "product_count": self.product_count,
            "status": self.status,
        }


class PosSettings(db.Model):
    """Singleton row holding the document sequence counters."""

    __tablename__ = "pos_settings"

    SINGLETON_ID = "config"

    id = db.Column(db.String(32), primary_key=True, default=SINGLETON_ID)
    last_invoice_no = db.Column(db.Integer, nullable=False, default=0)
    last_quotation_no = db.Column(db.Integer, nullable=False, default=0)
    last_shipment_id = db.Column(db.Integer, nullable=False, default=0)

    @classmethod
    def get_or_create(cls):
        settings = db.session.get(cls, cls.SINGLETON_ID)
        if settings is None:
            settings = cls(
                id=cls.SINGLETON_ID,
                last_invoice_no=0,
                last_quotation_no=0,
                last_shipment_id=0,
            )
            db.session.add(settings)
            db.session.flush()
        return settings


class Vendor(db.Model):
    __tablename__ = "vendor"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(200), nullable=False)
    contact = db.Column(db.String(200))

    def to_dict(self) -> dict:
        return {"id": self.id, "name": self.name, "contact": self.contact}


class User(UserMixin, db.Model):
    __tablename__ = "user"

    ROLE_ADMIN = "admin"
    ROLE_STAFF = "staff"

    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(255), unique=True, nullable=False)
    password_hash = db.Column(db.String(255), nullable=False)
    role = db.Column(db.String(16), nullable=False, default=ROLE_STAFF)
    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)

    def set_password(self, password: str) -> None:
        self.password_hash = generate_password_hash(password)

    def check_password(self, password: str) -> bool:
        return check_password_hash(self.password_hash, password)

    @property
    def is_admin(self) -> bool:
        return self.role == self.ROLE_ADMIN

    def to_dict(self) -> dict:
        return {"id": self.id, "username": self.username, "role": self.role}

    def __repr__(self) -> str:  # pragma: no cover - debug helper
        return f"<User {self.username}>"


class SaleEditJournal(db.Model):
    """Recovery marker written between the delete and create halves of an edit."""

    __tablename__ = "sale_edit_journal"

    STATUS_PENDING = "pending"

    id = db.Column(db.Integer, primary_key=True)
    original_sale = db.Column(db.JSON, nullable=False)
    replacement = db.Column(db.JSON, nullable=False)
    status = db.Column(db.String(16), nullable=False, default=STATUS_PENDING)
    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "invoice_no": (self.original_sale or {}).get("invoice_no"),
            "status": self.status,
            "created_at": _iso(self.created_at),
        }
