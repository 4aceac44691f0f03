"""Human readable document numbers backed by the settings counters."""

from __future__ import annotations

from datetime import datetime

from posapp.exceptions import ValidationError
from posapp.models import PosSettings


INVOICE = "invoice"
QUOTATION = "quotation"
SHIPMENT = "shipment"

PREFIXES = {
    INVOICE: "INV",
    QUOTATION: "QTN",
    SHIPMENT: "SHP",
}

_COUNTER_COLUMNS = {
    INVOICE: "last_invoice_no",
    QUOTATION: "last_quotation_no",
    SHIPMENT: "last_shipment_id",
}


def _check_kind(kind: str) -> None:
    if kind not in PREFIXES:
        raise ValueError(f"Unknown document kind: {kind}")


def get_settings() -> PosSettings:
    return PosSettings.get_or_create()


def current_counter(kind: str) -> int:
    _check_kind(kind)
    return int(getattr(get_settings(), _COUNTER_COLUMNS[kind]) or 0)


def format_number(kind: str, counter: int, year: int | None = None) -> str:
    _check_kind(kind)
    if year is None:
        year = datetime.now().year
    return f"{PREFIXES[kind]}-{year}-{int(counter):04d}"


def numeric_suffix(number: str | None) -> int:
    """Return the integer after the last dash, or 0 when there is none."""

    if not number:
        return 0
    tail = str(number).rsplit("-", 1)[-1].strip()
    try:
        return int(tail)
    except ValueError:
        return 0


def next_number(kind: str, year: int | None = None) -> str:
    """Preview the next number for ``kind``. Nothing is persisted."""

    return format_number(kind, current_counter(kind) + 1, year)


def advance_counter(kind: str, issued_number: str) -> int:
    """Move the stored counter forward to the suffix of ``issued_number``.

    Must run inside the transaction that persists the document. Lower
    suffixes leave the counter where it is.
    """

    _check_kind(kind)
    settings = get_settings()
    column = _COUNTER_COLUMNS[kind]
    stored = int(getattr(settings, column) or 0)
    updated = max(stored, numeric_suffix(issued_number))
    if updated != stored:
        setattr(settings, column, updated)
    return updated


def custom_invoice_number(suffix: str | int, year: int | None = None) -> str:
    text = str(suffix).strip()
    if not text.isdigit():
        raise ValidationError("Custom invoice numbers must be numeric.")
    if year is None:
        year = datetime.now().year
    return f"{PREFIXES[INVOICE]}-{year}-{text.zfill(4)}"


def get_next_quotation_no(year: int | None = None) -> str:
    return next_number(QUOTATION, year)


def increment_quotation_no() -> int:
    """Confirm a quotation number handed out by :func:`get_next_quotation_no`."""

    settings = get_settings()
    settings.last_quotation_no = int(settings.last_quotation_no or 0) + 1
    return settings.last_quotation_no
