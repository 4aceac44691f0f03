"""Read-through cache of the collections a terminal displays.

Entries are dropped whenever a refresh is published on the sync bus. The
cache is a view convenience only; every write path reads the database.
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Callable

from posapp.models import Product, Quotation, Sale, Shipment, User, Vendor
from posapp.services import sync_bus


logger = logging.getLogger("posapp.cache")


def _rows(model) -> Callable[[], list[dict[str, Any]]]:
    def load() -> list[dict[str, Any]]:
        return [row.to_dict() for row in model.query.order_by(model.id.desc()).all()]

    return load


COLLECTIONS: dict[str, Callable[[], list[dict[str, Any]]]] = {
    "products": _rows(Product),
    "sales": _rows(Sale),
    "quotations": _rows(Quotation),
    "shipments": _rows(Shipment),
    "vendors": _rows(Vendor),
    "users": _rows(User),
}


class AppStateCache:
    def __init__(self, loaders: dict[str, Callable[[], list[dict[str, Any]]]] | None = None):
        self._loaders = dict(loaders or COLLECTIONS)
        self._entries: dict[str, list[dict[str, Any]]] = {}
        self._lock = threading.Lock()
        # Bumped on every invalidation; a load that straddles one is not kept.
        self._epoch = 0
        self.loads = 0

    def get(self, name: str) -> list[dict[str, Any]]:
        if name not in self._loaders:
            raise KeyError(name)
        with self._lock:
            if name in self._entries:
                return self._entries[name]
            epoch = self._epoch
        rows = self._loaders[name]()
        with self._lock:
            self.loads += 1
            if self._epoch == epoch:
                self._entries[name] = rows
        return rows

    def snapshot(self) -> dict[str, list[dict[str, Any]]]:
        return {name: self.get(name) for name in self._loaders}

    def invalidate(self, *_args) -> None:
        with self._lock:
            self._epoch += 1
            self._entries.clear()
        logger.debug("State cache invalidated")

    def is_cached(self, name: str) -> bool:
        return name in self._entries

    def attach(self) -> "AppStateCache":
        # Weak, so a cache dropped with its app also drops off the bus.
        sync_bus.subscribe(self.invalidate, weak=True)
        return self

    def detach(self) -> None:
        sync_bus.unsubscribe(self.invalidate)
