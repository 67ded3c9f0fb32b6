from __future__ import annotations

import logging

from invoicing.data import KeyValueStore, customers_key
from invoicing.models import Customer


logger = logging.getLogger(__name__)


class CustomerBook:
    """Customers of one branch, keyed by VAT id. Newest first."""

    def __init__(self, store: KeyValueStore, branch_id: str) -> None:
        self._store = store
        self.branch_id = branch_id

    def list(self) -> list[Customer]:
        raw = self._store.get(customers_key(self.branch_id), [])
        if not isinstance(raw, list):
            return []
        return [Customer.model_validate(item) for item in raw]

    def _save_all(self, customers: list[Customer]) -> None:
        self._store.set(customers_key(self.branch_id), [c.to_json_dict() for c in customers])

    def find(self, vat: str) -> Customer | None:
        vat = (vat or "").strip()
        for customer in self.list():
            if customer.vat == vat:
                return customer
        return None

    def save(self, customer: Customer) -> bool:
        """Insert or update by VAT id. Returns True when the customer already existed."""
        name = (customer.name or "").strip()
        vat = (customer.vat or "").strip()
        if not name or not vat:
            raise ValueError("Customer name and VAT id are required")
        customer = customer.model_copy(update={"name": name, "vat": vat})
        customers = self.list()
        exists = any(c.vat == vat for c in customers)
        if exists:
            customers = [customer if c.vat == vat else c for c in customers]
        else:
            customers.insert(0, customer)
        self._save_all(customers)
        logger.info("customers.saved", extra={"branch_id": self.branch_id, "updated": exists})
        return exists

    def delete(self, vat: str) -> bool:
        customers = self.list()
        remaining = [c for c in customers if c.vat != vat]
        if len(remaining) == len(customers):
            return False
        self._save_all(remaining)
        logger.info("customers.deleted", extra={"branch_id": self.branch_id})
        return True


def prefill_from_lookup(current: Customer, found: Customer | None) -> Customer:
    """Merge a registry lookup into the customer being edited; blanks never overwrite."""
    if found is None:
        return current
    updates = {
        field: value
        for field, value in found.model_dump().items()
        if isinstance(value, str) and value.strip()
    }
    return current.model_copy(update=updates)
