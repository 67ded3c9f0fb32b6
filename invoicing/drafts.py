from __future__ import annotations

import logging

from pydantic import ValidationError

from invoicing.branches import BranchRegistry
from invoicing.data import DRAFT_KEY, KeyValueStore
from invoicing.models import Invoice


logger = logging.getLogger(__name__)


class DraftStore:
    """The single last-used invoice draft."""

    def __init__(self, store: KeyValueStore, branches: BranchRegistry) -> None:
        self._store = store
        self._branches = branches

    def save(self, invoice: Invoice) -> None:
        self._store.set(DRAFT_KEY, invoice.to_json_dict())

    def load(self) -> Invoice | None:
        raw = self._store.get(DRAFT_KEY)
        if not raw:
            return None
        try:
            draft = Invoice.model_validate(raw)
        except ValidationError:
            logger.warning("drafts.unreadable")
            return None
        if draft.branch_id not in self._branches:
            draft = draft.model_copy(update={"branch_id": self._branches.default.id})
        return draft

    def clear(self) -> bool:
        return self._store.delete(DRAFT_KEY)
