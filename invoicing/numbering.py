from __future__ import annotations

import logging
import os
import re

from invoicing.data import KeyValueStore, sequence_key
from invoicing.ledger import HistoryLedger
from invoicing.models import HistoryStatus


logger = logging.getLogger(__name__)

NUMBER_WIDTH = 4

_TRAILING_DIGITS = re.compile(r"(\d+)(?!.*\d)")


def parse_invoice_sequence(value: object) -> int | None:
    """Trailing integer of an invoice number, e.g. ``"A-2024-0042"`` -> 42."""
    match = _TRAILING_DIGITS.search(str(value if value is not None else ""))
    return int(match.group(1)) if match else None


def format_invoice_number(seq: int) -> str:
    return str(seq).zfill(NUMBER_WIDTH)


class InvoiceSequencer:
    """Per-branch invoice numbering reconciled against the history ledger.

    The stored counter only moves on confirmed submissions (``commit``) or when
    the ledger shows a higher sent number (``sync_counter``).
    """

    def __init__(self, store: KeyValueStore, ledger: HistoryLedger) -> None:
        self._store = store
        self._ledger = ledger

    def stored_counter(self, branch_id: str) -> int:
        raw = self._store.get(sequence_key(branch_id), 0)
        try:
            return max(int(raw or 0), 0)
        except (TypeError, ValueError):
            logger.warning("sequence.corrupt_counter", extra={"branch_id": branch_id})
            return 0

    def highest_sequence(self, branch_id: str) -> int:
        highest = 0
        for entry in self._ledger.for_branch(branch_id):
            if entry.status != HistoryStatus.SENT:
                continue
            seq = parse_invoice_sequence(entry.invoice_number)
            if seq is not None and seq > highest:
                highest = seq
        return highest

    def sync_counter(self, branch_id: str) -> int:
        highest = self.highest_sequence(branch_id)
        stored = self.stored_counter(branch_id)
        if highest > stored:
            self._store.set(sequence_key(branch_id), highest)
            logger.info("sequence.synced", extra={"branch_id": branch_id, "from": stored, "to": highest})
            return highest
        return stored

    def next_number(self, branch_id: str) -> str:
        seq = max(self.stored_counter(branch_id), self.highest_sequence(branch_id)) + 1
        return format_invoice_number(seq)

    def commit(self, branch_id: str, used_number: str) -> int | None:
        """Set the counter to the number that was just confirmed by myDATA."""
        seq = parse_invoice_sequence(used_number)
        if seq is None:
            logger.warning("sequence.commit_unparseable", extra={"branch_id": branch_id, "number": used_number})
            return None
        self._store.set(sequence_key(branch_id), seq)
        return seq

    def advance_to(self, branch_id: str, used_number: str) -> int:
        """Raise the counter to ``used_number`` if it is higher; never lowers it."""
        seq = parse_invoice_sequence(used_number)
        stored = self.stored_counter(branch_id)
        if seq is not None and seq > stored:
            self._store.set(sequence_key(branch_id), seq)
            return seq
        return stored


def _sanitize_filename(value: str) -> str:
    cleaned = value.strip().replace(os.sep, "-")
    cleaned = re.sub(r"[^\w.\-]+", "_", cleaned, flags=re.UNICODE)
    return cleaned or "invoice"


def build_invoice_filename(series: str, invoice_number: str, prefix: str = "invoice") -> str:
    parts = [prefix, series or "", invoice_number or "preview"]
    filename = _sanitize_filename("_".join(part for part in parts if part))
    if not filename.lower().endswith(".pdf"):
        filename = f"{filename}.pdf"
    return filename
