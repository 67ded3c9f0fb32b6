from __future__ import annotations

import logging
import threading
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, Optional

from invoicing.branches import Branch, BranchRegistry
from invoicing.errors import EntryNotFoundError
from invoicing.integrations.aade_client import AadeGateway
from invoicing.ledger import HistoryLedger
from invoicing.models import HistoryEntry, HistoryStatus, Invoice, Payload
from invoicing.money import round2
from invoicing.numbering import InvoiceSequencer
from invoicing.payload import SurchargeMode, build_payload, surcharge_mode_for
from invoicing.retry_queue import FailedQueue
from invoicing.surcharge import compute_surcharge
from invoicing.validation import validate_invoice


logger = logging.getLogger(__name__)

RETRY_ENTRY_GONE = "The queued submission is no longer pending."


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SubmissionState(str, Enum):
    REJECTED = "rejected"  # local validation failed
    REMOTE_REJECTED = "remote_rejected"  # validate endpoint said no
    SENT = "sent"
    FAILED = "failed"


class CancelReason(str, Enum):
    ISSUED_IN_ERROR = "1"
    DUPLICATE = "2"
    TRANSACTION_CANCELLED = "3"
    WRONG_COUNTERPARTY = "4"


@dataclass(frozen=True)
class SubmissionOutcome:
    state: SubmissionState
    errors: list[str] = field(default_factory=list)
    payload: Optional[Payload] = None
    entry: Optional[HistoryEntry] = None
    mark: Optional[str] = None
    next_number: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.state == SubmissionState.SENT


@dataclass(frozen=True)
class RetryOutcome:
    entry_id: str
    ok: bool
    mark: Optional[str] = None
    error: Optional[str] = None


@dataclass(frozen=True)
class CancelOutcome:
    ok: bool
    entry: HistoryEntry
    cancel_mark: Optional[str] = None
    error: Optional[str] = None


class SubmissionGateway:
    """Validate, submit and record invoices against myDATA.

    Submissions for the same branch are serialized on a per-branch lock, so
    two attempts can never race for the same invoice number. Different branches
    run in parallel; the ledger and the failed queue serialize their own writes.
    """

    def __init__(
        self,
        branches: BranchRegistry,
        client: AadeGateway,
        ledger: HistoryLedger,
        queue: FailedQueue,
        sequencer: InvoiceSequencer,
        *,
        sandbox: bool = True,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._branches = branches
        self._client = client
        self._ledger = ledger
        self._queue = queue
        self._sequencer = sequencer
        self._sandbox = sandbox
        self._clock = clock
        self._locks: dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    def _branch_lock(self, branch_id: str) -> threading.Lock:
        with self._locks_guard:
            return self._locks.setdefault(branch_id, threading.Lock())

    def _new_entry_id(self) -> str:
        return f"{int(self._clock().timestamp() * 1000)}-{uuid.uuid4().hex[:5]}"

    def next_invoice_number(self, branch_id: str) -> str:
        self._sequencer.sync_counter(branch_id)
        return self._sequencer.next_number(branch_id)

    def submit(self, invoice: Invoice) -> SubmissionOutcome:
        branch = self._branches.find(invoice.branch_id)
        errors = validate_invoice(invoice, branch)
        if errors:
            logger.info("submission.rejected", extra={"invoice_number": invoice.invoice_number, "errors": errors})
            return SubmissionOutcome(state=SubmissionState.REJECTED, errors=errors)

        payload = build_payload(invoice, branch, surcharge_mode_for(invoice, branch), sandbox=self._sandbox)
        with self._branch_lock(branch.id):
            return self._submit_payload(invoice, branch, payload)

    def _submit_payload(self, invoice: Invoice, branch: Branch, payload: Payload) -> SubmissionOutcome:
        log_extra = {"branch_id": branch.id, "invoice_number": invoice.invoice_number}

        check = self._client.validate(payload)
        if not check.ok:
            error = check.error or "Validation failed"
            logger.warning("submission.remote_rejected", extra={**log_extra, "error": error})
            return SubmissionOutcome(state=SubmissionState.REMOTE_REJECTED, errors=[error], payload=payload)

        result = self._client.submit(payload)
        # The cached surcharge is replaced by the value that was actually sent.
        snapshot = invoice.model_copy(update={"surcharge": payload.totals.surcharge})
        if result.ok:
            entry = self._ledger.record(
                HistoryEntry.from_invoice(
                    self._new_entry_id(),
                    snapshot,
                    payload.totals,
                    HistoryStatus.SENT,
                    self._clock(),
                    mark=result.mark,
                )
            )
            self._sequencer.commit(branch.id, invoice.invoice_number)
            # A manual lower number must not pull the counter below the ledger.
            self._sequencer.sync_counter(branch.id)
            next_number = self._sequencer.next_number(branch.id)
            logger.info("submission.sent", extra={**log_extra, "mark": result.mark})
            return SubmissionOutcome(
                state=SubmissionState.SENT,
                payload=payload,
                entry=entry,
                mark=result.mark,
                next_number=next_number,
            )

        error = result.error or "Unknown error"
        entry = self._ledger.record(
            HistoryEntry.from_invoice(
                self._new_entry_id(),
                snapshot,
                payload.totals,
                HistoryStatus.FAILED,
                self._clock(),
                error=error,
            )
        )
        self._queue.enqueue(payload, error)
        logger.warning("submission.failed", extra={**log_extra, "error": error})
        return SubmissionOutcome(
            state=SubmissionState.FAILED,
            errors=[error],
            payload=payload,
            entry=entry,
            next_number=self._sequencer.next_number(branch.id),
        )

    def retry(self, entry_id: str) -> RetryOutcome:
        """Resubmit a queued payload exactly as it was frozen.

        An entry that left the queue in the meantime (another retry already
        sent it) yields a failed outcome without contacting myDATA.
        """
        try:
            branch_id = self._queue.get(entry_id).payload.meta.branch_id
        except EntryNotFoundError:
            return self._retry_gone(entry_id)

        with self._branch_lock(branch_id):
            try:
                payload = self._queue.get(entry_id).payload
            except EntryNotFoundError:
                return self._retry_gone(entry_id)

            result = self._client.retry(payload)
            if result.ok:
                self._queue.remove(entry_id)
                self._sequencer.advance_to(branch_id, payload.header.aa)
                self._sequencer.sync_counter(branch_id)
                logger.info("retry.sent", extra={"entry_id": entry_id, "mark": result.mark})
                return RetryOutcome(entry_id=entry_id, ok=True, mark=result.mark)
            error = result.error or "Unknown error"
            self._queue.record_error(entry_id, error)
            logger.warning("retry.failed", extra={"entry_id": entry_id, "error": error})
            return RetryOutcome(entry_id=entry_id, ok=False, error=error)

    @staticmethod
    def _retry_gone(entry_id: str) -> RetryOutcome:
        logger.info("retry.skipped", extra={"entry_id": entry_id})
        return RetryOutcome(entry_id=entry_id, ok=False, error=RETRY_ENTRY_GONE)

    def retry_all(self) -> list[RetryOutcome]:
        snapshot = self._queue.entries()
        outcomes = [self.retry(entry.id) for entry in snapshot]
        logger.info(
            "retry.all_done",
            extra={"attempted": len(outcomes), "succeeded": sum(1 for o in outcomes if o.ok)},
        )
        return outcomes

    def cancel(self, entry_id: str, reason: CancelReason | str) -> CancelOutcome:
        entry = self._ledger.get(entry_id)
        reason = CancelReason(reason)
        if entry.status != HistoryStatus.SENT:
            return CancelOutcome(ok=False, entry=entry, error="Only sent invoices can be cancelled.")

        result = self._client.cancel(entry.invoice_number, entry.branch_id, reason.value)
        if not result.ok:
            logger.warning("cancel.failed", extra={"entry_id": entry_id, "error": result.error})
            return CancelOutcome(ok=False, entry=entry, error=result.error or "Cancellation failed")

        updated = self._ledger.transition(
            entry_id,
            HistoryStatus.CANCELLED,
            cancel_mark=result.cancel_mark,
            cancel_reason=reason.value,
        )
        logger.info("cancel.done", extra={"entry_id": entry_id, "cancel_mark": result.cancel_mark})
        return CancelOutcome(ok=True, entry=updated, cancel_mark=result.cancel_mark)

    def issue_surcharge_document(self, entry_id: str) -> SubmissionOutcome:
        """Issue the levy of a villa invoice as its own surcharge-only document."""
        source = self._ledger.get(entry_id)
        branch = self._branches.find(source.branch_id)
        if branch is None or not branch.accepts_surcharge:
            return SubmissionOutcome(
                state=SubmissionState.REJECTED,
                errors=["The surcharge applies only to villa branches."],
            )
        if not source.separate_surcharge:
            logger.warning("surcharge_document.already_billed", extra={"entry_id": entry_id})
            return SubmissionOutcome(
                state=SubmissionState.REJECTED,
                errors=["The surcharge was already billed on this invoice."],
            )

        amount = round2(source.totals.surcharge or source.surcharge or 0)
        if not amount:
            amount = compute_surcharge(branch, source.invoice_date, source.items)
        if amount <= 0:
            return SubmissionOutcome(
                state=SubmissionState.REJECTED,
                errors=["No surcharge amount to issue."],
            )

        with self._branch_lock(branch.id):
            today = self._clock().date().isoformat()
            invoice = Invoice(
                branch_id=branch.id,
                invoice_date=today,
                invoice_number=self.next_invoice_number(branch.id),
                customer=source.customer,
                items=[],
                payment_method=source.payment_method,
                surcharge=amount,
            )
            errors = validate_invoice(invoice, branch, require_items=False)
            if errors:
                return SubmissionOutcome(state=SubmissionState.REJECTED, errors=errors)
            payload = build_payload(invoice, branch, SurchargeMode.SURCHARGE_ONLY, sandbox=self._sandbox)
            return self._submit_payload(invoice, branch, payload)

