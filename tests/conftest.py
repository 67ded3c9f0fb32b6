from __future__ import annotations

import itertools
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Callable

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from invoicing.branches import default_branch_registry  # noqa: E402
from invoicing.config import Settings  # noqa: E402
from invoicing.container import create_app_container  # noqa: E402
from invoicing.data import InMemoryKeyValueStore  # noqa: E402
from invoicing.gateway import SubmissionGateway  # noqa: E402
from invoicing.integrations.aade_client import RemoteResult  # noqa: E402
from invoicing.ledger import HistoryLedger  # noqa: E402
from invoicing.models import Customer, HistoryEntry, HistoryStatus, Invoice, LineItem, PayloadTotals  # noqa: E402
from invoicing.numbering import InvoiceSequencer  # noqa: E402
from invoicing.retry_queue import FailedQueue  # noqa: E402


START = datetime(2024, 7, 15, 10, 0, tzinfo=timezone.utc)


class StepClock:
    """Timezone-aware clock that moves one second per call."""

    def __init__(self, start: datetime = START) -> None:
        self._ticks = itertools.count()
        self._start = start

    def __call__(self) -> datetime:
        return self._start + timedelta(seconds=next(self._ticks))


class FakeAade:
    """Scripted stand-in for the myDATA proxy. Unscripted calls succeed."""

    def __init__(self) -> None:
        self.calls: list[tuple[str, object]] = []
        self.validate_results: list[RemoteResult] = []
        self.submit_results: list[RemoteResult] = []
        self.retry_results: list[RemoteResult] = []
        self.cancel_results: list[RemoteResult] = []
        self._marks = itertools.count(400001)

    @staticmethod
    def _next(scripted: list[RemoteResult], default: Callable[[], RemoteResult]) -> RemoteResult:
        # The default is built only when nothing is scripted, so marks stay in order.
        return scripted.pop(0) if scripted else default()

    def validate(self, payload):
        self.calls.append(("validate", payload))
        return self._next(self.validate_results, lambda: RemoteResult(ok=True))

    def submit(self, payload):
        self.calls.append(("submit", payload))
        return self._next(self.submit_results, lambda: RemoteResult(ok=True, mark=str(next(self._marks))))

    def retry(self, payload):
        self.calls.append(("retry", payload))
        return self._next(self.retry_results, lambda: RemoteResult(ok=True, mark=str(next(self._marks))))

    def cancel(self, invoice_number, branch_id, reason_code):
        self.calls.append(("cancel", (invoice_number, branch_id, reason_code)))
        return self._next(self.cancel_results, lambda: RemoteResult(ok=True, cancel_mark=f"C{next(self._marks)}"))

    def call_names(self) -> list[str]:
        return [name for name, _ in self.calls]


@pytest.fixture
def clock() -> StepClock:
    return StepClock()


@pytest.fixture
def store() -> InMemoryKeyValueStore:
    return InMemoryKeyValueStore()


@pytest.fixture
def branches():
    return default_branch_registry()


@pytest.fixture
def fake_aade() -> FakeAade:
    return FakeAade()


@pytest.fixture
def ledger(store, clock) -> HistoryLedger:
    return HistoryLedger(store, clock=clock)


@pytest.fixture
def queue(store, clock) -> FailedQueue:
    return FailedQueue(store, clock=clock)


@pytest.fixture
def sequencer(store, ledger) -> InvoiceSequencer:
    return InvoiceSequencer(store, ledger)


@pytest.fixture
def gateway(branches, fake_aade, ledger, queue, sequencer, clock) -> SubmissionGateway:
    return SubmissionGateway(branches, fake_aade, ledger, queue, sequencer, sandbox=True, clock=clock)


@pytest.fixture
def container(store, fake_aade, clock, branches):
    return create_app_container(Settings(), store=store, client=fake_aade, branches=branches, clock=clock)


@pytest.fixture
def customer() -> Customer:
    return Customer(name="Taverna Kriti", vat="123456789", city="Rethymno", postal_code="74100")


@pytest.fixture
def restaurant_invoice(customer) -> Invoice:
    return Invoice(
        branch_id="central",
        invoice_date="2024-07-15",
        invoice_number="0001",
        customer=customer,
        items=[
            LineItem(description="Pizza", quantity=2, unit_price=11.30, vat_rate=13),
            LineItem(description="Wine", quantity=1, unit_price=12.40, vat_rate=24),
        ],
    )


@pytest.fixture
def villa_invoice(customer) -> Invoice:
    return Invoice(
        branch_id="villa1",
        invoice_date="2024-07-15",
        invoice_number="0001",
        customer=customer,
        items=[LineItem(description="Night stay", quantity=2, unit_price=100, vat_rate=13)],
    )


@pytest.fixture
def make_entry(customer):
    def _make(
        entry_id: str,
        invoice_number: str,
        *,
        status: HistoryStatus = HistoryStatus.SENT,
        timestamp: datetime = START,
        branch_id: str = "central",
        invoice_date: str = "2024-07-15",
        totals: PayloadTotals | None = None,
    ) -> HistoryEntry:
        return HistoryEntry(
            id=entry_id,
            branch_id=branch_id,
            invoice_number=invoice_number,
            invoice_date=invoice_date,
            customer=customer,
            items=[LineItem(description="Pizza", quantity=1, unit_price=11.30, vat_rate=13)],
            totals=totals or PayloadTotals(net=10.0, vat=1.3, gross=11.3),
            status=status,
            timestamp=timestamp,
        )

    return _make
