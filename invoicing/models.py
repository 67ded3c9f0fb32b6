from datetime import datetime
from enum import Enum
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class _Record(BaseModel):
    """Base for every record that crosses the wire or lands in storage.

    Field names are snake_case in Python and camelCase when dumped with
    ``by_alias=True``; both spellings are accepted on input.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    def to_json_dict(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, mode="json")


class LineItem(_Record):
    description: str = ""
    quantity: float = 1.0
    unit_price: float = 0.0  # VAT-inclusive
    vat_rate: float = 13.0


class Customer(_Record):
    name: str = ""
    vat: str = ""
    email: str = ""
    address: str = ""
    city: str = ""
    postal_code: str = ""


class Invoice(_Record):
    branch_id: str
    invoice_date: str = ""
    invoice_number: str = ""
    customer: Customer = Field(default_factory=Customer)
    items: List[LineItem] = Field(default_factory=list)
    payment_method: str = "cash"
    surcharge: float = 0.0
    separate_surcharge: bool = False


class Counterparty(_Record):
    name: str
    vat: str
    email: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None


class IssuerInfo(_Record):
    name: str
    vat: str
    address: str = ""
    city: str = ""
    postal_code: str = ""
    phone: str = ""


class PayloadHeader(_Record):
    series: str
    aa: str
    issue_date: str
    doc_type: str
    issuer: IssuerInfo
    counterparty: Counterparty
    payment_method: str = "cash"


class PayloadLine(_Record):
    line_number: int
    description: str
    qty: float
    unit_price: float
    net_amount: float
    vat_category: str
    vat_amount: float
    revenue_classification: str


class PayloadTotals(_Record):
    net: float = 0.0
    vat: float = 0.0
    gross: float = 0.0
    surcharge: float = 0.0


class PayloadMeta(_Record):
    branch_id: str
    sandbox: bool = True


class Payload(_Record):
    header: PayloadHeader
    lines: List[PayloadLine] = Field(default_factory=list)
    totals: PayloadTotals = Field(default_factory=PayloadTotals)
    meta: PayloadMeta


class HistoryStatus(str, Enum):
    SENT = "sent"
    FAILED = "failed"
    CANCELLED = "cancelled"


class HistoryEntry(_Record):
    id: str
    branch_id: str
    invoice_number: str
    invoice_date: str
    customer: Customer
    items: List[LineItem] = Field(default_factory=list)
    payment_method: str = "cash"
    surcharge: float = 0.0
    separate_surcharge: bool = False
    totals: PayloadTotals
    status: HistoryStatus
    mark: Optional[str] = None
    error: Optional[str] = None
    timestamp: datetime
    deleted_at: Optional[datetime] = None
    cancel_mark: Optional[str] = None
    cancel_reason: Optional[str] = None

    @classmethod
    def from_invoice(
        cls,
        entry_id: str,
        invoice: Invoice,
        totals: PayloadTotals,
        status: HistoryStatus,
        timestamp: datetime,
        *,
        mark: str | None = None,
        error: str | None = None,
    ) -> "HistoryEntry":
        return cls(
            id=entry_id,
            branch_id=invoice.branch_id,
            invoice_number=invoice.invoice_number,
            invoice_date=invoice.invoice_date,
            customer=invoice.customer,
            items=list(invoice.items),
            payment_method=invoice.payment_method,
            surcharge=invoice.surcharge,
            separate_surcharge=invoice.separate_surcharge,
            totals=totals,
            status=status,
            mark=mark,
            error=error,
            timestamp=timestamp,
        )

    def to_invoice(self) -> Invoice:
        return Invoice(
            branch_id=self.branch_id,
            invoice_date=self.invoice_date,
            invoice_number=self.invoice_number,
            customer=self.customer,
            items=list(self.items),
            payment_method=self.payment_method,
            surcharge=self.surcharge,
            separate_surcharge=self.separate_surcharge,
        )


class FailedQueueEntry(_Record):
    id: str
    timestamp: datetime
    payload: Payload
    error: str
