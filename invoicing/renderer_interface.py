from __future__ import annotations

from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from invoicing.documents import InvoiceDocument


class DocumentRenderer(Protocol):
    def render(self, document: "InvoiceDocument", template_id: str | None) -> bytes:
        ...
