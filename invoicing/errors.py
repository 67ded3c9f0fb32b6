from __future__ import annotations


class InvoicingError(Exception):
    """Base error for the invoicing core."""

    def __init__(self, message: str, details: dict | None = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)


class InvoiceValidationError(InvoicingError):
    def __init__(self, errors: list[str]):
        self.errors = list(errors)
        super().__init__("\n".join(self.errors) or "Invalid invoice", {"errors": self.errors})


class UnknownBranchError(InvoicingError, KeyError):
    def __init__(self, branch_id: str):
        self.branch_id = branch_id
        super().__init__(f"Unknown branch '{branch_id}'", {"branch_id": branch_id})


class EntryNotFoundError(InvoicingError, KeyError):
    def __init__(self, kind: str, entry_id: str):
        self.kind = kind
        self.entry_id = entry_id
        super().__init__(f"{kind} entry '{entry_id}' not found", {"entry_id": entry_id})
