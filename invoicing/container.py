from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Optional

from invoicing.branches import BranchRegistry, default_branch_registry, load_branch_registry
from invoicing.config import Settings, load_settings
from invoicing.customers import CustomerBook
from invoicing.data import KeyValueStore, SqlKeyValueStore, create_sqlite_engine
from invoicing.documents import DocumentService
from invoicing.drafts import DraftStore
from invoicing.gateway import SubmissionGateway
from invoicing.integrations.aade_client import AadeClient, AadeCredentials, AadeGateway
from invoicing.integrations.gsis_client import GsisClient
from invoicing.invoice_pdf import ReportlabInvoiceRenderer
from invoicing.ledger import HistoryLedger
from invoicing.logging_setup import setup_logging
from invoicing.numbering import InvoiceSequencer
from invoicing.renderer_interface import DocumentRenderer
from invoicing.retry_queue import FailedQueue


@dataclass(frozen=True)
class AppContainer:
    settings: Settings
    branches: BranchRegistry
    store: KeyValueStore
    ledger: HistoryLedger
    queue: FailedQueue
    sequencer: InvoiceSequencer
    drafts: DraftStore
    client: AadeGateway
    gsis: GsisClient
    gateway: SubmissionGateway
    documents: DocumentService

    def customers(self, branch_id: str) -> CustomerBook:
        return CustomerBook(self.store, self.branches.get(branch_id).id)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def create_app_container(
    settings: Settings | None = None,
    *,
    store: KeyValueStore | None = None,
    client: AadeGateway | None = None,
    gsis: GsisClient | None = None,
    renderer: DocumentRenderer | None = None,
    branches: BranchRegistry | None = None,
    clock: Optional[Callable[[], datetime]] = None,
    configure_logging: bool = False,
) -> AppContainer:
    settings = settings or load_settings()
    if configure_logging:
        setup_logging(settings.log_dir, debug=settings.debug)
    clock = clock or _utcnow

    if branches is None:
        branches = load_branch_registry(settings.branches_file) if settings.branches_file else default_branch_registry()
    if store is None:
        store = SqlKeyValueStore(create_sqlite_engine(settings.db_path))
    if client is None:
        client = AadeClient(
            settings.backend_url,
            AadeCredentials(settings.aade_user_id, settings.aade_subscription_key),
            use_testing_endpoint=settings.use_testing_endpoint,
            timeout_s=settings.http_timeout_s,
        )
    if gsis is None:
        gsis = GsisClient(
            settings.backend_url,
            username=settings.gsis_username,
            password=settings.gsis_password,
            timeout_s=settings.http_timeout_s,
        )

    ledger = HistoryLedger(store, clock=clock)
    queue = FailedQueue(store, clock=clock)
    sequencer = InvoiceSequencer(store, ledger)
    gateway = SubmissionGateway(
        branches,
        client,
        ledger,
        queue,
        sequencer,
        sandbox=settings.use_testing_endpoint,
        clock=clock,
    )

    return AppContainer(
        settings=settings,
        branches=branches,
        store=store,
        ledger=ledger,
        queue=queue,
        sequencer=sequencer,
        drafts=DraftStore(store, branches),
        client=client,
        gsis=gsis,
        gateway=gateway,
        documents=DocumentService(branches, renderer or ReportlabInvoiceRenderer()),
    )
