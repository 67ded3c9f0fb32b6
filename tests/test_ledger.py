from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from invoicing.data import HISTORY_KEY, TRASH_KEY
from invoicing.errors import EntryNotFoundError
from invoicing.models import HistoryStatus


START = datetime(2024, 7, 15, 10, 0, tzinfo=timezone.utc)


def _at(seconds: int) -> datetime:
    return START + timedelta(seconds=seconds)


def _ids(entries) -> list[str]:
    return [entry.id for entry in entries]


def test_entries_are_kept_in_timestamp_order(ledger, make_entry) -> None:
    ledger.record(make_entry("b", "0002", timestamp=_at(20)))
    ledger.record(make_entry("a", "0001", timestamp=_at(10)))
    ledger.record(make_entry("c", "0003", timestamp=_at(30)))

    assert _ids(ledger.entries()) == ["a", "b", "c"]


def test_duplicate_ids_are_rejected(ledger, make_entry) -> None:
    ledger.record(make_entry("a", "0001"))
    with pytest.raises(ValueError):
        ledger.record(make_entry("a", "0002"))


def test_unknown_entry(ledger) -> None:
    with pytest.raises(EntryNotFoundError):
        ledger.get("missing")
    with pytest.raises(KeyError):
        ledger.restore("missing")


def test_for_branch(ledger, make_entry) -> None:
    ledger.record(make_entry("a", "0001"))
    ledger.record(make_entry("b", "0001", branch_id="villa1", timestamp=_at(1)))

    assert _ids(ledger.for_branch("villa1")) == ["b"]


def test_transition(ledger, make_entry) -> None:
    ledger.record(make_entry("a", "0001"))
    updated = ledger.transition("a", HistoryStatus.CANCELLED, cancel_mark="C1", cancel_reason="1")

    assert updated.status == HistoryStatus.CANCELLED
    assert ledger.get("a").cancel_mark == "C1"


def test_trash_then_restore_is_a_round_trip(ledger, make_entry) -> None:
    for idx, entry_id in enumerate(["a", "b", "c"]):
        ledger.record(make_entry(entry_id, f"000{idx + 1}", timestamp=_at(idx * 10)))
    before = [entry.to_json_dict() for entry in ledger.entries()]

    trashed = ledger.move_to_trash("b")
    assert trashed.deleted_at is not None
    assert trashed.deleted_at.tzinfo is not None
    assert _ids(ledger.entries()) == ["a", "c"]
    assert _ids(ledger.trash()) == ["b"]

    restored = ledger.restore("b")
    assert restored.deleted_at is None
    assert [entry.to_json_dict() for entry in ledger.entries()] == before
    assert ledger.trash() == []


def test_newest_deletion_goes_first_in_trash(ledger, make_entry) -> None:
    ledger.record(make_entry("a", "0001", timestamp=_at(0)))
    ledger.record(make_entry("b", "0002", timestamp=_at(1)))
    ledger.move_to_trash("a")
    ledger.move_to_trash("b")

    assert _ids(ledger.trash()) == ["b", "a"]


def test_purge_and_empty_trash(ledger, make_entry) -> None:
    for idx, entry_id in enumerate(["a", "b", "c"]):
        ledger.record(make_entry(entry_id, f"000{idx + 1}", timestamp=_at(idx)))
        ledger.move_to_trash(entry_id)

    purged = ledger.purge("b")
    assert purged.id == "b"
    assert _ids(ledger.trash()) == ["c", "a"]
    assert ledger.empty_trash() == 2
    assert ledger.trash() == []
    with pytest.raises(EntryNotFoundError):
        ledger.purge("a")


def test_persisted_with_camel_case_keys(store, ledger, make_entry) -> None:
    ledger.record(make_entry("a", "0001"))
    ledger.move_to_trash("a")
    ledger.restore("a")

    raw = store.get(HISTORY_KEY)
    assert raw[0]["invoiceNumber"] == "0001"
    assert raw[0]["branchId"] == "central"
    assert raw[0]["deletedAt"] is None
    assert store.get(TRASH_KEY) == []
