"""
Tests for the ledger sheet synchronizer.

Tests cover:
- The creation saga and its compensation
- Running balance computation
- Append failures
- Serialized appends under concurrent submission
"""

import asyncio
from decimal import Decimal

import pytest

from ledger_bot.errors import (
    AppendFailed,
    ConflictError,
    NotFoundError,
    PartialFailure,
    ServiceUnavailable,
)
from ledger_bot.schemas.entry import ParsedEntry
from ledger_bot.services.synchronizer import LedgerSynchronizer, running_balance
from tests.fakes import FakeSheetStore, entry_reply


def entry(debit=0, credit=0, **overrides):
    return ParsedEntry.model_validate(entry_reply(debit=debit, credit=credit, **overrides))


@pytest.fixture
def sheets():
    return FakeSheetStore()


@pytest.fixture
def sync(store, sheets):
    return LedgerSynchronizer(store, sheets)


class TestCreateLedger:

    def test_success_attaches_sheet(self, sync, sheets, store, alice):
        result = asyncio.run(sync.create_ledger("Site A", alice))

        assert result.ledger.sheet_ref == "sheet-1"
        assert result.url.endswith("/spreadsheets/d/sheet-1/edit")
        assert sheets.permissions == {"sheet-1": "writer"}
        assert sheets.documents["sheet-1"][0] == ["Site A"]
        assert "alice" in sheets.layouts["sheet-1"].subtitle
        assert [ledger.title for ledger in asyncio.run(store.find_by_owner(alice))] == ["Site A"]

    def test_duplicate_title(self, sync, store, alice):
        asyncio.run(sync.create_ledger("Site A", alice))

        with pytest.raises(ConflictError):
            asyncio.run(sync.create_ledger("Site A", alice))
        assert len(asyncio.run(store.find_by_owner(alice))) == 1

    @pytest.mark.parametrize("failing", ["create_document", "set_permissions"])
    def test_sheet_failure_deletes_ledger(self, store, alice, failing):
        sheets = FakeSheetStore(fail_on={failing})
        sync = LedgerSynchronizer(store, sheets)

        with pytest.raises(PartialFailure) as info:
            asyncio.run(sync.create_ledger("Site A", alice))

        assert info.value.compensated is True
        assert isinstance(info.value.cause, ServiceUnavailable)
        assert not asyncio.run(store.title_exists("Site A"))
        assert sheets.documents == {}

    def test_attach_failure_deletes_ledger(self, sync, store, alice, monkeypatch):
        async def broken_attach(ledger_id, sheet_ref):
            raise ServiceUnavailable("database went away")

        monkeypatch.setattr(store, "attach_sheet_ref", broken_attach)

        with pytest.raises(PartialFailure):
            asyncio.run(sync.create_ledger("Site A", alice))
        assert not asyncio.run(store.title_exists("Site A"))

    def test_attach_failure_discards_shared_sheet(self, sync, sheets, store, alice, monkeypatch):
        async def broken_attach(ledger_id, sheet_ref):
            raise ServiceUnavailable("database went away")

        monkeypatch.setattr(store, "attach_sheet_ref", broken_attach)

        with pytest.raises(PartialFailure) as info:
            asyncio.run(sync.create_ledger("Site A", alice))

        assert info.value.compensated is True
        assert sheets.documents == {}
        assert sheets.permissions == {}

    def test_failed_sheet_discard_is_reported(self, store, alice, monkeypatch):
        sheets = FakeSheetStore(fail_on={"discard_document"})
        sync = LedgerSynchronizer(store, sheets)

        async def broken_attach(ledger_id, sheet_ref):
            raise ServiceUnavailable("database went away")

        monkeypatch.setattr(store, "attach_sheet_ref", broken_attach)

        with pytest.raises(PartialFailure) as info:
            asyncio.run(sync.create_ledger("Site A", alice))

        assert info.value.compensated is False
        # The ledger record is still removed
        assert not asyncio.run(store.title_exists("Site A"))

    def test_failed_compensation_is_reported(self, store, alice, monkeypatch):
        sync = LedgerSynchronizer(store, FakeSheetStore(fail_on={"create_document"}))

        async def broken_delete(ledger_id):
            raise ServiceUnavailable("database went away")

        monkeypatch.setattr(store, "delete", broken_delete)

        with pytest.raises(PartialFailure) as info:
            asyncio.run(sync.create_ledger("Site A", alice))
        assert info.value.compensated is False
        # Left for the orphan sweep: never listed
        assert asyncio.run(store.find_by_owner(alice)) == []

    def test_sheet_timeout_is_partial_failure(self, store, alice):
        class HangingSheets(FakeSheetStore):
            async def create_document(self, layout):
                await asyncio.sleep(10)

        sync = LedgerSynchronizer(store, HangingSheets(), timeout=0.05)

        with pytest.raises(PartialFailure):
            asyncio.run(sync.create_ledger("Site A", alice))
        assert not asyncio.run(store.title_exists("Site A"))


class TestRunningBalance:

    HEADER = [["Title"], ["Info"], [], ["Date", "VCh Name"]]

    def test_no_data_rows(self):
        assert running_balance(self.HEADER) == Decimal("0")

    def test_last_row_balance(self):
        rows = self.HEADER + [
            ["01-01-2024", "", "", "", "", 1000, 1000, ""],
            ["02-01-2024", "", "", "", 250, "", 750, ""],
        ]
        assert running_balance(rows) == Decimal("750")

    def test_unreadable_cell_counts_as_zero(self):
        rows = self.HEADER + [["01-01-2024", "", "", "", "", "", "n/a", ""]]
        assert running_balance(rows) == Decimal("0")

    def test_short_row_counts_as_zero(self):
        assert running_balance(self.HEADER + [["01-01-2024"]]) == Decimal("0")


class TestAppendEntry:

    def test_balances_accumulate(self, sync, sheets, alice):
        async def scenario():
            created = await sync.create_ledger("Site A", alice)
            first = await sync.append_entry(created.ledger.id, entry(credit=1000))
            second = await sync.append_entry(created.ledger.id, entry(debit=500))
            return first, second

        first, second = asyncio.run(scenario())

        assert first.new_balance == Decimal("1000")
        assert second.new_balance == Decimal("500")
        rows = sheets.data_rows("sheet-1")
        assert [row[6] for row in rows] == [1000, 500]

    def test_row_layout(self, sync, sheets, alice):
        async def scenario():
            created = await sync.create_ledger("Site A", alice)
            return await sync.append_entry(created.ledger.id, entry(debit=500))

        result = asyncio.run(scenario())
        row = sheets.data_rows("sheet-1")[0]

        assert row == [
            "05-03-2024", "Payment", result.row.voucher_number, "Materials",
            500, "", -500, "Supplier",
        ]
        assert len(result.row.voucher_number) == 21

    def test_given_voucher_number_is_kept(self, sync, alice):
        async def scenario():
            created = await sync.create_ledger("Site A", alice)
            return await sync.append_entry(created.ledger.id, entry(debit=5, vchNumber="INV-7"))

        assert asyncio.run(scenario()).row.voucher_number == "INV-7"

    def test_read_failure(self, sync, sheets, alice):
        async def scenario():
            created = await sync.create_ledger("Site A", alice)
            sheets.fail_on.add("read_rows")
            await sync.append_entry(created.ledger.id, entry(debit=500))

        with pytest.raises(AppendFailed) as info:
            asyncio.run(scenario())
        assert info.value.ledger_title == "Site A"
        assert sheets.data_rows("sheet-1") == []

    def test_append_failure(self, sync, sheets, alice):
        async def scenario():
            created = await sync.create_ledger("Site A", alice)
            sheets.fail_on.add("append_row")
            await sync.append_entry(created.ledger.id, entry(debit=500))

        with pytest.raises(AppendFailed):
            asyncio.run(scenario())
        assert sheets.data_rows("sheet-1") == []

    def test_missing_ledger(self, sync):
        with pytest.raises(NotFoundError):
            asyncio.run(sync.append_entry(404, entry(debit=1)))

    def test_incomplete_ledger(self, sync, store, alice):
        async def scenario():
            ledger = await store.create("Pending", "", alice)
            await sync.append_entry(ledger.id, entry(debit=1))

        with pytest.raises(NotFoundError):
            asyncio.run(scenario())

    def test_concurrent_appends_keep_running_balance(self, sync, sheets, alice):
        amounts = [entry(credit=100 * i) if i % 2 else entry(debit=10 * i) for i in range(1, 11)]

        async def scenario():
            created = await sync.create_ledger("Site A", alice)
            await asyncio.gather(*(sync.append_entry(created.ledger.id, e) for e in amounts))

        asyncio.run(scenario())
        rows = sheets.data_rows("sheet-1")

        assert len(rows) == 10
        running = 0
        for row in rows:
            running += (row[5] or 0) - (row[4] or 0)
            assert row[6] == running
        expected = sum(e.credit for e in amounts) - sum(e.debit for e in amounts)
        assert Decimal(rows[-1][6]) == expected
