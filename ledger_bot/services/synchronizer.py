"""
Ledger sheet synchronizer.

Keeps the ledger records and their spreadsheets in step through two
sagas:

Creation (create_ledger):
    check_title       ConflictError if the title is taken
    persist_ledger    insert without sheet_ref   (compensate: delete)
    init_sheet        create, lay out and share the spreadsheet
                      (compensate: discard the spreadsheet)
    attach_sheet_ref  mark the ledger complete

    A failure in the first two steps surfaces as the original error
    with nothing persisted. A failure in the last two is reported as
    PartialFailure after the spreadsheet and the ledger record have
    been removed again.

Append (append_entry):
    load ledger, read the sheet, take the running balance from the
    last data row, append one row with the new balance. The whole
    read-compute-append runs under a per-ledger lock. A read or
    append failure is AppendFailed; nothing needs compensating.
"""

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Any

from ledger_bot.config import Settings
from ledger_bot.errors import (
    AppendFailed,
    ConflictError,
    LedgerBotError,
    NotFoundError,
    PartialFailure,
    ServiceUnavailable,
)
from ledger_bot.logging_config import get_logger
from ledger_bot.schemas.entry import BALANCE_COLUMN, DATE_FORMAT, LedgerRow, ParsedEntry, to_amount
from ledger_bot.schemas.ledger import LedgerSummary, UserRef
from ledger_bot.services.ledger_store import LedgerStore
from ledger_bot.services.locks import KeyedLocks
from ledger_bot.services.saga import Context, Saga, SagaFailed, SagaStep
from ledger_bot.services.sheets import (
    HEADER_ROWS,
    LEDGER_RANGE,
    SheetHandle,
    SheetLayout,
    SpreadsheetStore,
)
from ledger_bot.utils import bounded, new_token

log = get_logger(__name__)

# Steps after which a failure leaves a ledger record behind to undo
SHEET_STEPS = ("init_sheet", "attach_sheet_ref")


@dataclass(frozen=True)
class CreationResult:
    ledger: LedgerSummary
    url: str


@dataclass(frozen=True)
class AppendResult:
    ledger: LedgerSummary
    row: LedgerRow
    new_balance: Decimal


def running_balance(rows: list[list[Any]]) -> Decimal:
    """
    Balance of the last data row below the header block.

    No data rows, a short row or an unreadable cell all count as 0.
    """
    data = rows[HEADER_ROWS:]
    if not data:
        return Decimal("0")
    last = data[-1]
    if len(last) <= BALANCE_COLUMN:
        return Decimal("0")
    try:
        return to_amount(last[BALANCE_COLUMN])
    except ValueError:
        log.warning("unreadable_balance_cell", value=str(last[BALANCE_COLUMN])[:40])
        return Decimal("0")


class LedgerSynchronizer:

    def __init__(
        self,
        store: LedgerStore,
        sheets: SpreadsheetStore,
        share_role: str = "writer",
        timeout: float = 20.0,
        locale: str = "en_US",
        time_zone: str = "Asia/Kolkata",
    ):
        self.store = store
        self.sheets = sheets
        self.share_role = share_role
        self.timeout = timeout
        self.locale = locale
        self.time_zone = time_zone
        self._ledger_locks = KeyedLocks()

    @classmethod
    def from_settings(
        cls, store: LedgerStore, sheets: SpreadsheetStore, settings: Settings
    ) -> "LedgerSynchronizer":
        return cls(
            store,
            sheets,
            share_role=settings.SHEET_SHARE_ROLE,
            timeout=settings.SHEETS_TIMEOUT_SECONDS,
            locale=settings.SHEET_LOCALE,
            time_zone=settings.SHEET_TIMEZONE,
        )

    # --- Creation saga ---

    async def _check_title(self, ctx: Context) -> None:
        if await self.store.title_exists(ctx["title"]):
            raise ConflictError(f"Sorry, the name '{ctx['title']}' is already used")

    async def _persist_ledger(self, ctx: Context) -> Context:
        ledger = await self.store.create(ctx["title"], ctx["description"], ctx["owner"])
        return {"ledger": ledger}

    async def _delete_ledger(self, ctx: Context) -> None:
        await self.store.delete(ctx["ledger"].id)

    async def _init_sheet(self, ctx: Context) -> Context:
        ledger: LedgerSummary = ctx["ledger"]
        layout = SheetLayout.for_ledger(
            title=ledger.title,
            created_by=ctx["owner"].username,
            created_on=date.today().strftime(DATE_FORMAT),
            locale=self.locale,
            time_zone=self.time_zone,
        )
        handle = await bounded(
            self.sheets.create_document(layout), self.timeout, "Spreadsheet creation"
        )
        try:
            await bounded(
                self.sheets.set_permissions(handle, self.share_role),
                self.timeout,
                "Spreadsheet sharing",
            )
        except ServiceUnavailable:
            # The step never completes, so its compensation would not run
            try:
                await self._discard_sheet({"handle": handle})
            except ServiceUnavailable:
                log.error("spreadsheet_left_behind", spreadsheet_id=handle.spreadsheet_id)
            raise
        return {"handle": handle}

    async def _discard_sheet(self, ctx: Context) -> None:
        await bounded(
            self.sheets.discard_document(ctx["handle"]), self.timeout, "Spreadsheet removal"
        )

    async def _attach_sheet_ref(self, ctx: Context) -> Context:
        ledger = await self.store.attach_sheet_ref(ctx["ledger"].id, ctx["handle"].ref)
        return {"ledger": ledger}

    def creation_saga(self) -> Saga:
        return Saga("create_ledger", [
            SagaStep("check_title", self._check_title),
            SagaStep("persist_ledger", self._persist_ledger, compensate=self._delete_ledger),
            SagaStep("init_sheet", self._init_sheet, compensate=self._discard_sheet),
            SagaStep("attach_sheet_ref", self._attach_sheet_ref),
        ])

    async def create_ledger(
        self, title: str, owner: UserRef, description: str = ""
    ) -> CreationResult:
        title = (title or "").strip()
        try:
            ctx = await self.creation_saga().run(
                {"title": title, "description": description, "owner": owner}
            )
        except SagaFailed as exc:
            if exc.step in SHEET_STEPS:
                if not exc.compensated:
                    log.error("ledger_creation_not_undone", title=title, step=exc.step)
                raise PartialFailure(title, exc.cause, exc.compensated) from exc.cause
            raise exc.cause
        handle: SheetHandle = ctx["handle"]
        log.info("ledger_created", ledger_id=ctx["ledger"].id, owner_id=owner.id)
        return CreationResult(ledger=ctx["ledger"], url=handle.url)

    # --- Append saga ---

    async def append_entry(self, ledger_id: int, entry: ParsedEntry) -> AppendResult:
        async with self._ledger_locks.hold(ledger_id):
            ledger = await self.store.get(ledger_id)
            if not ledger.is_complete:
                raise NotFoundError(f"Ledger {ledger_id} has no sheet")
            handle = SheetHandle.from_ref(ledger.sheet_ref)

            try:
                rows = await bounded(
                    self.sheets.read_rows(handle, LEDGER_RANGE), self.timeout, "Spreadsheet read"
                )
                balance = running_balance(rows) + entry.credit - entry.debit
                row = LedgerRow.from_entry(entry, balance, voucher_number=new_token())
                await bounded(
                    self.sheets.append_row(handle, LEDGER_RANGE, row.to_values()),
                    self.timeout,
                    "Spreadsheet append",
                )
            except LedgerBotError as exc:
                log.warning("append_failed", ledger_id=ledger_id, error=type(exc).__name__)
                raise AppendFailed(ledger.title, exc) from exc

        log.info("entry_appended", ledger_id=ledger_id, side=entry.side.value if entry.side else None)
        return AppendResult(ledger=ledger, row=row, new_balance=balance)
