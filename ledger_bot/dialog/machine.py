"""
Dialog state machine.

Every inbound chat event goes through DialogMachine.handle():

1. The event is classified into an EventKind
2. cancel is handled immediately, without waiting for the user's lock
3. Everything else runs under the user's lock, so one user's events
   are processed one at a time while other users proceed freely
4. Global events (create-ledger, create-entry, start, help, status)
   are valid in any step; anything else is looked up in TRANSITIONS
   by (current step, event kind)
5. Events not in the table are unrecognized: in Idle the user gets a
   hint, inside a flow they are ignored

handle() never raises. Errors the flows expect are turned into
messages where they occur; anything else reaches the boundary in
handle(), is logged, reported as a system issue, and the user's
state is cleared.

Confirmation handlers remove the state before starting a saga, so a
second tap on the same button finds no state and is answered with
"no active operation".
"""

from typing import Any

from ledger_bot.config import Settings
from ledger_bot.dialog import messages
from ledger_bot.dialog.events import ChatEvent, EventKind, Transport, classify_event
from ledger_bot.dialog.state import ConversationState, ConversationTable, DialogStep
from ledger_bot.errors import (
    AppendFailed,
    ClassifierUnavailable,
    ConflictError,
    LowConfidenceError,
    MalformedResponse,
    NotFoundError,
    PartialFailure,
    ServiceUnavailable,
    ValidationError,
)
from ledger_bot.logging_config import get_logger
from ledger_bot.schemas.ledger import UserRef
from ledger_bot.services.entry_parser import EntryParser
from ledger_bot.services.ledger_store import LedgerStore
from ledger_bot.services.pagination import ledger_keyboard, paginate
from ledger_bot.services.synchronizer import LedgerSynchronizer

log = get_logger(__name__)

MAX_TITLE_LENGTH = 100


class DialogMachine:

    def __init__(
        self,
        transport: Transport,
        store: LedgerStore,
        parser: EntryParser,
        synchronizer: LedgerSynchronizer,
        table: ConversationTable | None = None,
        page_size: int = 5,
        currency: str = "₹",
    ):
        self.transport = transport
        self.store = store
        self.parser = parser
        self.synchronizer = synchronizer
        self.table = table or ConversationTable()
        self.page_size = page_size
        self.currency = currency

    @classmethod
    def from_settings(
        cls,
        transport: Transport,
        store: LedgerStore,
        parser: EntryParser,
        synchronizer: LedgerSynchronizer,
        settings: Settings,
    ) -> "DialogMachine":
        return cls(
            transport,
            store,
            parser,
            synchronizer,
            page_size=settings.LEDGER_PAGE_SIZE,
            currency=settings.CURRENCY_SYMBOL,
        )

    # --- Entry point ---

    async def handle(self, event: ChatEvent) -> None:
        kind, arg = classify_event(event)
        log.info("chat_event", user_id=event.user_id, kind=kind.value)

        if kind is EventKind.CANCEL:
            await self._guarded(event, self._on_cancel(event))
            return

        async with self.table.lock(event.user_id):
            await self._guarded(event, self._dispatch(event, kind, arg))

    async def _guarded(self, event: ChatEvent, work) -> None:
        try:
            await work
        except NotFoundError as exc:
            log.info("flow_aborted_not_found", user_id=event.user_id, error=str(exc))
            self.table.cancel(event.user_id)
            await self._notify(event, messages.LEDGER_GONE)
        except ServiceUnavailable as exc:
            log.warning("flow_aborted_unavailable", user_id=event.user_id, error=str(exc))
            self.table.cancel(event.user_id)
            await self._notify(event, messages.SERVICE_DOWN)
        except Exception:
            log.exception("dialog_handler_failed", user_id=event.user_id)
            self.table.cancel(event.user_id)
            await self._notify(event, messages.SYSTEM_ISSUE)

    async def _notify(self, event: ChatEvent, text: str) -> None:
        """Last-resort message from the boundary; a failure here is only logged."""
        try:
            await self.transport.send_message(event.chat_ref, text)
        except Exception:
            log.exception("notify_failed", user_id=event.user_id)

    async def _dispatch(self, event: ChatEvent, kind: EventKind, arg: str | None) -> None:
        handler_name = GLOBAL_EVENTS.get(kind)
        state = self.table.get(event.user_id)
        if handler_name is None:
            step = state.step if state else DialogStep.IDLE
            handler_name = TRANSITIONS.get((step, kind))
        if handler_name is None:
            await self._unrecognized(event, kind, state)
            return
        await getattr(self, handler_name)(event, state, arg)

    async def _unrecognized(
        self, event: ChatEvent, kind: EventKind, state: ConversationState | None
    ) -> None:
        if state is None:
            if event.is_button:
                await self._answer(event, "No active operation")
                await self.transport.send_message(event.chat_ref, messages.NO_ACTIVE_OPERATION)
            else:
                await self.transport.send_message(event.chat_ref, messages.UNKNOWN_COMMAND)
            return
        log.debug("event_ignored", user_id=event.user_id, step=state.step.value, kind=kind.value)
        if event.is_button:
            await self._answer(event)

    # --- Helpers ---

    async def _answer(self, event: ChatEvent, text: str | None = None, alert: bool = False) -> None:
        if event.callback_id:
            await self.transport.answer_callback(event.callback_id, text, alert)

    async def _show(
        self,
        event: ChatEvent,
        state: ConversationState | None,
        text: str,
        buttons=None,
    ) -> Any:
        """Edit the message the user pressed a button on, or send a new one."""
        message_ref = event.message_ref or (state.message_ref if state else None)
        if message_ref is None:
            return await self.transport.send_message(event.chat_ref, text, buttons)
        await self.transport.edit_message(event.chat_ref, message_ref, text, buttons)
        return message_ref

    async def _resolve_owner(self, event: ChatEvent) -> UserRef | None:
        try:
            return await self.store.resolve_owner(event.username or "")
        except (NotFoundError, ValidationError):
            log.info("unknown_chat_user", user_id=event.user_id)
            await self.transport.send_message(event.chat_ref, messages.NO_ACCOUNT)
            return None

    def _new_state(self, event: ChatEvent, step: DialogStep, owner: UserRef) -> ConversationState:
        return ConversationState(
            user_id=event.user_id,
            chat_ref=event.chat_ref,
            username=event.username or "",
            step=step,
            owner=owner,
        )

    # --- Global events ---

    async def _on_cancel(self, event: ChatEvent) -> None:
        state = self.table.cancel(event.user_id)
        await self._answer(event, "Cancelled")
        if state is None:
            await self.transport.send_message(event.chat_ref, messages.NOTHING_TO_CANCEL)
            return
        log.info("dialog_cancelled", user_id=event.user_id, step=state.step.value)
        await self.transport.send_message(event.chat_ref, messages.CANCELLED)

    async def _on_start(self, event: ChatEvent, state, arg) -> None:
        name = event.display_name or event.username or "there"
        await self.transport.send_message(event.chat_ref, messages.welcome(name))

    async def _on_help(self, event: ChatEvent, state, arg) -> None:
        await self.transport.send_message(event.chat_ref, messages.help_text())

    async def _on_status(self, event: ChatEvent, state, arg) -> None:
        step = state.step if state else DialogStep.IDLE
        await self.transport.send_message(event.chat_ref, messages.status(step.value))

    async def _on_create_ledger(self, event: ChatEvent, state, arg) -> None:
        # A repeated command restarts the flow from scratch
        self.table.pop(event.user_id)
        epoch = self.table.epoch(event.user_id)
        owner = await self._resolve_owner(event)
        if owner is None:
            return
        state = self._new_state(event, DialogStep.AWAITING_LEDGER_NAME, owner)
        if self.table.put(state, epoch):
            await self.transport.send_message(event.chat_ref, messages.ASK_LEDGER_NAME)

    async def _on_create_entry(self, event: ChatEvent, state, arg) -> None:
        self.table.pop(event.user_id)
        epoch = self.table.epoch(event.user_id)
        owner = await self._resolve_owner(event)
        if owner is None:
            return
        ledgers = await self.store.find_by_owner(owner)
        if not ledgers:
            await self.transport.send_message(event.chat_ref, messages.NO_LEDGERS)
            return

        state = self._new_state(event, DialogStep.SELECTING_LEDGER, owner)
        state.ledger_snapshot = ledgers
        if not self.table.put(state, epoch):
            return
        page = paginate(ledgers, self.page_size, 0)
        state.message_ref = await self.transport.send_message(
            event.chat_ref, messages.ledger_page(page), ledger_keyboard(page)
        )

    # --- Ledger creation flow ---

    async def _on_ledger_name(self, event: ChatEvent, state: ConversationState, arg) -> None:
        name = (event.text or "").strip()
        if not name:
            await self.transport.send_message(event.chat_ref, messages.EMPTY_LEDGER_NAME)
            return
        if len(name) > MAX_TITLE_LENGTH:
            await self.transport.send_message(event.chat_ref, messages.LEDGER_NAME_TOO_LONG)
            return
        state.ledger_name_draft = name
        state.step = DialogStep.AWAITING_LEDGER_CONFIRMATION
        state.message_ref = await self.transport.send_message(
            event.chat_ref,
            messages.confirm_ledger_name(name),
            messages.LEDGER_CONFIRM_BUTTONS,
        )

    async def _on_confirm_ledger(self, event: ChatEvent, state: ConversationState, arg) -> None:
        self.table.pop(event.user_id)
        epoch = self.table.epoch(event.user_id)
        name = state.ledger_name_draft or ""
        await self._answer(event, "Creating ledger...")
        await self._show(event, state, messages.creating_ledger(name))

        try:
            result = await self.synchronizer.create_ledger(name, state.owner)
        except ConflictError:
            retry = self._new_state(event, DialogStep.AWAITING_LEDGER_NAME, state.owner)
            if self.table.put(retry, epoch):
                await self._show(event, state, messages.name_taken(name))
            return
        except ValidationError:
            retry = self._new_state(event, DialogStep.AWAITING_LEDGER_NAME, state.owner)
            if self.table.put(retry, epoch):
                await self._show(event, state, messages.EMPTY_LEDGER_NAME)
            return
        except PartialFailure as exc:
            log.warning("ledger_not_created", user_id=event.user_id, compensated=exc.compensated)
            await self._show(event, state, messages.ledger_not_created(name))
            return

        await self._show(
            event,
            state,
            messages.ledger_created(
                result.ledger.title, result.ledger.id, state.username, result.url
            ),
        )

    async def _on_reject_ledger(self, event: ChatEvent, state: ConversationState, arg) -> None:
        self.table.pop(event.user_id)
        await self._answer(event, "Cancelled")
        await self._show(event, state, messages.LEDGER_CREATION_CANCELLED)

    # --- Entry flow ---

    async def _on_ledger_page(self, event: ChatEvent, state: ConversationState, arg) -> None:
        await self._answer(event)
        try:
            requested = int(arg or 0)
        except ValueError:
            return
        page = paginate(state.ledger_snapshot, self.page_size, requested)
        state.page_cursor = page.page_index
        await self._show(event, state, messages.ledger_page(page), ledger_keyboard(page))

    async def _on_select_ledger(self, event: ChatEvent, state: ConversationState, arg) -> None:
        try:
            state.selected_ledger_id = int(arg or "")
        except ValueError:
            await self._answer(event)
            return
        ledger = state.selected_ledger()
        if ledger is None:
            state.selected_ledger_id = None
            await self._answer(event, "That ledger is not in the list", alert=True)
            return
        state.step = DialogStep.AWAITING_ENTRY_TEXT
        await self._answer(event, "Ledger selected")
        await self._show(event, state, messages.ask_entry_text(ledger.title))

    async def _on_entry_text(self, event: ChatEvent, state: ConversationState, arg) -> None:
        await self._parse_entry(event, state, event.text)

    async def _on_resend_entry(self, event: ChatEvent, state: ConversationState, arg) -> None:
        await self._answer(event)
        if state.last_entry_text:
            await self._parse_entry(event, state, state.last_entry_text)

    async def _parse_entry(self, event: ChatEvent, state: ConversationState, text: str | None) -> None:
        text = (text or "").strip()
        if not text:
            await self.transport.send_message(event.chat_ref, messages.EMPTY_ENTRY)
            return
        state.last_entry_text = text
        await self.transport.send_message(event.chat_ref, messages.PROCESSING_ENTRY)

        try:
            entry = await self.parser.parse(text)
        except (LowConfidenceError, ClassifierUnavailable, MalformedResponse) as exc:
            if not self.table.is_current(state):
                log.info("parse_outcome_dropped", user_id=event.user_id, outcome=type(exc).__name__)
                return
            await self._report_parse_failure(event, exc)
            return

        if not self.table.is_current(state):
            log.info("parsed_entry_dropped", user_id=event.user_id)
            return
        state.parsed_entry = entry
        state.step = DialogStep.AWAITING_ENTRY_CONFIRMATION
        state.message_ref = await self.transport.send_message(
            event.chat_ref,
            messages.entry_confirmation(entry, self.currency),
            messages.ENTRY_CONFIRM_BUTTONS,
        )

    async def _report_parse_failure(self, event: ChatEvent, exc: Exception) -> None:
        if isinstance(exc, LowConfidenceError):
            await self.transport.send_message(event.chat_ref, messages.low_confidence(exc.reasoning))
        elif isinstance(exc, ClassifierUnavailable):
            await self.transport.send_message(
                event.chat_ref, messages.CLASSIFIER_DOWN, messages.RESEND_BUTTONS
            )
        else:
            await self.transport.send_message(event.chat_ref, messages.PARSE_FAILED)

    async def _on_confirm_entry(self, event: ChatEvent, state: ConversationState, arg) -> None:
        self.table.pop(event.user_id)
        ledger = state.selected_ledger()
        title = ledger.title if ledger else ""
        await self._answer(event, "Adding entry...")
        await self._show(event, state, messages.ADDING_ENTRY)

        try:
            result = await self.synchronizer.append_entry(state.selected_ledger_id, state.parsed_entry)
        except AppendFailed as exc:
            await self._show(event, state, messages.append_failed(exc.ledger_title or title))
            return

        await self._show(
            event,
            state,
            messages.entry_added(
                result.ledger.title, state.parsed_entry, result.new_balance, self.currency
            ),
        )

    async def _on_reject_entry(self, event: ChatEvent, state: ConversationState, arg) -> None:
        await self._back_to_entry_text(event, state, "Entry discarded", messages.ENTRY_REJECTED)

    async def _on_edit_entry(self, event: ChatEvent, state: ConversationState, arg) -> None:
        await self._back_to_entry_text(event, state, "Ready for new entry", messages.EDIT_ENTRY_PROMPT)

    async def _back_to_entry_text(
        self, event: ChatEvent, state: ConversationState, ack: str, text: str
    ) -> None:
        state.parsed_entry = None
        state.step = DialogStep.AWAITING_ENTRY_TEXT
        await self._answer(event, ack)
        await self._show(event, state, text)


GLOBAL_EVENTS: dict[EventKind, str] = {
    EventKind.CREATE_LEDGER: "_on_create_ledger",
    EventKind.CREATE_ENTRY: "_on_create_entry",
    EventKind.START: "_on_start",
    EventKind.HELP: "_on_help",
    EventKind.STATUS: "_on_status",
}

TRANSITIONS: dict[tuple[DialogStep, EventKind], str] = {
    (DialogStep.AWAITING_LEDGER_NAME, EventKind.TEXT): "_on_ledger_name",
    (DialogStep.AWAITING_LEDGER_CONFIRMATION, EventKind.CONFIRM_LEDGER_YES): "_on_confirm_ledger",
    (DialogStep.AWAITING_LEDGER_CONFIRMATION, EventKind.CONFIRM_LEDGER_NO): "_on_reject_ledger",
    (DialogStep.SELECTING_LEDGER, EventKind.LEDGER_PAGE): "_on_ledger_page",
    (DialogStep.SELECTING_LEDGER, EventKind.SELECT_LEDGER): "_on_select_ledger",
    (DialogStep.AWAITING_ENTRY_TEXT, EventKind.TEXT): "_on_entry_text",
    (DialogStep.AWAITING_ENTRY_TEXT, EventKind.RESEND_ENTRY): "_on_resend_entry",
    (DialogStep.AWAITING_ENTRY_CONFIRMATION, EventKind.CONFIRM_ENTRY_YES): "_on_confirm_entry",
    (DialogStep.AWAITING_ENTRY_CONFIRMATION, EventKind.CONFIRM_ENTRY_NO): "_on_reject_entry",
    (DialogStep.AWAITING_ENTRY_CONFIRMATION, EventKind.EDIT_ENTRY): "_on_edit_entry",
}
