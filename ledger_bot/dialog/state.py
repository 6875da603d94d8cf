"""
Per-user conversation state and the table that owns it.

At most one ConversationState exists per user. The table is the only
place states are stored; handlers get, mutate and put states while
holding that user's lock. Cancellation goes around the lock and bumps
the user's epoch, so a handler that was suspended in an external call
can tell its dialog was cancelled and must not write anything back.
Epochs only matter while a handler is running, so they are kept only
while someone holds or waits on the user's lock.
"""

import contextlib
import enum
from collections.abc import AsyncIterator
from dataclasses import dataclass, field
from typing import Any

from ledger_bot.schemas.entry import ParsedEntry
from ledger_bot.schemas.ledger import LedgerSummary, UserRef
from ledger_bot.services.locks import KeyedLocks


class DialogStep(str, enum.Enum):
    IDLE = "idle"
    AWAITING_LEDGER_NAME = "awaiting_ledger_name"
    AWAITING_LEDGER_CONFIRMATION = "awaiting_ledger_confirmation"
    SELECTING_LEDGER = "selecting_ledger"
    AWAITING_ENTRY_TEXT = "awaiting_entry_text"
    AWAITING_ENTRY_CONFIRMATION = "awaiting_entry_confirmation"


@dataclass(eq=False)
class ConversationState:
    user_id: int
    chat_ref: Any
    username: str
    step: DialogStep
    owner: UserRef | None = None
    ledger_name_draft: str | None = None
    parsed_entry: ParsedEntry | None = None
    selected_ledger_id: int | None = None
    page_cursor: int = 0
    ledger_snapshot: list[LedgerSummary] = field(default_factory=list)
    last_entry_text: str | None = None
    message_ref: Any = None

    def selected_ledger(self) -> LedgerSummary | None:
        for ledger in self.ledger_snapshot:
            if ledger.id == self.selected_ledger_id:
                return ledger
        return None


class ConversationTable:

    def __init__(self) -> None:
        self._states: dict[int, ConversationState] = {}
        self._epochs: dict[int, int] = {}
        self._locks = KeyedLocks()

    @contextlib.asynccontextmanager
    async def lock(self, user_id: int) -> AsyncIterator[None]:
        try:
            async with self._locks.hold(user_id):
                yield
        finally:
            if user_id not in self._locks:
                self._epochs.pop(user_id, None)

    def get(self, user_id: int) -> ConversationState | None:
        return self._states.get(user_id)

    def step(self, user_id: int) -> DialogStep:
        state = self._states.get(user_id)
        return state.step if state else DialogStep.IDLE

    def epoch(self, user_id: int) -> int:
        return self._epochs.get(user_id, 0)

    def put(self, state: ConversationState, epoch: int | None = None) -> bool:
        """
        Store `state` as the user's current state.

        With `epoch`, the write only happens if the user has not
        cancelled since that epoch was read. Returns whether it did.
        """
        if epoch is not None and self.epoch(state.user_id) != epoch:
            return False
        self._states[state.user_id] = state
        return True

    def pop(self, user_id: int) -> ConversationState | None:
        return self._states.pop(user_id, None)

    def cancel(self, user_id: int) -> ConversationState | None:
        """Drop the user's state and invalidate any suspended handler."""
        if user_id in self._locks:
            self._epochs[user_id] = self.epoch(user_id) + 1
        return self._states.pop(user_id, None)

    def is_current(self, state: ConversationState) -> bool:
        return self._states.get(state.user_id) is state

    def __len__(self) -> int:
        return len(self._states)
