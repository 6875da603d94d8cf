"""
Inbound chat events, their classification, and the outbound
transport interface.

Button payloads are plain string tokens defined here. Tokens that
carry an argument use "<name>:<arg>".
"""

import enum
from dataclasses import dataclass
from typing import Any, Protocol

from ledger_bot.services.pagination import PAGE_TOKEN, SELECT_TOKEN

Buttons = list[list[tuple[str, str]]]

CONFIRM_LEDGER_YES = "confirm_ledger_yes"
CONFIRM_LEDGER_NO = "confirm_ledger_no"
CONFIRM_ENTRY_YES = "confirm_entry_yes"
CONFIRM_ENTRY_NO = "confirm_entry_no"
EDIT_ENTRY = "edit_entry"
RESEND_ENTRY = "resend_entry"


class EventKind(str, enum.Enum):
    # commands
    CREATE_LEDGER = "create_ledger"
    CREATE_ENTRY = "create_entry"
    CANCEL = "cancel"
    START = "start"
    HELP = "help"
    STATUS = "status"
    UNKNOWN_COMMAND = "unknown_command"
    # free text
    TEXT = "text"
    # buttons
    CONFIRM_LEDGER_YES = "confirm_ledger_yes"
    CONFIRM_LEDGER_NO = "confirm_ledger_no"
    LEDGER_PAGE = "ledger_page"
    SELECT_LEDGER = "select_ledger"
    CONFIRM_ENTRY_YES = "confirm_entry_yes"
    CONFIRM_ENTRY_NO = "confirm_entry_no"
    EDIT_ENTRY = "edit_entry"
    RESEND_ENTRY = "resend_entry"
    UNKNOWN_BUTTON = "unknown_button"


COMMANDS = {
    "new_l": EventKind.CREATE_LEDGER,
    "new_e": EventKind.CREATE_ENTRY,
    "cancel": EventKind.CANCEL,
    "start": EventKind.START,
    "help": EventKind.HELP,
    "status": EventKind.STATUS,
}

BUTTONS = {
    CONFIRM_LEDGER_YES: EventKind.CONFIRM_LEDGER_YES,
    CONFIRM_LEDGER_NO: EventKind.CONFIRM_LEDGER_NO,
    CONFIRM_ENTRY_YES: EventKind.CONFIRM_ENTRY_YES,
    CONFIRM_ENTRY_NO: EventKind.CONFIRM_ENTRY_NO,
    EDIT_ENTRY: EventKind.EDIT_ENTRY,
    RESEND_ENTRY: EventKind.RESEND_ENTRY,
}

PREFIXED_BUTTONS = {
    PAGE_TOKEN: EventKind.LEDGER_PAGE,
    SELECT_TOKEN: EventKind.SELECT_LEDGER,
}


@dataclass(frozen=True)
class ChatEvent:
    user_id: int
    chat_ref: Any
    username: str | None = None
    text: str | None = None
    command: str | None = None
    callback_data: str | None = None
    callback_id: str | None = None
    message_ref: Any = None
    # Shown in greetings only; identity comes from username
    display_name: str | None = None

    @property
    def is_button(self) -> bool:
        return self.callback_data is not None


def command_name(raw: str) -> str:
    """'/new_l@SomeBot extra' -> 'new_l'"""
    head = raw.strip().split(maxsplit=1)[0] if raw.strip() else ""
    return head.lstrip("/").split("@", 1)[0].lower()


def classify_event(event: ChatEvent) -> tuple[EventKind, str | None]:
    """Return the event kind and its argument (page number, ledger id, text)."""
    if event.callback_data is not None:
        data = event.callback_data
        if data in BUTTONS:
            return BUTTONS[data], None
        prefix, sep, arg = data.partition(":")
        if sep and prefix in PREFIXED_BUTTONS:
            return PREFIXED_BUTTONS[prefix], arg
        return EventKind.UNKNOWN_BUTTON, data
    if event.command is not None:
        name = command_name(event.command)
        return COMMANDS.get(name, EventKind.UNKNOWN_COMMAND), name
    return EventKind.TEXT, event.text


class Transport(Protocol):
    async def send_message(self, chat_ref: Any, text: str, buttons: Buttons | None = None) -> Any: ...

    async def edit_message(
        self, chat_ref: Any, message_ref: Any, text: str, buttons: Buttons | None = None
    ) -> None: ...

    async def delete_message(self, chat_ref: Any, message_ref: Any) -> None: ...

    async def answer_callback(
        self, callback_id: str, text: str | None = None, alert: bool = False
    ) -> None: ...
