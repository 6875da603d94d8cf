"""In-memory stand-ins for the chat transport, classifier and spreadsheet store."""

import asyncio
import json
from dataclasses import dataclass
from typing import Any

from ledger_bot.errors import ServiceUnavailable
from ledger_bot.services.sheets import HEADER_ROWS, SheetHandle, SheetLayout


@dataclass
class Outbound:
    kind: str              # "send" or "edit"
    chat_ref: Any
    message_ref: Any
    text: str
    buttons: Any = None


class FakeTransport:

    def __init__(self):
        self.outbound: list[Outbound] = []
        self.deleted: list[tuple[Any, Any]] = []
        self.answers: list[tuple[str, str | None, bool]] = []
        self._next_ref = 100

    async def send_message(self, chat_ref, text, buttons=None):
        self._next_ref += 1
        self.outbound.append(Outbound("send", chat_ref, self._next_ref, text, buttons))
        return self._next_ref

    async def edit_message(self, chat_ref, message_ref, text, buttons=None):
        self.outbound.append(Outbound("edit", chat_ref, message_ref, text, buttons))

    async def delete_message(self, chat_ref, message_ref):
        self.deleted.append((chat_ref, message_ref))

    async def answer_callback(self, callback_id, text=None, alert=False):
        self.answers.append((callback_id, text, alert))

    @property
    def texts(self) -> list[str]:
        return [item.text for item in self.outbound]

    @property
    def last(self) -> Outbound:
        return self.outbound[-1]

    def last_with_buttons(self) -> Outbound:
        return next(item for item in reversed(self.outbound) if item.buttons)

    def for_chat(self, chat_ref) -> list[str]:
        return [item.text for item in self.outbound if item.chat_ref == chat_ref]


class FakeClassifier:
    """
    Returns canned replies in order; the last reply repeats.

    A reply may be a dict (sent as JSON), a raw string, or an
    exception instance to raise. Prompts containing a text listed in
    `hold_on` wait for `gate` before answering.
    """

    def __init__(self, *replies, hold_on: tuple[str, ...] = ()):
        self.replies = list(replies)
        self.prompts: list[str] = []
        self.hold_on = hold_on
        self.gate = asyncio.Event()

    async def classify(self, prompt: str) -> str:
        self.prompts.append(prompt)
        if any(marker in prompt for marker in self.hold_on):
            await self.gate.wait()
        reply = self.replies.pop(0) if len(self.replies) > 1 else self.replies[0]
        if isinstance(reply, BaseException):
            raise reply
        if isinstance(reply, dict):
            return json.dumps(reply)
        return reply


class FakeSheetStore:
    """
    Spreadsheets as lists of rows.

    Operations named in `fail_on` raise ServiceUnavailable. Reads and
    appends yield to the event loop so concurrent appenders
    interleave unless something serializes them.
    """

    def __init__(self, fail_on: set[str] | None = None):
        self.documents: dict[str, list[list[Any]]] = {}
        self.permissions: dict[str, str] = {}
        self.layouts: dict[str, SheetLayout] = {}
        self.fail_on = set(fail_on or ())
        self._created = 0

    def _check(self, operation: str) -> None:
        if operation in self.fail_on:
            raise ServiceUnavailable(f"{operation} failed")

    async def create_document(self, layout: SheetLayout) -> SheetHandle:
        self._check("create_document")
        self._created += 1
        spreadsheet_id = f"sheet-{self._created}"
        self.documents[spreadsheet_id] = [[layout.title], [layout.subtitle], [], list(layout.headers)]
        self.layouts[spreadsheet_id] = layout
        return SheetHandle(spreadsheet_id=spreadsheet_id, sheet_id=0)

    async def set_permissions(self, handle: SheetHandle, role: str) -> None:
        self._check("set_permissions")
        self.permissions[handle.spreadsheet_id] = role

    async def discard_document(self, handle: SheetHandle) -> None:
        self._check("discard_document")
        self.documents.pop(handle.spreadsheet_id, None)
        self.permissions.pop(handle.spreadsheet_id, None)

    async def read_rows(self, handle: SheetHandle, range_: str) -> list[list[Any]]:
        self._check("read_rows")
        rows = [list(row) for row in self.documents[handle.spreadsheet_id]]
        await asyncio.sleep(0)
        return rows

    async def append_row(self, handle: SheetHandle, range_: str, row: list[Any]) -> None:
        self._check("append_row")
        await asyncio.sleep(0)
        self.documents[handle.spreadsheet_id].append(list(row))

    def data_rows(self, spreadsheet_id: str) -> list[list[Any]]:
        return self.documents[spreadsheet_id][HEADER_ROWS:]


def entry_reply(**overrides) -> dict:
    """A classifier reply for 'Paid 500 for materials'."""
    reply = {
        "isValid": True,
        "date": "05-03-2024",
        "vchName": "Payment",
        "description": "Materials",
        "debit": 500,
        "credit": 0,
        "partyName": "Supplier",
        "confidence": 0.9,
        "reasoning": "Paid means money going out",
    }
    reply.update(overrides)
    return reply
