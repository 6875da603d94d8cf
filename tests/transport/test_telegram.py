"""Tests for turning Telegram updates into chat events."""

import asyncio
from types import SimpleNamespace

from telegram import InlineKeyboardMarkup

from ledger_bot.dialog import messages
from ledger_bot.dialog.machine import DialogMachine
from ledger_bot.dialog.state import DialogStep
from ledger_bot.services.entry_parser import EntryParser
from ledger_bot.services.synchronizer import LedgerSynchronizer
from ledger_bot.transport.telegram import event_from_update, to_markup
from tests.fakes import FakeClassifier, FakeSheetStore, FakeTransport, entry_reply


def update(text=None, data=None, username="alice", first_name="Alice"):
    user = SimpleNamespace(id=1, username=username, first_name=first_name)
    chat = SimpleNamespace(id=10)
    query = None
    if data is not None:
        query = SimpleNamespace(id="cb-1", data=data, message=SimpleNamespace(message_id=77))
    return SimpleNamespace(
        effective_user=user,
        effective_chat=chat,
        callback_query=query,
        effective_message=SimpleNamespace(text=text),
    )


def test_slash_text_is_a_command():
    event = event_from_update(update(text="/new_l"))
    assert event.command == "/new_l"
    assert event.text is None


def test_plain_text():
    event = event_from_update(update(text="Paid 500"))
    assert event.text == "Paid 500"
    assert event.username == "alice"
    assert event.display_name == "Alice"


def test_button_press_carries_message_ref():
    event = event_from_update(update(data="select_ledger:3"))

    assert event.is_button
    assert event.callback_id == "cb-1"
    assert event.message_ref == 77
    assert event.username == "alice"


def test_first_name_is_never_the_username():
    event = event_from_update(update(text="hi", username=None, first_name="alice"))

    assert event.username is None
    assert event.display_name == "alice"


def test_user_without_username_cannot_borrow_an_account(store, alice):
    transport = FakeTransport()
    machine = DialogMachine(
        transport,
        store,
        EntryParser(FakeClassifier(entry_reply()), timeout=5),
        LedgerSynchronizer(store, FakeSheetStore()),
    )
    event = event_from_update(update(text="/new_e", username=None, first_name="alice"))

    asyncio.run(machine.handle(event))

    assert transport.last.text == messages.NO_ACCOUNT
    assert machine.table.step(1) == DialogStep.IDLE


def test_greeting_uses_display_name(store):
    transport = FakeTransport()
    machine = DialogMachine(
        transport,
        store,
        EntryParser(FakeClassifier(entry_reply()), timeout=5),
        LedgerSynchronizer(store, FakeSheetStore()),
    )

    asyncio.run(machine.handle(event_from_update(update(text="/start", username=None))))

    assert transport.last.text.startswith("Welcome Alice!")


def test_non_text_message_is_skipped():
    assert event_from_update(update(text=None)) is None


def test_markup_keeps_rows():
    markup = to_markup(messages.ENTRY_CONFIRM_BUTTONS)

    assert isinstance(markup, InlineKeyboardMarkup)
    assert [len(row) for row in markup.inline_keyboard] == [2, 1]
    assert markup.inline_keyboard[1][0].callback_data == "edit_entry"
    assert to_markup(None) is None
