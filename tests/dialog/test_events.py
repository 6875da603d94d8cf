"""Tests for event classification, the conversation table and keyed locks."""

import asyncio

import pytest

from ledger_bot.dialog.events import ChatEvent, EventKind, classify_event, command_name
from ledger_bot.dialog.state import ConversationState, ConversationTable, DialogStep
from ledger_bot.services.locks import KeyedLocks


class TestClassifyEvent:

    @pytest.mark.parametrize("raw, expected", [
        ("/new_l", "new_l"),
        ("/new_e@LedgerBot", "new_e"),
        ("/CANCEL now", "cancel"),
        ("  /help  ", "help"),
        ("", ""),
    ])
    def test_command_name(self, raw, expected):
        assert command_name(raw) == expected

    @pytest.mark.parametrize("raw, kind", [
        ("/new_l", EventKind.CREATE_LEDGER),
        ("/new_e", EventKind.CREATE_ENTRY),
        ("/cancel", EventKind.CANCEL),
        ("/status", EventKind.STATUS),
        ("/balance", EventKind.UNKNOWN_COMMAND),
    ])
    def test_commands(self, raw, kind):
        assert classify_event(ChatEvent(user_id=1, chat_ref=1, command=raw))[0] is kind

    def test_text_carries_its_body(self):
        event = ChatEvent(user_id=1, chat_ref=1, text="Paid 500")
        assert classify_event(event) == (EventKind.TEXT, "Paid 500")

    @pytest.mark.parametrize("data, expected", [
        ("confirm_ledger_yes", (EventKind.CONFIRM_LEDGER_YES, None)),
        ("edit_entry", (EventKind.EDIT_ENTRY, None)),
        ("ledger_page:2", (EventKind.LEDGER_PAGE, "2")),
        ("select_ledger:17", (EventKind.SELECT_LEDGER, "17")),
        ("something_else", (EventKind.UNKNOWN_BUTTON, "something_else")),
        ("other:3", (EventKind.UNKNOWN_BUTTON, "other:3")),
    ])
    def test_buttons(self, data, expected):
        event = ChatEvent(user_id=1, chat_ref=1, callback_data=data)
        assert event.is_button
        assert classify_event(event) == expected


def state_for(user_id, step=DialogStep.AWAITING_LEDGER_NAME):
    return ConversationState(user_id=user_id, chat_ref=user_id, username="alice", step=step, owner=None)


class TestConversationTable:

    def test_missing_state_is_idle(self):
        assert ConversationTable().step(1) == DialogStep.IDLE

    def test_put_and_pop(self):
        table = ConversationTable()
        state = state_for(1)

        assert table.put(state)
        assert table.get(1) is state
        assert table.is_current(state)
        assert table.pop(1) is state
        assert len(table) == 0

    def test_cancel_invalidates_older_epoch(self):
        table = ConversationTable()

        async def scenario():
            async with table.lock(1):
                epoch = table.epoch(1)
                assert table.cancel(1) is None
                assert not table.put(state_for(1), epoch)
                assert table.get(1) is None
                assert table.put(state_for(1), table.epoch(1))

        asyncio.run(scenario())

    def test_epochs_are_dropped_once_the_user_is_quiet(self):
        table = ConversationTable()

        async def scenario():
            async with table.lock(1):
                table.cancel(1)
                assert table.epoch(1) == 1
            assert table.epoch(1) == 0

        asyncio.run(scenario())
        # A cancel with nothing running has nothing to invalidate
        table.cancel(1)
        assert table.epoch(1) == 0
        assert table._epochs == {}

    def test_epoch_survives_while_another_event_waits(self):
        table = ConversationTable()
        seen = []

        async def first():
            async with table.lock(1):
                table.cancel(1)
                await asyncio.sleep(0.01)

        async def second():
            await asyncio.sleep(0)
            async with table.lock(1):
                seen.append(table.epoch(1))

        async def scenario():
            await asyncio.gather(first(), second())

        asyncio.run(scenario())
        assert seen == [1]
        assert table.epoch(1) == 0

    def test_replaced_state_is_not_current(self):
        table = ConversationTable()
        old = state_for(1)
        table.put(old)
        table.put(state_for(1, DialogStep.SELECTING_LEDGER))

        assert not table.is_current(old)

    def test_users_are_independent(self):
        table = ConversationTable()
        table.put(state_for(1))
        table.cancel(2)

        assert table.step(1) == DialogStep.AWAITING_LEDGER_NAME
        assert table.epoch(1) == 0


class TestKeyedLocks:

    def test_same_key_is_serialized(self):
        locks = KeyedLocks()
        order = []

        async def worker(name):
            async with locks.hold("ledger-1"):
                order.append(f"{name}-in")
                await asyncio.sleep(0)
                order.append(f"{name}-out")

        async def scenario():
            await asyncio.gather(worker("a"), worker("b"))

        asyncio.run(scenario())
        assert order == ["a-in", "a-out", "b-in", "b-out"]

    def test_different_keys_do_not_block(self):
        locks = KeyedLocks()

        async def scenario():
            async with locks.hold(1):
                assert locks.is_held(1)
                async with locks.hold(2):
                    assert locks.is_held(2)

        asyncio.run(scenario())

    def test_unused_locks_are_dropped(self):
        locks = KeyedLocks()

        async def scenario():
            async with locks.hold(1):
                assert len(locks) == 1
                assert 1 in locks

        asyncio.run(scenario())
        assert len(locks) == 0
        assert 1 not in locks
        assert not locks.is_held(1)

    def test_lock_is_released_on_error(self):
        locks = KeyedLocks()

        async def scenario():
            with pytest.raises(RuntimeError):
                async with locks.hold(1):
                    raise RuntimeError("boom")
            async with locks.hold(1):
                pass

        asyncio.run(scenario())
        assert len(locks) == 0
