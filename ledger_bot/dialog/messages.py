"""User-facing texts and the button sets that go with them."""

from decimal import Decimal

from ledger_bot.dialog.events import (
    CONFIRM_ENTRY_NO,
    CONFIRM_ENTRY_YES,
    CONFIRM_LEDGER_NO,
    CONFIRM_LEDGER_YES,
    EDIT_ENTRY,
    RESEND_ENTRY,
    Buttons,
)
from ledger_bot.schemas.entry import EntrySide, ParsedEntry, to_cell
from ledger_bot.services.pagination import Page

COMMAND_LIST = (
    "🆕 /new_l - Create a new ledger\n"
    "📝 /new_e - Add an entry to a ledger\n\n"
    "🔧 Other commands:\n"
    "/start - Welcome message\n"
    "/help - Show help\n"
    "/status - Check bot status\n"
    "/cancel - Cancel the current operation"
)

START_FRESH = (
    "You can start fresh with:\n"
    "🆕 /new_l - Create a new ledger\n"
    "📝 /new_e - Add a new entry"
)

CANCEL_HINT = "\n\nTo cancel, send /cancel"

UNKNOWN_COMMAND = f"🤖 I didn't understand that.\n\n📋 Available commands:\n\n{COMMAND_LIST}"
NO_ACTIVE_OPERATION = f"ℹ️ No active operation.\n\n{START_FRESH}"
NOTHING_TO_CANCEL = f"ℹ️ No active operation to cancel.\n\n{START_FRESH}"
CANCELLED = f"❌ Current operation cancelled.\n\n{START_FRESH}"

NO_ACCOUNT = "❌ Sorry, cannot find your account. Please contact the admin."
NO_LEDGERS = "📭 No ledgers found. Use /new_l to create one."

ASK_LEDGER_NAME = 'Please enter your ledger name:\n\nExample: "ABC Building Work Ledger"' + CANCEL_HINT
EMPTY_LEDGER_NAME = "⚠️ The ledger name cannot be empty. Please send a name." + CANCEL_HINT
LEDGER_NAME_TOO_LONG = "⚠️ The ledger name must be at most 100 characters. Please send a shorter name."
LEDGER_CREATION_CANCELLED = "❌ Ledger creation cancelled."

ASK_ENTRY_TEXT_EXAMPLES = (
    "Examples:\n"
    '• "Paid 500 for materials"\n'
    '• "Received 1000 from client John"\n'
    '• "Bought office supplies for 250"'
)
EMPTY_ENTRY = "⚠️ The entry text cannot be empty. Please describe the transaction." + CANCEL_HINT
PROCESSING_ENTRY = "🤖 Processing your entry with AI..."
PARSE_FAILED = (
    "❌ The AI reply could not be understood.\n\n"
    "Please try again with a clearer entry."
)
CLASSIFIER_DOWN = (
    "⚠️ The AI service is not reachable right now.\n\n"
    "Tap Resend to try the same text again, or send a new entry."
)
ENTRY_REJECTED = "❌ Entry discarded.\n\n📝 Please send a new entry text:"
EDIT_ENTRY_PROMPT = "✏️ Let's try again.\n\n📝 Please send your entry text:"
ADDING_ENTRY = "✅ Entry confirmed!\n\n📊 Adding entry to the ledger sheet..."
LEDGER_GONE = f"❌ That ledger no longer exists.\n\n{START_FRESH}"

SERVICE_DOWN = "⚠️ A service we depend on is unavailable. Please try again in a moment."
SYSTEM_ISSUE = f"🚨 Sorry, something went wrong on our side. The current operation was cancelled.\n\n{START_FRESH}"

STATUS = (
    "🤖 Bot status: Active ✅\n\n"
    "📊 Features:\n"
    "• Create ledgers backed by Google Sheets\n"
    "• Add entries with AI processing\n"
    "• Automatic running balance"
)

STEP_NAMES = {
    "idle": "none",
    "awaiting_ledger_name": "waiting for a ledger name",
    "awaiting_ledger_confirmation": "waiting for ledger confirmation",
    "selecting_ledger": "choosing a ledger",
    "awaiting_entry_text": "waiting for entry text",
    "awaiting_entry_confirmation": "waiting for entry confirmation",
}

LEDGER_CONFIRM_BUTTONS: Buttons = [[
    ("✅ Yes, Create Ledger", CONFIRM_LEDGER_YES),
    ("❌ No, Cancel", CONFIRM_LEDGER_NO),
]]

ENTRY_CONFIRM_BUTTONS: Buttons = [
    [("✅ Yes, Add Entry", CONFIRM_ENTRY_YES), ("❌ No, Cancel", CONFIRM_ENTRY_NO)],
    [("✏️ Edit Entry", EDIT_ENTRY)],
]

RESEND_BUTTONS: Buttons = [[("🔁 Resend", RESEND_ENTRY)]]


def money(amount: Decimal, symbol: str = "₹") -> str:
    sign = "-" if amount < 0 else ""
    return f"{sign}{symbol}{to_cell(abs(amount)):,}"


def welcome(name: str) -> str:
    return f"Welcome {name}! 🎉\n\nI'm your personal ledger bot. 📊\n\n{COMMAND_LIST}"


def help_text() -> str:
    return (
        f"🤖 Ledger Bot help\n\n{COMMAND_LIST}\n\n"
        "💡 Tips:\n"
        "• Create a ledger with /new_l first\n"
        "• Then add entries to it with /new_e\n"
        "• Any operation can be cancelled with /cancel"
    )


def status(step: str) -> str:
    return f"{STATUS}\n\nCurrent operation: {STEP_NAMES.get(step, step)}"


def confirm_ledger_name(name: str) -> str:
    return (
        "📋 Are you sure you want to create a ledger with this name?\n\n"
        f'🏷️ Name: "{name}"\n\nPlease confirm:'
    )


def creating_ledger(name: str) -> str:
    return f'⏳ Creating ledger "{name}" and its Google Sheet...'


def ledger_created(title: str, ledger_id: int, username: str, url: str) -> str:
    return (
        "✅ Ledger & Google Sheet created successfully!\n\n"
        f'🏷️ Name: "{title}"\n'
        f"🆔 ID: {ledger_id}\n"
        f"👤 Created by: {username}\n\n"
        f"📊 Google Sheet: {url}\n\n"
        "🎉 Your ledger is ready. Add an entry with /new_e"
    )


def name_taken(name: str) -> str:
    return f'⚠️ Sorry, the name "{name}" is already used.\n\nPlease send a different ledger name:' + CANCEL_HINT


def ledger_not_created(name: str) -> str:
    return (
        f'❌ Ledger "{name}" was not created: its Google Sheet could not be set up.\n\n'
        "Nothing was saved. Please try again later with /new_l"
    )


def ledger_page(page: Page) -> str:
    return (
        "📚 Choose a ledger to add an entry:\n\n"
        f"Page {page.page_index + 1} of {page.total_pages}" + CANCEL_HINT
    )


def ask_entry_text(title: str) -> str:
    return f'✅ Ledger "{title}" selected.\n\n📝 Now send your entry text.\n\n{ASK_ENTRY_TEXT_EXAMPLES}' + CANCEL_HINT


def low_confidence(reasoning: str) -> str:
    return (
        "⚠️ The AI couldn't understand your entry clearly.\n\n"
        f"🤖 Reasoning: {reasoning or 'not given'}\n\n"
        f"Please try again with a clearer entry.\n\n{ASK_ENTRY_TEXT_EXAMPLES}"
    )


def amount_line(entry: ParsedEntry, symbol: str) -> str:
    label = entry.side.value if entry.side else EntrySide.DEBIT.value
    return f"{money(entry.amount, symbol)} ({label})"


def entry_confirmation(entry: ParsedEntry, symbol: str = "₹") -> str:
    voucher = entry.voucher_name or "-"
    if entry.voucher_number:
        voucher = f"{voucher} #{entry.voucher_number}"
    return (
        "🤖 AI processed your entry:\n\n"
        f"📅 Date: {entry.date}\n"
        f"🧾 Voucher: {voucher}\n"
        f"📝 Description: {entry.description or '-'}\n"
        f"💰 Amount: {amount_line(entry, symbol)}\n"
        f"👤 Party: {entry.party_name or '-'}\n\n"
        f"🤖 AI Confidence: {round(entry.confidence * 100)}%\n"
        f"💭 Reasoning: {entry.reasoning or '-'}\n\n"
        "Is this correct?"
    )


def entry_added(ledger_title: str, entry: ParsedEntry, balance: Decimal, symbol: str = "₹") -> str:
    return (
        "✅ Entry added successfully!\n\n"
        f"📊 Ledger: {ledger_title}\n"
        f"📅 Date: {entry.date}\n"
        f"📝 Description: {entry.description or '-'}\n"
        f"💰 Amount: {amount_line(entry, symbol)}\n"
        f"💳 New Balance: {money(balance, symbol)}\n\n"
        "New entry: /new_e\nNew ledger: /new_l"
    )


def append_failed(ledger_title: str) -> str:
    return (
        f'⚠️ The entry could not be added to "{ledger_title}".\n\n'
        "Nothing was written. Please try again with /new_e"
    )
