"""
Telegram adapter.

Translates python-telegram-bot updates into ChatEvents for the
dialog machine and implements the outbound Transport calls on top of
the Bot API. Updates are processed concurrently; ordering within one
user's conversation is the dialog machine's job.
"""

from typing import Any

from telegram import Bot, BotCommand, InlineKeyboardButton, InlineKeyboardMarkup, Update
from telegram.error import BadRequest
from telegram.ext import (
    AIORateLimiter,
    Application,
    CallbackQueryHandler,
    CommandHandler,
    ContextTypes,
    MessageHandler,
    filters,
)

from ledger_bot.dialog.events import COMMANDS, Buttons, ChatEvent
from ledger_bot.logging_config import get_logger

log = get_logger(__name__)

ALLOWED_UPDATES = ["message", "callback_query"]

BOT_COMMANDS = [
    BotCommand("new_l", "Create a new ledger"),
    BotCommand("new_e", "Add an entry to a ledger"),
    BotCommand("cancel", "Cancel the current operation"),
    BotCommand("status", "Check bot status"),
    BotCommand("help", "Show help"),
    BotCommand("start", "Show welcome message"),
]


def to_markup(buttons: Buttons | None) -> InlineKeyboardMarkup | None:
    if not buttons:
        return None
    return InlineKeyboardMarkup(
        [[InlineKeyboardButton(label, callback_data=data) for label, data in row] for row in buttons]
    )


class TelegramTransport:

    def __init__(self, bot: Bot):
        self.bot = bot

    async def send_message(self, chat_ref: Any, text: str, buttons: Buttons | None = None) -> int:
        message = await self.bot.send_message(chat_id=chat_ref, text=text, reply_markup=to_markup(buttons))
        return message.message_id

    async def edit_message(
        self, chat_ref: Any, message_ref: Any, text: str, buttons: Buttons | None = None
    ) -> None:
        try:
            await self.bot.edit_message_text(
                text=text,
                chat_id=chat_ref,
                message_id=message_ref,
                reply_markup=to_markup(buttons),
            )
        except BadRequest as exc:
            if "not modified" not in str(exc).lower():
                raise

    async def delete_message(self, chat_ref: Any, message_ref: Any) -> None:
        await self.bot.delete_message(chat_id=chat_ref, message_id=message_ref)

    async def answer_callback(self, callback_id: str, text: str | None = None, alert: bool = False) -> None:
        try:
            await self.bot.answer_callback_query(callback_id, text=text, show_alert=alert)
        except BadRequest as exc:
            # Queries older than a few seconds can no longer be answered
            log.warning("callback_answer_failed", error=str(exc))


def event_from_update(update: Update) -> ChatEvent | None:
    """
    Build a ChatEvent, or None for updates the bot does not handle.

    Only the Telegram username identifies the user. First names are
    free text anyone can set, so they are passed as display_name and
    used for greetings only.
    """
    user = update.effective_user
    chat = update.effective_chat
    if user is None or chat is None:
        return None
    who = {
        "user_id": user.id,
        "chat_ref": chat.id,
        "username": user.username or None,
        "display_name": user.first_name or user.username,
    }

    query = update.callback_query
    if query is not None:
        return ChatEvent(
            **who,
            callback_data=query.data,
            callback_id=query.id,
            message_ref=query.message.message_id if query.message else None,
        )

    message = update.effective_message
    if message is None or message.text is None:
        return None
    text = message.text
    if text.startswith("/"):
        return ChatEvent(**who, command=text)
    return ChatEvent(**who, text=text)


async def on_update(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    event = event_from_update(update)
    if event is None:
        return
    await context.application.bot_data["machine"].handle(event)


def build_application(token: str, post_init=None, post_shutdown=None) -> Application:
    builder = (
        Application.builder()
        .token(token)
        .rate_limiter(AIORateLimiter())
        .concurrent_updates(True)
    )
    if post_init is not None:
        builder = builder.post_init(post_init)
    if post_shutdown is not None:
        builder = builder.post_shutdown(post_shutdown)
    application = builder.build()

    application.add_handler(CommandHandler(list(COMMANDS), on_update))
    application.add_handler(MessageHandler(filters.COMMAND, on_update))
    application.add_handler(MessageHandler(filters.TEXT & ~filters.COMMAND, on_update))
    application.add_handler(CallbackQueryHandler(on_update))
    return application
