"""
Bot entry point (`ledger-bot` console script).

Wires the store, classifier, spreadsheet store, synchronizer and
dialog machine together and runs Telegram long polling. On start-up
it sweeps ledgers left without a sheet by an interrupted creation.
"""

from datetime import timedelta

from telegram.ext import Application

import ledger_bot.models  # noqa: F401  registers the tables on Base.metadata
from ledger_bot.config import Settings, get_settings
from ledger_bot.dialog.machine import DialogMachine
from ledger_bot.logging_config import configure_logging, get_logger
from ledger_bot.models.base import init_db
from ledger_bot.services.classifier import ClassifierConfig, GeminiClassifier
from ledger_bot.services.entry_parser import EntryParser
from ledger_bot.services.ledger_store import LedgerStore
from ledger_bot.services.sheets import GoogleSheetsStore
from ledger_bot.services.synchronizer import LedgerSynchronizer
from ledger_bot.transport.telegram import (
    ALLOWED_UPDATES,
    BOT_COMMANDS,
    TelegramTransport,
    build_application,
)

log = get_logger(__name__)

REQUIRED_SETTINGS = ("TELEGRAM_BOT_TOKEN", "GEMINI_API_KEY")


def missing_settings(settings: Settings) -> list[str]:
    return [name for name in REQUIRED_SETTINGS if not getattr(settings, name)]


def create_bot(settings: Settings) -> Application:
    store = LedgerStore()
    classifier = GeminiClassifier(ClassifierConfig.from_settings(settings))
    sheets = GoogleSheetsStore.from_settings(settings)
    parser = EntryParser(
        classifier,
        threshold=settings.CONFIDENCE_THRESHOLD,
        timeout=settings.CLASSIFIER_TIMEOUT_SECONDS,
    )
    synchronizer = LedgerSynchronizer.from_settings(store, sheets, settings)

    async def on_startup(application: Application) -> None:
        await store.purge_orphans(timedelta(minutes=settings.ORPHAN_GRACE_MINUTES))
        await application.bot.set_my_commands(BOT_COMMANDS)
        log.info("bot_started", environment=settings.ENVIRONMENT)

    async def on_shutdown(application: Application) -> None:
        await classifier.aclose()
        await sheets.aclose()
        log.info("bot_stopped")

    application = build_application(
        settings.TELEGRAM_BOT_TOKEN, post_init=on_startup, post_shutdown=on_shutdown
    )
    application.bot_data["machine"] = DialogMachine.from_settings(
        TelegramTransport(application.bot), store, parser, synchronizer, settings
    )
    return application


def main() -> None:
    settings = get_settings()
    configure_logging(settings.LOG_LEVEL)

    missing = missing_settings(settings)
    if missing:
        log.error("missing_settings", names=missing)
        raise SystemExit(f"Missing required settings: {', '.join(missing)}")

    init_db()
    application = create_bot(settings)
    application.run_polling(allowed_updates=ALLOWED_UPDATES)


if __name__ == "__main__":
    main()
