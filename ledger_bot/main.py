"""
Ledger Bot: FastAPI application.

A small HTTP surface next to the chat bot: health, user
registration and ledger listing. Run with
`uvicorn ledger_bot.main:app`.
"""

from fastapi import FastAPI

from ledger_bot.config import get_settings
from ledger_bot.logging_config import configure_logging
from ledger_bot.api.health import router as health_router
from ledger_bot.api.users import router as users_router

settings = get_settings()
configure_logging(settings.LOG_LEVEL)

app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="Chat-driven ledgers backed by Google Sheets",
)

# Register routers
app.include_router(health_router)
app.include_router(users_router)
