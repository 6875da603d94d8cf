"""Small helpers shared across services."""

import asyncio
import secrets
from datetime import datetime, timezone
from typing import Awaitable, TypeVar

from ledger_bot.errors import ServiceUnavailable

T = TypeVar("T")

# Same alphabet and default length as nanoid
TOKEN_ALPHABET = (
    "useandom-26T198340PX75pxJACKVERYMINDBUSHWOLF_GQZbfghjklqvwyzrict"
)


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def new_token(size: int = 21) -> str:
    """Random URL-safe identifier, used for ledger uids and voucher numbers."""
    return "".join(secrets.choice(TOKEN_ALPHABET) for _ in range(size))


async def bounded(call: Awaitable[T], timeout: float, what: str) -> T:
    """
    Await an external call with an upper time limit.

    Expiry is reported as ServiceUnavailable so callers handle it
    the same way as any other unreachable collaborator.
    """
    try:
        return await asyncio.wait_for(call, timeout=timeout)
    except asyncio.TimeoutError as exc:
        raise ServiceUnavailable(f"{what} timed out after {timeout:g}s") from exc
