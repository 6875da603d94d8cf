"""
Async store adapter used by the bot.

The dialog and the sagas run on the event loop; SQLAlchemy sessions
are synchronous. Each operation here runs on a worker thread with
its own session, commits when the operation succeeds and rolls back
when it raises. Callers get pydantic snapshots (UserRef,
LedgerSummary), never live ORM objects.
"""

import asyncio
import contextlib
from datetime import timedelta
from typing import Callable, Iterator, TypeVar

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session, sessionmaker

from ledger_bot.errors import ServiceUnavailable, ValidationError
from ledger_bot.logging_config import get_logger
from ledger_bot.models.base import SessionLocal
from ledger_bot.schemas.ledger import LedgerCreate, LedgerSummary, UserRef
from ledger_bot.services.ledger_service import LedgerService
from ledger_bot.services.user_service import UserService

log = get_logger(__name__)

T = TypeVar("T")


class LedgerStore:

    def __init__(self, session_factory: sessionmaker[Session] = SessionLocal):
        self._session_factory = session_factory

    @contextlib.contextmanager
    def _session(self) -> Iterator[Session]:
        session = self._session_factory()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def _call(self, fn: Callable[[Session], T]) -> T:
        with self._session() as db:
            return fn(db)

    async def _run(self, operation: str, fn: Callable[[Session], T]) -> T:
        try:
            return await asyncio.to_thread(self._call, fn)
        except OperationalError as exc:
            log.error("ledger_store_unavailable", operation=operation, error=str(exc))
            raise ServiceUnavailable("The ledger database is unavailable") from exc

    # --- Identity ---

    async def resolve_owner(self, username: str) -> UserRef:
        """Map a chat username to its registered user (NotFoundError if none)."""
        def op(db: Session) -> UserRef:
            user = UserService(db).find_by_username(username)
            return UserRef.model_validate(user)
        return await self._run("resolve_owner", op)

    # --- Ledgers ---

    async def title_exists(self, title: str) -> bool:
        return await self._run(
            "title_exists", lambda db: LedgerService(db).title_exists(title)
        )

    async def create(
        self, title: str, description: str, owner: UserRef
    ) -> LedgerSummary:
        try:
            request = LedgerCreate(title=title, description=description or "")
        except PydanticValidationError as exc:
            raise ValidationError("A ledger needs a non-empty name") from exc

        def op(db: Session) -> LedgerSummary:
            ledger = LedgerService(db).create(request, owner)
            return LedgerSummary.model_validate(ledger)

        ledger = await self._run("create", op)
        log.info("ledger_record_created", ledger_id=ledger.id, owner_id=owner.id)
        return ledger

    async def find_by_owner(self, owner: UserRef) -> list[LedgerSummary]:
        def op(db: Session) -> list[LedgerSummary]:
            return [
                LedgerSummary.model_validate(ledger)
                for ledger in LedgerService(db).find_by_owner(owner)
            ]
        return await self._run("find_by_owner", op)

    async def get(self, ledger_id: int) -> LedgerSummary:
        return await self._run(
            "get",
            lambda db: LedgerSummary.model_validate(LedgerService(db).get(ledger_id)),
        )

    async def attach_sheet_ref(self, ledger_id: int, sheet_ref: str) -> LedgerSummary:
        def op(db: Session) -> LedgerSummary:
            ledger = LedgerService(db).attach_sheet_ref(ledger_id, sheet_ref)
            return LedgerSummary.model_validate(ledger)
        return await self._run("attach_sheet_ref", op)

    async def delete(self, ledger_id: int) -> bool:
        deleted = await self._run(
            "delete", lambda db: LedgerService(db).delete(ledger_id)
        )
        log.info("ledger_record_deleted", ledger_id=ledger_id, deleted=deleted)
        return deleted

    async def purge_orphans(self, older_than: timedelta) -> int:
        purged = await self._run(
            "purge_orphans", lambda db: LedgerService(db).purge_orphans(older_than)
        )
        if purged:
            log.warning("orphan_ledgers_purged", count=purged)
        return purged
