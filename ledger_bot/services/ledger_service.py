"""
Ledger service: CRUD over the ledgers table.

This service enforces the rules that belong to the ledger record
itself:
1. Titles are non-empty and globally unique
2. Only complete ledgers (with a sheet_ref) are ever listed
3. Incomplete ledgers are removed, either by saga compensation
   or by the orphan sweep

The service takes a database session as a constructor argument.
The caller controls the transaction boundary: it decides when to
commit or rollback.
"""

from datetime import datetime, timedelta

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ledger_bot.errors import ConflictError, NotFoundError, ValidationError
from ledger_bot.models.ledger import Ledger
from ledger_bot.schemas.ledger import LedgerCreate, UserRef
from ledger_bot.utils import utcnow


class LedgerService:
    """All ledger record operations pass through this service."""

    def __init__(self, db: Session):
        self.db = db

    def title_exists(self, title: str) -> bool:
        existing = self.db.execute(
            select(Ledger.id).where(Ledger.title == title.strip())
        ).first()
        return existing is not None

    def create(self, request: LedgerCreate, owner: UserRef) -> Ledger:
        """
        Insert a ledger without a sheet_ref.

        The up-front check gives a readable error; the unique index
        is the authoritative one, so a racing insert still ends up
        as ConflictError rather than a raw IntegrityError.
        """
        title = request.title.strip()
        if not title:
            raise ValidationError("Title required to create a new ledger")

        if self.title_exists(title):
            raise ConflictError(f"Sorry, the name '{title}' is already used")

        ledger = Ledger(
            title=title,
            description=request.description or "",
            created_by=owner.id,
        )
        self.db.add(ledger)
        try:
            self.db.flush()
        except IntegrityError as exc:
            raise ConflictError(f"Sorry, the name '{title}' is already used") from exc
        return ledger

    def get(self, ledger_id: int) -> Ledger:
        ledger = self.db.get(Ledger, ledger_id)
        if not ledger:
            raise NotFoundError(f"Ledger {ledger_id} not found")
        return ledger

    def find_by_owner(self, owner: UserRef) -> list[Ledger]:
        """Return the owner's complete ledgers, newest first."""
        ledgers = self.db.execute(
            select(Ledger)
            .where(
                Ledger.created_by == owner.id,
                Ledger.sheet_ref.is_not(None),
            )
            .order_by(Ledger.created_at.desc(), Ledger.id.desc())
        ).scalars().all()
        return list(ledgers)

    def attach_sheet_ref(self, ledger_id: int, sheet_ref: str) -> Ledger:
        """Mark a ledger complete by recording its spreadsheet handle."""
        if not sheet_ref:
            raise ValidationError("sheet_ref must not be empty")
        ledger = self.get(ledger_id)
        ledger.sheet_ref = sheet_ref
        self.db.flush()
        return ledger

    def delete(self, ledger_id: int) -> bool:
        """Delete a ledger. Returns False if it was already gone."""
        ledger = self.db.get(Ledger, ledger_id)
        if not ledger:
            return False
        self.db.delete(ledger)
        self.db.flush()
        return True

    def purge_orphans(self, older_than: timedelta) -> int:
        """
        Delete ledgers that never received a sheet_ref.

        Only rows older than the grace period are touched, so a
        creation saga that is still running is left alone.
        """
        cutoff: datetime = utcnow() - older_than
        result = self.db.execute(
            delete(Ledger).where(
                Ledger.sheet_ref.is_(None),
                Ledger.created_at < cutoff,
            )
        )
        return result.rowcount or 0
