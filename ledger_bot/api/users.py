"""
User and ledger listing endpoints.

Registering users is how an admin gives a chat username access to
the bot; the bot itself never creates users. Listing returns only
complete ledgers, the same view the bot offers during entry
creation.
"""

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from ledger_bot.errors import ConflictError, NotFoundError, ValidationError
from ledger_bot.models.base import get_db
from ledger_bot.schemas.ledger import LedgerSummary, UserCreate, UserRef, UserResponse
from ledger_bot.services.ledger_service import LedgerService
from ledger_bot.services.user_service import UserService

router = APIRouter(prefix="/users", tags=["Users"])


@router.post("", response_model=UserResponse, status_code=201)
def create_user(
    request: UserCreate,
    db: Session = Depends(get_db),
):
    """Register a chat username."""
    service = UserService(db)
    try:
        user = service.create_user(request)
        db.commit()
        return user
    except ConflictError as e:
        db.rollback()
        raise HTTPException(status_code=409, detail=str(e))
    except ValidationError as e:
        db.rollback()
        raise HTTPException(status_code=400, detail=str(e))


@router.get("/{username}/ledgers", response_model=list[LedgerSummary])
def list_ledgers(
    username: str,
    db: Session = Depends(get_db),
):
    """Complete ledgers owned by `username`, newest first."""
    try:
        user = UserService(db).find_by_username(username)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))

    return LedgerService(db).find_by_owner(UserRef.model_validate(user))
