"""
User service: the identity lookup the ledger flows depend on.

Chat users are matched to stored users by username. The bot never
creates users on its own; an unknown username means the person has
no account yet and must ask an admin to register them.
"""

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ledger_bot.errors import ConflictError, NotFoundError, ValidationError
from ledger_bot.models.user import User
from ledger_bot.schemas.ledger import UserCreate


class UserService:

    def __init__(self, db: Session):
        self.db = db

    def create_user(self, request: UserCreate) -> User:
        """Register a username. Raises ConflictError if it is taken."""
        existing = self.db.execute(
            select(User).where(User.username == request.username)
        ).scalar_one_or_none()

        if existing:
            raise ConflictError(f"User '{request.username}' already exists")

        user = User(
            username=request.username,
            display_name=request.display_name or request.username,
        )
        self.db.add(user)
        try:
            self.db.flush()
        except IntegrityError as exc:
            raise ConflictError(f"User '{request.username}' already exists") from exc
        return user

    def find_by_username(self, username: str) -> User:
        """
        Resolve a chat handle to a stored user.

        Raises ValidationError for an empty handle and NotFoundError
        when nobody is registered under it.
        """
        username = (username or "").strip().lstrip("@")
        if not username:
            raise ValidationError("Username required to look up your account")

        user = self.db.execute(
            select(User).where(User.username == username)
        ).scalar_one_or_none()

        if not user:
            raise NotFoundError(
                "Sorry, cannot find your account. Please contact the admin."
            )
        return user
