"""
Tests for the user endpoints.

These test the HTTP layer: status codes, response format and error
mapping. Business rules are tested in tests/services.
"""

from ledger_bot.schemas.ledger import LedgerCreate, UserCreate, UserRef
from ledger_bot.services.ledger_service import LedgerService
from ledger_bot.services.user_service import UserService


class TestCreateUser:

    def test_create_user_returns_201(self, client):
        response = client.post("/users", json={"username": "alice", "display_name": "Alice"})

        assert response.status_code == 201
        data = response.json()
        assert data["username"] == "alice"
        assert data["display_name"] == "Alice"

    def test_at_sign_is_stripped(self, client):
        response = client.post("/users", json={"username": "@alice"})
        assert response.json()["username"] == "alice"

    def test_duplicate_username_returns_409(self, client):
        client.post("/users", json={"username": "alice"})
        response = client.post("/users", json={"username": "alice"})

        assert response.status_code == 409

    def test_blank_username_is_rejected(self, client):
        response = client.post("/users", json={"username": "@"})
        assert response.status_code == 422


class TestListLedgers:

    def _ledger(self, db_session, owner, title, sheet_ref="sheet"):
        ledger = LedgerService(db_session).create(LedgerCreate(title=title), owner)
        if sheet_ref:
            LedgerService(db_session).attach_sheet_ref(ledger.id, f"{sheet_ref}-{ledger.id}")
        db_session.commit()
        return ledger

    def test_unknown_user_returns_404(self, client):
        response = client.get("/users/nobody/ledgers")
        assert response.status_code == 404

    def test_lists_complete_ledgers_newest_first(self, client, db_session):
        user = UserService(db_session).create_user(UserCreate(username="alice"))
        owner = UserRef.model_validate(user)
        self._ledger(db_session, owner, "First")
        self._ledger(db_session, owner, "Half built", sheet_ref=None)
        self._ledger(db_session, owner, "Second")

        response = client.get("/users/@alice/ledgers")

        assert response.status_code == 200
        titles = [item["title"] for item in response.json()]
        assert titles == ["Second", "First"]

    def test_user_without_ledgers(self, client):
        client.post("/users", json={"username": "bob"})
        response = client.get("/users/bob/ledgers")

        assert response.status_code == 200
        assert response.json() == []
