"""
Spreadsheet store adapter.

The synchronizer talks to the spreadsheet store through five calls:

    create_document(layout) -> SheetHandle
    read_rows(handle, range) -> list of rows
    append_row(handle, range, row)
    set_permissions(handle, role)
    discard_document(handle)

GoogleSheetsStore implements them over the Sheets v4 and Drive v3
REST APIs with httpx, authenticating with a service account through
google-auth. Every HTTP or auth failure is raised as
ServiceUnavailable; nothing is retried here.

Sheet structure (rows are 1-based as the user sees them):
    1  ledger title (merged)
    2  "Created by ... | Created on ..." (merged)
    3  blank
    4  column headers
    5+ entries
The first HEADER_ROWS rows are frozen and skipped when computing
the running balance.
"""

import asyncio
from dataclasses import dataclass, field
from typing import Any, Protocol

import httpx
from google.auth.exceptions import GoogleAuthError
from google.auth.transport.requests import Request
from google.oauth2 import service_account

from ledger_bot.config import Settings
from ledger_bot.errors import ServiceUnavailable
from ledger_bot.logging_config import get_logger
from ledger_bot.schemas.entry import LEDGER_HEADERS

log = get_logger(__name__)

SHEETS_API = "https://sheets.googleapis.com/v4/spreadsheets"
DRIVE_API = "https://www.googleapis.com/drive/v3/files"
SCOPES = [
    "https://www.googleapis.com/auth/spreadsheets",
    "https://www.googleapis.com/auth/drive",
]

LEDGER_SHEET_TITLE = "Ledger"
HEADER_ROWS = 4
LEDGER_RANGE = f"{LEDGER_SHEET_TITLE}!A:H"
VALIDATED_ROWS = 1000

HEADER_COLOR = {"red": 0.2, "green": 0.6, "blue": 0.8}
WHITE = {"red": 1, "green": 1, "blue": 1}


@dataclass(frozen=True)
class SheetHandle:
    """Reference to one ledger spreadsheet. `ref` is what the ledger row stores."""

    spreadsheet_id: str
    sheet_id: int = 0

    @property
    def ref(self) -> str:
        return self.spreadsheet_id

    @property
    def url(self) -> str:
        return f"https://docs.google.com/spreadsheets/d/{self.spreadsheet_id}/edit"

    @classmethod
    def from_ref(cls, ref: str) -> "SheetHandle":
        return cls(spreadsheet_id=ref)


@dataclass(frozen=True)
class SheetLayout:
    """Structural description of a new ledger sheet."""

    title: str
    subtitle: str
    headers: list[str] = field(default_factory=lambda: list(LEDGER_HEADERS))
    sheet_title: str = LEDGER_SHEET_TITLE
    column_widths: tuple[int, ...] = (150, 200, 200, 350, 250, 250, 250, 250)
    frozen_rows: int = HEADER_ROWS
    locale: str = "en_US"
    time_zone: str = "Asia/Kolkata"

    @classmethod
    def for_ledger(
        cls,
        title: str,
        created_by: str,
        created_on: str,
        locale: str = "en_US",
        time_zone: str = "Asia/Kolkata",
    ) -> "SheetLayout":
        return cls(
            title=title,
            subtitle=f"Created by: {created_by} | Created on: {created_on}",
            locale=locale,
            time_zone=time_zone,
        )


class SpreadsheetStore(Protocol):
    async def create_document(self, layout: SheetLayout) -> SheetHandle: ...

    async def read_rows(self, handle: SheetHandle, range_: str) -> list[list[Any]]: ...

    async def append_row(self, handle: SheetHandle, range_: str, row: list[Any]) -> None: ...

    async def set_permissions(self, handle: SheetHandle, role: str) -> None: ...

    async def discard_document(self, handle: SheetHandle) -> None: ...


# --- Layout requests ---

def _row_range(sheet_id: int, row: int, columns: int) -> dict[str, int]:
    return {
        "sheetId": sheet_id,
        "startRowIndex": row,
        "endRowIndex": row + 1,
        "startColumnIndex": 0,
        "endColumnIndex": columns,
    }


def _banner(sheet_id: int, row: int, columns: int, text: str, fmt: dict) -> list[dict]:
    """A merged full-width row holding one line of text."""
    return [
        {
            "updateCells": {
                "range": _row_range(sheet_id, row, columns),
                "rows": [{"values": [{
                    "userEnteredValue": {"stringValue": text},
                    "userEnteredFormat": fmt,
                }]}],
                "fields": "userEnteredValue,userEnteredFormat",
            }
        },
        {
            "mergeCells": {
                "range": _row_range(sheet_id, row, columns),
                "mergeType": "MERGE_ALL",
            }
        },
    ]


def _number_rule(sheet_id: int, column: int, rule: dict) -> dict:
    return {
        "setDataValidation": {
            "range": {
                "sheetId": sheet_id,
                "startRowIndex": HEADER_ROWS,
                "endRowIndex": VALIDATED_ROWS,
                "startColumnIndex": column,
                "endColumnIndex": column + 1,
            },
            "rule": {"condition": rule, "showCustomUi": True, "strict": True},
        }
    }


def layout_requests(layout: SheetLayout, sheet_id: int) -> list[dict]:
    """batchUpdate requests that turn an empty sheet into a ledger."""
    columns = len(layout.headers)
    requests: list[dict] = []

    requests += _banner(sheet_id, 0, columns, layout.title, {
        "backgroundColor": {"red": 0.9, "green": 0.9, "blue": 0.9},
        "textFormat": {"bold": True, "fontSize": 16},
        "horizontalAlignment": "CENTER",
    })
    requests += _banner(sheet_id, 1, columns, layout.subtitle, {
        "backgroundColor": {"red": 0.95, "green": 0.95, "blue": 0.95},
        "textFormat": {"fontSize": 10, "foregroundColor": {"red": 0.4, "green": 0.4, "blue": 0.4}},
        "horizontalAlignment": "CENTER",
    })

    requests.append({
        "updateCells": {
            "range": _row_range(sheet_id, layout.frozen_rows - 1, columns),
            "rows": [{"values": [
                {
                    "userEnteredValue": {"stringValue": header},
                    "userEnteredFormat": {
                        "backgroundColor": HEADER_COLOR,
                        "textFormat": {"bold": True, "foregroundColor": WHITE},
                        "horizontalAlignment": "CENTER",
                    },
                }
                for header in layout.headers
            ]}],
            "fields": "userEnteredValue,userEnteredFormat",
        }
    })

    for index, width in enumerate(layout.column_widths):
        requests.append({
            "updateDimensionProperties": {
                "range": {
                    "sheetId": sheet_id,
                    "dimension": "COLUMNS",
                    "startIndex": index,
                    "endIndex": index + 1,
                },
                "properties": {"pixelSize": width},
                "fields": "pixelSize",
            }
        })

    requests.append({
        "updateSheetProperties": {
            "properties": {
                "sheetId": sheet_id,
                "gridProperties": {"frozenRowCount": layout.frozen_rows},
            },
            "fields": "gridProperties.frozenRowCount",
        }
    })

    date_col = layout.headers.index("Date")
    requests.append(_number_rule(sheet_id, date_col, {"type": "DATE_IS_VALID"}))
    for name in ("Debit", "Credit"):
        requests.append(_number_rule(sheet_id, layout.headers.index(name), {
            "type": "NUMBER_GREATER_THAN_EQ",
            "values": [{"userEnteredValue": "0"}],
        }))
    return requests


# --- Google implementation ---

class GoogleSheetsStore:

    def __init__(
        self,
        credentials: service_account.Credentials,
        folder_id: str = "",
        client: httpx.AsyncClient | None = None,
        timeout: float = 20.0,
    ):
        self._credentials = credentials
        self._folder_id = folder_id
        self._client = client or httpx.AsyncClient(timeout=timeout)
        self._token_lock = asyncio.Lock()

    @classmethod
    def from_settings(cls, settings: Settings) -> "GoogleSheetsStore":
        credentials = service_account.Credentials.from_service_account_file(
            settings.GOOGLE_SERVICE_ACCOUNT_FILE, scopes=SCOPES
        )
        return cls(
            credentials,
            folder_id=settings.GOOGLE_DRIVE_FOLDER_ID,
            timeout=settings.SHEETS_TIMEOUT_SECONDS,
        )

    async def _token(self) -> str:
        async with self._token_lock:
            if not self._credentials.valid:
                try:
                    await asyncio.to_thread(self._credentials.refresh, Request())
                except GoogleAuthError as exc:
                    log.error("sheets_auth_failed", error=type(exc).__name__)
                    raise ServiceUnavailable("Could not authenticate with the spreadsheet service") from exc
            return self._credentials.token

    async def _request(self, method: str, url: str, what: str, **kwargs) -> dict[str, Any]:
        token = await self._token()
        try:
            response = await self._client.request(
                method, url, headers={"Authorization": f"Bearer {token}"}, **kwargs
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            log.warning("sheets_http_error", what=what, status=exc.response.status_code)
            raise ServiceUnavailable(
                f"Spreadsheet service rejected {what} (HTTP {exc.response.status_code})"
            ) from exc
        except httpx.HTTPError as exc:
            log.warning("sheets_unreachable", what=what, error=type(exc).__name__)
            raise ServiceUnavailable(f"Spreadsheet service unreachable during {what}") from exc
        return response.json() if response.content else {}

    async def create_document(self, layout: SheetLayout) -> SheetHandle:
        created = await self._request("POST", SHEETS_API, "create spreadsheet", json={
            "properties": {
                "title": f"{layout.title} - Ledger",
                "locale": layout.locale,
                "timeZone": layout.time_zone,
            },
            "sheets": [{
                "properties": {
                    "title": layout.sheet_title,
                    "gridProperties": {"rowCount": VALIDATED_ROWS, "columnCount": 26},
                }
            }],
        })
        handle = SheetHandle(
            spreadsheet_id=created["spreadsheetId"],
            sheet_id=created["sheets"][0]["properties"]["sheetId"],
        )
        log.info("spreadsheet_created", spreadsheet_id=handle.spreadsheet_id)

        try:
            await self._request(
                "POST",
                f"{SHEETS_API}/{handle.spreadsheet_id}:batchUpdate",
                "ledger layout",
                json={"requests": layout_requests(layout, handle.sheet_id)},
            )
            if self._folder_id:
                await self._request(
                    "PATCH",
                    f"{DRIVE_API}/{handle.spreadsheet_id}",
                    "move to folder",
                    params={"addParents": self._folder_id, "removeParents": "root"},
                )
        except (ServiceUnavailable, asyncio.CancelledError):
            # Also reached when a caller's timeout cancels the layout call
            await self._discard_quietly(handle)
            raise
        return handle

    async def discard_document(self, handle: SheetHandle) -> None:
        await self._request("DELETE", f"{DRIVE_API}/{handle.spreadsheet_id}", "discard spreadsheet")
        log.info("spreadsheet_discarded", spreadsheet_id=handle.spreadsheet_id)

    async def _discard_quietly(self, handle: SheetHandle) -> None:
        """Best-effort removal of a half-built spreadsheet."""
        try:
            await self.discard_document(handle)
        except ServiceUnavailable:
            log.warning("spreadsheet_discard_failed", spreadsheet_id=handle.spreadsheet_id)

    async def set_permissions(self, handle: SheetHandle, role: str) -> None:
        await self._request(
            "POST",
            f"{DRIVE_API}/{handle.spreadsheet_id}/permissions",
            "share spreadsheet",
            json={"role": role, "type": "anyone"},
        )

    async def read_rows(self, handle: SheetHandle, range_: str) -> list[list[Any]]:
        data = await self._request(
            "GET",
            f"{SHEETS_API}/{handle.spreadsheet_id}/values/{range_}",
            "read rows",
            params={"valueRenderOption": "UNFORMATTED_VALUE"},
        )
        return data.get("values") or []

    async def append_row(self, handle: SheetHandle, range_: str, row: list[Any]) -> None:
        await self._request(
            "POST",
            f"{SHEETS_API}/{handle.spreadsheet_id}/values/{range_}:append",
            "append row",
            params={"valueInputOption": "USER_ENTERED", "insertDataOption": "INSERT_ROWS"},
            json={"values": [row]},
        )

    async def aclose(self) -> None:
        await self._client.aclose()
