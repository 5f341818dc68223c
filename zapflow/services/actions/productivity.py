"""
Productivity actions: Google Sheets rows, Notion pages, Trello cards.

Sheets rows are appended through the Sheets REST API when the zap owner has a
Google connection; Notion and Trello run in demo mode.
"""
from typing import List, Optional, Union

from pydantic import Field

from ...core.logging_config import get_logger
from ...models.zap_model import ActionType
from ..credential_store import Credentials, GOOGLE_PROVIDER
from .base import ActionParams, ActionResult, BaseActionExecutor

logger = get_logger("action_productivity")

SHEETS_API_URL = "https://sheets.googleapis.com/v4/spreadsheets"


class SpreadsheetRowParams(ActionParams):
    spreadsheet_id: Optional[str] = Field(default=None, alias="spreadsheetId")
    sheet_name: str = Field(default="Sheet1", alias="sheetName")
    values: Union[str, List[Union[str, int, float, bool, None]]] = ""

    def row(self) -> list:
        if isinstance(self.values, str):
            return [v.strip() for v in self.values.split(",")] if self.values else []
        return list(self.values)


class NotionPageParams(ActionParams):
    database_id: Optional[str] = Field(default=None, alias="databaseId")
    title: str = ""
    content: str = ""


class TrelloCardParams(ActionParams):
    list_id: Optional[str] = Field(default=None, alias="listId")
    title: str = ""
    description: str = ""


class CreateSpreadsheetRowExecutor(BaseActionExecutor):
    action_type = ActionType.CREATE_SPREADSHEET_ROW.value
    params_model = SpreadsheetRowParams
    credential_provider = GOOGLE_PROVIDER

    async def run(self, params: SpreadsheetRowParams, credentials: Optional[Credentials]) -> ActionResult:
        row = params.row()
        logger.info(f"[Create Spreadsheet Row] sheet={params.spreadsheet_id}/{params.sheet_name} values={row}")

        if not credentials or not params.spreadsheet_id:
            logger.warning("Google account not connected or no spreadsheet - demo mode")
            return ActionResult.ok("Spreadsheet row skipped (demo mode)", demo=True)

        url = f"{SHEETS_API_URL}/{params.spreadsheet_id}/values/{params.sheet_name}:append"
        async with self.http_client() as client:
            response = await client.post(
                url,
                params={"valueInputOption": "USER_ENTERED"},
                headers={"Authorization": f"Bearer {credentials.access_token}"},
                json={"values": [row]}
            )

        logger.info(f"Sheets append -> {response.status_code}")
        if response.status_code == 401:
            return ActionResult.failure("Google access token rejected; reconnect the Google account")
        if not response.is_success:
            return ActionResult.failure(f"Sheets API returned {response.status_code}", status_code=response.status_code)
        return ActionResult.ok("Row appended", status_code=response.status_code)


class CreateNotionPageExecutor(BaseActionExecutor):
    action_type = ActionType.CREATE_NOTION_PAGE.value
    params_model = NotionPageParams

    async def run(self, params: NotionPageParams, credentials: Optional[Credentials]) -> ActionResult:
        logger.info(f"[Create Notion Page] database={params.database_id} title={params.title}")
        logger.warning("Notion API not configured - demo mode")
        return ActionResult.ok("Notion page skipped (demo mode)", demo=True)


class CreateTrelloCardExecutor(BaseActionExecutor):
    action_type = ActionType.CREATE_TRELLO_CARD.value
    params_model = TrelloCardParams

    async def run(self, params: TrelloCardParams, credentials: Optional[Credentials]) -> ActionResult:
        logger.info(f"[Create Trello Card] list={params.list_id} title={params.title}")
        logger.warning("Trello API not configured - demo mode")
        return ActionResult.ok("Trello card skipped (demo mode)", demo=True)
