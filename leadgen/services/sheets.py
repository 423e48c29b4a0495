"""
Google Sheets sync — pushes leads with an email to one worksheet.

The sheet is a read-only mirror for the outreach team; leads.csv stays
authoritative and nothing is ever read back from the sheet.
"""
import logging
from typing import List, Sequence

import gspread
from google.oauth2.service_account import Credentials

from leadgen.config import GOOGLE_SHEETS_CRED, GOOGLE_SHEETS_ID, GOOGLE_SHEETS_TAB, EXPORT_HEADERS
from leadgen.models.lead import Lead
from leadgen.services.circuit_breaker import CollaboratorFailure, get_breaker
from leadgen.store import codec

logger = logging.getLogger('services.sheets')

SCOPES = ['https://www.googleapis.com/auth/spreadsheets']


def sheets_enabled() -> bool:
    return bool(GOOGLE_SHEETS_CRED and GOOGLE_SHEETS_ID)


def _client():
    creds = Credentials.from_service_account_file(GOOGLE_SHEETS_CRED, scopes=SCOPES)
    return gspread.authorize(creds)


def _worksheet(spreadsheet, title: str):
    try:
        return spreadsheet.worksheet(title)
    except gspread.WorksheetNotFound:
        logger.info("Creating missing tab: %s", title)
        return spreadsheet.add_worksheet(title=title, rows=2000, cols=len(EXPORT_HEADERS))


def lead_rows(leads: Sequence[Lead]) -> List[List[str]]:
    """Header + one row per lead with an email, cells formatted as in leads.csv."""
    rows = [list(EXPORT_HEADERS)]
    for lead in leads:
        if lead.email:
            rows.append(codec.row_cells(lead))
    return rows


def _replace_sheet(rows):
    spreadsheet = _client().open_by_key(GOOGLE_SHEETS_ID)
    ws = _worksheet(spreadsheet, GOOGLE_SHEETS_TAB)
    ws.clear()
    ws.update(values=rows, range_name='A1')


def sync_leads(leads: Sequence[Lead]) -> int:
    """Replace the worksheet contents. Returns the number of lead rows written."""
    if not sheets_enabled():
        raise CollaboratorFailure('sheets', 'GOOGLE_SHEETS_CRED / GOOGLE_SHEETS_ID not set')

    rows = lead_rows(leads)
    try:
        get_breaker('sheets').call(_replace_sheet, rows)
    except CollaboratorFailure:
        raise
    except Exception as e:
        raise CollaboratorFailure('sheets', str(e)) from e

    logger.info("Synced %d leads to sheet tab '%s'", len(rows) - 1, GOOGLE_SHEETS_TAB)
    return len(rows) - 1
