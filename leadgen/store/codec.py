"""
Record codec — one Lead <-> one quote-all CSV line.

Byte format of leads.csv (kept compatible with files already in the wild):
  - header row of bare column names, then one row per lead, joined by "\\n"
  - every cell wrapped in double quotes, embedded quotes doubled
  - booleans as the literals true / false, absent optional values as ""
"""
import csv
import io
import logging
import re
from typing import List, Optional, Sequence, Tuple

from leadgen.config import LEAD_COLUMNS
from leadgen.models.lead import Lead

logger = logging.getLogger('store.codec')

_BOOL_COLUMNS = ('email_sent', 'email_approved', 'email_pending_approval')
# Every boundary str.splitlines() honours; no cell may start a new row
_LINE_BREAKS = re.compile('\r\n|[\n\r\v\f\x1c\x1d\x1e\x85\u2028\u2029]')


class MalformedRecord(ValueError):
    """A persisted row that cannot be turned back into a Lead."""

    def __init__(self, message: str, row: Optional[int] = None, line: str = ''):
        self.row = row
        self.line = line
        prefix = f"Row {row}: " if row is not None else ''
        super().__init__(f"{prefix}{message}")


# ── Single record ────────────────────────────────────────────────────────────

def _cell(lead: Lead, column: str) -> str:
    value = getattr(lead, column)
    if column in _BOOL_COLUMNS:
        return 'true' if value else 'false'
    if value is None:
        return ''
    if column == 'ai_score':
        return repr(float(value))
    # One record per line: upstream text (descriptions, LLM output) is not sanitized
    return _LINE_BREAKS.sub(' ', str(value))


def write_row(cells: Sequence[str]) -> str:
    """Quote-all CSV line for arbitrary cells (no line terminator)."""
    buf = io.StringIO()
    writer = csv.writer(buf, quoting=csv.QUOTE_ALL, lineterminator='')
    writer.writerow(cells)
    return buf.getvalue()


def row_cells(lead: Lead) -> List[str]:
    """Cell strings for one lead in LEAD_COLUMNS order."""
    return [_cell(lead, column) for column in LEAD_COLUMNS]


def encode(lead: Lead) -> str:
    """Serialize a Lead to a single quote-all CSV line (no line terminator)."""
    return write_row(row_cells(lead))


def normalize(lead: Lead) -> Lead:
    """The lead exactly as it reads back from disk (line breaks in text flattened)."""
    return decode(encode(lead))


def _parse_bool(value: str, column: str) -> bool:
    if value == 'true':
        return True
    if value in ('false', ''):
        return False
    raise MalformedRecord(f"column '{column}' is not a boolean: {value!r}")


def decode(line: str) -> Lead:
    """
    Parse one CSV line back into a Lead.

    Raises MalformedRecord on a column-count mismatch or an unparseable cell.
    """
    try:
        cells = next(csv.reader([line]))
    except (csv.Error, StopIteration) as e:
        raise MalformedRecord(f"unparseable line: {e}", line=line)

    if len(cells) != len(LEAD_COLUMNS):
        raise MalformedRecord(
            f"expected {len(LEAD_COLUMNS)} columns, got {len(cells)}", line=line,
        )

    raw = dict(zip(LEAD_COLUMNS, cells))
    if not raw['id'] or not raw['github_username'] or not raw['repo_name']:
        raise MalformedRecord("id, github_username and repo_name are required", line=line)

    data = dict(raw)
    for column in _BOOL_COLUMNS:
        data[column] = _parse_bool(raw[column], column)

    if raw['ai_score']:
        try:
            data['ai_score'] = float(raw['ai_score'])
        except ValueError:
            raise MalformedRecord(f"ai_score is not a number: {raw['ai_score']!r}", line=line)
    else:
        data['ai_score'] = None

    try:
        return Lead(**data)
    except ValueError as e:
        raise MalformedRecord(str(e), line=line)


# ── Whole document ───────────────────────────────────────────────────────────

def encode_table(leads: Sequence[Lead], headers: Sequence[str] = LEAD_COLUMNS) -> str:
    """Header row + one encoded row per lead."""
    lines = [','.join(headers)]
    lines.extend(encode(lead) for lead in leads)
    return '\n'.join(lines)


def decode_table(text: str) -> Tuple[List[Lead], List[MalformedRecord]]:
    """
    Parse a whole document. The first non-blank line is the header.

    Malformed rows are collected rather than raised so one bad row never
    hides the rest of the file. Row numbers are 1-based file lines.
    """
    leads = []
    errors = []
    # Rows are joined by "\n" only; other Unicode line boundaries are cell content
    lines = [
        (i, line.rstrip('\r')) for i, line in enumerate(text.split('\n'), 1)
        if line.strip()
    ]
    for row_number, line in lines[1:]:
        try:
            leads.append(decode(line))
        except MalformedRecord as e:
            errors.append(MalformedRecord(str(e), row=row_number, line=line))
    return leads, errors
