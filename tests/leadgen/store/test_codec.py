"""Tests for leadgen.store.codec — the leads.csv row format."""
import pytest

from leadgen.config import LEAD_COLUMNS
from leadgen.store.codec import (
    MalformedRecord, encode, decode, encode_table, decode_table, write_row,
)


class TestEncode:

    def test_every_cell_is_quoted(self, make_lead):
        line = encode(make_lead())
        cells = line.split('","')
        assert line.startswith('"') and line.endswith('"')
        assert len(cells) == len(LEAD_COLUMNS)

    def test_booleans_and_absent_values(self, make_lead):
        line = encode(make_lead(email=None, email_approved=True))
        assert '"true"' in line
        assert '"false"' in line
        assert ',"",' in line

    def test_embedded_quotes_are_doubled(self, make_lead):
        line = encode(make_lead(repo_description='The "best" flows'))
        assert '"The ""best"" flows"' in line

    def test_newlines_in_free_text_are_flattened(self, make_lead):
        line = encode(make_lead(repo_description='line one\nline two', ai_analysis='a\r\nb'))
        assert '\n' not in line
        assert 'line one line two' in line

    def test_unicode_line_boundaries_are_flattened(self, make_lead):
        lead = make_lead(repo_description='flows\u2028more\x85end\x0cpage', ai_analysis='ok fine')
        line = encode(lead)
        assert len(line.splitlines()) == 1
        assert decode(line).repo_description == 'flows more end page'

    def test_write_row_has_no_terminator(self):
        assert write_row(['a', 'b,c']) == '"a","b,c"'


class TestDecode:

    def test_round_trip_with_commas_and_quotes(self, make_lead):
        lead = make_lead(
            repo_description='Slack, Gmail and "Notion" sync, v2',
            ai_score=0.85,
            ai_recommendation='approve',
            ai_analysis='Active, documented; "solid"',
            email_approved=True,
        )
        assert decode(encode(lead)) == lead

    def test_absent_values_decode_to_none(self, make_lead):
        lead = decode(encode(make_lead(email=None)))
        assert lead.email is None
        assert lead.ai_score is None

    def test_wrong_column_count(self):
        with pytest.raises(MalformedRecord, match='expected 16 columns'):
            decode('"a","b","c"')

    def test_bad_boolean(self, make_lead):
        line = encode(make_lead()).replace('"false"', '"maybe"', 1)
        with pytest.raises(MalformedRecord, match='boolean'):
            decode(line)

    def test_bad_score(self, make_lead):
        line = encode(make_lead(ai_score=0.5)).replace('"0.5"', '"high"')
        with pytest.raises(MalformedRecord, match='ai_score'):
            decode(line)

    def test_bad_status(self, make_lead):
        line = encode(make_lead()).replace('"new"', '"archived"')
        with pytest.raises(MalformedRecord, match='Invalid status'):
            decode(line)

    def test_missing_identity(self, make_lead):
        line = encode(make_lead()).replace('"octo"', '""', 1)
        with pytest.raises(MalformedRecord, match='required'):
            decode(line)


class TestTable:

    def test_header_row(self, make_lead):
        text = encode_table([make_lead()])
        assert text.splitlines()[0] == ','.join(LEAD_COLUMNS)

    def test_empty_table_is_header_only(self):
        assert decode_table(encode_table([])) == ([], [])

    def test_malformed_row_reported_rest_kept(self, make_lead):
        good1 = make_lead(id='a', repo_name='one')
        good2 = make_lead(id='b', repo_name='two')
        text = '\n'.join([
            ','.join(LEAD_COLUMNS),
            encode(good1),
            '"only","three","cells"',
            encode(good2),
        ])
        leads, errors = decode_table(text)
        assert leads == [good1, good2]
        assert len(errors) == 1
        assert errors[0].row == 3
        assert 'Row 3' in str(errors[0])

    def test_rows_split_on_newline_only(self, make_lead):
        # Written by an older version that did not flatten U+2028
        legacy = encode(make_lead()).replace('A collection of n8n workflows', 'two\u2028lines')
        text = ','.join(LEAD_COLUMNS) + '\r\n' + legacy + '\r\n'
        leads, errors = decode_table(text)
        assert errors == []
        assert leads[0].repo_description == 'two\u2028lines'

    def test_blank_lines_ignored(self, make_lead):
        text = encode_table([make_lead()]) + '\n\n'
        leads, errors = decode_table(text)
        assert len(leads) == 1
        assert errors == []
