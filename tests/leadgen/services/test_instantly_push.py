"""Tests for leadgen.services.instantly — batched campaign pushes."""
from unittest.mock import patch, MagicMock

import pytest
import requests

from leadgen.services.circuit_breaker import CollaboratorFailure
from leadgen.services.instantly import InstantlyClient, format_lead, is_gmail, push_leads


def _session(*responses):
    session = MagicMock()
    session.headers = {}
    session.request.side_effect = list(responses)
    return session


def _ok(body=None):
    resp = MagicMock()
    resp.json.return_value = body if body is not None else {'success': True}
    return resp


def _leads(make_lead, count):
    return [make_lead(id=f'lead-{i}', repo_name=f'flows-{i}', email=f'user{i}@gmail.com') for i in range(count)]


class TestFormatting:

    def test_payload_carries_repo_details(self, make_lead):
        payload = format_lead(make_lead())
        assert payload['email'] == 'octo@example.com'
        assert payload['first_name'] == 'octo'
        assert payload['website'] == 'https://github.com/octo/n8n-workflows'
        assert payload['custom_fields']['repo_name'] == 'n8n-workflows'
        assert payload['custom_fields']['status'] == 'new'

    def test_is_gmail(self):
        assert is_gmail('Someone@Gmail.com ')
        assert is_gmail('x@googlemail.com')
        assert not is_gmail('x@example.com')
        assert not is_gmail(None)


class TestClient:

    def test_requires_api_key(self):
        with pytest.raises(CollaboratorFailure):
            InstantlyClient(api_key=None)

    def test_add_leads_posts_to_campaign(self, make_lead):
        session = _session(_ok())
        client = InstantlyClient(api_key='key', session=session)
        client.add_leads('camp-1', [make_lead()])
        method, url = session.request.call_args[0]
        assert method == 'POST'
        assert url.endswith('/campaign/camp-1/leads')
        assert session.request.call_args[1]['json']['leads'][0]['email'] == 'octo@example.com'
        assert session.headers['Authorization'] == 'Bearer key'

    def test_http_error_becomes_collaborator_failure(self):
        resp = MagicMock()
        resp.raise_for_status.side_effect = requests.HTTPError('401')
        client = InstantlyClient(api_key='key', session=_session(resp))
        with pytest.raises(CollaboratorFailure):
            client.list_campaigns()


class TestPushLeads:
    """Leads go up in fixed-size batches; one bad batch does not stop the rest."""

    def test_batches_of_fifty(self, make_lead):
        session = _session(_ok(), _ok(), _ok())
        client = InstantlyClient(api_key='key', session=session)
        with patch('leadgen.services.instantly.time.sleep') as sleep:
            result = push_leads(_leads(make_lead, 120), campaign_id='camp-1', client=client)
        sizes = [len(c[1]['json']['leads']) for c in session.request.call_args_list]
        assert sizes == [50, 50, 20]
        assert result.success == 120
        assert result.failed == 0
        assert sleep.call_count == 2

    def test_failed_batch_is_counted(self, make_lead):
        bad = MagicMock()
        bad.raise_for_status.side_effect = requests.ConnectionError('reset')
        session = _session(bad, _ok({'success': False, 'message': 'quota'}), _ok())
        client = InstantlyClient(api_key='key', session=session)
        result = push_leads(_leads(make_lead, 5), campaign_id='camp-1', batch_size=2, client=client)
        assert result.success == 1
        assert result.failed == 4
        assert result.errors[1] == 'Batch 2: quota'
        assert result.message == 'Pushed 1 of 5 leads to Instantly (4 failed)'

    def test_leads_without_email_left_out(self, make_lead):
        session = _session(_ok())
        client = InstantlyClient(api_key='key', session=session)
        result = push_leads([make_lead(email=None), make_lead(id='b', repo_name='b')], campaign_id='c', client=client)
        assert result.total == 1

    def test_campaign_required(self, make_lead):
        with patch('leadgen.services.instantly.INSTANTLY_CAMPAIGN_ID', None):
            with pytest.raises(CollaboratorFailure, match='INSTANTLY_CAMPAIGN_ID'):
                push_leads([make_lead()], client=MagicMock())
