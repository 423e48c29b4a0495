"""Tests for export and sheet sync endpoints."""
import os
from unittest.mock import patch

from leadgen.services.circuit_breaker import CollaboratorFailure


class TestExports:

    def test_full(self, client, add_lead):
        add_lead()
        data = client.post('/api/exports/full').get_json()
        assert data['success'] is True
        assert os.path.exists(data['path'])

    def test_campaign(self, client, add_lead):
        add_lead('alice', 'flows', email_approved=True)
        data = client.post('/api/exports/campaign').get_json()
        assert os.path.basename(data['path']).startswith('campaign-export-')

    def test_analytics(self, client, add_lead):
        add_lead()
        data = client.post('/api/exports/analytics').get_json()
        assert data['analytics']['total'] == 1

    def test_unknown_kind(self, client):
        assert client.post('/api/exports/everything').status_code == 400


class TestSheetSync:

    def test_success(self, client, add_lead):
        add_lead()
        with patch('leadgen.routes.exports.sync_leads', return_value=1) as sync:
            data = client.post('/api/sync/sheets').get_json()
        assert data == {'success': True, 'rows': 1}
        assert len(sync.call_args[0][0]) == 1

    def test_collaborator_failure(self, client):
        with patch('leadgen.routes.exports.sync_leads', side_effect=CollaboratorFailure('sheets', 'quota')):
            resp = client.post('/api/sync/sheets')
        assert resp.status_code == 502
        assert 'quota' in resp.get_json()['error']
