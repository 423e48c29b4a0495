"""Tests for GET /api/leads and PATCH /api/leads/<id>."""


class TestListLeads:

    def test_all_leads(self, client, add_lead):
        add_lead('alice', 'flows')
        add_lead('bob', 'flows')
        data = client.get('/api/leads').get_json()
        assert data['success'] is True
        assert data['count'] == 2
        assert [l['github_username'] for l in data['leads']] == ['alice', 'bob']

    def test_status_filter(self, client, add_lead):
        add_lead('alice', 'flows')
        add_lead('bob', 'flows', status='contacted')
        data = client.get('/api/leads?status=contacted').get_json()
        assert [l['github_username'] for l in data['leads']] == ['bob']

    def test_named_view(self, client, add_lead):
        add_lead('alice', 'flows', email_pending_approval=True)
        add_lead('bob', 'flows')
        data = client.get('/api/leads?view=awaiting-approval').get_json()
        assert [l['github_username'] for l in data['leads']] == ['alice']

    def test_invalid_status(self, client):
        assert client.get('/api/leads?status=archived').status_code == 400

    def test_unknown_view(self, client):
        assert client.get('/api/leads?view=hot').status_code == 400


class TestPatchLead:

    def test_status_update(self, client, store, add_lead):
        lead = add_lead()
        resp = client.patch(f'/api/leads/{lead.id}', json={'status': 'responded'})
        assert resp.status_code == 200
        assert resp.get_json()['lead']['status'] == 'responded'
        assert store.get(lead.id).status == 'responded'

    def test_email_sent_flag(self, client, store, add_lead):
        lead = add_lead()
        client.patch(f'/api/leads/{lead.id}', json={'status': 'contacted', 'emailSent': True})
        stored = store.get(lead.id)
        assert stored.email_sent is True
        assert stored.email_sent_at
        assert stored.status == 'contacted'

    def test_invalid_status(self, client, store, add_lead):
        lead = add_lead()
        resp = client.patch(f'/api/leads/{lead.id}', json={'status': 'archived'})
        assert resp.status_code == 400
        assert store.get(lead.id) == lead

    def test_unknown_lead(self, client):
        resp = client.patch('/api/leads/missing', json={'status': 'contacted'})
        assert resp.status_code == 404
