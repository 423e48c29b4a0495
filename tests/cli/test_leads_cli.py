"""Tests for scripts.leads_cli — maintenance commands against a temp store."""
import json
import pytest
from unittest.mock import patch, MagicMock

from leadgen.pipeline.discovery import GitHubDiscovery
from leadgen.pipeline.manager import STAGE_REGISTRY
from leadgen.services.circuit_breaker import CollaboratorFailure
from leadgen.store import codec
from scripts.leads_cli import LocalRun, cleanup_emails, main


@pytest.fixture(autouse=True)
def cli_store(store):
    with patch('scripts.leads_cli.get_store', return_value=store), \
            patch('scripts.leads_cli.configure_logging'):
        yield store


class TestLocalRun:

    def test_save_needs_no_redis(self):
        with patch('leadgen.models.run.r') as r:
            run = LocalRun(stage='scoring')
            run.update(status='scoring', leads_scored=2)
        r.setex.assert_not_called()
        assert run.leads_scored == 2


class TestStageCommands:

    def test_scrape_passes_params(self, capsys):
        client = MagicMock()
        client.search_repositories.return_value = []
        with patch.dict(STAGE_REGISTRY, {'discovery': lambda: GitHubDiscovery(client)}):
            code = main(['scrape', '--page', '3', '--max-pages', '2', '--query', 'topic:n8n'])
        assert code == 0
        client.search_repositories.assert_called_once_with('topic:n8n', 3)
        assert 'No repositories found' in capsys.readouterr().out

    def test_analyze_uses_fallback_without_openai(self, cli_store, add_lead, capsys):
        lead = add_lead()
        with patch('leadgen.services.openai_client.client', None):
            code = main(['analyze', '--limit', '5'])
        assert code == 0
        assert cli_store.get(lead.id).ai_recommendation == 'review'
        assert 'Scored 1 leads' in capsys.readouterr().out

    def test_failed_stage_exits_nonzero(self, capsys):
        broken = MagicMock()
        broken.return_value.run.side_effect = RuntimeError('boom')
        with patch.dict(STAGE_REGISTRY, {'discovery': broken}):
            assert main(['scrape']) == 1
        assert 'boom' in capsys.readouterr().out


class TestStoreCommands:

    def test_send_dry_run(self, add_lead, capsys):
        add_lead('alice', 'flows', email_approved=True)
        assert main(['send', '--dry-run']) == 0
        assert 'Dry run completed. Sent 1 emails.' in capsys.readouterr().out

    def test_export_analytics(self, add_lead, capsys):
        add_lead()
        main(['export', 'analytics'])
        assert json.loads(capsys.readouterr().out)['total'] == 1

    def test_import(self, cli_store, make_lead, tmp_path, capsys):
        path = tmp_path / 'old.csv'
        path.write_text(codec.encode_table([make_lead()]), encoding='utf-8')
        assert main(['import', str(path)]) == 0
        assert len(cli_store.list_all()) == 1
        assert 'Imported 1 leads' in capsys.readouterr().out

    def test_import_missing_file(self, tmp_path):
        assert main(['import', str(tmp_path / 'nope.csv')]) == 1

    def test_stats(self, add_lead, capsys):
        add_lead()
        main(['stats'])
        data = json.loads(capsys.readouterr().out)
        assert data['total'] == 1
        assert data['malformed_rows'] == 0

    def test_sync_sheets_failure(self, capsys):
        with patch('leadgen.services.sheets.sync_leads', side_effect=CollaboratorFailure('sheets', 'not set')):
            assert main(['sync-sheets']) == 1
        assert 'Sheet sync failed' in capsys.readouterr().out

    def test_push_instantly_dry_run_gmail_only(self, add_lead, capsys):
        add_lead('alice', 'flows', email='alice@gmail.com', email_approved=True)
        add_lead('bob', 'flows', email='bob@example.com', email_approved=True)
        add_lead('carol', 'flows', email='carol@gmail.com')
        assert main(['push-instantly', '--gmail-only', '--dry-run']) == 0
        assert 'Would push 1 leads' in capsys.readouterr().out

    def test_push_instantly_sends_ready_leads(self, add_lead, capsys):
        add_lead('alice', 'flows', email_approved=True)
        result = MagicMock(failed=0, errors=[], message='Pushed 1 of 1 leads to Instantly')
        with patch('leadgen.services.instantly.push_leads', return_value=result) as push:
            assert main(['push-instantly', '--campaign', 'camp-9', '--batch-size', '10']) == 0
        leads = push.call_args[0][0]
        assert [l.github_username for l in leads] == ['alice']
        assert push.call_args[1] == {'campaign_id': 'camp-9', 'batch_size': 10}
        assert 'Pushed 1 of 1' in capsys.readouterr().out

    def test_push_instantly_not_configured(self, capsys):
        failure = CollaboratorFailure('instantly', 'INSTANTLY_CAMPAIGN_ID not set')
        with patch('leadgen.services.instantly.push_leads', side_effect=failure):
            assert main(['push-instantly']) == 1
        assert 'Instantly push failed' in capsys.readouterr().out

    def test_unknown_command(self):
        with pytest.raises(SystemExit):
            main(['explode'])


class TestCleanupEmails:

    def test_fixes_and_drops(self, cli_store, add_lead):
        fixable = add_lead('alice', 'flows', email='"alice@example.com"')
        add_lead('bob', 'flows', email='12+bob@users.noreply.github.com')
        add_lead('carol', 'flows', email='not-an-email')
        keep = add_lead('dave', 'flows', email='')

        fixed, removed = cleanup_emails(cli_store)
        assert (fixed, removed) == (1, 2)
        remaining = {l.github_username: l for l in cli_store.list_all()}
        assert set(remaining) == {'alice', 'dave'}
        assert remaining['alice'].email == 'alice@example.com'
        assert remaining['alice'].id == fixable.id
        assert remaining['dave'].id == keep.id

    def test_drop_missing(self, cli_store, add_lead):
        add_lead('dave', 'flows', email='')
        assert cleanup_emails(cli_store, drop_missing=True) == (0, 1)

    def test_command_output(self, add_lead, capsys):
        add_lead('bob', 'flows', email='noreply@example.com')
        assert main(['cleanup-emails']) == 0
        assert 'removed 1 leads' in capsys.readouterr().out
