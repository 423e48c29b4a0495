"""Tests for leadgen.store.backup — backups, exports and analytics."""
import json
import os
from unittest.mock import patch, MagicMock

from leadgen.config import EXPORT_HEADERS
from leadgen.store.backup import BackupSink, CAMPAIGN_HEADERS, compute_analytics


class TestBackups:

    def test_every_write_leaves_a_backup(self, store, add_lead):
        lead = add_lead('alice', 'flows')
        store.update(lead.id, {'status': 'contacted'})
        assert len(store.backup_sink.list_backups()) == 2

    def test_backup_matches_primary_file(self, store, add_lead):
        add_lead('alice', 'flows')
        latest = store.backup_sink.list_backups()[-1]
        with open(latest, encoding='utf-8') as b, open(store.path, encoding='utf-8') as p:
            assert b.read() == p.read()

    def test_same_timestamp_never_overwrites(self, tmp_path):
        sink = BackupSink(str(tmp_path / 'backups'), str(tmp_path))
        with patch('leadgen.store.backup._backup_stamp', return_value='2026-01-01T00-00-00-000Z'):
            first = sink.write_backup('one')
            second = sink.write_backup('two')
        assert first != second
        with open(first) as f:
            assert f.read() == 'one'

    def test_failed_backup_does_not_fail_the_write(self, store, add_lead, tmp_path):
        blocker = tmp_path / 'blocker'
        blocker.write_text('not a directory')
        with patch.object(store.backup_sink, 'backup_dir', str(blocker / 'backups')):
            lead = add_lead('alice', 'flows')
        assert store.get(lead.id) == lead

    def test_mirror_failure_is_swallowed(self, tmp_path):
        mirror = MagicMock(side_effect=RuntimeError('R2 down'))
        sink = BackupSink(str(tmp_path / 'backups'), str(tmp_path), mirror=mirror)
        path = sink.write_backup('content')
        assert os.path.exists(path)
        mirror.assert_called_once_with(path)

    def test_list_backups_without_dir(self, tmp_path):
        assert BackupSink(str(tmp_path / 'none'), str(tmp_path)).list_backups() == []


class TestExports:

    def test_full_export(self, store, add_lead):
        add_lead('alice', 'flows')
        add_lead('bob', 'flows')
        path = store.export_full()
        assert os.path.basename(path).startswith('leads-export-')
        with open(path, encoding='utf-8') as f:
            lines = f.read().splitlines()
        assert lines[0] == ','.join(EXPORT_HEADERS)
        assert len(lines) == 3

    def test_campaign_export_only_ready_leads(self, store, add_lead):
        ready = add_lead('alice', 'flows', email_approved=True)
        add_lead('bob', 'flows')
        path = store.export_campaign_subset()
        assert os.path.basename(path).startswith('campaign-export-')
        with open(path, encoding='utf-8') as f:
            lines = f.read().splitlines()
        assert lines[0] == ','.join(CAMPAIGN_HEADERS)
        assert len(lines) == 2
        assert ready.id in lines[1]

    def test_analytics_export(self, store, add_lead):
        add_lead('alice', 'flows')
        summary = store.export_analytics()
        with open(summary['path'], encoding='utf-8') as f:
            written = json.load(f)
        assert written['total'] == 1
        assert 'generated_at' in written

    def test_exports_do_not_touch_primary(self, store, add_lead):
        add_lead('alice', 'flows')
        before = store.list_all()
        store.export_full()
        store.export_campaign_subset()
        assert store.list_all() == before


class TestComputeAnalytics:

    def test_counts_are_consistent(self, make_lead):
        leads = [
            make_lead(id='1', github_username='a', ai_score=0.9, ai_recommendation='approve', email_approved=True),
            make_lead(id='2', github_username='b', email=None, status='contacted', email_sent=True),
            make_lead(id='3', github_username='c', ai_score=0.2, ai_recommendation='reject'),
        ]
        stats = compute_analytics(leads)
        assert stats['total'] == 3
        assert sum(stats['by_status'].values()) == stats['total']
        assert stats['with_email'] == 2
        assert stats['email_sent'] == 1
        assert stats['email_approved'] == 1
        assert stats['ai_analyzed'] == 2
        assert stats['by_recommendation'] == {'approve': 1, 'reject': 1, 'review': 0}

    def test_empty(self):
        stats = compute_analytics([])
        assert stats['total'] == 0
        assert stats['by_status'] == {'new': 0, 'contacted': 0, 'responded': 0, 'converted': 0}
