"""Tests for leadgen.services.notifications — Slack run alerts."""
from unittest.mock import patch

import requests

from leadgen.models.run import Run
from leadgen.services.notifications import notify_run_complete, notify_run_failed


class TestNotifications:

    def test_no_webhook_no_post(self):
        with patch('leadgen.services.notifications.SLACK_WEBHOOK_URL', None), \
                patch('leadgen.services.notifications.requests.post') as post:
            notify_run_complete(Run())
        post.assert_not_called()

    def test_completion_blocks(self):
        run = Run(stage='scoring')
        run.leads_scored = 4
        run.summary = 'Scored 4 leads.'
        with patch('leadgen.services.notifications.SLACK_WEBHOOK_URL', 'https://hooks.slack.test/x'), \
                patch('leadgen.services.notifications.requests.post') as post:
            notify_run_complete(run)
        blocks = post.call_args[1]['json']['blocks']
        assert 'Scoring' in blocks[0]['text']['text']
        assert any('*Scored:* 4' == f['text'] for f in blocks[1]['fields'])
        assert blocks[-1]['text']['text'] == '_Scored 4 leads._'

    def test_failure_includes_last_error(self):
        run = Run()
        run.add_error('GitHub search failed')
        with patch('leadgen.services.notifications.SLACK_WEBHOOK_URL', 'https://hooks.slack.test/x'), \
                patch('leadgen.services.notifications.requests.post') as post:
            notify_run_failed(run)
        blocks = post.call_args[1]['json']['blocks']
        assert 'GitHub search failed' in blocks[-1]['text']['text']

    def test_post_error_never_raises(self):
        with patch('leadgen.services.notifications.SLACK_WEBHOOK_URL', 'https://hooks.slack.test/x'), \
                patch('leadgen.services.notifications.requests.post', side_effect=requests.ConnectionError()):
            notify_run_complete(Run())
