"""
Notifications — Slack webhook messages for background runs.

Notification failure never blocks a run.
"""
import logging
import requests

from leadgen.config import SLACK_WEBHOOK_URL

logger = logging.getLogger('services.notifications')


def _counter_fields(run):
    if run.stage == 'scoring':
        pairs = [
            ('Scored', run.leads_scored),
            ('Auto-approved', run.auto_approved),
        ]
    else:
        pairs = [
            ('Repos found', run.repos_found),
            ('Qualified', run.repos_qualified),
            ('Leads added', run.leads_added),
            ('Dupes skipped', run.duplicates_skipped),
        ]
    return [{"type": "mrkdwn", "text": f"*{label}:* {value or 0}"} for label, value in pairs]


def notify_run_complete(run):
    """Post a run completion summary to Slack."""
    if not SLACK_WEBHOOK_URL:
        return

    try:
        blocks = [
            {
                "type": "header",
                "text": {"type": "plain_text", "text": f"Lead Run Completed — {run.stage.capitalize()}"},
            },
            {"type": "section", "fields": _counter_fields(run)},
        ]
        if run.summary:
            blocks.append({"type": "section", "text": {"type": "mrkdwn", "text": f"_{run.summary}_"}})

        requests.post(SLACK_WEBHOOK_URL, json={"blocks": blocks}, timeout=10)
        logger.info("Run %s completion notification sent", run.id[:8])

    except Exception:
        logger.error("Failed to send notification for run %s", run.id[:8], exc_info=True)


def notify_run_failed(run):
    """Post a run failure alert to Slack."""
    if not SLACK_WEBHOOK_URL:
        return

    try:
        last_error = ''
        if run.errors:
            last = run.errors[-1]
            last_error = last.get('message', '') if isinstance(last, dict) else str(last)

        blocks = [
            {
                "type": "header",
                "text": {"type": "plain_text", "text": f"Lead Run FAILED — {run.stage.capitalize()}"},
            },
            {"type": "section", "fields": _counter_fields(run)},
        ]
        if last_error:
            blocks.append({
                "type": "section",
                "text": {"type": "mrkdwn", "text": f"*Error:* ```{last_error[:500]}```"},
            })

        requests.post(SLACK_WEBHOOK_URL, json={"blocks": blocks}, timeout=10)
        logger.info("Run %s failure notification sent", run.id[:8])

    except Exception:
        logger.error("Failed to send failure notification for run %s", run.id[:8], exc_info=True)
