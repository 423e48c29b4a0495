"""
Outreach — send the outreach email to a selected set of leads.

Runs synchronously (dashboard button, CLI). Without explicit ids it targets
every lead that is ready for campaign. A dry run counts what would be sent
and touches nothing.
"""
import logging
import time
from typing import Dict, Any, List, Optional

from leadgen.config import SEND_DELAY_SECONDS
from leadgen.store.workflow import ApprovalWorkflow

logger = logging.getLogger('pipeline.outreach')


def send_outreach(store, lead_ids: Optional[List[str]] = None, dry_run: bool = False,
                  send=None) -> Dict[str, Any]:
    """
    Returns {success, message, emails_sent, dry_run, errors}. `success` is
    False only when there was nothing to send.
    """
    if send is None:
        from leadgen.services.email import send_outreach_email
        send = send_outreach_email

    if lead_ids:
        wanted = set(lead_ids)
        leads = [lead for lead in store.list_all() if lead.id in wanted]
    else:
        leads = store.ready_for_campaign()

    if not leads:
        return {
            'success': False,
            'message': 'No leads found to email',
            'emails_sent': 0,
            'dry_run': dry_run,
            'errors': [],
        }

    logger.info("Preparing to email %d leads (dry run: %s)", len(leads), dry_run)
    workflow = ApprovalWorkflow(store)
    sent = 0
    errors = []

    for i, lead in enumerate(leads):
        if not lead.email:
            errors.append(f'No email for {lead.github_username}')
            continue
        if lead.email_sent:
            errors.append(f'Already contacted: {lead.email}')
            continue

        if dry_run:
            logger.info("[DRY RUN] Would send email to %s for %s", lead.email, lead.github_username)
            sent += 1
            continue

        if send(lead):
            workflow.record_email_sent(lead.id)
            sent += 1
        else:
            errors.append(f'Failed to send email to {lead.email}')

        if i < len(leads) - 1:
            time.sleep(SEND_DELAY_SECONDS)

    label = 'Dry run' if dry_run else 'Email campaign'
    return {
        'success': True,
        'message': f'{label} completed. Sent {sent} emails.',
        'emails_sent': sent,
        'dry_run': dry_run,
        'errors': errors,
    }
