"""
Outreach email — Resend HTTP API plus the message / DM templates.
"""
import logging
import os

import requests
from jinja2 import Environment, FileSystemLoader, select_autoescape

from leadgen.config import RESEND_API_KEY, RESEND_API_URL, FROM_EMAIL, OUTREACH_SUBJECT, WAITLIST_URL
from leadgen.models.lead import Lead
from leadgen.services.circuit_breaker import CollaboratorFailure, get_breaker

logger = logging.getLogger('services.email')

_TEMPLATE_DIR = os.path.join(os.path.dirname(os.path.dirname(os.path.dirname(__file__))), 'templates')
_env = Environment(
    loader=FileSystemLoader(_TEMPLATE_DIR),
    autoescape=select_autoescape(['html']),
)


def generate_email_content(lead: Lead, personal_note: str = '') -> str:
    """HTML body for the outreach email. Lead text is escaped."""
    template = _env.get_template('email/outreach.html')
    return template.render(lead=lead, personal_note=personal_note, waitlist_url=WAITLIST_URL)


def generate_dm_script(lead: Lead) -> str:
    """One-line direct message for leads without an email."""
    return f'Hey {lead.github_username}, I saw your n8n workflow "{lead.repo_name}" and wanted to connect! 🚀'


def _post_email(payload):
    resp = requests.post(
        RESEND_API_URL,
        json=payload,
        headers={'Authorization': f'Bearer {RESEND_API_KEY}'},
        timeout=30,
    )
    resp.raise_for_status()
    return resp.json()


def send_outreach_email(lead: Lead) -> bool:
    """
    Deliver the outreach email to lead.email.

    Returns False without any API call when the lead has no email; returns
    False after logging when the send fails.
    """
    if not lead.email:
        logger.info("No email available for %s", lead.github_username)
        return False
    if not RESEND_API_KEY:
        logger.warning("RESEND_API_KEY not set, cannot send to %s", lead.email)
        return False

    payload = {
        'from': FROM_EMAIL,
        'to': [lead.email],
        'subject': OUTREACH_SUBJECT,
        'html': generate_email_content(lead),
    }
    try:
        data = get_breaker('resend').call(_post_email, payload)
    except CollaboratorFailure as e:
        logger.error("Email to %s not sent: %s", lead.email, e)
        return False
    except (requests.RequestException, ValueError) as e:
        logger.error("Error sending email to %s: %s", lead.email, e)
        return False

    logger.info("Email sent to %s (id=%s)", lead.email, (data or {}).get('id', '?'))
    return True
