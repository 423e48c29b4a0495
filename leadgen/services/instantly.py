"""
Instantly — pushes campaign-ready leads into an Instantly email campaign.

Leads go up in batches (INSTANTLY_BATCH_SIZE, 50 by default) with a pause
between batches. Every HTTP call goes through the 'instantly' circuit
breaker. A failed batch is counted and the remaining batches still go out;
leads.csv is never modified.
"""
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

import requests

from leadgen.config import (
    INSTANTLY_API_KEY, INSTANTLY_API_URL, INSTANTLY_BATCH_SIZE, INSTANTLY_CAMPAIGN_ID,
    SEND_DELAY_SECONDS,
)
from leadgen.models.lead import Lead
from leadgen.services.circuit_breaker import CollaboratorFailure, get_breaker

logger = logging.getLogger('services.instantly')

GMAIL_DOMAINS = ('@gmail.com', '@googlemail.com')


def instantly_enabled() -> bool:
    return bool(INSTANTLY_API_KEY)


def is_gmail(email: Optional[str]) -> bool:
    return (email or '').strip().lower().endswith(GMAIL_DOMAINS)


def format_lead(lead: Lead) -> Dict[str, Any]:
    """Instantly lead payload; repo details travel as custom fields."""
    return {
        'email': lead.email,
        'first_name': lead.github_username,
        'last_name': '',
        'company': '',
        'website': lead.repo_url or '',
        'custom_fields': {
            'github_username': lead.github_username,
            'repo_name': lead.repo_name,
            'repo_description': lead.repo_description or '',
            'last_activity': lead.last_activity or '',
            'status': lead.status,
        },
    }


@dataclass
class PushResult:
    total: int = 0
    success: int = 0
    failed: int = 0
    errors: List[str] = field(default_factory=list)

    @property
    def message(self) -> str:
        text = f'Pushed {self.success} of {self.total} leads to Instantly'
        if self.failed:
            text += f' ({self.failed} failed)'
        return text

    def to_dict(self) -> Dict[str, Any]:
        return {
            'total': self.total,
            'success': self.success,
            'failed': self.failed,
            'errors': self.errors,
            'message': self.message,
        }


class InstantlyClient:

    def __init__(self, api_key: Optional[str] = INSTANTLY_API_KEY, api_url: str = INSTANTLY_API_URL,
                 session: Optional[requests.Session] = None):
        if not api_key:
            raise CollaboratorFailure('instantly', 'INSTANTLY_API_KEY not set')
        self.api_url = api_url.rstrip('/')
        self.session = session or requests.Session()
        self.session.headers.update({
            'Authorization': f'Bearer {api_key}',
            'Content-Type': 'application/json',
        })

    def _request(self, method: str, path: str, payload: Dict = None):
        url = f'{self.api_url}{path}'

        def _do():
            resp = self.session.request(method, url, json=payload, timeout=30)
            resp.raise_for_status()
            return resp.json() if resp.content else {}

        try:
            return get_breaker('instantly').call(_do)
        except CollaboratorFailure:
            raise
        except (requests.RequestException, ValueError) as e:
            raise CollaboratorFailure('instantly', f'{method} {path} failed: {e}') from e

    def list_campaigns(self) -> List[Dict[str, Any]]:
        data = self._request('GET', '/campaigns')
        return data if isinstance(data, list) else (data or {}).get('campaigns', [])

    def add_leads(self, campaign_id: str, leads: Sequence[Lead]) -> Dict[str, Any]:
        return self._request('POST', f'/campaign/{campaign_id}/leads', {
            'leads': [format_lead(lead) for lead in leads],
        })


def push_leads(leads: Sequence[Lead], campaign_id: Optional[str] = None,
               batch_size: int = INSTANTLY_BATCH_SIZE,
               client: Optional[InstantlyClient] = None) -> PushResult:
    """
    Add leads to the campaign in batches. Leads without an email are left out.

    Raises CollaboratorFailure only when Instantly is not configured; batch
    failures are recorded on the result.
    """
    campaign_id = campaign_id or INSTANTLY_CAMPAIGN_ID
    if not campaign_id:
        raise CollaboratorFailure('instantly', 'INSTANTLY_CAMPAIGN_ID not set')
    client = client or InstantlyClient()

    sendable = [lead for lead in leads if lead.email]
    result = PushResult(total=len(sendable))
    batches = [sendable[i:i + batch_size] for i in range(0, len(sendable), batch_size)]
    logger.info("Pushing %d leads to campaign %s in %d batches", len(sendable), campaign_id, len(batches))

    for number, batch in enumerate(batches, 1):
        try:
            response = client.add_leads(campaign_id, batch)
        except CollaboratorFailure as e:
            logger.error("Instantly batch %d/%d failed: %s", number, len(batches), e)
            result.failed += len(batch)
            result.errors.append(f'Batch {number}: {e}')
        else:
            if (response or {}).get('success') is False:
                reason = response.get('message') or 'rejected'
                logger.warning("Instantly rejected batch %d/%d: %s", number, len(batches), reason)
                result.failed += len(batch)
                result.errors.append(f'Batch {number}: {reason}')
            else:
                result.success += len(batch)
        if number < len(batches):
            time.sleep(SEND_DELAY_SECONDS)

    logger.info(result.message)
    return result
