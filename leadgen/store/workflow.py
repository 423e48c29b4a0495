"""
Status / approval workflow — named composite updates on top of LeadStore.update.

Status transitions are permissive by default: any status may follow any
other, so operators can correct records out of band. Pass a
HappyPathValidator to enforce new → contacted → responded → converted.
"""
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union

from leadgen.config import LEAD_STATUSES
from leadgen.models.lead import Lead, utc_now_iso, validate_status
from leadgen.store.lead_store import LeadStore, NotFound

logger = logging.getLogger('store.workflow')

BULK_ACTIONS = ('approve', 'reject', 'mark-pending')


class InvalidTransition(ValueError):
    def __init__(self, lead_id: str, current: str, requested: str):
        self.lead_id = lead_id
        self.current = current
        self.requested = requested
        super().__init__(f"Lead {lead_id}: cannot move status from '{current}' to '{requested}'")


class HappyPathValidator:
    """Forward-only along LEAD_STATUSES. Skipping ahead is allowed; staying put is a no-op."""

    order = LEAD_STATUSES

    def check(self, lead: Lead, new_status: str):
        if self.order.index(new_status) < self.order.index(lead.status):
            raise InvalidTransition(lead.id, lead.status, new_status)


@dataclass
class BulkResult:
    action: str
    updated: int = 0
    failed: int = 0
    errors: List[str] = field(default_factory=list)

    @property
    def message(self) -> str:
        verb = {'approve': 'approved', 'reject': 'rejected', 'mark-pending': 'marked pending'}[self.action]
        text = f'Successfully {verb} {self.updated} leads'
        if self.failed:
            text += f' ({self.failed} failed)'
        return text

    def to_dict(self) -> Dict[str, Any]:
        return {
            'action': self.action,
            'updated': self.updated,
            'failed': self.failed,
            'errors': self.errors,
            'message': self.message,
        }


class ApprovalWorkflow:

    def __init__(self, store: LeadStore, validator: Optional[HappyPathValidator] = None):
        self.store = store
        self.validator = validator

    # ── Approval flags ────────────────────────────────────────────────

    def mark_pending_approval(self, lead_id: str) -> Union[Lead, NotFound]:
        return self.store.update(lead_id, {'email_pending_approval': True, 'email_approved': False})

    def approve(self, lead_id: str) -> Union[Lead, NotFound]:
        return self.store.update(lead_id, {'email_approved': True, 'email_pending_approval': False})

    def reject(self, lead_id: str) -> Union[Lead, NotFound]:
        return self.store.update(lead_id, {'email_approved': False, 'email_pending_approval': False})

    # ── Status ────────────────────────────────────────────────────────

    def _transition_check(self, new_status: str):
        """Validator hook for store.update, run against the record under the write lock."""
        validate_status(new_status)
        if self.validator is None:
            return None
        return lambda lead: self.validator.check(lead, new_status)

    def advance_status(self, lead_id: str, new_status: str) -> Union[Lead, NotFound]:
        """Overwrite status. Raises ValueError for an unknown status (or InvalidTransition with a validator)."""
        return self.store.update(lead_id, {'status': new_status}, check=self._transition_check(new_status))

    def record_email_sent(self, lead_id: str, advance_to: Optional[str] = 'contacted') -> Union[Lead, NotFound]:
        updates = {'email_sent': True, 'email_sent_at': utc_now_iso()}
        check = None
        if advance_to:
            check = self._transition_check(advance_to)
            updates['status'] = advance_to
        return self.store.update(lead_id, updates, check=check)

    def record_ai_analysis(self, lead_id: str, analysis: Dict[str, Any]) -> Union[Lead, NotFound]:
        """Persist score / recommendation / reasoning from a scoring result dict."""
        return self.store.update(lead_id, {
            'ai_score': analysis.get('score'),
            'ai_recommendation': analysis.get('recommendation'),
            'ai_analysis': analysis.get('reasoning') or None,
        })

    # ── Bulk ──────────────────────────────────────────────────────────

    def bulk(self, action: str, lead_ids: List[str]) -> BulkResult:
        """
        Apply an approval action to each id. Best-effort: a missing or failing
        lead is counted and logged, the rest still go through.
        """
        handlers = {
            'approve': self.approve,
            'reject': self.reject,
            'mark-pending': self.mark_pending_approval,
        }
        if action not in handlers:
            raise ValueError(f"Unknown action '{action}'. Expected one of {list(BULK_ACTIONS)}")

        result = BulkResult(action=action)
        handler = handlers[action]
        for lead_id in lead_ids:
            try:
                outcome = handler(lead_id)
            except Exception as e:
                logger.error("Bulk %s failed for lead %s: %s", action, lead_id, e)
                result.failed += 1
                result.errors.append(f'{lead_id}: {e}')
                continue
            if outcome:
                result.updated += 1
            else:
                result.failed += 1
                result.errors.append(f'{lead_id}: not found')

        logger.info("Bulk %s: %d updated, %d failed", action, result.updated, result.failed)
        return result
