"""
Lead routes — list leads and patch a single lead's status.
"""
import logging
from flask import Blueprint, jsonify, request

from leadgen.config import LEAD_STATUSES
from leadgen.store.lead_store import get_store, NotFound
from leadgen.store.workflow import ApprovalWorkflow

logger = logging.getLogger('routes.leads')

bp = Blueprint('leads', __name__)

# ?view= name → LeadStore method
VIEWS = {
    'new-unsent': 'new_and_unsent',
    'awaiting-approval': 'awaiting_approval',
    'missing-ai-score': 'missing_ai_score',
    'ready-for-campaign': 'ready_for_campaign',
    'approval-candidates': 'approval_candidates',
}


@bp.route('/api/leads')
def list_leads():
    """All leads, or one named view / status filter."""
    view = request.args.get('view')
    status = request.args.get('status')

    if view and view not in VIEWS:
        return jsonify({'success': False, 'error': f'Unknown view: {view}'}), 400
    if status and status not in LEAD_STATUSES:
        return jsonify({'success': False, 'error': f'Invalid status: {status}'}), 400

    try:
        store = get_store()
        leads = getattr(store, VIEWS[view])() if view else store.list_all()
        if status:
            leads = [lead for lead in leads if lead.status == status]
        return jsonify({
            'success': True,
            'leads': [lead.to_dict() for lead in leads],
            'count': len(leads),
        })
    except Exception as e:
        logger.error("Error fetching leads: %s", e, exc_info=True)
        return jsonify({'success': False, 'error': 'Failed to fetch leads'}), 500


@bp.route('/api/leads/<lead_id>', methods=['PATCH'])
def update_lead(lead_id):
    """Body: {status, emailSent?}. emailSent=true records the send as well."""
    data = request.get_json(silent=True) or {}
    status = data.get('status')

    if status not in LEAD_STATUSES:
        return jsonify({'success': False, 'error': 'Invalid status'}), 400

    try:
        workflow = ApprovalWorkflow(get_store())
        if data.get('emailSent'):
            outcome = workflow.record_email_sent(lead_id, advance_to=status)
        else:
            outcome = workflow.advance_status(lead_id, status)

        if isinstance(outcome, NotFound):
            return jsonify({'success': False, 'error': 'Lead not found'}), 404
        return jsonify({'success': True, 'lead': outcome.to_dict()})
    except Exception as e:
        logger.error("Error updating lead %s: %s", lead_id, e, exc_info=True)
        return jsonify({'success': False, 'error': 'Failed to update lead'}), 500
