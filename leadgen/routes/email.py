"""
Email routes — approval queue, bulk approval actions, outreach send.
"""
import logging
from flask import Blueprint, jsonify, request

from leadgen.pipeline.outreach import send_outreach
from leadgen.services.email import generate_email_content, generate_dm_script
from leadgen.store.lead_store import get_store
from leadgen.store.workflow import ApprovalWorkflow, BULK_ACTIONS

logger = logging.getLogger('routes.email')

bp = Blueprint('email', __name__)


def _pending_entry(lead, personalize: bool):
    entry = {
        'leadId': lead.id,
        'github_username': lead.github_username,
        'email': lead.email or '',
        'repo_name': lead.repo_name,
        'repo_description': lead.repo_description,
        'ai_score': lead.ai_score,
        'ai_recommendation': lead.ai_recommendation,
        'emailContent': '',
    }
    if lead.email:
        note = ''
        if personalize and lead.ai_score is not None:
            from leadgen.services.openai_client import generate_personalized_email
            note = generate_personalized_email(lead, {'score': lead.ai_score, 'key_factors': []})
        entry['emailContent'] = generate_email_content(lead, personal_note=note)
    else:
        entry['dmScript'] = generate_dm_script(lead)
    return entry


@bp.route('/api/email/approve')
def pending_emails():
    """Leads not yet queued, approved or contacted, with the message to review."""
    personalize = request.args.get('personalize') == 'true'
    try:
        candidates = get_store().approval_candidates()
        pending = [_pending_entry(lead, personalize) for lead in candidates]
        return jsonify({'success': True, 'pendingEmails': pending, 'count': len(pending)})
    except Exception as e:
        logger.error("Error getting pending emails: %s", e, exc_info=True)
        return jsonify({'success': False, 'error': 'Failed to get pending emails'}), 500


@bp.route('/api/email/approve', methods=['POST'])
def bulk_approval():
    """Body: {action: approve|reject|mark-pending, leadIds: [...]}."""
    data = request.get_json(silent=True) or {}
    action = data.get('action')
    lead_ids = data.get('leadIds')

    if action not in BULK_ACTIONS or not isinstance(lead_ids, list):
        return jsonify({'success': False, 'error': 'Invalid request body'}), 400

    try:
        result = ApprovalWorkflow(get_store()).bulk(action, lead_ids)
        return jsonify({
            'success': True,
            'message': result.message,
            'updatedCount': result.updated,
            'failedCount': result.failed,
            'errors': result.errors or None,
        })
    except Exception as e:
        logger.error("Error processing approval: %s", e, exc_info=True)
        return jsonify({'success': False, 'error': 'Failed to process approval'}), 500


@bp.route('/api/email/send', methods=['POST'])
def send_emails():
    """Body: {leadIds?: [...], dryRun?: bool}. Without ids, every campaign-ready lead."""
    data = request.get_json(silent=True) or {}
    lead_ids = data.get('leadIds')
    if lead_ids is not None and not isinstance(lead_ids, list):
        return jsonify({'success': False, 'error': 'leadIds must be a list'}), 400

    try:
        result = send_outreach(get_store(), lead_ids=lead_ids, dry_run=bool(data.get('dryRun', False)))
        return jsonify({
            'success': result['success'],
            'message': result['message'],
            'emailsSent': result['emails_sent'],
            'dryRun': result['dry_run'],
            'errors': result['errors'] or None,
        })
    except Exception as e:
        logger.error("Email campaign error: %s", e, exc_info=True)
        return jsonify({
            'success': False,
            'message': f'Email campaign failed: {e}',
            'emailsSent': 0,
            'errors': [str(e)],
        }), 500
