"""
Export routes — dated export files and the spreadsheet mirror.
"""
import logging
from flask import Blueprint, jsonify

from leadgen.services.circuit_breaker import CollaboratorFailure
from leadgen.services.sheets import sync_leads
from leadgen.store.lead_store import get_store

logger = logging.getLogger('routes.exports')

bp = Blueprint('exports', __name__)

EXPORT_KINDS = ('full', 'campaign', 'analytics')


@bp.route('/api/exports/<kind>', methods=['POST'])
def create_export(kind):
    if kind not in EXPORT_KINDS:
        return jsonify({'success': False, 'error': f'Unknown export: {kind}'}), 400

    try:
        store = get_store()
        if kind == 'full':
            return jsonify({'success': True, 'path': store.export_full()})
        if kind == 'campaign':
            return jsonify({'success': True, 'path': store.export_campaign_subset()})
        summary = store.export_analytics()
        return jsonify({'success': True, 'path': summary['path'], 'analytics': summary})
    except Exception as e:
        logger.error("Export '%s' failed: %s", kind, e, exc_info=True)
        return jsonify({'success': False, 'error': str(e)}), 500


@bp.route('/api/sync/sheets', methods=['POST'])
def sync_sheets():
    try:
        rows = sync_leads(get_store().list_all())
        return jsonify({'success': True, 'rows': rows})
    except CollaboratorFailure as e:
        logger.error("Sheet sync failed: %s", e)
        return jsonify({'success': False, 'error': str(e)}), 502
    except Exception as e:
        logger.error("Sheet sync error: %s", e, exc_info=True)
        return jsonify({'success': False, 'error': str(e)}), 500
