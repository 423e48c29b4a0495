"""
Dashboard routes — pages, health checks, analytics stats.
"""
import logging
from flask import Blueprint, jsonify, render_template

from leadgen.config import LEAD_STATUSES
from leadgen.models.run import Run
from leadgen.pipeline.base import get_pipeline_info
from leadgen.pipeline.manager import STAGE_REGISTRY
from leadgen.services.circuit_breaker import get_all_breakers
from leadgen.store.backup import compute_analytics
from leadgen.store.lead_store import get_store

logger = logging.getLogger('routes.dashboard')

bp = Blueprint('dashboard', __name__)


@bp.route('/')
def index():
    """Home hub: funnel counts and recent runs."""
    try:
        stats = compute_analytics(get_store().list_all())
    except Exception as e:
        logger.error("Error loading stats for home page: %s", e, exc_info=True)
        stats = compute_analytics([])
    try:
        runs = [run.to_dict() for run in Run.list_recent(limit=5)]
    except Exception as e:
        logger.warning("Recent runs unavailable: %s", e)
        runs = []
    return render_template('home.html', stats=stats, runs=runs)


@bp.route('/leads')
def leads_page():
    """Lead table with approval controls."""
    return render_template('leads.html', statuses=LEAD_STATUSES)


@bp.route('/health')
def health_check():
    """Health check endpoint."""
    return jsonify({"status": "healthy"}), 200


@bp.route('/api/stats')
def get_stats():
    """Analytics counts over the whole store."""
    try:
        store = get_store()
        stats = compute_analytics(store.list_all())
        stats['malformed_rows'] = len(store.last_load_errors)
        return jsonify({'success': True, **stats})
    except Exception as e:
        logger.error("Error generating stats: %s", e, exc_info=True)
        return jsonify({'success': False, 'error': str(e)}), 500


@bp.route('/api/health')
def api_health():
    """Circuit breaker state per external service, plus which optional clients are configured."""
    from leadgen.extensions import client_status
    services = {name: cb.get_health() for name, cb in get_all_breakers().items()}
    return jsonify({'services': services, 'clients': client_status()})


@bp.route('/api/health/<service>/reset', methods=['POST'])
def reset_circuit(service):
    breaker = get_all_breakers().get(service)
    if not breaker:
        return jsonify({'ok': False, 'error': f'Unknown service: {service}'}), 404
    breaker.reset()
    return jsonify({'ok': True, 'service': service})


@bp.route('/api/pipeline-info')
def pipeline_info():
    return jsonify(get_pipeline_info(STAGE_REGISTRY))
