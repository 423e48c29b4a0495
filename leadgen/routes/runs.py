"""
Run routes — launch and poll background discovery / scoring runs.
"""
import logging
from flask import Blueprint, request, jsonify

from leadgen.config import RUN_STAGES
from leadgen.models.run import Run
from leadgen.pipeline.manager import launch_run, get_run_status

logger = logging.getLogger('routes.runs')

bp = Blueprint('runs', __name__)


@bp.route('/api/runs', methods=['POST'])
def create_run():
    """Body: {stage: discovery|scoring, params: {...}} → 202 with the queued run."""
    data = request.get_json(silent=True) or {}
    stage = data.get('stage', 'discovery')
    params = data.get('params') or {}

    if stage not in RUN_STAGES:
        return jsonify({'error': f'Unsupported stage: {stage}'}), 400
    if not isinstance(params, dict):
        return jsonify({'error': 'params must be an object'}), 400

    try:
        run = launch_run(stage, params)
        return jsonify(run.to_dict()), 202
    except Exception as e:
        logger.error("Error launching %s run: %s", stage, e, exc_info=True)
        return jsonify({'error': str(e)}), 500


@bp.route('/api/runs')
def list_runs():
    limit = request.args.get('limit', 20, type=int)
    runs = Run.list_recent(limit=limit)
    return jsonify([run.to_dict() for run in runs])


@bp.route('/api/runs/<run_id>')
def get_run(run_id):
    status = get_run_status(run_id)
    if not status:
        return jsonify({'error': 'Run not found'}), 404
    return jsonify(status)
