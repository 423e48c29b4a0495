"""
Pipeline Manager — launches discovery / scoring runs in the background.

launch_run() records a Run in Redis and enqueues run_stage() on RQ; the
worker looks up the stage adapter, runs it against the lead store and
records the outcome on the Run.
"""
import logging
from typing import Dict, Type

from leadgen.config import RUN_STAGES
from leadgen.models.run import Run
from leadgen.pipeline.base import StageAdapter, StageResult, get_adapter
from leadgen.pipeline.discovery import GitHubDiscovery
from leadgen.pipeline.scoring import LeadScoring
from leadgen.services.notifications import notify_run_complete, notify_run_failed

logger = logging.getLogger('pipeline.manager')

RUN_JOB_TIMEOUT = 14400

STAGE_REGISTRY: Dict[str, Type[StageAdapter]] = {
    'discovery': GitHubDiscovery,
    'scoring': LeadScoring,
}

_ACTIVE_STATUS = {
    'discovery': 'discovering',
    'scoring': 'scoring',
}


# ── Lazy RQ queue (avoids an import-time Redis connection) ───────────────────

_queue = None


def _get_queue():
    global _queue
    if _queue is None:
        from leadgen.extensions import redis_client
        from rq import Queue
        _queue = Queue(connection=redis_client)
    return _queue


# ── Public API ────────────────────────────────────────────────────────────────

def launch_run(stage: str, params: Dict = None) -> Run:
    """Create a Run and enqueue it as a background RQ job."""
    if stage not in RUN_STAGES or stage not in STAGE_REGISTRY:
        raise ValueError(f"Unsupported stage: {stage}. Available: {list(STAGE_REGISTRY)}")

    run = Run(stage=stage, params=dict(params or {}))
    run.save()
    _get_queue().enqueue(run_stage, run.id, job_timeout=RUN_JOB_TIMEOUT)
    logger.info("Run %s queued (stage=%s)", run.id, stage)
    return run


def get_run_status(run_id: str) -> dict:
    run = Run.load(run_id)
    if not run:
        return None
    return run.to_dict()


# ── Runner (enqueued via RQ) ─────────────────────────────────────────────────

def run_stage(run_id: str, store=None):
    """Execute the Run's stage against the lead store."""
    run = Run.load(run_id)
    if not run:
        logger.error("Run %s not found", run_id)
        return
    if store is None:
        from leadgen.store.lead_store import get_store
        store = get_store()
    execute(run, store)


def execute(run: Run, store, adapter: StageAdapter = None) -> StageResult:
    """
    Run one stage synchronously and record the result on `run`.

    Returns the StageResult, or None when the stage raised (the run is then
    marked failed and the error recorded).
    """
    adapter = adapter or get_adapter(STAGE_REGISTRY, run.stage)
    context = {'run_id': run.id, 'stage': run.stage}
    run.update(status=_ACTIVE_STATUS.get(run.stage, run.stage))
    logger.info("Run %s: stage '%s' starting with params %s", run.id, run.stage, run.params, extra=context)

    try:
        result = adapter.run(store, run)
    except Exception as e:
        logger.exception("Run %s: stage '%s' FAILED", run.id, run.stage, extra=context)
        run.fail(f"Stage '{run.stage}' failed: {e}")
        run.summary = _generate_run_summary(run, failed=True)
        run.save()
        notify_run_failed(run)
        return None

    run.complete(summary=_generate_run_summary(run))
    notify_run_complete(run)
    logger.info(
        "Run %s completed: processed=%d, leads=%d, failed=%d",
        run.id, result.processed, len(result.lead_ids), result.failed,
        extra=context,
    )
    return result


# ── Run summary generator ────────────────────────────────────────────────────

def _generate_run_summary(run: Run, failed: bool = False) -> str:
    """Human-readable one-paragraph summary. Pure Python, no API calls."""
    prefix = 'Run failed. ' if failed else ''

    if run.stage == 'scoring':
        scored = run.leads_scored or 0
        if scored == 0 and not failed:
            return 'No unscored leads to analyze.'
        text = f"{prefix}Scored {scored} leads"
        if run.auto_approved:
            text += f", auto-approved {run.auto_approved}"
        return text + '.'

    found = run.repos_found or 0
    if found == 0 and not failed:
        return 'No repositories found. Check the search queries and try again.'

    parts = [
        f"{prefix}Found {found} repositories",
        f"{run.repos_qualified or 0} qualified",
        f"{run.duplicates_skipped or 0} already known",
        f"{run.leads_added or 0} new leads added",
    ]
    text = ', '.join(parts) + '.'
    if run.email_sources:
        sources = ', '.join(f"{k} {v}" for k, v in sorted(run.email_sources.items()))
        text += f" Email sources: {sources}."
    if (run.repos_qualified or 0) > 0 and not run.leads_added:
        text += ' No new leads: every qualified repo was a duplicate or had no usable email.'
    return text
