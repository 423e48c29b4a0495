"""
Pipeline stage: SCORING — LLM analysis of leads that have no AI score yet.

Run params:
    limit         max leads per run (default 10)
    lead_ids      score exactly these leads instead of the unscored queue
    auto_approve  approve leads at or above auto_approve_threshold with an
                  'approve' recommendation; reject leads at or below
                  auto_reject_threshold with a 'reject' recommendation
"""
import os
import logging
import time

import yaml

from leadgen.pipeline.base import StageAdapter, StageResult
from leadgen.store.workflow import ApprovalWorkflow

logger = logging.getLogger('pipeline.scoring')


# ── Scoring config (YAML with hardcoded fallback) ────────────────────────────

_scoring_config = None


def _default_config():
    """Hardcoded fallback if YAML is missing."""
    return {
        'version': 'default',
        'model': 'gpt-4',
        'temperature': 0.3,
        'max_tokens': 1000,
        'auto_approve_threshold': 0.8,
        'auto_reject_threshold': 0.3,
        'delay_seconds': 1.0,
    }


def load_scoring_config():
    """Load scoring config from YAML, with in-memory cache and hardcoded fallback."""
    global _scoring_config
    if _scoring_config is not None:
        return _scoring_config

    config_path = os.path.join(os.path.dirname(__file__), 'scoring_config.yaml')
    try:
        with open(config_path, 'r') as f:
            loaded = yaml.safe_load(f) or {}
        _scoring_config = {**_default_config(), **loaded}
        logger.info("Config loaded from YAML (version=%s)", _scoring_config.get('version', '?'))
    except Exception as e:
        logger.warning("YAML config not found (%s), using defaults", e)
        _scoring_config = _default_config()

    return _scoring_config


def should_auto_approve(analysis, cfg) -> bool:
    return analysis['recommendation'] == 'approve' and analysis['score'] >= cfg['auto_approve_threshold']


def should_auto_reject(analysis, cfg) -> bool:
    return analysis['recommendation'] == 'reject' and analysis['score'] <= cfg['auto_reject_threshold']


# ── Adapter ───────────────────────────────────────────────────────────────────

class LeadScoring(StageAdapter):
    """Score unscored leads with OpenAI and optionally auto-approve the best ones."""
    stage = 'scoring'
    description = 'LLM relevance / quality score with optional auto-approval'
    apis = ['OpenAI']

    def __init__(self, analyze=None):
        if analyze is None:
            from leadgen.services.openai_client import analyze_lead
            analyze = analyze_lead
        self.analyze = analyze

    def _select(self, store, params):
        lead_ids = params.get('lead_ids')
        if lead_ids:
            leads = [store.get(lead_id) for lead_id in lead_ids]
            missing = [i for i, lead in zip(lead_ids, leads) if lead is None]
            return [lead for lead in leads if lead is not None], missing
        limit = int(params.get('limit') or 10)
        return store.missing_ai_score()[:limit], []

    def run(self, store, run) -> StageResult:
        cfg = load_scoring_config()
        params = run.params or {}
        auto_approve = bool(params.get('auto_approve', False))
        workflow = ApprovalWorkflow(store)

        leads, missing = self._select(store, params)
        result = StageResult(errors=[f'{lead_id}: not found' for lead_id in missing])
        result.failed = len(missing)
        result.meta.update({'auto_approved': 0, 'auto_rejected': 0, 'fallbacks': 0})

        logger.info("Scoring %d leads (auto_approve=%s)", len(leads), auto_approve)

        for i, lead in enumerate(leads):
            result.processed += 1
            analysis = self.analyze(lead, cfg)
            if analysis.get('fallback'):
                result.meta['fallbacks'] += 1
                run.add_error(analysis.get('reasoning', 'analysis failed'), lead=lead.full_name)

            outcome = workflow.record_ai_analysis(lead.id, analysis)
            if not outcome:
                result.failed += 1
                result.errors.append(f'{lead.id}: not found')
                continue

            result.lead_ids.append(lead.id)
            run.increment('leads_scored')

            if auto_approve and should_auto_approve(analysis, cfg):
                workflow.approve(lead.id)
                run.increment('auto_approved')
                result.meta['auto_approved'] += 1
                logger.info(
                    "Auto-approved %s (score %.2f)", lead.full_name, analysis['score'],
                    extra={'run_id': run.id, 'lead': lead.full_name},
                )
            elif auto_approve and should_auto_reject(analysis, cfg):
                workflow.reject(lead.id)
                result.meta['auto_rejected'] += 1

            run.save()
            if i < len(leads) - 1:
                time.sleep(cfg.get('delay_seconds', 1.0))

        return result
