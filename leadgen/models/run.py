"""
Run model — Redis-backed tracking of one background discovery or scoring job.
"""
import json
import uuid
from datetime import datetime
from typing import Dict, Optional, List

from leadgen.extensions import redis_client as r
from leadgen.config import RUN_STAGES, RUN_STATUSES


RUN_TTL = 86400 * 7  # 7 days
MAX_ERRORS = 20

# Counters reported by the stages; all start at zero
COUNTERS = (
    'repos_found',
    'repos_qualified',
    'duplicates_skipped',
    'leads_added',
    'leads_scored',
    'auto_approved',
)


class Run:
    """
    Keys:
        run:{id}    → JSON blob of run state
        runs:list   → sorted set of run IDs by creation time
    """

    def __init__(self, id: str = None, stage: str = 'discovery', status: str = 'queued', params: Dict = None):
        if stage not in RUN_STAGES:
            raise ValueError(f"Unknown stage '{stage}'. Expected one of {RUN_STAGES}")
        self.id = id or str(uuid.uuid4())
        self.stage = stage
        self.status = status
        self.params = params or {}
        self.created_at = datetime.now().isoformat()
        self.updated_at = self.created_at
        for counter in COUNTERS:
            setattr(self, counter, 0)
        self.email_sources: Dict[str, int] = {}
        self.errors: List[Dict] = []
        self.summary = ''

    def to_dict(self) -> Dict:
        data = {
            'id': self.id,
            'stage': self.stage,
            'status': self.status,
            'params': self.params,
            'created_at': self.created_at,
            'updated_at': self.updated_at,
            'email_sources': self.email_sources,
            'errors': self.errors[-MAX_ERRORS:],
            'summary': self.summary,
        }
        for counter in COUNTERS:
            data[counter] = getattr(self, counter)
        return data

    @classmethod
    def from_dict(cls, d: Dict) -> 'Run':
        run = cls.__new__(cls)
        run.id = d['id']
        run.stage = d.get('stage', 'discovery')
        run.status = d.get('status', 'queued')
        run.params = d.get('params', {})
        run.created_at = d.get('created_at', '')
        run.updated_at = d.get('updated_at', '')
        for counter in COUNTERS:
            setattr(run, counter, d.get(counter, 0))
        run.email_sources = d.get('email_sources', {})
        run.errors = d.get('errors', [])
        run.summary = d.get('summary', '')
        return run

    def save(self):
        """Persist run state to Redis."""
        self.updated_at = datetime.now().isoformat()
        r.setex(f'run:{self.id}', RUN_TTL, json.dumps(self.to_dict()))
        r.zadd('runs:list', {self.id: datetime.fromisoformat(self.created_at).timestamp()})
        return self

    def update(self, status: str = None, **counters):
        """Set status and/or counters, then save."""
        if status:
            if status not in RUN_STATUSES:
                raise ValueError(f"Unknown run status: {status}")
            self.status = status
        for k, v in counters.items():
            if k in COUNTERS:
                setattr(self, k, v)
        self.save()

    def increment(self, counter: str, count: int = 1):
        setattr(self, counter, getattr(self, counter, 0) + count)

    def record_email_source(self, source: str):
        self.email_sources[source] = self.email_sources.get(source, 0) + 1

    def add_error(self, message: str, lead: str = ''):
        """Append to the run log (only the last MAX_ERRORS are kept)."""
        self.errors.append({
            'message': message,
            'lead': lead,
            'timestamp': datetime.now().isoformat(),
        })
        self.errors = self.errors[-MAX_ERRORS:]

    def complete(self, summary: str = ''):
        self.status = 'completed'
        if summary:
            self.summary = summary
        self.save()

    def fail(self, reason: str = ''):
        self.status = 'failed'
        if reason:
            self.add_error(reason)
        self.save()

    @classmethod
    def load(cls, run_id: str) -> Optional['Run']:
        data = r.get(f'run:{run_id}')
        if not data:
            return None
        return cls.from_dict(json.loads(data))

    @classmethod
    def list_recent(cls, limit: int = 20) -> List['Run']:
        runs = []
        for run_id in r.zrevrange('runs:list', 0, limit - 1):
            run = cls.load(run_id)
            if run:
                runs.append(run)
        return runs

    @classmethod
    def delete(cls, run_id: str):
        r.delete(f'run:{run_id}')
        r.zrem('runs:list', run_id)
