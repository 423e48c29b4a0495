"""
Lead model — one prospective contact / repository pairing.

Identity is the (github_username, repo_name) pair; `id` and `created_at` are
assigned by the store on insertion and never change afterwards.
"""
from dataclasses import dataclass, asdict, fields, replace
from datetime import datetime, timezone
from typing import Dict, Any, Optional

from leadgen.config import LEAD_STATUSES, AI_RECOMMENDATIONS


# Optional text fields: an empty string means "absent"
_OPTIONAL_TEXT = ('email', 'email_sent_at', 'ai_recommendation', 'ai_analysis')

IMMUTABLE_FIELDS = ('id', 'created_at')


@dataclass
class Lead:
    id: str
    github_username: str
    repo_name: str
    repo_url: str = ''
    repo_description: str = ''
    email: Optional[str] = None
    last_activity: str = ''
    created_at: str = ''
    email_sent: bool = False
    email_sent_at: Optional[str] = None
    status: str = 'new'
    email_approved: bool = False
    email_pending_approval: bool = False
    ai_score: Optional[float] = None
    ai_recommendation: Optional[str] = None
    ai_analysis: Optional[str] = None

    def __post_init__(self):
        for name in _OPTIONAL_TEXT:
            if getattr(self, name) == '':
                setattr(self, name, None)
        if self.repo_description is None:
            self.repo_description = ''
        if self.repo_url is None:
            self.repo_url = ''
        if self.ai_score is not None:
            self.ai_score = float(self.ai_score)
        validate_status(self.status)
        validate_recommendation(self.ai_recommendation)

    @property
    def key(self):
        """Identity pair used for deduplication."""
        return (self.github_username, self.repo_name)

    @property
    def full_name(self) -> str:
        return f'{self.github_username}/{self.repo_name}'

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    def merged(self, updates: Dict[str, Any]) -> 'Lead':
        """Return a copy with `updates` laid over this record (shallow merge)."""
        return replace(self, **updates)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Lead':
        """Build a Lead from a dict, ignoring keys that are not Lead fields."""
        known = field_names()
        return cls(**{k: v for k, v in data.items() if k in known})


def field_names():
    return {f.name for f in fields(Lead)}


def validate_status(status: str):
    if status not in LEAD_STATUSES:
        raise ValueError(f"Invalid status '{status}'. Expected one of {LEAD_STATUSES}")


def validate_recommendation(recommendation: Optional[str]):
    if recommendation is not None and recommendation not in AI_RECOMMENDATIONS:
        raise ValueError(
            f"Invalid ai_recommendation '{recommendation}'. Expected one of {AI_RECOMMENDATIONS}"
        )


def utc_now_iso() -> str:
    """Current UTC time as an ISO-8601 string with millisecond precision."""
    return datetime.now(timezone.utc).isoformat(timespec='milliseconds').replace('+00:00', 'Z')


# ── Predicates shared by store views and exports ─────────────────────────────

def is_new_and_unsent(lead: Lead) -> bool:
    return lead.status == 'new' and not lead.email_sent


def is_awaiting_approval(lead: Lead) -> bool:
    return lead.email_pending_approval and not lead.email_approved


def is_missing_ai_score(lead: Lead) -> bool:
    return lead.ai_score is None and lead.ai_recommendation is None and lead.status == 'new'


def is_ready_for_campaign(lead: Lead) -> bool:
    """Operational definition of "ready for outreach"."""
    return bool(lead.email) and not lead.email_sent and lead.email_approved and lead.status == 'new'


def is_approval_candidate(lead: Lead) -> bool:
    """Not yet queued, approved or contacted — eligible for the approval queue."""
    return (
        not lead.email_sent
        and lead.status == 'new'
        and not lead.email_pending_approval
        and not lead.email_approved
    )
