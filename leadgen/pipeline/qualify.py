"""
Lead qualification heuristics used by the discovery stage.

Any object with the same three methods can replace LeadQualifier.
"""
from datetime import datetime, timezone
from typing import Dict, Any, Optional, Sequence

from leadgen.config import ACTIVE_WINDOW_DAYS, TARGET_KEYWORDS


def _parse_timestamp(value: str) -> Optional[datetime]:
    if not value:
        return None
    try:
        dt = datetime.fromisoformat(value.replace('Z', '+00:00'))
    except ValueError:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


class LeadQualifier:

    def __init__(self, keywords: Sequence[str] = TARGET_KEYWORDS,
                 active_window_days: int = ACTIVE_WINDOW_DAYS,
                 min_followers: int = 5, min_public_repos: int = 2):
        self.keywords = [k.lower() for k in keywords]
        self.active_window_days = active_window_days
        self.min_followers = min_followers
        self.min_public_repos = min_public_repos

    def is_relevant_repo(self, repo: Dict[str, Any]) -> bool:
        """A keyword appears in a topic, the repo name or its description."""
        haystacks = [t.lower() for t in repo.get('topics', [])]
        haystacks.append((repo.get('name') or '').lower())
        haystacks.append((repo.get('description') or '').lower())
        return any(k in text for k in self.keywords for text in haystacks)

    def is_active_repo(self, repo: Dict[str, Any], now: Optional[datetime] = None) -> bool:
        """Pushed within the activity window."""
        pushed = _parse_timestamp(repo.get('pushed_at', ''))
        if pushed is None:
            return False
        now = now or datetime.now(timezone.utc)
        return (now - pushed).days <= self.active_window_days

    def is_high_value_user(self, user: Dict[str, Any]) -> bool:
        return (
            (user.get('followers') or 0) > self.min_followers
            or bool(user.get('blog'))
            or bool(user.get('location'))
            or bool(user.get('bio'))
            or (user.get('public_repos') or 0) > self.min_public_repos
        )
