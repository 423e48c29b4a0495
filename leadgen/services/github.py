"""
GitHub REST v3 — repository search, user profiles, contact email discovery.

Every HTTP call goes through the 'github' circuit breaker. Transport and API
errors surface as CollaboratorFailure; callers skip the repo and continue.
"""
import base64
import logging
import re
from typing import Dict, List, Optional, Tuple, Any

import requests

from leadgen.config import GITHUB_TOKEN, GITHUB_API_URL
from leadgen.services.circuit_breaker import CollaboratorFailure, get_breaker

logger = logging.getLogger('services.github')

EMAIL_PATTERN = re.compile(r'[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}')
_VALID_EMAIL = re.compile(r'^[^\s@]+@[^\s@]+\.[^\s@]+$')
_EMAIL_JUNK = re.compile(r'''["'()<>\s]''')

NOREPLY_MARKERS = ('noreply', 'no-reply', 'no_reply')

EMAIL_SOURCES = ('profile', 'bio', 'commit', 'readme')


# ── Email helpers ────────────────────────────────────────────────────────────

def clean_email(email: Optional[str]) -> str:
    """Strip quotes, brackets and whitespace that leak in from scraped text."""
    return _EMAIL_JUNK.sub('', email or '').strip().rstrip('.').lower()


def is_valid_email(email: Optional[str]) -> bool:
    return bool(email) and bool(_VALID_EMAIL.match(email))


def is_noreply_email(email: Optional[str]) -> bool:
    lowered = (email or '').lower()
    return any(marker in lowered for marker in NOREPLY_MARKERS)


def usable_email(email: Optional[str]) -> Optional[str]:
    """Cleaned email if it is valid and not a noreply address, else None."""
    cleaned = clean_email(email)
    if is_valid_email(cleaned) and not is_noreply_email(cleaned):
        return cleaned
    return None


def extract_emails(text: Optional[str]) -> List[str]:
    """Usable emails found in free text, in order of appearance, de-duplicated."""
    found = []
    for match in EMAIL_PATTERN.findall(text or ''):
        email = usable_email(match)
        if email and email not in found:
            found.append(email)
    return found


# ── Client ───────────────────────────────────────────────────────────────────

def _repo_descriptor(item: Dict[str, Any]) -> Dict[str, Any]:
    owner = item.get('owner') or {}
    return {
        'owner_login': owner.get('login', ''),
        'owner_type': owner.get('type', ''),
        'name': item.get('name', ''),
        'full_name': item.get('full_name', ''),
        'html_url': item.get('html_url', ''),
        'description': item.get('description') or '',
        'pushed_at': item.get('pushed_at') or item.get('updated_at') or '',
        'topics': item.get('topics') or [],
    }


class GitHubClient:
    """
    Thin requests-based client.

    Args:
        token:   personal access token; unauthenticated calls work but hit
                 the 10 req/min search limit quickly
        api_url: override for GitHub Enterprise
    """

    def __init__(self, token: Optional[str] = GITHUB_TOKEN, api_url: str = GITHUB_API_URL,
                 session: Optional[requests.Session] = None):
        self.api_url = api_url.rstrip('/')
        self.session = session or requests.Session()
        self.session.headers.update({
            'Accept': 'application/vnd.github+json',
            'User-Agent': 'repo-leads',
        })
        if token:
            self.session.headers['Authorization'] = f'Bearer {token}'

    def _get(self, path: str, params: Dict = None, allow_404: bool = False):
        url = f'{self.api_url}{path}'

        def _do():
            resp = self.session.get(url, params=params, timeout=30)
            if allow_404 and resp.status_code == 404:
                return None
            resp.raise_for_status()
            return resp.json()

        try:
            return get_breaker('github').call(_do)
        except CollaboratorFailure:
            raise
        except (requests.RequestException, ValueError) as e:
            raise CollaboratorFailure('github', f'GET {path} failed: {e}') from e

    # ── Search / profile ──────────────────────────────────────────────

    def search_repositories(self, query: str, page: int = 1, per_page: int = 100) -> List[Dict[str, Any]]:
        """One page of repositories for query, most recently updated first."""
        data = self._get('/search/repositories', params={
            'q': query,
            'sort': 'updated',
            'order': 'desc',
            'per_page': per_page,
            'page': page,
        })
        items = (data or {}).get('items', [])
        logger.info("Search '%s' page %d: %d repos", query, page, len(items))
        return [_repo_descriptor(item) for item in items]

    def get_user(self, login: str) -> Optional[Dict[str, Any]]:
        data = self._get(f'/users/{login}', allow_404=True)
        if not data:
            return None
        return {
            'login': data.get('login', login),
            'email': data.get('email'),
            'bio': data.get('bio') or '',
            'blog': data.get('blog') or '',
            'location': data.get('location') or '',
            'followers': data.get('followers') or 0,
            'public_repos': data.get('public_repos') or 0,
            'created_at': data.get('created_at') or '',
        }

    # ── Email discovery ───────────────────────────────────────────────

    def _commit_emails(self, login: str, repo: str) -> List[str]:
        commits = self._get(f'/repos/{login}/{repo}/commits', params={'per_page': 30}, allow_404=True) or []
        found = []
        for commit in commits:
            author = (commit.get('commit') or {}).get('author') or {}
            email = usable_email(author.get('email'))
            if email and email not in found:
                found.append(email)
        return found

    def _readme_text(self, login: str, repo: str) -> str:
        data = self._get(f'/repos/{login}/{repo}/readme', allow_404=True)
        if not data or not data.get('content'):
            return ''
        try:
            return base64.b64decode(data['content']).decode('utf-8', errors='replace')
        except (ValueError, TypeError):
            return ''

    def discover_email(self, login: str, repo: Optional[str] = None,
                       user: Optional[Dict[str, Any]] = None) -> Optional[Tuple[str, str]]:
        """
        Try profile field, bio text, recent commit authors, then README text.

        Returns (email, source) for the first hit, or None. `user` may be a
        get_user() result already fetched by the caller.
        """
        if user is None:
            user = self.get_user(login)
        if user:
            email = usable_email(user.get('email'))
            if email:
                return email, 'profile'
            bio_emails = extract_emails(user.get('bio'))
            if bio_emails:
                return bio_emails[0], 'bio'

        if not repo:
            return None

        commit_emails = self._commit_emails(login, repo)
        if commit_emails:
            return commit_emails[0], 'commit'

        readme_emails = extract_emails(self._readme_text(login, repo))
        if readme_emails:
            return readme_emails[0], 'readme'

        logger.debug("No email found for %s/%s", login, repo)
        return None
