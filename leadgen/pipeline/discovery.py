"""
Pipeline stage: DISCOVERY — GitHub search → qualify → dedupe → email → insert.

Run params:
    queries       search queries (default DEFAULT_SEARCH_QUERIES)
    start_page    first result page per query (default 1)
    max_pages     pages per query (default 1)
    max_leads     stop after this many inserts (default: no limit)
    require_email skip repos whose owner has no discoverable email (default True)
    high_value_only  skip owners failing the high-value check (default True)

Calls are sequential with fixed delays to stay inside GitHub's rate limits.
"""
import logging
import time
from typing import Dict, Any, Optional

from leadgen.config import DEFAULT_SEARCH_QUERIES, SCRAPE_DELAY_SECONDS, PAGE_DELAY_SECONDS
from leadgen.pipeline.base import StageAdapter, StageResult
from leadgen.pipeline.qualify import LeadQualifier
from leadgen.services.circuit_breaker import CollaboratorFailure, CircuitOpenError
from leadgen.store.lead_store import AlreadyExists

logger = logging.getLogger('pipeline.discovery')

# Outcomes of processing one repo
ADDED = 'added'
DUPLICATE = 'duplicate'
UNQUALIFIED = 'unqualified'
LOW_VALUE = 'low_value'
NO_EMAIL = 'no_email'


class GitHubDiscovery(StageAdapter):
    """Find n8n workflow repositories and turn their owners into leads."""
    stage = 'discovery'
    description = 'Search GitHub for n8n repos, qualify owners, discover emails'
    apis = ['GitHub']

    def __init__(self, client=None, qualifier=None):
        if client is None:
            from leadgen.services.github import GitHubClient
            client = GitHubClient()
        self.client = client
        self.qualifier = qualifier or LeadQualifier()

    def run(self, store, run) -> StageResult:
        params = run.params or {}
        queries = params.get('queries') or DEFAULT_SEARCH_QUERIES
        start_page = int(params.get('start_page', 1))
        max_pages = int(params.get('max_pages', 1))
        max_leads = params.get('max_leads')
        max_leads = int(max_leads) if max_leads else None

        result = StageResult()
        for query in queries:
            for page in range(start_page, start_page + max_pages):
                if max_leads is not None and len(result.lead_ids) >= max_leads:
                    break
                if not self._scan_page(store, run, result, query, page, params, max_leads):
                    break
                run.save()
                if page < start_page + max_pages - 1:
                    time.sleep(PAGE_DELAY_SECONDS)

        result.meta['email_sources'] = dict(run.email_sources)
        logger.info(
            "Discovery done: %d repos seen, %d leads added, %d skipped, %d errors",
            result.processed, len(result.lead_ids), result.skipped, result.failed,
        )
        return result

    def _scan_page(self, store, run, result: StageResult, query: str, page: int,
                   params: Dict[str, Any], max_leads: Optional[int]) -> bool:
        """Process one search page. Returns False when there is nothing more to fetch."""
        try:
            repos = self.client.search_repositories(query, page)
        except CollaboratorFailure as e:
            logger.error("Search '%s' page %d failed: %s", query, page, e)
            result.failed += 1
            result.errors.append(str(e))
            run.add_error(str(e))
            return False

        if not repos:
            logger.info("No more repositories for '%s' at page %d", query, page)
            return False

        run.increment('repos_found', len(repos))
        for repo in repos:
            if max_leads is not None and len(result.lead_ids) >= max_leads:
                return False
            result.processed += 1
            try:
                outcome, lead = self.process_repo(store, run, repo, params)
            except CircuitOpenError as e:
                # Every further call would short-circuit too
                result.failed += 1
                result.errors.append(str(e))
                run.add_error(str(e))
                return False
            except CollaboratorFailure as e:
                logger.warning("Skipping %s: %s", repo.get('full_name'), e)
                result.failed += 1
                result.errors.append(f"{repo.get('full_name')}: {e}")
                run.add_error(str(e), lead=repo.get('full_name', ''))
                continue

            if outcome == ADDED:
                result.lead_ids.append(lead.id)
            else:
                result.skipped += 1
            if outcome not in (UNQUALIFIED, DUPLICATE):
                time.sleep(SCRAPE_DELAY_SECONDS)
        return True

    def process_repo(self, store, run, repo: Dict[str, Any], params: Dict[str, Any]):
        """Run one repository through the checks. Returns (outcome, lead or None)."""
        login = repo.get('owner_login', '')
        name = repo.get('name', '')
        if not login or not name:
            return UNQUALIFIED, None

        if not self.qualifier.is_relevant_repo(repo) or not self.qualifier.is_active_repo(repo):
            return UNQUALIFIED, None
        run.increment('repos_qualified')

        if store.exists(login, name):
            run.increment('duplicates_skipped')
            return DUPLICATE, None

        user = self.client.get_user(login)
        if params.get('high_value_only', True) and (not user or not self.qualifier.is_high_value_user(user)):
            return LOW_VALUE, None

        found = self.client.discover_email(login, name, user=user or {})
        email, source = found if found else (None, None)
        if email is None and params.get('require_email', True):
            return NO_EMAIL, None

        outcome = store.insert({
            'github_username': login,
            'repo_name': name,
            'repo_url': repo.get('html_url', ''),
            'repo_description': repo.get('description', ''),
            'email': email,
            'last_activity': repo.get('pushed_at', ''),
        })
        if isinstance(outcome, AlreadyExists):
            run.increment('duplicates_skipped')
            return DUPLICATE, None

        run.increment('leads_added')
        if source:
            run.record_email_source(source)
        logger.info(
            "Added lead %s (%s, source=%s)", outcome.full_name, email or 'no email', source or '-',
            extra={'run_id': run.id, 'lead': outcome.full_name},
        )
        return ADDED, outcome
