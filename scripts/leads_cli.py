"""
Maintenance CLI for the lead store.

Runs the same stages as the dashboard, inline and without Redis or RQ.

Usage:
    python -m scripts.leads_cli scrape --max-pages 2 --max-leads 25
    python -m scripts.leads_cli analyze --limit 10 --auto-approve
    python -m scripts.leads_cli send --dry-run
    python -m scripts.leads_cli export campaign
    python -m scripts.leads_cli import old-leads.csv
    python -m scripts.leads_cli cleanup-emails
    python -m scripts.leads_cli sync-sheets
    python -m scripts.leads_cli push-instantly --gmail-only
    python -m scripts.leads_cli stats
"""
import argparse
import json
import logging
import os
import sys

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from leadgen.config import INSTANTLY_BATCH_SIZE
from leadgen.logging_config import configure_logging
from leadgen.models.run import Run
from leadgen.pipeline.manager import execute
from leadgen.pipeline.outreach import send_outreach
from leadgen.services.circuit_breaker import CollaboratorFailure
from leadgen.services.github import clean_email, is_valid_email, is_noreply_email
from leadgen.store.backup import compute_analytics
from leadgen.store.lead_store import get_store

logger = logging.getLogger('scripts.leads_cli')


class LocalRun(Run):
    """A Run kept in memory only; save() is a no-op so no Redis is needed."""

    def save(self):
        return self


def _run_stage(store, stage, params):
    run = LocalRun(stage=stage, params=params)
    result = execute(run, store)
    print(run.summary)
    if result is None:
        for error in run.errors:
            print(f"  ! {error['message']}")
        return 1
    for error in result.errors:
        print(f"  - {error}")
    return 0


# ── Commands ─────────────────────────────────────────────────────────────────

def cmd_scrape(store, args):
    params = {
        'start_page': args.page,
        'max_pages': args.max_pages,
        'require_email': not args.allow_no_email,
        'high_value_only': not args.all_users,
    }
    if args.max_leads:
        params['max_leads'] = args.max_leads
    if args.query:
        params['queries'] = args.query
    return _run_stage(store, 'discovery', params)


def cmd_analyze(store, args):
    return _run_stage(store, 'scoring', {'limit': args.limit, 'auto_approve': args.auto_approve})


def cmd_send(store, args):
    result = send_outreach(store, lead_ids=args.ids or None, dry_run=args.dry_run)
    print(result['message'])
    for error in result['errors']:
        print(f"  - {error}")
    return 0


def cmd_export(store, args):
    if args.kind == 'full':
        print(store.export_full())
    elif args.kind == 'campaign':
        print(store.export_campaign_subset())
    else:
        print(json.dumps(store.export_analytics(), indent=2))
    return 0


def cmd_import(store, args):
    if not os.path.exists(args.file):
        print(f"File not found: {args.file}")
        return 1
    result = store.import_csv(args.file)
    print(f"Imported {result.imported} leads, skipped {result.skipped} already known")
    for error in result.errors:
        print(f"  ! {error}")
    return 0


def cleanup_emails(store, drop_missing=False):
    """
    Fix emails that only need cleaning, then drop leads whose email is a
    noreply address or still invalid. Returns (fixed, removed).
    """
    def _fix(lead):
        if not lead.email:
            return lead
        cleaned = clean_email(lead.email)
        if cleaned != lead.email and is_valid_email(cleaned):
            return lead.merged({'email': cleaned})
        return lead

    def _unusable(lead):
        if not lead.email:
            return drop_missing
        return is_noreply_email(lead.email) or not is_valid_email(lead.email)

    fixed = store.replace_all(_fix)
    removed = store.remove(_unusable)
    return fixed, removed


def cmd_cleanup_emails(store, args):
    fixed, removed = cleanup_emails(store, drop_missing=args.drop_missing)
    print(f"Fixed {fixed} emails, removed {removed} leads with unusable emails")
    return 0


def cmd_sync_sheets(store, args):
    from leadgen.services.sheets import sync_leads
    try:
        rows = sync_leads(store.list_all())
    except CollaboratorFailure as e:
        print(f"Sheet sync failed: {e}")
        return 1
    print(f"Synced {rows} leads to Google Sheets")
    return 0


def cmd_push_instantly(store, args):
    from leadgen.services.instantly import InstantlyClient, is_gmail, push_leads
    try:
        if args.list_campaigns:
            for campaign in InstantlyClient().list_campaigns():
                print(f"{campaign.get('id')}  {campaign.get('name', '')}")
            return 0
        leads = store.ready_for_campaign()
        if args.gmail_only:
            leads = [lead for lead in leads if is_gmail(lead.email)]
        if args.dry_run:
            print(f"Would push {len(leads)} leads to Instantly")
            return 0
        result = push_leads(leads, campaign_id=args.campaign, batch_size=args.batch_size)
    except CollaboratorFailure as e:
        print(f"Instantly push failed: {e}")
        return 1
    print(result.message)
    for error in result.errors:
        print(f"  - {error}")
    return 0 if not result.failed else 1


def cmd_stats(store, args):
    stats = compute_analytics(store.list_all())
    stats['malformed_rows'] = len(store.last_load_errors)
    print(json.dumps(stats, indent=2))
    return 0


COMMANDS = {
    'scrape': cmd_scrape,
    'analyze': cmd_analyze,
    'send': cmd_send,
    'export': cmd_export,
    'import': cmd_import,
    'cleanup-emails': cmd_cleanup_emails,
    'sync-sheets': cmd_sync_sheets,
    'push-instantly': cmd_push_instantly,
    'stats': cmd_stats,
}


def build_parser():
    parser = argparse.ArgumentParser(description='Repo leads maintenance commands')
    parser.add_argument('-v', '--verbose', action='store_true', help='Debug logging')
    sub = parser.add_subparsers(dest='command', required=True)

    scrape = sub.add_parser('scrape', help='Discover new leads on GitHub')
    scrape.add_argument('--page', type=int, default=1, help='First result page (default: 1)')
    scrape.add_argument('--max-pages', type=int, default=1, help='Pages per query (default: 1)')
    scrape.add_argument('--max-leads', type=int, default=None, help='Stop after this many new leads')
    scrape.add_argument('--query', action='append', help='Search query (repeatable)')
    scrape.add_argument('--allow-no-email', action='store_true', help='Keep owners without an email')
    scrape.add_argument('--all-users', action='store_true', help='Skip the high-value owner check')

    analyze = sub.add_parser('analyze', help='Score unscored leads with OpenAI')
    analyze.add_argument('--limit', type=int, default=10, help='Max leads to score (default: 10)')
    analyze.add_argument('--auto-approve', action='store_true', help='Approve high-scoring leads')

    send = sub.add_parser('send', help='Send the outreach email')
    send.add_argument('--dry-run', action='store_true', help='Count without sending')
    send.add_argument('--ids', nargs='*', help='Lead ids (default: every campaign-ready lead)')

    export = sub.add_parser('export', help='Write a dated export file')
    export.add_argument('kind', choices=['full', 'campaign', 'analytics'])

    imp = sub.add_parser('import', help='Merge leads from another leads.csv')
    imp.add_argument('file')

    cleanup = sub.add_parser('cleanup-emails', help='Fix or drop unusable emails')
    cleanup.add_argument('--drop-missing', action='store_true', help='Also drop leads without an email')

    sub.add_parser('sync-sheets', help='Mirror leads to Google Sheets')

    push = sub.add_parser('push-instantly', help='Add campaign-ready leads to an Instantly campaign')
    push.add_argument('--campaign', help='Campaign id (default: INSTANTLY_CAMPAIGN_ID)')
    push.add_argument('--batch-size', type=int, default=INSTANTLY_BATCH_SIZE, help='Leads per request (default: 50)')
    push.add_argument('--gmail-only', action='store_true', help='Only Gmail addresses')
    push.add_argument('--dry-run', action='store_true', help='Count without pushing')
    push.add_argument('--list-campaigns', action='store_true', help='List campaigns and exit')

    sub.add_parser('stats', help='Print analytics counts')
    return parser


def main(argv=None):
    args = build_parser().parse_args(argv)
    configure_logging(level='DEBUG' if args.verbose else None)
    store = get_store()
    try:
        return COMMANDS[args.command](store, args)
    except KeyboardInterrupt:
        logger.warning('Interrupted by user')
        return 130


if __name__ == '__main__':
    sys.exit(main())
