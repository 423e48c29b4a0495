"""
Backup / export sink — timestamped copies and derived views of the lead store.

Nothing here is authoritative. Backups are written after every successful
persist and are never read back by the running system; a failed backup is
logged and never blocks the write that triggered it.
"""
import json
import logging
import os
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional, Sequence

from leadgen.config import (
    EXPORT_HEADERS, LEAD_STATUSES, AI_RECOMMENDATIONS, OUTREACH_SUBJECT,
)
from leadgen.models.lead import Lead, is_ready_for_campaign
from leadgen.store import codec

logger = logging.getLogger('store.backup')

CAMPAIGN_HEADERS = [
    'ID',
    'GitHub Username',
    'Email',
    'Repository Name',
    'Repository URL',
    'Repository Description',
    'Last Activity',
    'Subject Line',
    'Status',
]


def _today() -> str:
    return datetime.now(timezone.utc).strftime('%Y-%m-%d')


def _backup_stamp() -> str:
    stamp = datetime.now(timezone.utc).isoformat(timespec='milliseconds').replace('+00:00', 'Z')
    return stamp.replace(':', '-').replace('.', '-')


def compute_analytics(leads: Sequence[Lead]) -> Dict:
    """Pure aggregation over the current leads."""
    by_status = {status: 0 for status in LEAD_STATUSES}
    by_recommendation = {rec: 0 for rec in AI_RECOMMENDATIONS}
    for lead in leads:
        by_status[lead.status] = by_status.get(lead.status, 0) + 1
        if lead.ai_recommendation:
            by_recommendation[lead.ai_recommendation] = by_recommendation.get(lead.ai_recommendation, 0) + 1

    return {
        'total': len(leads),
        'with_email': sum(1 for lead in leads if lead.email),
        'email_sent': sum(1 for lead in leads if lead.email_sent),
        'email_approved': sum(1 for lead in leads if lead.email_approved),
        'ai_analyzed': sum(1 for lead in leads if lead.ai_score is not None),
        'by_status': by_status,
        'by_recommendation': by_recommendation,
    }


class BackupSink:
    """
    Writes timestamped backups and dated export files.

    Args:
        backup_dir: where leads-backup-<timestamp>.csv files go
        export_dir: where dated export files go
        mirror:     optional callable(path) for an off-site copy of each backup
                    (e.g. R2 upload); failures are logged and ignored
    """

    def __init__(self, backup_dir: str, export_dir: str, mirror: Optional[Callable[[str], object]] = None):
        self.backup_dir = backup_dir
        self.export_dir = export_dir
        self.mirror = mirror

    # ── Backups ───────────────────────────────────────────────────────

    def write_backup(self, content: str) -> Optional[str]:
        """Write a full copy of the serialized store. Returns the path, or None on failure."""
        try:
            os.makedirs(self.backup_dir, exist_ok=True)
            stamp = _backup_stamp()
            path = os.path.join(self.backup_dir, f'leads-backup-{stamp}.csv')
            suffix = 1
            while True:
                try:
                    # 'x' keeps backups write-once even within the same millisecond
                    with open(path, 'x', encoding='utf-8') as f:
                        f.write(content)
                    break
                except FileExistsError:
                    path = os.path.join(self.backup_dir, f'leads-backup-{stamp}-{suffix}.csv')
                    suffix += 1
        except OSError as e:
            logger.error("Backup failed: %s", e)
            return None

        if self.mirror:
            try:
                self.mirror(path)
            except Exception as e:
                logger.warning("Backup mirror failed for %s: %s", path, e)

        logger.debug("Backup written: %s", path)
        return path

    def list_backups(self) -> List[str]:
        """Backup file paths, oldest first."""
        if not os.path.isdir(self.backup_dir):
            return []
        names = sorted(n for n in os.listdir(self.backup_dir) if n.startswith('leads-backup-'))
        return [os.path.join(self.backup_dir, n) for n in names]

    # ── Exports ───────────────────────────────────────────────────────

    def _write_export(self, filename: str, content: str) -> str:
        os.makedirs(self.export_dir, exist_ok=True)
        path = os.path.join(self.export_dir, filename)
        with open(path, 'w', encoding='utf-8') as f:
            f.write(content)
        return path

    def export_full(self, leads: Sequence[Lead]) -> str:
        """Dump every lead with human-readable headers to a dated file."""
        path = self._write_export(
            f'leads-export-{_today()}.csv',
            codec.encode_table(leads, headers=EXPORT_HEADERS),
        )
        logger.info("Exported %d leads to %s", len(leads), path)
        return path

    def export_campaign_subset(self, leads: Sequence[Lead]) -> str:
        """Dump only the leads that are ready for outreach."""
        ready = [lead for lead in leads if is_ready_for_campaign(lead)]
        lines = [','.join(CAMPAIGN_HEADERS)]
        for lead in ready:
            lines.append(codec.write_row([
                lead.id,
                lead.github_username,
                lead.email or '',
                lead.repo_name,
                lead.repo_url,
                lead.repo_description,
                lead.last_activity,
                OUTREACH_SUBJECT,
                lead.status,
            ]))
        path = self._write_export(f'campaign-export-{_today()}.csv', '\n'.join(lines))
        logger.info("Exported %d campaign-ready leads (of %d) to %s", len(ready), len(leads), path)
        return path

    def export_analytics(self, leads: Sequence[Lead]) -> Dict:
        """Compute the analytics summary and write it out as JSON."""
        summary = compute_analytics(leads)
        summary['generated_at'] = datetime.now(timezone.utc).isoformat()
        path = self._write_export(f'analytics-{_today()}.json', json.dumps(summary, indent=2))
        summary['path'] = path
        logger.info("Analytics written to %s (total=%d)", path, summary['total'])
        return summary
