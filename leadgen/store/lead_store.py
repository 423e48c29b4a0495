"""
Lead Store — the authoritative collection of Leads in <data_dir>/leads.csv.

Every mutation is one read-modify-write of the whole file under an exclusive
fcntl lock on a sibling lock file; reads take a shared lock. The new content
is written to a temp file and swapped in with os.replace, so readers never
see a half-written file. A backup copy is handed to the BackupSink after each
successful persist.

Expected outcomes (duplicate insert, unknown id) are returned as falsy
AlreadyExists / NotFound values, not raised.

Rows that fail to decode are skipped on read but written back verbatim, at
the end of the file, by every later mutation; an operator can still repair
them by hand.
"""
import fcntl
import logging
import os
import tempfile
import uuid
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Union

from leadgen.config import DATA_DIR, LEADS_FILENAME, BACKUP_DIRNAME
from leadgen.models.lead import (
    Lead, IMMUTABLE_FIELDS, field_names, utc_now_iso,
    validate_status, validate_recommendation,
    is_new_and_unsent, is_awaiting_approval, is_missing_ai_score,
    is_ready_for_campaign, is_approval_candidate,
)
from leadgen.store import codec
from leadgen.store.backup import BackupSink
from leadgen.store.codec import MalformedRecord

logger = logging.getLogger('store.lead_store')


# ── Outcomes ─────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class AlreadyExists:
    """Insert refused: the (github_username, repo_name) pair is already stored."""
    existing: Lead

    def __bool__(self):
        return False


@dataclass(frozen=True)
class NotFound:
    """No stored lead has this id."""
    lead_id: str

    def __bool__(self):
        return False


@dataclass
class ImportResult:
    imported: int = 0
    skipped: int = 0
    errors: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {'imported': self.imported, 'skipped': self.skipped, 'errors': self.errors}


def _pair_key(github_username, repo_name):
    """The uniqueness key as stored: surrounding whitespace is not significant."""
    return (github_username or '').strip(), (repo_name or '').strip()


# ── Store ────────────────────────────────────────────────────────────────────

class LeadStore:
    """
    Flat-file lead store.

    Args:
        data_dir:    directory holding the primary file (created on first write)
        backup_sink: BackupSink for post-write backups and exports; defaults to
                     <data_dir>/backups for backups and <data_dir> for exports
        filename:    primary file name inside data_dir
    """

    def __init__(self, data_dir: str, backup_sink: Optional[BackupSink] = None,
                 filename: str = LEADS_FILENAME):
        self.data_dir = data_dir
        self.path = os.path.join(data_dir, filename)
        self.lock_path = self.path + '.lock'
        self.backup_sink = backup_sink or BackupSink(
            backup_dir=os.path.join(data_dir, BACKUP_DIRNAME),
            export_dir=data_dir,
        )
        self.last_load_errors: List[MalformedRecord] = []

    # ── Locking / raw I/O ─────────────────────────────────────────────

    @contextmanager
    def _locked(self, exclusive: bool):
        os.makedirs(self.data_dir, exist_ok=True)
        with open(self.lock_path, 'a') as lock_file:
            fcntl.flock(lock_file, fcntl.LOCK_EX if exclusive else fcntl.LOCK_SH)
            try:
                yield
            finally:
                fcntl.flock(lock_file, fcntl.LOCK_UN)

    def _read(self) -> List[Lead]:
        """Load every decodable row. Caller holds the lock."""
        if not os.path.exists(self.path):
            self.last_load_errors = []
            return []
        with open(self.path, 'r', encoding='utf-8', newline='') as f:
            text = f.read()
        leads, errors = codec.decode_table(text)
        for error in errors:
            logger.warning("Skipping malformed row in %s: %s", self.path, error)
        self.last_load_errors = errors
        return leads

    def _write(self, leads: List[Lead]):
        """
        Persist the full collection atomically, then back it up. Caller holds
        the lock and has just called _read, whose malformed rows are kept.
        """
        content = codec.encode_table(leads)
        unparsed = [error.line for error in self.last_load_errors if error.line]
        if unparsed:
            logger.warning("Keeping %d malformed rows in %s unchanged", len(unparsed), self.path)
            content = '\n'.join([content] + unparsed)
        fd, tmp_path = tempfile.mkstemp(dir=self.data_dir, prefix='.leads-', suffix='.tmp')
        try:
            with os.fdopen(fd, 'w', encoding='utf-8', newline='') as f:
                f.write(content)
            os.replace(tmp_path, self.path)
        except BaseException:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise
        self.backup_sink.write_backup(content)

    # ── Reads ─────────────────────────────────────────────────────────

    def list_all(self) -> List[Lead]:
        """Every persisted lead in file order; empty when the file does not exist yet."""
        if not os.path.exists(self.path):
            return []
        with self._locked(exclusive=False):
            return self._read()

    def get(self, lead_id: str) -> Optional[Lead]:
        for lead in self.list_all():
            if lead.id == lead_id:
                return lead
        return None

    def exists(self, github_username: str, repo_name: str) -> bool:
        key = _pair_key(github_username, repo_name)
        return any(lead.key == key for lead in self.list_all())

    def filter(self, predicate: Callable[[Lead], bool]) -> List[Lead]:
        return [lead for lead in self.list_all() if predicate(lead)]

    # Named views

    def new_and_unsent(self) -> List[Lead]:
        return self.filter(is_new_and_unsent)

    def awaiting_approval(self) -> List[Lead]:
        return self.filter(is_awaiting_approval)

    def by_status(self, status: str) -> List[Lead]:
        validate_status(status)
        return self.filter(lambda lead: lead.status == status)

    def missing_ai_score(self) -> List[Lead]:
        return self.filter(is_missing_ai_score)

    def ready_for_campaign(self) -> List[Lead]:
        return self.filter(is_ready_for_campaign)

    def approval_candidates(self) -> List[Lead]:
        return self.filter(is_approval_candidate)

    # ── Mutations ─────────────────────────────────────────────────────

    def insert(self, candidate: Union[Lead, Dict[str, Any]]) -> Union[Lead, AlreadyExists]:
        """
        Add a new lead with a fresh id and created_at.

        Any id / created_at on the candidate is ignored. Returns the stored
        Lead, or AlreadyExists carrying the record that was already there.
        """
        data = candidate.to_dict() if isinstance(candidate, Lead) else dict(candidate)
        username, repo = _pair_key(data.get('github_username'), data.get('repo_name'))
        if not username or not repo:
            raise ValueError('github_username and repo_name are required')

        data['github_username'] = username
        data['repo_name'] = repo
        data['id'] = str(uuid.uuid4())
        data['created_at'] = utc_now_iso()
        lead = codec.normalize(Lead.from_dict(data))

        with self._locked(exclusive=True):
            leads = self._read()
            for existing in leads:
                if existing.key == lead.key:
                    logger.debug("Lead %s already exists (id=%s)", lead.full_name, existing.id)
                    return AlreadyExists(existing=existing)
            leads.append(lead)
            self._write(leads)

        logger.info("Inserted lead %s (id=%s)", lead.full_name, lead.id)
        return lead

    def update(self, lead_id: str, fields: Dict[str, Any],
               check: Optional[Callable[[Lead], None]] = None) -> Union[Lead, NotFound]:
        """
        Shallow-merge `fields` over the stored lead. Unmentioned fields are untouched.

        `check` is called with the current record while the exclusive lock is
        held; an exception it raises aborts the update and propagates.
        """
        known = field_names()
        unknown = [k for k in fields if k not in known]
        if unknown:
            raise ValueError(f"Unknown lead fields: {', '.join(sorted(unknown))}")
        frozen = [k for k in fields if k in IMMUTABLE_FIELDS]
        if frozen:
            raise ValueError(f"Fields cannot be changed after insert: {', '.join(frozen)}")
        if 'status' in fields:
            validate_status(fields['status'])
        if 'ai_recommendation' in fields:
            validate_recommendation(fields['ai_recommendation'])

        with self._locked(exclusive=True):
            leads = self._read()
            for i, lead in enumerate(leads):
                if lead.id == lead_id:
                    if check is not None:
                        check(lead)
                    updated = codec.normalize(lead.merged(fields))
                    leads[i] = updated
                    self._write(leads)
                    logger.debug("Updated lead %s: %s", lead_id, sorted(fields))
                    return updated

        logger.info("Update skipped, lead %s not found", lead_id)
        return NotFound(lead_id=lead_id)

    def remove(self, predicate: Callable[[Lead], bool]) -> int:
        """Drop every lead matching predicate. Maintenance only. Returns the count removed."""
        with self._locked(exclusive=True):
            leads = self._read()
            kept = [lead for lead in leads if not predicate(lead)]
            removed = len(leads) - len(kept)
            if removed:
                self._write(kept)
        if removed:
            logger.info("Removed %d leads", removed)
        return removed

    def replace_all(self, transform: Callable[[Lead], Lead]) -> int:
        """Rewrite every lead through transform. Returns how many changed."""
        with self._locked(exclusive=True):
            leads = self._read()
            changed = 0
            result = []
            for lead in leads:
                new = transform(lead)
                if new.id != lead.id or new.created_at != lead.created_at:
                    raise ValueError('transform must not change id or created_at')
                if new != lead:
                    changed += 1
                result.append(new)
            if changed:
                self._write(result)
        return changed

    def import_csv(self, path: str) -> ImportResult:
        """
        Merge leads from another file in the same format.

        Rows whose (github_username, repo_name) pair is already stored are
        skipped; malformed rows are reported and skipped. Imported rows keep
        their original id and created_at.
        """
        with open(path, 'r', encoding='utf-8', newline='') as f:
            incoming, errors = codec.decode_table(f.read())

        result = ImportResult(errors=[str(e) for e in errors])
        with self._locked(exclusive=True):
            leads = self._read()
            seen_keys = {lead.key for lead in leads}
            seen_ids = {lead.id for lead in leads}
            for lead in incoming:
                if lead.key in seen_keys:
                    result.skipped += 1
                    continue
                if lead.id in seen_ids:
                    lead = lead.merged({'id': str(uuid.uuid4())})
                leads.append(lead)
                seen_keys.add(lead.key)
                seen_ids.add(lead.id)
                result.imported += 1
            if result.imported:
                self._write(leads)

        logger.info(
            "Imported %d leads from %s (%d skipped, %d malformed)",
            result.imported, path, result.skipped, len(result.errors),
        )
        return result

    # ── Exports ───────────────────────────────────────────────────────

    def export_full(self) -> str:
        return self.backup_sink.export_full(self.list_all())

    def export_campaign_subset(self) -> str:
        return self.backup_sink.export_campaign_subset(self.list_all())

    def export_analytics(self) -> Dict:
        return self.backup_sink.export_analytics(self.list_all())


# ── Process-wide store ───────────────────────────────────────────────────────

_store: Optional[LeadStore] = None


def get_store() -> LeadStore:
    """The store rooted at DATA_DIR, with an R2 mirror for backups when configured."""
    global _store
    if _store is None:
        from leadgen.services.r2 import upload_backup, r2_enabled
        sink = BackupSink(
            backup_dir=os.path.join(DATA_DIR, BACKUP_DIRNAME),
            export_dir=DATA_DIR,
            mirror=upload_backup if r2_enabled() else None,
        )
        _store = LeadStore(DATA_DIR, backup_sink=sink)
        logger.info("Lead store at %s", _store.path)
    return _store