"""
Cloudflare R2 — off-site copies of lead store backups.
"""
import logging
import os

from leadgen.config import R2_BUCKET_NAME
from leadgen.extensions import r2_client

logger = logging.getLogger('services.r2')

BACKUP_PREFIX = 'lead-backups'


def r2_enabled() -> bool:
    return r2_client is not None and bool(R2_BUCKET_NAME)


def upload_backup(path: str) -> str:
    """Upload one backup file. Returns the object key; raises on failure."""
    if not r2_enabled():
        raise RuntimeError("R2 client not available")

    key = f"{BACKUP_PREFIX}/{os.path.basename(path)}"
    with open(path, 'rb') as f:
        r2_client.put_object(
            Bucket=R2_BUCKET_NAME, Key=key,
            Body=f.read(), ContentType='text/csv',
        )
    logger.info("Backup mirrored to R2: %s", key)
    return key
