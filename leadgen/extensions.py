"""
Process-wide clients: Redis (runs, breaker state, RQ), R2 for off-site
backup copies, OpenAI for lead scoring.

Each is built once at import time without opening a connection. R2 and
OpenAI are optional: they stay None when their credentials are missing, and
the features that need them degrade (backups stay local, scoring falls back
to the neutral result).
"""
import logging

import boto3
import redis
from botocore.client import Config
from openai import OpenAI

from leadgen import config

logger = logging.getLogger('leadgen.extensions')


def build_redis(url=None):
    return redis.from_url(url or config.REDIS_URL, decode_responses=True)


def build_r2():
    """S3-compatible client for the backup bucket, or None when R2 is not configured."""
    if not (config.R2_ACCESS_KEY_ID and config.R2_SECRET_ACCESS_KEY and config.R2_ENDPOINT_URL):
        logger.debug("R2 credentials not set, backups stay local")
        return None
    try:
        client = boto3.client(
            's3',
            endpoint_url=config.R2_ENDPOINT_URL,
            aws_access_key_id=config.R2_ACCESS_KEY_ID,
            aws_secret_access_key=config.R2_SECRET_ACCESS_KEY,
            config=Config(signature_version='s3v4', retries={'max_attempts': 3}),
            region_name='auto',
        )
    except Exception as e:
        logger.error("R2 client not created, backups stay local: %s", e)
        return None
    logger.info("R2 backup mirror enabled (bucket=%s)", config.R2_BUCKET_NAME)
    return client


def build_openai():
    if not config.OPENAI_API_KEY:
        logger.warning("OPENAI_API_KEY not set, lead scoring will use the neutral fallback")
        return None
    return OpenAI(api_key=config.OPENAI_API_KEY, timeout=60, max_retries=2)


redis_client = build_redis()
r2_client = build_r2()
openai_client = build_openai()


def client_status():
    """Which optional clients are configured, for /api/health."""
    return {
        'r2': r2_client is not None,
        'openai': openai_client is not None,
    }
