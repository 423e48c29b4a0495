"""
Circuit breaker with Redis-backed state, one per external collaborator.

States:
  - CLOSED    → calls pass through
  - OPEN      → too many consecutive failures, calls short-circuit with CircuitOpenError
  - HALF_OPEN → after reset_timeout, the next call is let through as a probe

A Redis outage never blocks calls: every state lookup fails open to CLOSED.
Health counters live in a Redis hash per breaker for the /api/health endpoint.
"""
import logging
import time
from functools import wraps

logger = logging.getLogger('services.circuit_breaker')

CLOSED = 'closed'
OPEN = 'open'
HALF_OPEN = 'half_open'


class CollaboratorFailure(Exception):
    """An external service (GitHub, OpenAI, Resend, Sheets) call failed."""

    def __init__(self, service, message=''):
        self.service = service
        super().__init__(f"{service}: {message}" if message else service)


class CircuitOpenError(CollaboratorFailure):
    """Raised when calling through an open circuit breaker."""

    def __init__(self, name, retry_after=None):
        self.name = name
        self.retry_after = retry_after
        super().__init__(name, 'circuit breaker is OPEN, service unavailable')


class CircuitBreaker:
    """
    Usage:
        cb = CircuitBreaker('github', redis_client, failure_threshold=5, reset_timeout=120)
        repos = cb.call(session.get, url, params=params)
    """

    PREFIX = 'cb'

    def __init__(self, name, redis_client, failure_threshold=3, reset_timeout=300):
        self.name = name
        self.redis = redis_client
        self.failure_threshold = failure_threshold
        self.reset_timeout = reset_timeout

    # ── Redis keys ────────────────────────────────────────────────────

    def _key(self, suffix):
        return f'{self.PREFIX}:{self.name}:{suffix}'

    # ── State ─────────────────────────────────────────────────────────

    @property
    def state(self):
        try:
            s = self.redis.get(self._key('state'))
            if s is None:
                return CLOSED
            if s == OPEN:
                last = self.redis.get(self._key('last_failure'))
                if last and (time.time() - float(last)) > self.reset_timeout:
                    self._set_state(HALF_OPEN)
                    return HALF_OPEN
            return s
        except Exception:
            return CLOSED

    def _set_state(self, new_state):
        try:
            self.redis.set(self._key('state'), new_state)
        except Exception:
            logger.debug("Could not persist state for circuit '%s'", self.name)

    @property
    def failure_count(self):
        try:
            val = self.redis.get(self._key('failures'))
            return int(val) if val else 0
        except Exception:
            return 0

    def get_health(self):
        """Health metrics dict for this service."""
        health = {
            'name': self.name,
            'state': 'unknown',
            'failure_count': 0,
            'failure_threshold': self.failure_threshold,
            'reset_timeout': self.reset_timeout,
            'total_success': 0,
            'total_failure': 0,
            'last_error': '',
        }
        try:
            data = self.redis.hgetall(self._key('health'))
            health.update({
                'state': self.state,
                'failure_count': self.failure_count,
                'total_success': int(data.get('success', 0)),
                'total_failure': int(data.get('failure', 0)),
                'last_error': data.get('last_error', ''),
            })
        except Exception:
            logger.debug("Health lookup failed for circuit '%s'", self.name)
        return health

    # ── Calls ─────────────────────────────────────────────────────────

    def call(self, func, *args, **kwargs):
        """Execute func through the breaker. Exceptions from func are re-raised unchanged."""
        if self.state == OPEN:
            retry_after = None
            try:
                last = self.redis.get(self._key('last_failure'))
                if last:
                    retry_after = max(0, self.reset_timeout - (time.time() - float(last)))
            except Exception:
                pass
            raise CircuitOpenError(self.name, retry_after=retry_after)

        try:
            result = func(*args, **kwargs)
        except Exception as e:
            self._on_failure(e)
            raise
        self._on_success()
        return result

    def _on_success(self):
        try:
            pipe = self.redis.pipeline()
            pipe.set(self._key('state'), CLOSED)
            pipe.set(self._key('failures'), 0)
            pipe.hincrby(self._key('health'), 'success', 1)
            pipe.execute()
        except Exception:
            logger.debug("Could not record success for circuit '%s'", self.name)

    def _on_failure(self, error):
        try:
            new_count = self.redis.incr(self._key('failures'))
            self.redis.set(self._key('last_failure'), str(time.time()))
            pipe = self.redis.pipeline()
            pipe.hincrby(self._key('health'), 'failure', 1)
            pipe.hset(self._key('health'), 'last_error', str(error)[:200])
            pipe.execute()
        except Exception:
            logger.debug("Could not record failure for circuit '%s'", self.name)
            return

        if new_count >= self.failure_threshold:
            self._set_state(OPEN)
            logger.warning(
                "Circuit '%s' OPENED after %d failures (threshold=%d): %s",
                self.name, new_count, self.failure_threshold, error,
            )
        else:
            logger.info("Circuit '%s' failure %d/%d: %s", self.name, new_count, self.failure_threshold, error)

    def reset(self):
        try:
            pipe = self.redis.pipeline()
            pipe.set(self._key('state'), CLOSED)
            pipe.set(self._key('failures'), 0)
            pipe.delete(self._key('last_failure'))
            pipe.execute()
            logger.info("Circuit '%s' manually reset to CLOSED", self.name)
        except Exception as e:
            logger.error("Failed to reset circuit '%s': %s", self.name, e)

    def protect(self, func):
        """Decorator form."""
        @wraps(func)
        def wrapper(*args, **kwargs):
            return self.call(func, *args, **kwargs)
        return wrapper


# ── Registry ─────────────────────────────────────────────────────────────────

# name → (failure_threshold, reset_timeout)
BREAKER_SETTINGS = {
    'github': (5, 120),
    'openai': (5, 60),
    'resend': (3, 180),
    'sheets': (3, 300),
    'instantly': (3, 300),
}

_registry = {}


def get_breaker(name, redis_client=None, **kwargs):
    """Get or create a named circuit breaker (one per name per process)."""
    if name not in _registry:
        if redis_client is None:
            from leadgen.extensions import redis_client as rc
            redis_client = rc
        threshold, timeout = BREAKER_SETTINGS.get(name, (3, 300))
        kwargs.setdefault('failure_threshold', threshold)
        kwargs.setdefault('reset_timeout', timeout)
        _registry[name] = CircuitBreaker(name, redis_client, **kwargs)
    return _registry[name]


def get_all_breakers():
    return dict(_registry)


def init_breakers(redis_client):
    """Create the standard breakers for every collaborator."""
    breakers = {
        name: CircuitBreaker(name, redis_client, failure_threshold=threshold, reset_timeout=timeout)
        for name, (threshold, timeout) in BREAKER_SETTINGS.items()
    }
    _registry.update(breakers)
    return breakers
