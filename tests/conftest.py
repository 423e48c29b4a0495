"""Shared test fixtures."""
import pytest
from unittest.mock import patch, MagicMock

from leadgen.models.lead import Lead


# ── Fake Redis ───────────────────────────────────────────────────────────────

class FakeRedis:
    """Minimal in-memory Redis fake: strings, hashes and sorted sets."""

    def __init__(self):
        self.get_store = {}
        self.hash_store = {}
        self.zset_store = {}

    def get(self, key):
        return self.get_store.get(key)

    def set(self, key, value):
        self.get_store[key] = str(value)

    def setex(self, key, ttl, value):
        self.get_store[key] = value

    def incr(self, key):
        val = int(self.get_store.get(key, 0)) + 1
        self.get_store[key] = str(val)
        return val

    def delete(self, *keys):
        for k in keys:
            self.get_store.pop(k, None)
            self.hash_store.pop(k, None)

    def hset(self, key, field, value):
        self.hash_store.setdefault(key, {})[field] = value

    def hincrby(self, key, field, amount):
        h = self.hash_store.setdefault(key, {})
        h[field] = str(int(h.get(field, 0)) + amount)

    def hgetall(self, key):
        return dict(self.hash_store.get(key, {}))

    def zadd(self, key, mapping):
        self.zset_store.setdefault(key, {}).update(mapping)

    def zrevrange(self, key, start, end):
        members = sorted(self.zset_store.get(key, {}).items(), key=lambda kv: kv[1], reverse=True)
        names = [m for m, _ in members]
        return names[start:] if end == -1 else names[start:end + 1]

    def zrem(self, key, *members):
        for m in members:
            self.zset_store.get(key, {}).pop(m, None)

    def pipeline(self):
        return FakePipeline(self)


class FakePipeline:
    """Fake Redis pipeline that replays queued calls on execute()."""

    def __init__(self, redis):
        self._redis = redis
        self._ops = []

    def __getattr__(self, name):
        def queue(*args):
            self._ops.append((name, args))
            return self
        return queue

    def execute(self):
        for name, args in self._ops:
            getattr(self._redis, name)(*args)
        self._ops = []


@pytest.fixture
def fake_redis():
    """In-memory Redis fake with dict-backed storage."""
    return FakeRedis()


@pytest.fixture
def mock_redis():
    """Mock Redis client. Returns a MagicMock with common Redis methods."""
    mock = MagicMock()
    mock.get.return_value = None
    mock.setex.return_value = True
    mock.zadd.return_value = 1
    mock.zrevrange.return_value = []
    with patch('leadgen.extensions.redis_client', mock), patch('leadgen.models.run.r', mock):
        yield mock


@pytest.fixture(autouse=True)
def breakers(fake_redis):
    """Every collaborator gets a fresh breaker on the in-memory Redis."""
    from leadgen.services.circuit_breaker import init_breakers
    return init_breakers(fake_redis)


@pytest.fixture(autouse=True)
def no_sleep():
    """Rate-limit delays are skipped in tests."""
    with patch('time.sleep') as sleep:
        yield sleep


# ── Lead store ───────────────────────────────────────────────────────────────

@pytest.fixture
def store(tmp_path):
    """Empty LeadStore rooted in a temp directory."""
    from leadgen.store.lead_store import LeadStore
    return LeadStore(str(tmp_path / 'data'))


@pytest.fixture
def app_store(store):
    """Make `store` the process-wide store returned by get_store()."""
    with patch('leadgen.store.lead_store._store', store):
        yield store


@pytest.fixture
def make_lead():
    """Factory fixture: an unsaved Lead with sensible defaults."""
    def _make(**overrides):
        defaults = dict(
            id='lead-001',
            github_username='octo',
            repo_name='n8n-workflows',
            repo_url='https://github.com/octo/n8n-workflows',
            repo_description='A collection of n8n workflows',
            email='octo@example.com',
            last_activity='2026-01-10T12:00:00Z',
            created_at='2026-01-15T10:00:00.000Z',
        )
        defaults.update(overrides)
        return Lead(**defaults)
    return _make


@pytest.fixture
def add_lead(store):
    """Insert a lead into `store` and return the stored record."""
    def _add(github_username='octo', repo_name='n8n-workflows', **fields):
        lead = store.insert({
            'github_username': github_username,
            'repo_name': repo_name,
            'email': f'{github_username}@example.com',
            **fields,
        })
        assert lead, f'{github_username}/{repo_name} already stored'
        return lead
    return _add


# ── Flask ────────────────────────────────────────────────────────────────────

@pytest.fixture
def app(fake_redis, app_store):
    """Flask test app backed by a temp store and fake Redis, with no password."""
    with patch('leadgen.extensions.redis_client', fake_redis), \
            patch('leadgen.models.run.r', fake_redis), \
            patch('leadgen.config.DASHBOARD_PASSWORD', None):
        from leadgen import create_app
        app = create_app()
        app.config['TESTING'] = True
        yield app


@pytest.fixture
def client(app):
    """Flask test client."""
    with app.test_client() as c:
        yield c
