"""
Shared fixtures. Redis is replaced by an in-memory double with a manual clock,
so expiry can be driven deterministically with ``fake_redis.advance(seconds)``.
"""
import json
import math

import pytest
from fastapi.testclient import TestClient
from redis.exceptions import WatchError

from app import create_app
from backend import RedisBackend
from services.auth import AuthorizationGate, CredentialIssuer
from services.lifecycle import LifecycleManager
from services.message_log import MessageLog
from services.room_registry import RoomRegistry

TEST_SECRET = "test-secret"


class FakePipeline:
    """Queues writes for ``execute``; reads go straight through, as after WATCH."""

    def __init__(self, redis, watches=()):
        self.redis = redis
        self.watched = {key: redis.versions.get(key, 0) for key in watches}
        self.commands = []

    def multi(self):
        pass

    def lindex(self, key, index):
        return self.redis.lindex(key, index)

    def hset(self, *args, **kwargs):
        self.commands.append(("hset", args, kwargs))
        return self

    def expire(self, *args, **kwargs):
        self.commands.append(("expire", args, kwargs))
        return self

    def rpush(self, *args, **kwargs):
        self.commands.append(("rpush", args, kwargs))
        return self

    def execute(self):
        if any(self.redis.versions.get(key, 0) != version for key, version in self.watched.items()):
            raise WatchError("Watched variable changed.")
        return [getattr(self.redis, name)(*args, **kwargs) for name, args, kwargs in self.commands]


class FakeRedis:
    """Just enough of redis.Redis (decode_responses=True) for the room services."""

    def __init__(self):
        self.now = 1_700_000_000.0
        self.data = {}
        self.expires_at = {}
        # Bumped on every write, for WATCH
        self.versions = {}
        self.published = []
        self.calls = []

    def time(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds

    def _touch(self, key):
        self.versions[key] = self.versions.get(key, 0) + 1

    def _alive(self, key):
        deadline = self.expires_at.get(key)
        if deadline is not None and deadline <= self.now:
            self.data.pop(key, None)
            self.expires_at.pop(key, None)
            self._touch(key)
        return key in self.data

    def pipeline(self, transaction=True):
        return FakePipeline(self)

    def transaction(self, func, *watches):
        while True:
            pipe = FakePipeline(self, watches)
            func(pipe)
            try:
                return pipe.execute()
            except WatchError:
                continue

    def ping(self):
        return True

    def close(self):
        pass

    def hset(self, key, mapping):
        self.calls.append(("hset", key))
        self._alive(key)
        self.data.setdefault(key, {}).update(mapping)
        self._touch(key)
        return len(mapping)

    def hgetall(self, key):
        return dict(self.data[key]) if self._alive(key) else {}

    def expire(self, key, seconds):
        self.calls.append(("expire", key))
        if not self._alive(key):
            return False
        self.expires_at[key] = self.now + seconds
        self._touch(key)
        return True

    def pexpireat(self, key, when_ms):
        self.calls.append(("pexpireat", key))
        if not self._alive(key):
            return False
        self.expires_at[key] = when_ms / 1000
        self._touch(key)
        self._alive(key)
        return True

    def ttl(self, key):
        if not self._alive(key):
            return -2
        if key not in self.expires_at:
            return -1
        # Redis rounds the remaining milliseconds to the nearest second
        return math.floor(self.expires_at[key] - self.now + 0.5)

    def pexpiretime(self, key):
        if not self._alive(key):
            return -2
        if key not in self.expires_at:
            return -1
        return round(self.expires_at[key] * 1000)

    def exists(self, *keys):
        return sum(1 for key in keys if self._alive(key))

    def delete(self, *keys):
        self.calls.append(("delete",) + keys)
        deleted = 0
        for key in keys:
            if self._alive(key):
                del self.data[key]
                deleted += 1
                self._touch(key)
            self.expires_at.pop(key, None)
        return deleted

    def rpush(self, key, *values):
        self.calls.append(("rpush", key))
        self._alive(key)
        items = self.data.setdefault(key, [])
        items.extend(values)
        self._touch(key)
        return len(items)

    def lindex(self, key, index):
        if not self._alive(key):
            return None
        items = self.data[key]
        try:
            return items[index]
        except IndexError:
            return None

    def lrange(self, key, start, end):
        if not self._alive(key):
            return []
        items = self.data[key]
        return items[start:] if end == -1 else items[start:end + 1]

    def publish(self, channel, message):
        self.calls.append(("publish", channel))
        self.published.append((channel, json.loads(message)))
        return 0


@pytest.fixture()
def fake_redis():
    return FakeRedis()


@pytest.fixture()
def backend(fake_redis):
    return RedisBackend(fake_redis)


@pytest.fixture()
def registry(backend):
    return RoomRegistry(backend)


@pytest.fixture()
def message_log(backend, registry, fake_redis):
    return MessageLog(backend, registry, clock=fake_redis.time)


@pytest.fixture()
def issuer():
    return CredentialIssuer(TEST_SECRET)


@pytest.fixture()
def gate(issuer):
    return AuthorizationGate(issuer)


@pytest.fixture()
def lifecycle(backend, registry, message_log, issuer):
    return LifecycleManager(backend, registry, message_log, issuer)


@pytest.fixture()
def client(backend, issuer, fake_redis):
    app = create_app(backend=backend, issuer=issuer)
    with TestClient(app) as test_client:
        # Messages are stamped on the fake clock so expiry and timestamps agree
        app.state.lifecycle.log.clock = fake_redis.time
        yield test_client
