"""Shared fixtures: an in-memory store and sockets that record what they were sent."""
from datetime import timedelta
import itertools

import pytest

from backend.models import Message, MessageType, UserProfile, utcnow
from backend.rooms import Connection, RoomBroadcaster
from backend.store import StoreError


class FakeStore:
    """Implements the MongoStore methods the server calls, in memory."""

    def __init__(self):
        self.messages = []
        self.users = {}
        self.presence_writes = []
        self.fail_writes = False
        self.fail_reads = False
        # when set, presence writes wait for it
        self.gate = None
        self._ids = itertools.count(1)
        self._clock = utcnow()

    def _now(self):
        # strictly increasing so ordering assertions are deterministic
        self._clock += timedelta(milliseconds=1)
        return self._clock

    async def insert_message(self, room, author, content, type=MessageType.text):
        if self.fail_writes:
            raise StoreError('insert failed')
        msg = Message(id=f'm{next(self._ids)}', room=room, author=author, content=content,
                      type=type, created_at=self._now())
        self.messages.append(msg)
        return msg

    async def find_messages(self, room, limit=50):
        if self.fail_reads:
            raise StoreError('find failed')
        in_room = [m for m in self.messages if m.room == room]
        return in_room[-limit:]

    async def update_user_presence(self, user_id, is_online, last_seen):
        if self.gate is not None:
            await self.gate.wait()
        if self.fail_writes:
            raise StoreError('update failed')
        self.presence_writes.append((user_id, is_online))
        user = self.users.get(user_id)
        if user is None:
            return False
        user.is_online = is_online
        user.last_seen = last_seen
        return True

    async def find_user(self, user_id):
        if self.fail_reads:
            raise StoreError('find failed')
        return self.users.get(user_id)

    def add_user(self, user_id, name, email):
        self.users[user_id] = UserProfile(id=user_id, name=name, email=email)
        return self.users[user_id]

    async def ping(self):
        pass

    async def ensure_indexes(self):
        pass

    def close(self):
        pass


class FakeSocket:
    def __init__(self, broken=False):
        self.sent = []
        self.broken = broken

    async def send_json(self, data):
        if self.broken:
            raise RuntimeError('socket closed')
        self.sent.append(data)

    def events(self, name=None):
        return [f for f in self.sent if name is None or f['type'] == name]


@pytest.fixture
def anyio_backend() -> str:
    return 'asyncio'


@pytest.fixture
def store():
    return FakeStore()


@pytest.fixture
def broadcaster(store):
    return RoomBroadcaster(store)


@pytest.fixture
def make_conn(broadcaster):
    """Create a connection registered with the broadcaster."""
    def factory(broken=False):
        conn = Connection(FakeSocket(broken=broken))
        broadcaster.connect(conn)
        return conn
    return factory
