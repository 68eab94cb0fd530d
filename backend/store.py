"""MongoDB persistence for chat messages and user profiles (Motor, async)."""
from datetime import datetime
from typing import List, Optional

import pymongo
from bson import ObjectId
from motor.motor_asyncio import AsyncIOMotorClient
from pymongo.errors import PyMongoError

from backend.logging_config import get_logger
from backend.models import Message, MessageType, UserProfile, utcnow

logger = get_logger(__name__)

HISTORY_LIMIT = 50


class StoreError(Exception):
    """A store operation failed; wraps the driver error."""


def _user_key(user_id: str):
    # profiles created by the auth layer use ObjectId keys
    return ObjectId(user_id) if ObjectId.is_valid(user_id) else user_id


class MongoStore:
    def __init__(self, db):
        self.db = db
        self.messages = db['messages']
        self.users = db['users']
        self._client = None

    @classmethod
    def from_url(cls, mongo_url: str, db_name: str):
        client = AsyncIOMotorClient(mongo_url, tz_aware=True)
        store = cls(client[db_name])
        store._client = client
        return store

    async def ensure_indexes(self):
        try:
            await self.messages.create_index([('room', pymongo.ASCENDING), ('createdAt', pymongo.DESCENDING)])
            await self.users.create_index('email', unique=True)
        except PyMongoError as e:
            raise StoreError(f'creating indexes failed: {e}') from e

    async def insert_message(self, room: str, author: str, content: str,
                             type: MessageType = MessageType.text) -> Message:
        doc = {
            'room': room,
            'author': author,
            'content': content,
            'type': MessageType(type).value,
            'createdAt': utcnow(),
            'delivered': False,
        }
        try:
            result = await self.messages.insert_one(doc)
        except PyMongoError as e:
            raise StoreError(f'inserting message into {room!r} failed: {e}') from e
        doc['_id'] = result.inserted_id
        return Message.model_validate(doc)

    async def find_messages(self, room: str, limit: int = HISTORY_LIMIT) -> List[Message]:
        """Return the ``limit`` most recent messages of ``room``, oldest first."""
        cursor = self.messages.find({'room': room}).sort('createdAt', pymongo.DESCENDING).limit(limit)
        try:
            docs = await cursor.to_list(length=limit)
        except PyMongoError as e:
            raise StoreError(f'loading history of {room!r} failed: {e}') from e
        docs.reverse()
        return [Message.model_validate(d) for d in docs]

    async def update_user_presence(self, user_id: str, is_online: bool, last_seen: datetime) -> bool:
        """Returns False when no profile matched ``user_id``."""
        try:
            result = await self.users.update_one(
                {'_id': _user_key(user_id)},
                {'$set': {'isOnline': is_online, 'lastSeen': last_seen, 'updatedAt': last_seen}})
        except PyMongoError as e:
            raise StoreError(f'updating presence of {user_id!r} failed: {e}') from e
        return result.matched_count > 0

    async def find_user(self, user_id: str) -> Optional[UserProfile]:
        try:
            doc = await self.users.find_one({'_id': _user_key(user_id)})
        except PyMongoError as e:
            raise StoreError(f'loading user {user_id!r} failed: {e}') from e
        if doc is None:
            return None
        return UserProfile.model_validate(doc)

    async def ping(self):
        try:
            await self.db.command('ping')
        except PyMongoError as e:
            raise StoreError(f'ping failed: {e}') from e

    def close(self):
        if self._client is not None:
            self._client.close()
