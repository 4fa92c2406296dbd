"""
Presence registry: which live connection belongs to which user.

Each user maps to exactly one channel name. Registering again replaces the
previous entry (last connection wins). Removing with a channel name only
deletes the entry if it still points at that channel, so a stale socket
closing late never evicts a newer connection.

Implementations:
    - InMemoryPresenceRegistry: a plain dict, single process only
    - RedisPresenceRegistry: one Redis hash shared by every worker

The active implementation is chosen by the PRESENCE_REGISTRY setting.
"""

from __future__ import annotations

import asyncio
import logging
import weakref
from typing import Dict, List, Optional

import redis
import redis.asyncio as aioredis
from django.conf import settings
from django.utils.module_loading import import_string

logger = logging.getLogger(__name__)


class PresenceRegistry:
    """Interface shared by all registry backends."""

    async def register(self, user_id: int, channel_name: str) -> Optional[str]:
        """Map user to channel. Returns the channel it replaced, if any."""
        raise NotImplementedError

    async def lookup(self, user_id: int) -> Optional[str]:
        raise NotImplementedError

    def lookup_sync(self, user_id: int) -> Optional[str]:
        """Blocking lookup for request code that has no event loop of its own."""
        raise NotImplementedError

    async def remove(self, user_id: int, channel_name: Optional[str] = None) -> bool:
        """
        Drop the user's entry. With ``channel_name`` the entry is only
        dropped while it still points at that channel.
        """
        raise NotImplementedError

    async def online_user_ids(self) -> List[int]:
        raise NotImplementedError


class InMemoryPresenceRegistry(PresenceRegistry):

    # No awaits inside these methods, so each runs atomically on the event loop

    def __init__(self):
        self._connections: Dict[int, str] = {}

    async def register(self, user_id, channel_name):
        previous = self._connections.get(int(user_id))
        self._connections[int(user_id)] = channel_name
        return previous

    async def lookup(self, user_id):
        return self._connections.get(int(user_id))

    def lookup_sync(self, user_id):
        return self._connections.get(int(user_id))

    async def remove(self, user_id, channel_name=None):
        current = self._connections.get(int(user_id))
        if current is None:
            return False
        if channel_name is not None and current != channel_name:
            return False
        del self._connections[int(user_id)]
        return True

    async def online_user_ids(self):
        return list(self._connections)

    def clear(self):
        self._connections.clear()


# KEYS[1] = hash key, ARGV[1] = user id, ARGV[2] = expected channel
_COMPARE_AND_DELETE = """
if redis.call('HGET', KEYS[1], ARGV[1]) == ARGV[2] then
    return redis.call('HDEL', KEYS[1], ARGV[1])
end
return 0
"""


class RedisPresenceRegistry(PresenceRegistry):
    """
    Stores ``user_id -> channel_name`` in a single Redis hash so every
    ASGI worker sees the same registry.
    """

    def __init__(self, url: Optional[str] = None, key: Optional[str] = None):
        self.url = url or settings.REDIS_URL
        self.key = key or getattr(settings, 'PRESENCE_REDIS_KEY', 'presence:connections')
        # Async connections belong to the loop that opened them
        self._clients = weakref.WeakKeyDictionary()
        # Pooled blocking client for lookups from sync request code
        self._sync_client = None

    def _get_sync_client(self) -> redis.Redis:
        if self._sync_client is None:
            self._sync_client = redis.Redis.from_url(self.url, decode_responses=True)
        return self._sync_client

    def _get_client(self):
        loop = asyncio.get_running_loop()
        client = self._clients.get(loop)
        if client is None:
            client = aioredis.from_url(self.url, decode_responses=True)
            self._clients[loop] = client
        return client

    async def register(self, user_id, channel_name):
        client = self._get_client()
        async with client.pipeline(transaction=True) as pipe:
            pipe.hget(self.key, str(user_id))
            pipe.hset(self.key, str(user_id), channel_name)
            previous, _ = await pipe.execute()
        return previous

    async def lookup(self, user_id):
        return await self._get_client().hget(self.key, str(user_id))

    def lookup_sync(self, user_id):
        return self._get_sync_client().hget(self.key, str(user_id))

    async def remove(self, user_id, channel_name=None):
        client = self._get_client()
        if channel_name is None:
            return bool(await client.hdel(self.key, str(user_id)))
        removed = await client.eval(_COMPARE_AND_DELETE, 1, self.key, str(user_id), channel_name)
        return bool(removed)

    async def online_user_ids(self):
        return [int(uid) for uid in await self._get_client().hkeys(self.key)]


_registry: Optional[PresenceRegistry] = None


def get_presence_registry() -> PresenceRegistry:
    """Process-wide registry instance built from settings.PRESENCE_REGISTRY."""
    global _registry
    if _registry is None:
        registry_class = import_string(settings.PRESENCE_REGISTRY)
        _registry = registry_class()
        logger.debug("Presence registry: %s", settings.PRESENCE_REGISTRY)
    return _registry


def reset_presence_registry():
    """Forget the cached instance (used when settings change, e.g. in tests)."""
    global _registry
    _registry = None
