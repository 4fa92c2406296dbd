"""
Notification helpers for sending WebSocket messages to connected clients.

This module provides functions to:
- Send an event to one user's live connection (looked up in the presence registry)
- Broadcast an event to every connected client
- Mirror ride and token events from synchronous code (views, services, tasks)

Delivery is best-effort and at-most-once: a user who is not connected simply
misses the event.
"""

from __future__ import annotations

import logging
from typing import Dict, Any, Optional

from asgiref.sync import async_to_sync
from channels.layers import get_channel_layer

from .presence import get_presence_registry

logger = logging.getLogger(__name__)

BROADCAST_GROUP = "relay_broadcast"


def relay_message(event: str, data: Dict[str, Any], sender_channel: Optional[str] = None) -> Dict[str, Any]:
    """Channel-layer message handled by RelayConsumer.relay_event."""
    return {
        "type": "relay.event",
        "event": event,
        "data": data,
        "sender_channel": sender_channel,
    }


async def send_to_user(user_id: int, event: str, data: Dict[str, Any], channel_layer=None) -> bool:
    """
    Deliver an event to the user's registered connection.

    Returns:
        True if the user was connected, False if the event was dropped
    """
    channel_name = await get_presence_registry().lookup(user_id)
    if not channel_name:
        logger.debug("Dropped %s for user %s: not connected", event, user_id)
        return False

    channel_layer = channel_layer or get_channel_layer()
    await channel_layer.send(channel_name, relay_message(event, data))
    return True


async def broadcast_event(
    event: str,
    data: Dict[str, Any],
    sender_channel: Optional[str] = None,
    channel_layer=None,
):
    """Send an event to every connected client except the sender."""
    channel_layer = channel_layer or get_channel_layer()
    await channel_layer.group_send(BROADCAST_GROUP, relay_message(event, data, sender_channel))


def notify_user_event(user_id: int, event: str, data: Dict[str, Any]) -> bool:
    """
    Synchronous counterpart of send_to_user, safe to call from request code.

    The recipient is looked up with the registry's blocking client; only the
    channel-layer send runs through async_to_sync.

    Never raises: a relay failure must not fail the ride or token operation
    that triggered it.
    """
    try:
        channel_name = get_presence_registry().lookup_sync(user_id)
        if not channel_name:
            logger.debug("Dropped %s for user %s: not connected", event, user_id)
            return False

        async_to_sync(get_channel_layer().send)(channel_name, relay_message(event, data))
        return True
    except Exception:
        logger.exception("Failed to send %s to user %s", event, user_id)
        return False
