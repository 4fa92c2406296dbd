"""
Event relay consumer.

One socket per user. Clients send ``{"type": <event>, ...fields}`` and the
relay forwards to a single recipient (looked up in the presence registry) or
broadcasts to every other connected client. Nothing here is authoritative:
rides, ratings and tokens only change through the REST API.
"""

import logging
from typing import Dict, Any, Optional

from channels.db import database_sync_to_async
from django.contrib.auth import get_user_model
from django.utils import timezone

from ..notifications import BROADCAST_GROUP, broadcast_event, send_to_user
from ..presence import get_presence_registry
from .base import BaseConsumer

User = get_user_model()
logger = logging.getLogger(__name__)

# inbound type -> (outbound event, payload field naming the recipient)
POINT_TO_POINT_EVENTS = {
    "ride_request": ("new_ride_request", "driverId"),
    "ride_accept": ("ride_accepted", "riderId"),
    "ride_reject": ("ride_rejected", "riderId"),
    "ride_status_update": ("ride_status_changed", "targetUserId"),
    "send_message": ("new_message", "recipientId"),
}


def _now() -> str:
    return timezone.now().isoformat()


def _coerce_user_id(value) -> Optional[int]:
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


class RelayConsumer(BaseConsumer):
    """
    WebSocket consumer for the presence/event relay.

    Handles:
        - Presence registration (last connection wins)
        - Point-to-point ride and chat events
        - Broadcast location, availability and emergency events
    """

    async def on_connect(self):
        """Register this connection and join the broadcast group."""
        self.registry = get_presence_registry()
        replaced = await self.registry.register(self.user_id, self.channel_name)
        if replaced and replaced != self.channel_name:
            logger.debug("User %s reconnected, replacing %s", self.user_id, replaced)

        await self._join_group(BROADCAST_GROUP)
        logger.info("User %s connected to relay", self.user_id)

        await self.send_json({
            "type": "connection_established",
            "user_id": self.user_id,
            "role": self.role,
        })

    async def on_disconnect(self, close_code):
        """Drop the registry entry (if still ours), stamp last_seen, tell everyone."""
        removed = await self.registry.remove(self.user_id, self.channel_name)
        await self._touch_last_seen()
        logger.info("User %s disconnected from relay", self.user_id)

        # A newer connection for the same user is still online
        if removed:
            await broadcast_event(
                "user_disconnected",
                {"userId": self.user_id, "timestamp": _now()},
                sender_channel=self.channel_name,
                channel_layer=self.channel_layer,
            )

    async def handle_message(self, msg_type: str, data: Dict[str, Any]):
        """Dispatch an inbound client event."""
        if msg_type in POINT_TO_POINT_EVENTS:
            await self._relay_to_recipient(msg_type, data)
        elif msg_type == "location_update":
            await self._handle_location_update(data)
        elif msg_type == "emergency_alert":
            await self._handle_emergency_alert(data)
        elif msg_type == "toggle_availability":
            await self._handle_toggle_availability(data)
        else:
            await self.send_error(f"Unknown message type: {msg_type}")

    # ---------------------- Point-to-point ----------------------

    async def _relay_to_recipient(self, msg_type: str, data: Dict[str, Any]):
        event, recipient_field = POINT_TO_POINT_EVENTS[msg_type]
        recipient_id = _coerce_user_id(data.get(recipient_field))
        if recipient_id is None:
            await self.send_error(f"{msg_type} requires {recipient_field}")
            return

        payload = self._build_payload(msg_type, data)
        await send_to_user(recipient_id, event, payload, channel_layer=self.channel_layer)

    def _build_payload(self, msg_type: str, data: Dict[str, Any]) -> Dict[str, Any]:
        if msg_type == "ride_request":
            payload = {"riderId": self.user_id, "rideDetails": data.get("rideDetails")}
        elif msg_type == "ride_accept":
            payload = {"driverId": self.user_id, "rideId": data.get("rideId")}
        elif msg_type == "ride_reject":
            payload = {"driverId": self.user_id, "rideId": data.get("rideId"), "reason": data.get("reason")}
        elif msg_type == "ride_status_update":
            payload = {"rideId": data.get("rideId"), "status": data.get("status"), "updatedBy": self.user_id}
        else:
            payload = {"rideId": data.get("rideId"), "message": data.get("message"), "senderId": self.user_id}
        payload["timestamp"] = _now()
        return payload

    # ---------------------- Broadcasts ----------------------

    async def _handle_location_update(self, data: Dict[str, Any]):
        lat = data.get("lat")
        lng = data.get("lng")
        try:
            lat = float(lat)
            lng = float(lng)
        except (TypeError, ValueError):
            await self.send_error("location_update requires lat and lng")
            return
        if not (-90 <= lat <= 90 and -180 <= lng <= 180):
            await self.send_error("location_update coordinates out of range")
            return

        if not await self._update_location_db(lat, lng, data.get("address")):
            await self.send_error("Failed to update location")
            return

        await broadcast_event(
            "user_location_update",
            {"userId": self.user_id, "location": {"lat": lat, "lng": lng}, "timestamp": _now()},
            sender_channel=self.channel_name,
            channel_layer=self.channel_layer,
        )

    async def _handle_emergency_alert(self, data: Dict[str, Any]):
        logger.warning(
            "EMERGENCY ALERT from user %s: ride=%s type=%s location=%s",
            self.user_id, data.get("rideId"), data.get("type"), data.get("location"),
        )
        await broadcast_event(
            "emergency_alert",
            {
                "userId": self.user_id,
                "rideId": data.get("rideId"),
                "location": data.get("location"),
                "type": data.get("type"),
                "timestamp": _now(),
            },
            sender_channel=self.channel_name,
            channel_layer=self.channel_layer,
        )

    async def _handle_toggle_availability(self, data: Dict[str, Any]):
        available = data.get("available")
        if not isinstance(available, bool):
            await self.send_error("toggle_availability requires a boolean 'available'")
            return

        if not await self._update_availability_db(available):
            await self.send_error("Failed to update availability")
            return

        await broadcast_event(
            "driver_availability_changed",
            {"driverId": self.user_id, "available": available, "timestamp": _now()},
            sender_channel=self.channel_name,
            channel_layer=self.channel_layer,
        )

    # ---------------------- Event Handlers (from the channel layer) ----------------------

    async def relay_event(self, event):
        """Forward a relayed event to the client, skipping the sender of a broadcast."""
        if event.get("sender_channel") == self.channel_name:
            return
        await self.send_json({"type": event["event"], **event.get("data", {})})

    # ---------------------- Database Helpers ----------------------

    @database_sync_to_async
    def _update_location_db(self, lat: float, lng: float, address: Optional[str]) -> bool:
        """Store the user's current location (last write wins)."""
        updates = {
            "current_latitude": round(lat, 6),
            "current_longitude": round(lng, 6),
            "location_updated_at": timezone.now(),
        }
        if address:
            updates["address"] = str(address)[:255]
        try:
            User.objects.filter(pk=self.user_id).update(**updates)
            return True
        except Exception:
            logger.exception("Failed to update location for user %s", self.user_id)
            return False

    @database_sync_to_async
    def _update_availability_db(self, available: bool) -> bool:
        try:
            User.objects.filter(pk=self.user_id).update(
                is_available=available,
                availability_updated_at=timezone.now(),
            )
            return True
        except Exception:
            logger.exception("Failed to update availability for user %s", self.user_id)
            return False

    @database_sync_to_async
    def _touch_last_seen(self):
        User.objects.filter(pk=self.user_id).update(last_seen=timezone.now())
