"""
Realtime app: the presence / event relay over WebSockets.

This app provides:
- A WebSocket consumer that relays ride, chat and location events between users
- A presence registry mapping each user to their single live connection
- Notification helpers for sending events from server-side code
- JWT authentication middleware for WebSocket connections

Key Components:
    - presence.py: in-memory and Redis presence registries
    - consumers/: BaseConsumer and RelayConsumer
    - notifications.py: send_to_user, broadcast_event, notify_user_event

Usage:
    from realtime.consumers import RelayConsumer
    from realtime.notifications import notify_user_event
"""
