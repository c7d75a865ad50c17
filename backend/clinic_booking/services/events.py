"""
backend/clinic_booking/services/events.py

Event emitter: pushes booking events to a Redis queue for notification
collaborators (chat/WhatsApp senders).

Queue:
- events:p2p: instant delivery (booking_created, booking_status_changed)
"""

import json
import logging
import time

from redis import Redis

from ..redis_client import redis_client

logger = logging.getLogger(__name__)

P2P_QUEUE = "events:p2p"


def emit_event(event_type: str, payload: dict, redis: Redis | None = None) -> None:
    """
    Emit a p2p event. Best effort: failures are logged, never raised.

    Without a configured Redis the event is dropped.
    """
    client = redis if redis is not None else redis_client
    if client is None:
        logger.debug(f"Redis not configured, event {event_type} dropped")
        return

    event = {
        "type": event_type,
        **payload,
        "ts": int(time.time()),
    }
    try:
        client.rpush(P2P_QUEUE, json.dumps(event))
        logger.info(f"Event emitted: {event_type} → {P2P_QUEUE}")
    except Exception as e:
        logger.error(f"Failed to emit event {event_type}: {e}")
