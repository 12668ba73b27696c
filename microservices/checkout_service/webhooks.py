"""
Webhook event parsing

Maps a verified provider event (already decoded JSON) onto the closed
PaymentEvent variant. Anything not listed here becomes Unrecognized and is
acknowledged without touching state.
"""

import logging
from typing import Any, Dict

from .models import PaymentEvent, PaymentSucceeded, SessionExpired, Unrecognized

logger = logging.getLogger(__name__)

SUCCEEDED_TYPES = frozenset({
    "checkout.session.completed",
    "checkout.session.async_payment_succeeded",
})
EXPIRED_TYPES = frozenset({
    "checkout.session.expired",
})


def parse_event(payload: Dict[str, Any]) -> PaymentEvent:
    """Turn a provider event dict into PaymentSucceeded / SessionExpired / Unrecognized"""
    event_type = payload.get("type")
    event_id = payload.get("id")

    data = payload.get("data")
    obj = data.get("object") if isinstance(data, dict) else None
    session_id = obj.get("id") if isinstance(obj, dict) else None

    if event_type in SUCCEEDED_TYPES or event_type in EXPIRED_TYPES:
        if not isinstance(session_id, str) or not session_id:
            logger.warning(f"Event {event_id} ({event_type}) carries no session id")
            return Unrecognized(event_id=event_id, event_type=event_type)

        if event_type in SUCCEEDED_TYPES:
            # checkout.session.completed also fires for delayed methods that
            # are still unpaid; fulfillment re-reads the session either way.
            return PaymentSucceeded(event_id=event_id, session_id=session_id)
        return SessionExpired(event_id=event_id, session_id=session_id)

    return Unrecognized(event_id=event_id, event_type=event_type)
