"""
NATS Event Bus

Domain event publishing over NATS (nats-py). Subjects are
``<source>.<event_type>``, e.g. ``checkout_service.order.completed``.

Usage:
    from core.nats_client import get_event_bus, Event, EventType, ServiceSource

    event_bus = await get_event_bus("checkout_service")
    await event_bus.publish_event(Event(
        event_type=EventType.ORDER_COMPLETED,
        source=ServiceSource.CHECKOUT_SERVICE,
        data={"order_id": order_id},
    ))
"""

import json
import logging
import uuid
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Optional, Union

import nats
from nats.aio.client import Client as NATSClient

from core.config import InfraConfig

logger = logging.getLogger(__name__)


class DecimalEncoder(json.JSONEncoder):
    """JSON encoder that handles Decimal and datetime values"""
    def default(self, obj):
        if isinstance(obj, Decimal):
            return str(obj)
        if isinstance(obj, datetime):
            return obj.isoformat()
        return super().default(obj)


class EventType(Enum):
    """Event types published by the marketplace core"""
    # Inventory
    INVENTORY_RESERVED = "inventory.reserved"
    INVENTORY_RELEASED = "inventory.released"
    INVENTORY_SWEPT = "inventory.swept"
    INVENTORY_RESTOCKED = "inventory.restocked"

    # Orders
    ORDER_CREATED = "order.created"
    ORDER_COMPLETED = "order.completed"
    ORDER_CANCELLED = "order.cancelled"

    # Fulfillment alerts
    FULFILLMENT_REJECTED = "fulfillment.rejected"


class ServiceSource(Enum):
    """Publishing services"""
    INVENTORY_SERVICE = "inventory_service"
    ORDER_SERVICE = "order_service"
    CHECKOUT_SERVICE = "checkout_service"


class Event:
    """Event model"""

    def __init__(
        self,
        event_type: Union[EventType, str],
        source: Union[ServiceSource, str],
        data: Dict[str, Any],
        subject: Optional[str] = None,
        metadata: Optional[Dict[str, str]] = None,
    ):
        self.id = str(uuid.uuid4())
        self.type = event_type.value if isinstance(event_type, EventType) else event_type
        self.source = source.value if isinstance(source, ServiceSource) else source
        self.data = data
        self.subject = subject
        self.timestamp = datetime.now(timezone.utc).isoformat()
        self.metadata = metadata or {}
        self.version = "1.0.0"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type,
            "source": self.source,
            "subject": self.subject,
            "timestamp": self.timestamp,
            "data": self.data,
            "metadata": self.metadata,
            "version": self.version,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Event":
        event = cls.__new__(cls)
        event.id = data.get("id")
        event.type = data.get("type")
        event.source = data.get("source")
        event.subject = data.get("subject")
        event.timestamp = data.get("timestamp")
        event.data = data.get("data", {})
        event.metadata = data.get("metadata", {})
        event.version = data.get("version", "1.0.0")
        return event


class NATSEventBus:
    """NATS event bus for a single service"""

    def __init__(self, service_name: str, url: str = "nats://localhost:4222"):
        self.service_name = service_name
        self.url = url
        self._client: Optional[NATSClient] = None

        logger.info(f"NATS EventBus initialized: {url}")

    async def connect(self):
        """Connect to NATS"""
        try:
            self._client = await nats.connect(servers=[self.url], name=self.service_name)
            logger.info(f"Connected to NATS as {self.service_name}")
        except Exception as e:
            logger.error(f"Failed to connect to NATS at {self.url}: {e}")
            raise

    def subject_for(self, event: Event) -> str:
        return event.subject or f"{event.source}.{event.type}"

    async def publish_event(self, event: Event) -> bool:
        """Publish an event; returns False when not connected"""
        if not self.is_connected:
            logger.warning(f"NATS not connected, dropping event {event.type}")
            return False

        payload = json.dumps(event.to_dict(), cls=DecimalEncoder).encode("utf-8")
        await self._client.publish(self.subject_for(event), payload)
        logger.debug(f"Published {event.type} ({event.id})")
        return True

    async def close(self):
        """Drain and close the NATS connection"""
        if self._client is not None:
            await self._client.drain()
            self._client = None
        logger.info("Disconnected from NATS")

    @property
    def is_connected(self) -> bool:
        """Check if connected to NATS"""
        return self._client is not None and self._client.is_connected


async def get_event_bus(
    service_name: str,
    config: Optional[InfraConfig] = None,
) -> Optional[NATSEventBus]:
    """
    Create and connect an event bus for a service.

    Returns None when NATS is disabled by configuration.
    """
    config = config or InfraConfig.from_env()
    if not config.nats_enabled:
        logger.info("NATS disabled by configuration")
        return None

    event_bus = NATSEventBus(service_name=service_name, url=config.resolved_nats_url)
    await event_bus.connect()
    return event_bus


__all__ = [
    "Event",
    "EventType",
    "ServiceSource",
    "NATSEventBus",
    "DecimalEncoder",
    "get_event_bus",
]
