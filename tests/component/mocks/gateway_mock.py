"""
Mock payment gateway for component testing

Implements PaymentGatewayProtocol in memory. Sessions keep the metadata they
were created with; tests flip them to paid with mark_paid() and build signed
webhook bodies with make_event_body().
"""
import asyncio
import itertools
import json
from typing import Any, Dict, List, Optional

from microservices.checkout_service.models import GatewaySession, LineItem, PaymentEvent
from microservices.checkout_service.protocols import PaymentGatewayError, WebhookSignatureError
from microservices.checkout_service.webhooks import parse_event

VALID_SIGNATURE = "t=1,v1=valid"


class MockPaymentGateway:
    """In-memory hosted checkout"""

    def __init__(self):
        self.sessions: Dict[str, GatewaySession] = {}
        self.line_items: Dict[str, LineItem] = {}
        self.idempotency_keys: Dict[str, str] = {}
        self.expired: List[str] = []
        self.method_calls: List[tuple] = []
        self._ids = itertools.count(1)
        self._create_error: Optional[Exception] = None
        self._retrieve_error: Optional[Exception] = None
        self.return_url = True

    # Error injection

    def set_create_error(self, error: Optional[Exception]):
        self._create_error = error

    def set_retrieve_error(self, error: Optional[Exception]):
        self._retrieve_error = error

    # PaymentGatewayProtocol

    async def create_session(
        self,
        line_item: LineItem,
        metadata: Dict[str, str],
        idempotency_key: Optional[str] = None,
    ) -> GatewaySession:
        self.method_calls.append(("create_session", line_item.name, dict(metadata)))
        # Yield like a network call would, so concurrent checkouts interleave
        await asyncio.sleep(0)
        if self._create_error:
            raise self._create_error

        if idempotency_key and idempotency_key in self.idempotency_keys:
            return self.sessions[self.idempotency_keys[idempotency_key]]

        session_id = f"cs_test_{next(self._ids):06d}"
        session = GatewaySession(
            id=session_id,
            url=f"https://checkout.example.com/pay/{session_id}" if self.return_url else None,
            status="open",
            payment_status="unpaid",
            metadata=dict(metadata),
            amount_total=line_item.unit_amount * line_item.quantity,
            currency=line_item.currency,
        )
        self.sessions[session_id] = session
        self.line_items[session_id] = line_item
        if idempotency_key:
            self.idempotency_keys[idempotency_key] = session_id
        return session

    async def retrieve_session(self, session_id: str) -> GatewaySession:
        self.method_calls.append(("retrieve_session", session_id))
        await asyncio.sleep(0)
        if self._retrieve_error:
            raise self._retrieve_error
        session = self.sessions.get(session_id)
        if session is None:
            raise PaymentGatewayError(f"No such checkout session: {session_id}")
        return session

    async def expire_session(self, session_id: str) -> None:
        self.method_calls.append(("expire_session", session_id))
        self.expired.append(session_id)
        session = self.sessions.get(session_id)
        if session is not None:
            self.sessions[session_id] = session.model_copy(update={"status": "expired"})

    def verify_webhook(self, raw_body: bytes, signature: Optional[str]) -> PaymentEvent:
        self.method_calls.append(("verify_webhook", signature))
        if signature != VALID_SIGNATURE:
            raise WebhookSignatureError("Signature mismatch")
        try:
            payload = json.loads(raw_body)
        except ValueError as e:
            raise WebhookSignatureError("Invalid payload") from e
        return parse_event(payload)

    # Test helpers

    def mark_paid(self, session_id: str, amount_total: Optional[int] = None):
        session = self.sessions[session_id]
        changes: Dict[str, Any] = {"payment_status": "paid", "status": "complete"}
        if amount_total is not None:
            changes["amount_total"] = amount_total
        self.sessions[session_id] = session.model_copy(update=changes)

    def set_metadata(self, session_id: str, metadata: Dict[str, str]):
        session = self.sessions[session_id]
        self.sessions[session_id] = session.model_copy(update={"metadata": dict(metadata)})

    def add_session(self, session: GatewaySession) -> GatewaySession:
        self.sessions[session.id] = session
        return session

    def calls(self, name: str) -> List[tuple]:
        return [c for c in self.method_calls if c[0] == name]

    @staticmethod
    def make_event_body(event_type: str, session_id: Optional[str], event_id: str = "evt_test_1") -> bytes:
        obj: Dict[str, Any] = {"object": "checkout.session"}
        if session_id is not None:
            obj["id"] = session_id
        return json.dumps({
            "id": event_id,
            "type": event_type,
            "data": {"object": obj},
        }).encode("utf-8")
