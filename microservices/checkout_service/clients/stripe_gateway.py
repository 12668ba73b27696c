"""
Stripe Gateway

PaymentGatewayProtocol implementation over Stripe Checkout.

The stripe SDK is synchronous; calls run in a worker thread so the event
loop is never blocked on the network. Connection errors and rate limits are
retried with tenacity; everything else surfaces as PaymentGatewayError.
"""

import asyncio
import json
import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, Optional

import stripe
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from ..models import GatewaySession, LineItem, PaymentEvent
from ..protocols import PaymentGatewayError, WebhookSignatureError
from ..webhooks import parse_event

logger = logging.getLogger(__name__)

TRANSIENT_ERRORS = (stripe.APIConnectionError, stripe.RateLimitError)


def _to_plain(obj: Any) -> Dict[str, Any]:
    if obj is None:
        return {}
    if isinstance(obj, dict):
        return dict(obj)
    if hasattr(obj, "to_dict"):
        return obj.to_dict()
    return dict(obj)


class StripeGateway:
    """Stripe Checkout payment gateway"""

    def __init__(
        self,
        api_key: Optional[str],
        webhook_secret: Optional[str],
        success_url: str,
        cancel_url: str,
        retry_attempts: int = 3,
        webhook_tolerance: int = 300,
        session_lifetime: timedelta = timedelta(minutes=30),
        wait=None,
        client=stripe,
    ):
        """
        Args:
            api_key: Stripe secret key (sk_test_* for sandbox)
            webhook_secret: Endpoint signing secret (whsec_*)
            success_url: Redirect after payment, may contain {CHECKOUT_SESSION_ID}
            cancel_url: Redirect when the buyer backs out
            retry_attempts: Total attempts for transient errors
            webhook_tolerance: Max signature age in seconds
            session_lifetime: Hosted session expiry
            wait: tenacity wait strategy (exponential backoff by default)
            client: stripe module or a stand-in exposing the same surface
        """
        self.api_key = api_key
        self.webhook_secret = webhook_secret
        self.success_url = success_url
        self.cancel_url = cancel_url
        self.retry_attempts = max(1, retry_attempts)
        self.webhook_tolerance = webhook_tolerance
        self.session_lifetime = session_lifetime
        self.wait = wait or wait_exponential(multiplier=0.5, max=4)
        self._stripe = client

        if not api_key:
            logger.warning("No Stripe API key configured - checkout sessions will fail")
        elif api_key.startswith("sk_test_"):
            logger.info("Stripe TEST MODE active - using sandbox environment")
        else:
            logger.warning("Stripe LIVE MODE active - processing REAL transactions")

    async def _call(self, operation: str, fn: Callable[..., Any], *args, **kwargs) -> Any:
        if not self.api_key:
            raise PaymentGatewayError("Stripe is not configured")

        try:
            async for attempt in AsyncRetrying(
                stop=stop_after_attempt(self.retry_attempts),
                wait=self.wait,
                retry=retry_if_exception_type(TRANSIENT_ERRORS),
                reraise=True,
            ):
                with attempt:
                    if attempt.retry_state.attempt_number > 1:
                        logger.warning(
                            f"Retrying Stripe {operation} "
                            f"(attempt {attempt.retry_state.attempt_number}/{self.retry_attempts})"
                        )
                    return await asyncio.to_thread(fn, *args, api_key=self.api_key, **kwargs)
        except TRANSIENT_ERRORS as e:
            logger.error(f"Stripe {operation} failed after {self.retry_attempts} attempts: {e}")
            raise PaymentGatewayError(f"Stripe {operation} unavailable: {e}", retryable=True) from e
        except stripe.StripeError as e:
            logger.error(f"Stripe {operation} failed: {e}")
            raise PaymentGatewayError(f"Stripe {operation} failed: {e}") from e

    def _to_session(self, obj: Any) -> GatewaySession:
        data = _to_plain(obj)
        metadata = {str(k): str(v) for k, v in _to_plain(data.get("metadata")).items()}
        return GatewaySession(
            id=data["id"],
            url=data.get("url"),
            status=data.get("status"),
            payment_status=data.get("payment_status") or "unpaid",
            metadata=metadata,
            amount_total=data.get("amount_total"),
            currency=data.get("currency"),
        )

    async def create_session(
        self,
        line_item: LineItem,
        metadata: Dict[str, str],
        idempotency_key: Optional[str] = None,
    ) -> GatewaySession:
        product_data: Dict[str, Any] = {"name": line_item.name}
        if line_item.description:
            product_data["description"] = line_item.description[:500]

        expires_at = datetime.now(timezone.utc) + self.session_lifetime
        params: Dict[str, Any] = dict(
            mode="payment",
            payment_method_types=["card"],
            line_items=[{
                "price_data": {
                    "currency": line_item.currency,
                    "product_data": product_data,
                    "unit_amount": line_item.unit_amount,
                },
                "quantity": line_item.quantity,
            }],
            success_url=self.success_url,
            cancel_url=self.cancel_url,
            expires_at=int(expires_at.timestamp()),
            metadata=dict(metadata),
        )
        if idempotency_key:
            params["idempotency_key"] = idempotency_key

        session = await self._call("create_session", self._stripe.checkout.Session.create, **params)
        result = self._to_session(session)
        logger.info(f"Created Stripe checkout session {result.id}")
        return result

    async def retrieve_session(self, session_id: str) -> GatewaySession:
        session = await self._call(
            "retrieve_session", self._stripe.checkout.Session.retrieve, session_id
        )
        return self._to_session(session)

    async def expire_session(self, session_id: str) -> None:
        await self._call("expire_session", self._stripe.checkout.Session.expire, session_id)
        logger.info(f"Expired Stripe checkout session {session_id}")

    def verify_webhook(self, raw_body: bytes, signature: Optional[str]) -> PaymentEvent:
        """
        Verify the Stripe-Signature header against the raw body, then parse.

        Raises:
            WebhookSignatureError: missing/invalid signature or undecodable body
        """
        if not self.webhook_secret:
            raise WebhookSignatureError("Webhook secret is not configured")
        if not signature:
            raise WebhookSignatureError("Missing Stripe-Signature header")

        try:
            payload = raw_body.decode("utf-8")
            self._stripe.WebhookSignature.verify_header(
                payload, signature, self.webhook_secret, self.webhook_tolerance
            )
            event = json.loads(payload)
        except stripe.SignatureVerificationError as e:
            logger.warning(f"Stripe webhook signature invalid: {e}")
            raise WebhookSignatureError(str(e)) from e
        except (UnicodeDecodeError, ValueError) as e:
            logger.warning(f"Stripe webhook payload undecodable: {e}")
            raise WebhookSignatureError("Invalid payload") from e

        if not isinstance(event, dict):
            raise WebhookSignatureError("Invalid payload")

        logger.info(f"Received Stripe webhook: {event.get('type')}")
        return parse_event(event)
