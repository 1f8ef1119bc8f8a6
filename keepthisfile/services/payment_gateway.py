import logging
from dataclasses import dataclass
from typing import Dict, Optional

import stripe
from fastapi.concurrency import run_in_threadpool

from keepthisfile.errors import PaymentGatewayError, PaymentSessionNotFound, ValidationFailed
from keepthisfile.services.pricing import format_size_mb

logger = logging.getLogger(__name__)


@dataclass
class CheckoutSession:
    session_id: str
    checkout_url: str


@dataclass
class SessionStatus:
    session_id: str
    paid: bool
    payment_status: Optional[str]
    status: Optional[str]
    payment_intent_id: Optional[str]


@dataclass
class Refund:
    refund_id: str
    amount: int
    status: Optional[str]


def _intent_id(payment_intent) -> Optional[str]:
    # Expanded sessions carry the object, unexpanded ones just the id.
    if payment_intent is None:
        return None
    return getattr(payment_intent, "id", payment_intent)


class PaymentGateway:
    """Stripe Checkout wrapper. Blocking SDK calls run in the threadpool."""

    def __init__(
        self,
        client: stripe.StripeClient,
        webhook_secret: str,
        currency: str = "usd",
    ):
        self.client = client
        self.webhook_secret = webhook_secret
        self.currency = currency

    async def create_checkout_session(
        self,
        user_id: str,
        size_bytes: int,
        price_cents: int,
        success_url: str,
        cancel_url: str,
        file_name: Optional[str] = None,
    ) -> CheckoutSession:
        product = {"name": f"Upload {format_size_mb(size_bytes)}"}
        if file_name:
            product["description"] = f"Permanent storage for {file_name}"

        params = {
            "mode": "payment",
            "payment_method_types": ["card"],
            "line_items": [{
                "price_data": {
                    "currency": self.currency,
                    "product_data": product,
                    "unit_amount": price_cents,
                },
                "quantity": 1,
            }],
            "success_url": success_url,
            "cancel_url": cancel_url,
            "metadata": {
                "user_id": user_id,
                "size_bytes": str(size_bytes),
            },
        }

        try:
            session = await run_in_threadpool(self.client.checkout.sessions.create, params=params)
        except stripe.StripeError as e:
            logger.error(f"Checkout session creation failed for user {user_id}: {e}")
            raise PaymentGatewayError("Failed to create checkout session.") from e

        logger.info(f"Created checkout session {session.id} for user {user_id}: {price_cents} cents")
        return CheckoutSession(session_id=session.id, checkout_url=session.url)

    async def _retrieve_session(self, session_id: str):
        try:
            return await run_in_threadpool(self.client.checkout.sessions.retrieve, session_id)
        except stripe.InvalidRequestError as e:
            if e.code == "resource_missing":
                raise PaymentSessionNotFound(f"Payment session '{session_id}' not found.") from e
            raise PaymentGatewayError("Failed to retrieve payment session.") from e
        except stripe.StripeError as e:
            raise PaymentGatewayError("Failed to retrieve payment session.") from e

    async def get_session_status(self, session_id: str) -> SessionStatus:
        session = await self._retrieve_session(session_id)
        return SessionStatus(
            session_id=session.id,
            paid=session.payment_status == "paid" and session.status == "complete",
            payment_status=session.payment_status,
            status=session.status,
            payment_intent_id=_intent_id(session.payment_intent),
        )

    async def refund(self, session_id: str) -> Optional[Refund]:
        """
        Refunds the payment behind a checkout session.

        Returns None when no refund could be issued. That is a failure needing
        manual follow-up, never "nothing to refund".
        """
        try:
            session = await self._retrieve_session(session_id)
            intent_id = _intent_id(session.payment_intent)
            if not intent_id:
                logger.error(f"No payment intent on session {session_id}, cannot refund")
                return None

            refund = await run_in_threadpool(
                self.client.refunds.create,
                params={
                    "payment_intent": intent_id,
                    "reason": "requested_by_customer",
                    "metadata": {
                        "reason": "upload_failed",
                        "session_id": session_id,
                    },
                },
            )
        except (PaymentGatewayError, PaymentSessionNotFound, stripe.StripeError) as e:
            logger.error(f"Refund failed for session {session_id}: {e}")
            return None

        logger.info(f"Refund {refund.id} issued for session {session_id}: {refund.amount} cents")
        return Refund(refund_id=refund.id, amount=refund.amount, status=refund.status)

    async def attach_metadata(self, session_id: str, metadata: Dict[str, str]) -> None:
        session = await self._retrieve_session(session_id)
        intent_id = _intent_id(session.payment_intent)
        if not intent_id:
            raise PaymentGatewayError(f"No payment intent on session '{session_id}'.")

        try:
            await run_in_threadpool(
                self.client.payment_intents.update, intent_id, params={"metadata": metadata}
            )
        except stripe.StripeError as e:
            raise PaymentGatewayError("Failed to update payment metadata.") from e

    def parse_webhook(self, payload: bytes, signature: Optional[str]) -> stripe.Event:
        if not signature:
            raise ValidationFailed("Missing stripe-signature header.")

        try:
            return stripe.Webhook.construct_event(payload, signature, self.webhook_secret)
        except ValueError as e:
            raise ValidationFailed("Invalid webhook payload.") from e
        except stripe.SignatureVerificationError as e:
            raise ValidationFailed("Invalid webhook signature.") from e
