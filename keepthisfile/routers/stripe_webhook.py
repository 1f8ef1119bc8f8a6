import logging
from typing import Optional

from fastapi import APIRouter, Depends, Header, Request, status

from keepthisfile.dependencies import get_orchestrator, get_payment_gateway
from keepthisfile.errors import NotFound
from keepthisfile.services.payment_gateway import PaymentGateway
from keepthisfile.services.upload_orchestrator import UploadOrchestrator

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/stripe", tags=["stripe"])


@router.post("/webhook", status_code=status.HTTP_200_OK)
async def stripe_webhook(
    request: Request,
    stripe_signature: Optional[str] = Header(None, alias="stripe-signature"),
    payments: PaymentGateway = Depends(get_payment_gateway),
    orchestrator: UploadOrchestrator = Depends(get_orchestrator),
):
    payload = await request.body()
    event = payments.parse_webhook(payload, stripe_signature)

    if event.type == "checkout.session.completed":
        session_id = event.data.object.id
        try:
            confirmation = await orchestrator.confirm_payment(session_id)
            logger.info(f"Webhook confirmed session {session_id}: {confirmation.status}")
        except NotFound:
            # Sessions created outside this service are acknowledged and ignored.
            logger.warning(f"Webhook for unknown session {session_id}")
    else:
        logger.debug(f"Ignoring webhook event {event.type}")

    return {"received": True}
