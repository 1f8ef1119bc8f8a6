from typing import Optional

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse
from pydantic import Field

from keepthisfile.dependencies import get_current_identity, get_orchestrator
from keepthisfile.schemas import CamelModel, success, failure
from keepthisfile.services.auth_service import Identity
from keepthisfile.services.upload_orchestrator import UploadOrchestrator

router = APIRouter(prefix="/api/payments", tags=["payments"])


class CreateUploadSession(CamelModel):
    size_bytes: int = Field(gt=0)
    file_name: Optional[str] = None
    mime_type: Optional[str] = None


class RefundRequest(CamelModel):
    session_id: str = Field(min_length=1)


@router.post("/create-upload-session", status_code=status.HTTP_200_OK)
async def create_upload_session(
    body: CreateUploadSession,
    identity: Identity = Depends(get_current_identity),
    orchestrator: UploadOrchestrator = Depends(get_orchestrator),
):
    quote = await orchestrator.create_session(
        user_id=identity.user_id,
        file_name=body.file_name,
        size_bytes=body.size_bytes,
        mime_type=body.mime_type,
    )

    return success({
        "sessionId": quote.session_id,
        "url": quote.checkout_url,
        "priceCents": quote.price_cents,
        "amount": quote.price_cents / 100,
    })


@router.post("/refund", status_code=status.HTTP_200_OK)
async def refund(
    body: RefundRequest,
    identity: Identity = Depends(get_current_identity),
    orchestrator: UploadOrchestrator = Depends(get_orchestrator),
):
    outcome = await orchestrator.refund_explicit(identity.user_id, body.session_id)

    if outcome.manual_follow_up:
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=failure(
                "Failed to issue refund. Please contact support.",
                {"sessionId": outcome.session_id, "manualFollowUpRequired": True},
            ),
        )

    return success({
        "refundId": outcome.refund.refund_id,
        "amount": outcome.refund.amount,
        "status": outcome.refund.status,
    })
