import logging
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile, status
from fastapi.responses import JSONResponse
from pydantic import Field

from keepthisfile.config import config
from keepthisfile.dependencies import (
    get_blob_store,
    get_current_identity,
    get_ledger,
    get_optional_identity,
    get_orchestrator,
)
from keepthisfile.errors import ValidationFailed
from keepthisfile.schemas import CamelModel, FileOut, success, failure
from keepthisfile.services.auth_service import Identity
from keepthisfile.services.blob_store import BlobStore
from keepthisfile.services.ledger_store import LedgerStore
from keepthisfile.services.upload_orchestrator import UploadInput, UploadOrchestrator, UploadOutcome
from keepthisfile.utils.files import FileTooLargeError, read_file_from_upload_file

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/upload", tags=["uploads"])

DEFAULT_MIME_TYPE = "application/octet-stream"


class ConfirmStoredUpload(CamelModel):
    session_id: str = Field(min_length=1)
    content_id: str = Field(min_length=1, max_length=64, pattern=r"^[A-Za-z0-9_-]+$")
    file_name: str = Field(min_length=1)
    size_bytes: int = Field(gt=0)
    mime_type: Optional[str] = None


async def _read_upload(file: UploadFile, max_file_size: int) -> UploadInput:
    try:
        data = await read_file_from_upload_file(file, max_file_size)
    except FileTooLargeError as e:
        raise ValidationFailed(str(e)) from e

    if not data:
        raise ValidationFailed("No file data provided.")

    return UploadInput(
        data=data,
        file_name=file.filename or "file",
        mime_type=file.content_type or DEFAULT_MIME_TYPE,
    )


@router.get("/success", status_code=status.HTTP_200_OK)
async def payment_success(
    session_id: str = Query(..., min_length=1),
    identity: Optional[Identity] = Depends(get_optional_identity),
    orchestrator: UploadOrchestrator = Depends(get_orchestrator),
):
    confirmation = await orchestrator.confirm_payment(
        session_id, identity.user_id if identity else None
    )

    return success({
        "sessionId": confirmation.session_id,
        "status": confirmation.status,
        "paid": confirmation.paid,
        "sizeBytes": confirmation.expected_size_bytes,
    })


@router.post("/paid", status_code=status.HTTP_200_OK)
async def upload_paid(
    file: UploadFile = File(...),
    session_id: str = Form(..., min_length=1),
    identity: Identity = Depends(get_current_identity),
    orchestrator: UploadOrchestrator = Depends(get_orchestrator),
):
    # Size is checked against the quote by the orchestrator; this only bounds memory.
    upload = await _read_upload(file, config.MAX_FILE_BYTES + 1024)
    outcome = await orchestrator.confirm_upload(identity.user_id, session_id, upload)
    return _upload_response(outcome)


@router.post("/confirm", status_code=status.HTTP_200_OK)
async def upload_confirm(
    body: ConfirmStoredUpload,
    identity: Identity = Depends(get_current_identity),
    orchestrator: UploadOrchestrator = Depends(get_orchestrator),
):
    upload = UploadInput(
        file_name=body.file_name,
        mime_type=body.mime_type or DEFAULT_MIME_TYPE,
        content_id=body.content_id,
        declared_size=body.size_bytes,
    )
    outcome = await orchestrator.confirm_upload(identity.user_id, body.session_id, upload)
    return _upload_response(outcome)


def _upload_response(outcome: UploadOutcome):
    if outcome.refunded:
        refund = outcome.refund
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=failure(
                "Upload failed. Your payment has been refunded."
                if not refund.manual_follow_up
                else "Upload failed and the refund could not be issued. Please contact support.",
                {
                    "sessionId": refund.session_id,
                    "refundId": refund.refund.refund_id if refund.refund else None,
                    "manualFollowUpRequired": refund.manual_follow_up,
                },
            ),
        )

    return success(FileOut.model_validate(outcome.file))


@router.post("/free", status_code=status.HTTP_200_OK)
async def upload_free(
    file: UploadFile = File(...),
    identity: Optional[Identity] = Depends(get_optional_identity),
    ledger: LedgerStore = Depends(get_ledger),
    blob_store: BlobStore = Depends(get_blob_store),
):
    upload = await _read_upload(file, config.FREE_MAX_BYTES)

    stored = await blob_store.upload(upload.data, upload.mime_type, upload.file_name)
    record = await ledger.create_file(
        user_id=identity.user_id if identity else None,
        blob_content_id=stored.content_id,
        canonical_url=stored.canonical_url,
        size_bytes=upload.size_bytes,
        mime_type=upload.mime_type,
        original_filename=upload.file_name,
    )
    logger.info(f"Free upload {record.id} stored as {stored.content_id}")

    return success(FileOut.model_validate(record))
