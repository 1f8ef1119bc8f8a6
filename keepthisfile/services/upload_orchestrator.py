import logging
import uuid
from dataclasses import dataclass
from typing import Optional

from keepthisfile.config import config
from keepthisfile.db.models.file_record import FileRecord
from keepthisfile.db.models.upload_request import UploadRequest
from keepthisfile.errors import (
    BlobStoreError,
    InvalidState,
    KeepThisFileError,
    NotFound,
    OwnershipMismatch,
    SizeMismatch,
    ValidationFailed,
)
from keepthisfile.services.blob_store import BlobStore, StoredBlob
from keepthisfile.services.ledger_store import LedgerStore
from keepthisfile.services.payment_gateway import PaymentGateway, Refund
from keepthisfile.services.pricing import calculate_price_cents
from keepthisfile.utils.types import UploadStatus

logger = logging.getLogger(__name__)

# Allowed absolute difference between declared and received size.
SIZE_TOLERANCE_BYTES = 1024


@dataclass
class UploadInput:
    """
    File handed to ConfirmUpload.

    Either `data` holds the bytes to store, or `content_id` names a blob the
    client already stored, with its size in `declared_size`.
    """

    file_name: str
    mime_type: str = "application/octet-stream"
    data: Optional[bytes] = None
    content_id: Optional[str] = None
    declared_size: Optional[int] = None

    def __post_init__(self):
        if (self.data is None) == (self.content_id is None):
            raise ValidationFailed("Provide either the file data or a content id.")
        if self.content_id is not None and not self.declared_size:
            raise ValidationFailed("A content id needs the stored file size.")

    @property
    def size_bytes(self) -> int:
        if self.data is not None:
            return len(self.data)
        return self.declared_size


@dataclass
class SessionQuote:
    session_id: str
    checkout_url: str
    price_cents: int


@dataclass
class PaymentConfirmation:
    session_id: str
    user_id: str
    status: str
    paid: bool
    expected_size_bytes: int


@dataclass
class RefundOutcome:
    session_id: str
    refund: Optional[Refund]
    error: Optional[str] = None

    @property
    def manual_follow_up(self) -> bool:
        return self.refund is None


@dataclass
class UploadOutcome:
    file: Optional[FileRecord] = None
    refund: Optional[RefundOutcome] = None

    @property
    def refunded(self) -> bool:
        return self.refund is not None


class UploadOrchestrator:
    """
    Paid upload workflow: quote, payment confirmation, delivery, compensation.

    Every status change is a compare-and-set in the ledger; `uploaded` and
    `failed` are terminal, so a request is delivered or refunded at most once.
    """

    def __init__(
        self,
        ledger: LedgerStore,
        payments: PaymentGateway,
        blob_store: BlobStore,
        free_max_bytes: int = config.FREE_MAX_BYTES,
        max_file_bytes: int = config.MAX_FILE_BYTES,
        app_base_url: str = config.APP_BASE_URL,
    ):
        self.ledger = ledger
        self.payments = payments
        self.blob_store = blob_store
        self.free_max_bytes = free_max_bytes
        self.max_file_bytes = max_file_bytes
        self.app_base_url = app_base_url

    async def _get_owned_request(self, user_id: Optional[str], session_id: str) -> UploadRequest:
        request = await self.ledger.get_upload_request_by_session_id(session_id)
        if request is None:
            raise NotFound("Upload request not found.")

        if user_id is not None and request.user_id != user_id:
            raise OwnershipMismatch()

        return request

    async def create_session(
        self,
        user_id: str,
        file_name: Optional[str],
        size_bytes: int,
        mime_type: Optional[str] = None,
    ) -> SessionQuote:
        if size_bytes <= self.free_max_bytes:
            raise ValidationFailed(
                f"Files up to {self.free_max_bytes} bytes are free. Use the free upload endpoint."
            )
        if size_bytes > self.max_file_bytes:
            raise ValidationFailed(f"File exceeds maximum size of {self.max_file_bytes} bytes.")

        price_cents = calculate_price_cents(size_bytes)

        checkout = await self.payments.create_checkout_session(
            user_id=user_id,
            size_bytes=size_bytes,
            price_cents=price_cents,
            success_url=f"{self.app_base_url}/?session_id={{CHECKOUT_SESSION_ID}}",
            cancel_url=f"{self.app_base_url}/?payment_cancelled=true",
            file_name=file_name,
        )

        await self.ledger.create_upload_request(
            user_id=user_id,
            expected_size_bytes=size_bytes,
            payment_session_id=checkout.session_id,
        )
        logger.info(
            f"Quoted {size_bytes} bytes ({mime_type or 'unknown type'}) for user {user_id}: "
            f"{price_cents} cents, session {checkout.session_id}"
        )

        return SessionQuote(
            session_id=checkout.session_id,
            checkout_url=checkout.checkout_url,
            price_cents=price_cents,
        )

    async def confirm_payment(self, session_id: str, caller_user_id: Optional[str] = None) -> PaymentConfirmation:
        request = await self._get_owned_request(caller_user_id, session_id)
        gateway = await self.payments.get_session_status(request.payment_session_id)

        if gateway.paid and request.status == UploadStatus.PENDING:
            values = {}
            if gateway.payment_intent_id:
                values["payment_intent_id"] = gateway.payment_intent_id

            transition = await self.ledger.transition_status(
                request.id, UploadStatus.PENDING, UploadStatus.PAID, **values
            )
            request = transition.request

        return PaymentConfirmation(
            session_id=request.payment_session_id,
            user_id=request.user_id,
            status=request.status,
            paid=gateway.paid,
            expected_size_bytes=request.expected_size_bytes,
        )

    async def confirm_upload(self, user_id: str, session_id: str, upload: UploadInput) -> UploadOutcome:
        request = await self._get_owned_request(user_id, session_id)

        if request.status != UploadStatus.PAID:
            raise InvalidState(f"Upload request is {request.status}, expected {UploadStatus.PAID}.")

        if abs(upload.size_bytes - request.expected_size_bytes) > SIZE_TOLERANCE_BYTES:
            raise SizeMismatch(expected=request.expected_size_bytes, actual=upload.size_bytes)

        # A failed ledger write rolls back the session and expires `request`.
        request_id, owner_id, payment_session_id = request.id, request.user_id, request.payment_session_id

        try:
            if upload.content_id is None:
                stored = await self.blob_store.upload(upload.data, upload.mime_type, upload.file_name)
            else:
                stored = await self._verify_stored(upload.content_id)

            file = await self.ledger.complete_upload(
                request_id,
                user_id=owner_id,
                blob_content_id=stored.content_id,
                canonical_url=stored.canonical_url,
                size_bytes=upload.size_bytes,
                mime_type=upload.mime_type,
                original_filename=upload.file_name,
            )
        except Exception as e:
            logger.error(f"Upload failed for session {payment_session_id}: {e}")
            refund = await self._compensate(request_id, payment_session_id, UploadStatus.PAID, str(e))
            return UploadOutcome(refund=refund)

        if file is None:
            # Another call moved the request out of `paid` while this blob was being stored.
            current = await self.ledger.get_upload_request(request_id)
            raise InvalidState(f"Upload request is {current.status}, expected {UploadStatus.PAID}.")

        try:
            await self.payments.attach_metadata(
                payment_session_id,
                {"arweave_tx_id": stored.content_id, "file_id": str(file.id)},
            )
        except KeepThisFileError as e:
            logger.warning(f"Could not annotate payment {payment_session_id}: {e}")

        logger.info(f"Session {payment_session_id} delivered as {stored.content_id}")
        return UploadOutcome(file=file)

    async def _verify_stored(self, content_id: str) -> StoredBlob:
        """
        Looks up a blob the client stored itself.

        Bundled uploads can take a while to show up on the gateway, so an
        unconfirmed or unreachable lookup is logged and the reference accepted.
        """
        try:
            if not await self.blob_store.exists(content_id):
                logger.warning(f"Blob {content_id} not visible on the gateway yet, accepting reference")
        except BlobStoreError as e:
            logger.warning(f"Could not check blob {content_id}, accepting reference: {e}")

        return StoredBlob(content_id=content_id, canonical_url=self.blob_store.canonical_url(content_id))

    async def refund_explicit(self, user_id: str, session_id: str) -> RefundOutcome:
        request = await self._get_owned_request(user_id, session_id)

        gateway = await self.payments.get_session_status(request.payment_session_id)
        if not gateway.paid:
            raise InvalidState("Payment not completed. No refund needed.")

        if request.status == UploadStatus.UPLOADED:
            raise InvalidState("Upload already completed. Cannot refund.")
        if request.status == UploadStatus.FAILED:
            raise InvalidState("Upload request was already refunded.")

        return await self._compensate(
            request.id, request.payment_session_id, UploadStatus(request.status), "refund requested"
        )

    async def _compensate(
        self,
        request_id: uuid.UUID,
        payment_session_id: str,
        expected: UploadStatus,
        reason: str,
    ) -> RefundOutcome:
        """
        Marks the request failed and refunds its payment.

        Only the caller whose `expected -> failed` transition applies issues the refund.
        """
        transition = await self.ledger.transition_status(request_id, expected, UploadStatus.FAILED)
        if not transition.applied:
            raise InvalidState(f"Upload request is already {transition.request.status}.")

        refund = await self.payments.refund(payment_session_id)
        if refund is None:
            logger.error(
                f"Refund for session {payment_session_id} could not be issued, "
                f"manual follow-up required ({reason})"
            )
        else:
            logger.info(f"Refunded session {payment_session_id} with {refund.refund_id} ({reason})")

        return RefundOutcome(session_id=payment_session_id, refund=refund, error=reason)
