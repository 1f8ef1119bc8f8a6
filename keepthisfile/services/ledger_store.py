import logging
import uuid
from dataclasses import dataclass
from typing import List, Optional

import sqlalchemy as sa
from sqlalchemy.ext.asyncio import AsyncSession

from keepthisfile.db.models.file_record import FileRecord
from keepthisfile.db.models.share_link import ShareLink
from keepthisfile.db.models.upload_request import UploadRequest
from keepthisfile.errors import NotFound
from keepthisfile.utils.types import UploadStatus

logger = logging.getLogger(__name__)


def coerce_id(value: uuid.UUID | str) -> Optional[uuid.UUID]:
    """Accepts a native UUID or any string form of one; anything else maps to None."""
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value).strip())
    except ValueError:
        return None


@dataclass
class Transition:
    request: UploadRequest
    applied: bool


class LedgerStore:
    """
    Data access for upload requests, file records and share links.

    Status changes go through a single compare-and-set UPDATE so concurrent
    requests on the same session can never both move a record out of a state.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    # Upload requests

    async def create_upload_request(
        self,
        user_id: str,
        expected_size_bytes: int,
        payment_session_id: str,
    ) -> UploadRequest:
        request = UploadRequest(
            user_id=user_id,
            expected_size_bytes=expected_size_bytes,
            payment_session_id=payment_session_id,
            status=UploadStatus.PENDING.value,
        )
        self.db.add(request)
        await self.db.commit()
        await self.db.refresh(request)
        return request

    async def get_upload_request(self, request_id: uuid.UUID | str) -> Optional[UploadRequest]:
        id_ = coerce_id(request_id)
        if id_ is None:
            return None

        return await self.db.scalar(
            sa.select(UploadRequest)
            .where(UploadRequest.id == id_)
            .execution_options(populate_existing=True)
        )

    async def get_upload_request_by_session_id(self, session_id: str) -> Optional[UploadRequest]:
        return await self.db.scalar(
            sa.select(UploadRequest)
            .where(
                (UploadRequest.payment_session_id == session_id)
                | (UploadRequest.payment_intent_id == session_id)
            )
            .execution_options(populate_existing=True)
        )

    async def _compare_and_set(
        self,
        id_: Optional[uuid.UUID],
        expected: UploadStatus,
        new: UploadStatus,
        **values,
    ) -> bool:
        if id_ is None:
            return False

        result = await self.db.execute(
            sa.update(UploadRequest)
            .where(UploadRequest.id == id_, UploadRequest.status == expected.value)
            .values(status=new.value, updated_at=sa.func.now(), **values)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def transition_status(
        self,
        request_id: uuid.UUID | str,
        expected: UploadStatus,
        new: UploadStatus,
        **values,
    ) -> Transition:
        applied = await self._compare_and_set(coerce_id(request_id), expected, new, **values)
        await self.db.commit()

        request = await self.get_upload_request(request_id)
        if request is None:
            raise NotFound(f"Upload request '{request_id}' no longer exists.")

        if applied:
            logger.info(f"Upload request {request.id}: {expected} -> {new}")
        else:
            logger.info(f"Upload request {request.id}: {expected} -> {new} skipped, status is {request.status}")

        return Transition(request=request, applied=applied)

    async def complete_upload(
        self,
        request_id: uuid.UUID,
        user_id: str,
        blob_content_id: str,
        canonical_url: str,
        size_bytes: int,
        mime_type: str,
        original_filename: Optional[str],
    ) -> Optional[FileRecord]:
        """
        Marks a paid request uploaded and inserts its file record in one transaction.

        Returns None, writing nothing, when the request is no longer paid.
        """
        try:
            applied = await self._compare_and_set(
                request_id, UploadStatus.PAID, UploadStatus.UPLOADED, blob_content_id=blob_content_id
            )
            if not applied:
                await self.db.rollback()
                if await self.get_upload_request(request_id) is None:
                    raise NotFound(f"Upload request '{request_id}' no longer exists.")
                return None

            file = FileRecord(
                user_id=user_id,
                blob_content_id=blob_content_id,
                canonical_url=canonical_url,
                size_bytes=size_bytes,
                mime_type=mime_type,
                original_filename=original_filename,
            )
            self.db.add(file)
            await self.db.commit()

        except Exception:
            await self.db.rollback()
            raise

        await self.db.refresh(file)
        return file

    # File records

    async def create_file(
        self,
        user_id: Optional[str],
        blob_content_id: str,
        canonical_url: str,
        size_bytes: int,
        mime_type: str,
        original_filename: Optional[str],
    ) -> FileRecord:
        file = FileRecord(
            user_id=user_id,
            blob_content_id=blob_content_id,
            canonical_url=canonical_url,
            size_bytes=size_bytes,
            mime_type=mime_type,
            original_filename=original_filename,
        )
        self.db.add(file)
        await self.db.commit()
        await self.db.refresh(file)
        return file

    async def get_file_by_id(self, file_id: uuid.UUID | str) -> Optional[FileRecord]:
        id_ = coerce_id(file_id)
        if id_ is None:
            return None

        return await self.db.scalar(sa.select(FileRecord).where(FileRecord.id == id_))

    async def get_file_by_url(self, canonical_url: str) -> Optional[FileRecord]:
        return await self.db.scalar(
            sa.select(FileRecord)
            .where(FileRecord.canonical_url == canonical_url)
            .order_by(FileRecord.created_at.desc())
            .limit(1)
        )

    async def get_files_by_owner(self, user_id: str, limit: int = 50, offset: int = 0) -> List[FileRecord]:
        result = await self.db.scalars(
            sa.select(FileRecord)
            .where(FileRecord.user_id == user_id)
            .order_by(FileRecord.created_at.desc(), FileRecord.id.desc())
            .limit(limit)
            .offset(offset)
        )
        return list(result.all())

    async def count_files_by_owner(self, user_id: str) -> int:
        return await self.db.scalar(
            sa.select(sa.func.count()).select_from(FileRecord).where(FileRecord.user_id == user_id)
        )

    async def link_files_to_user(self, canonical_urls: List[str], user_id: str) -> int:
        if not canonical_urls:
            return 0

        result = await self.db.execute(
            sa.update(FileRecord)
            .where(FileRecord.canonical_url.in_(canonical_urls), FileRecord.user_id.is_(None))
            .values(user_id=user_id)
            .execution_options(synchronize_session=False)
        )
        await self.db.commit()
        return result.rowcount

    # Share links

    async def get_share_link(self, share_id: str) -> Optional[ShareLink]:
        return await self.db.scalar(sa.select(ShareLink).where(ShareLink.share_id == share_id))

    async def create_share_link(
        self,
        user_id: str,
        share_id: str,
        canonical_url: str,
        file_id: Optional[uuid.UUID] = None,
    ) -> ShareLink:
        link = ShareLink(user_id=user_id, share_id=share_id, canonical_url=canonical_url, file_id=file_id)
        self.db.add(link)
        await self.db.commit()
        await self.db.refresh(link)
        return link
