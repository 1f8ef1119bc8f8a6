import uuid

import sqlalchemy as sa

from keepthisfile.db.base import Base
from keepthisfile.utils.types import UploadStatus


class UploadRequest(Base):
    __tablename__ = "upload_requests"

    id = sa.Column(sa.Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = sa.Column(sa.String(64), nullable=False, index=True)
    expected_size_bytes = sa.Column(sa.BigInteger, nullable=False)

    payment_session_id = sa.Column(sa.String(255), nullable=False, unique=True, index=True)
    payment_intent_id = sa.Column(sa.String(255), nullable=True, index=True)

    status = sa.Column(sa.String(16), nullable=False, default=UploadStatus.PENDING.value)
    blob_content_id = sa.Column(sa.String(64), nullable=True)

    created_at = sa.Column(sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False)
    updated_at = sa.Column(
        sa.DateTime(timezone=True),
        server_default=sa.func.now(),
        onupdate=sa.func.now(),
        nullable=False
    )
