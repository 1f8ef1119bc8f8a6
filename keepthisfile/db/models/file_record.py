import uuid

import sqlalchemy as sa

from keepthisfile.db.base import Base


class FileRecord(Base):
    __tablename__ = "file_records"

    id = sa.Column(sa.Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)

    # Null for anonymous free-tier uploads until claimed.
    user_id = sa.Column(sa.String(64), nullable=True, index=True)

    blob_content_id = sa.Column(sa.String(64), nullable=False)
    canonical_url = sa.Column(sa.String(255), nullable=False, index=True)
    size_bytes = sa.Column(sa.BigInteger, nullable=False)
    mime_type = sa.Column(sa.String(255), nullable=False, default="application/octet-stream")
    original_filename = sa.Column(sa.String(255), nullable=True)

    created_at = sa.Column(sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False)
