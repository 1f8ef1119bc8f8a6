import uuid

import sqlalchemy as sa

from keepthisfile.db.base import Base


class ShareLink(Base):
    __tablename__ = "share_links"

    id = sa.Column(sa.Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = sa.Column(sa.String(64), nullable=False, index=True)

    file_id = sa.Column(
        sa.Uuid(as_uuid=True),
        sa.ForeignKey("file_records.id", ondelete="SET NULL"),
        nullable=True
    )

    share_id = sa.Column(sa.String(16), nullable=False, unique=True, index=True)
    canonical_url = sa.Column(sa.String(255), nullable=False)

    created_at = sa.Column(sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False)
