import logging
import secrets
import string
import uuid
from typing import Optional

from keepthisfile.db.models.share_link import ShareLink
from keepthisfile.errors import UpstreamFailure
from keepthisfile.services.ledger_store import LedgerStore

logger = logging.getLogger(__name__)

SHARE_ID_ALPHABET = string.ascii_letters + string.digits
SHARE_ID_LENGTH = 12
MAX_SHARE_ID_ATTEMPTS = 10


def generate_share_id(length: int = SHARE_ID_LENGTH) -> str:
    return "".join(secrets.choice(SHARE_ID_ALPHABET) for _ in range(length))


async def create_share_link(
    ledger: LedgerStore,
    user_id: str,
    canonical_url: str,
    file_id: Optional[uuid.UUID] = None,
) -> ShareLink:
    for _ in range(MAX_SHARE_ID_ATTEMPTS):
        share_id = generate_share_id()
        if await ledger.get_share_link(share_id) is None:
            return await ledger.create_share_link(
                user_id=user_id,
                share_id=share_id,
                canonical_url=canonical_url,
                file_id=file_id,
            )

    logger.error(f"No unique share id after {MAX_SHARE_ID_ATTEMPTS} attempts")
    raise UpstreamFailure("Failed to generate unique share ID.")
