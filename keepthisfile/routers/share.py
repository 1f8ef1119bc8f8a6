from typing import Optional

from fastapi import APIRouter, Depends, status
from fastapi.responses import RedirectResponse
from pydantic import model_validator

from keepthisfile.config import config
from keepthisfile.dependencies import get_current_identity, get_ledger
from keepthisfile.errors import NotFound, OwnershipMismatch
from keepthisfile.schemas import CamelModel, success
from keepthisfile.services.auth_service import Identity
from keepthisfile.services.ledger_store import LedgerStore
from keepthisfile.services.share_service import create_share_link

router = APIRouter(prefix="/api/share", tags=["share"])


class CreateShare(CamelModel):
    file_id: Optional[str] = None
    canonical_url: Optional[str] = None

    @model_validator(mode="after")
    def require_target(self):
        if not self.file_id and not self.canonical_url:
            raise ValueError("Either fileId or canonicalUrl is required.")
        return self


@router.post("/create", status_code=status.HTTP_200_OK)
async def create_share(
    body: CreateShare,
    identity: Identity = Depends(get_current_identity),
    ledger: LedgerStore = Depends(get_ledger),
):
    if body.file_id:
        file = await ledger.get_file_by_id(body.file_id)
    else:
        file = await ledger.get_file_by_url(body.canonical_url)

    if file is None:
        raise NotFound("File not found.")

    if file.user_id != identity.user_id:
        raise OwnershipMismatch("File does not belong to this user.")

    link = await create_share_link(ledger, identity.user_id, file.canonical_url, file_id=file.id)

    return success({
        "shareId": link.share_id,
        "shareUrl": f"{config.APP_BASE_URL}/api/share/{link.share_id}",
        "canonicalUrl": link.canonical_url,
    })


@router.get("/{share_id}", status_code=status.HTTP_302_FOUND)
async def resolve_share(share_id: str, ledger: LedgerStore = Depends(get_ledger)):
    link = await ledger.get_share_link(share_id)
    if link is None:
        raise NotFound("Share link not found.")

    return RedirectResponse(link.canonical_url, status_code=status.HTTP_302_FOUND)
