from typing import List

from fastapi import APIRouter, Depends, Query, status
from pydantic import Field

from keepthisfile.dependencies import get_blob_store, get_current_identity, get_ledger
from keepthisfile.errors import NotFound, OwnershipMismatch
from keepthisfile.schemas import CamelModel, FileOut, success
from keepthisfile.services.auth_service import Identity
from keepthisfile.services.blob_store import BlobStore
from keepthisfile.services.ledger_store import LedgerStore

router = APIRouter(prefix="/api/files", tags=["files"])


class LinkFiles(CamelModel):
    canonical_urls: List[str] = Field(min_length=1, max_length=100)


@router.get("", status_code=status.HTTP_200_OK)
async def list_files(
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    identity: Identity = Depends(get_current_identity),
    ledger: LedgerStore = Depends(get_ledger),
):
    files = await ledger.get_files_by_owner(identity.user_id, limit=limit, offset=offset)
    total = await ledger.count_files_by_owner(identity.user_id)

    return success({
        "files": [FileOut.model_validate(file) for file in files],
        "total": total,
        "limit": limit,
        "offset": offset,
    })


@router.post("/link", status_code=status.HTTP_200_OK)
async def link_files(
    body: LinkFiles,
    identity: Identity = Depends(get_current_identity),
    ledger: LedgerStore = Depends(get_ledger),
):
    linked = await ledger.link_files_to_user(body.canonical_urls, identity.user_id)
    return success({"linkedCount": linked})


@router.get("/{file_id}", status_code=status.HTTP_200_OK)
async def get_file(
    file_id: str,
    identity: Identity = Depends(get_current_identity),
    ledger: LedgerStore = Depends(get_ledger),
    blob_store: BlobStore = Depends(get_blob_store),
):
    file = await ledger.get_file_by_id(file_id)
    if file is None:
        raise NotFound("File not found.")

    if file.user_id != identity.user_id:
        raise OwnershipMismatch("File does not belong to this user.")

    data = FileOut.model_validate(file).model_dump(by_alias=True)
    data["stored"] = await blob_store.exists(file.blob_content_id)
    return success(data)
