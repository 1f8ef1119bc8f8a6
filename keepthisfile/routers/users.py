from fastapi import APIRouter, Depends, status

from keepthisfile.dependencies import get_current_identity
from keepthisfile.schemas import success
from keepthisfile.services.auth_service import Identity

router = APIRouter(prefix="/api", tags=["users"])


@router.get("/me", status_code=status.HTTP_200_OK)
async def me(identity: Identity = Depends(get_current_identity)):
    return success({"userId": identity.user_id, "email": identity.email})
