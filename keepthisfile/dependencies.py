from typing import Optional

from fastapi import Cookie, Depends, Header, Request
from sqlalchemy.ext.asyncio import AsyncSession

from keepthisfile.db.session import get_db
from keepthisfile.errors import Unauthorized
from keepthisfile.services.auth_service import AUTH_COOKIE, CredentialVerifier, Identity, extract_token
from keepthisfile.services.blob_store import BlobStore
from keepthisfile.services.ledger_store import LedgerStore
from keepthisfile.services.payment_gateway import PaymentGateway
from keepthisfile.services.upload_orchestrator import UploadOrchestrator


def get_verifier(request: Request) -> CredentialVerifier:
    return request.app.state.verifier


def get_payment_gateway(request: Request) -> PaymentGateway:
    return request.app.state.payments


def get_blob_store(request: Request) -> BlobStore:
    return request.app.state.blob_store


def get_ledger(db: AsyncSession = Depends(get_db)) -> LedgerStore:
    return LedgerStore(db)


def get_orchestrator(
    ledger: LedgerStore = Depends(get_ledger),
    payments: PaymentGateway = Depends(get_payment_gateway),
    blob_store: BlobStore = Depends(get_blob_store),
) -> UploadOrchestrator:
    return UploadOrchestrator(ledger, payments, blob_store)


def get_optional_identity(
    authorization: Optional[str] = Header(None),
    auth_token: Optional[str] = Cookie(None, alias=AUTH_COOKIE),
    verifier: CredentialVerifier = Depends(get_verifier),
) -> Optional[Identity]:
    return verifier.verify(extract_token(authorization, auth_token))


def get_current_identity(identity: Optional[Identity] = Depends(get_optional_identity)) -> Identity:
    if identity is None:
        raise Unauthorized("Authentication required.")
    return identity
