import contextlib
import logging

import httpx
import stripe
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from keepthisfile.config import config
from keepthisfile.db import Base
from keepthisfile.db.session import create_engine, create_sessionmaker
from keepthisfile.errors import KeepThisFileError
from keepthisfile.routers import register_routers
from keepthisfile.schemas import failure
from keepthisfile.services.auth_service import CredentialVerifier
from keepthisfile.services.blob_store import BlobStore, Wallet
from keepthisfile.services.payment_gateway import PaymentGateway

logging.basicConfig(
    level=config.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@contextlib.asynccontextmanager
async def lifespan(app: FastAPI):
    engine = create_engine(config.DATABASE_URL)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    app.state.sessionmaker = create_sessionmaker(engine)

    http = httpx.AsyncClient(timeout=httpx.Timeout(10.0, read=config.BLOB_UPLOAD_TIMEOUT_S))

    app.state.verifier = CredentialVerifier(config.JWT_SECRET, config.JWT_ALG, config.TOKEN_TTL_DAYS)
    app.state.payments = PaymentGateway(
        stripe.StripeClient(config.STRIPE_SECRET_KEY, max_network_retries=0),
        webhook_secret=config.STRIPE_WEBHOOK_SECRET,
        currency=config.CURRENCY,
    )
    app.state.blob_store = BlobStore(
        http,
        Wallet(config.ARWEAVE_KEY_JSON),
        gateway_url=config.ARWEAVE_GATEWAY_URL,
        sponsored_url=config.SPONSORED_UPLOAD_URL,
        sponsored_max_bytes=config.FREE_MAX_BYTES,
        app_name=config.APP_NAME_TAG,
        upload_timeout=config.BLOB_UPLOAD_TIMEOUT_S,
    )
    logger.info(f"Storage wallet {app.state.blob_store.wallet.address} ready")

    yield

    await http.aclose()
    await engine.dispose()


app = FastAPI(title="KeepThisFile", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials="*" not in config.CORS_ORIGINS,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(KeepThisFileError)
async def keepthisfile_error_handler(_request: Request, exc: KeepThisFileError):
    if exc.status_code >= 500:
        logger.error(f"{type(exc).__name__}: {exc.detail}")
    return JSONResponse(status_code=exc.status_code, content=failure(exc.detail))


@app.exception_handler(RequestValidationError)
async def validation_error_handler(_request: Request, exc: RequestValidationError):
    errors = exc.errors()
    message = errors[0].get("msg", "Invalid request.") if errors else "Invalid request."
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=failure(message, {"details": errors}),
    )


@app.get("/health")
async def health():
    return {"status": "ok"}


register_routers(app)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("main:app", host=config.FASTAPI_HOST, port=config.FASTAPI_PORT)
