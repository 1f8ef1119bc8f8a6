import json
from decimal import Decimal
from typing import List

import humanfriendly
from pydantic import BaseModel, AnyUrl
from dotenv import load_dotenv
import os

load_dotenv()


class Config(BaseModel):
    # Database
    DATABASE_URL: str

    # JWT & Security
    JWT_SECRET: str
    JWT_ALG: str
    TOKEN_TTL_DAYS: int

    # Uploads
    FREE_MAX_BYTES: int
    MAX_FILE_BYTES: int

    # Pricing
    PRICE_PER_MB_USD: Decimal
    MIN_PRICE_USD: Decimal
    CURRENCY: str

    # Stripe
    STRIPE_SECRET_KEY: str
    STRIPE_WEBHOOK_SECRET: str

    # Arweave
    ARWEAVE_KEY_JSON: dict
    ARWEAVE_GATEWAY_URL: str
    SPONSORED_UPLOAD_URL: str
    APP_NAME_TAG: str
    BLOB_UPLOAD_TIMEOUT_S: float
    MIN_WALLET_BALANCE_WINSTON: int

    # FastAPI
    APP_BASE_URL: str
    CORS_ORIGINS: List[str]
    FASTAPI_HOST: str
    FASTAPI_PORT: int
    LOG_LEVEL: str


config = Config(
    DATABASE_URL=str(AnyUrl(os.environ["DATABASE_URL"])),

    JWT_SECRET=os.environ["JWT_SECRET"],
    JWT_ALG=os.getenv("JWT_ALG", "HS256"),
    TOKEN_TTL_DAYS=int(os.getenv("TOKEN_TTL_DAYS", "7")),

    FREE_MAX_BYTES=humanfriendly.parse_size(os.getenv("FREE_MAX_BYTES", "100 KiB")),
    MAX_FILE_BYTES=humanfriendly.parse_size(os.getenv("MAX_FILE_BYTES", "3 MiB")),

    PRICE_PER_MB_USD=Decimal(os.getenv("PRICE_PER_MB_USD", "0.05")),
    MIN_PRICE_USD=Decimal(os.getenv("MIN_PRICE_USD", "1.00")),
    CURRENCY=os.getenv("CURRENCY", "usd"),

    STRIPE_SECRET_KEY=os.environ["STRIPE_SECRET_KEY"],
    STRIPE_WEBHOOK_SECRET=os.environ["STRIPE_WEBHOOK_SECRET"],

    ARWEAVE_KEY_JSON=json.loads(os.environ["ARWEAVE_KEY_JSON"]),
    ARWEAVE_GATEWAY_URL=os.getenv("ARWEAVE_GATEWAY_URL", "https://arweave.net").rstrip("/"),
    SPONSORED_UPLOAD_URL=os.getenv("SPONSORED_UPLOAD_URL", "https://upload.ardrive.io/v1").rstrip("/"),
    APP_NAME_TAG=os.getenv("APP_NAME_TAG", "ArweaveVault"),
    BLOB_UPLOAD_TIMEOUT_S=float(os.getenv("BLOB_UPLOAD_TIMEOUT_S", "120")),
    MIN_WALLET_BALANCE_WINSTON=int(os.getenv("MIN_WALLET_BALANCE_WINSTON", "400000000000")),

    APP_BASE_URL=os.getenv("APP_BASE_URL", "http://localhost:5173").rstrip("/"),
    CORS_ORIGINS=os.getenv("CORS_ORIGINS", "*").split(","),
    FASTAPI_HOST=os.getenv("FASTAPI_HOST", "0.0.0.0"),
    FASTAPI_PORT=int(os.getenv("FASTAPI_PORT", "8000")),
    LOG_LEVEL=os.getenv("LOG_LEVEL", "INFO"),
)

__all__ = ["config"]
