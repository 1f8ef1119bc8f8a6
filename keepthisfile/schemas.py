"""Shared API schemas. Python stays snake_case, JSON is camelCase."""
import datetime
import uuid
from typing import Any, Optional

from fastapi.encoders import jsonable_encoder
from pydantic import BaseModel
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = {
        "alias_generator": to_camel,
        "populate_by_name": True,
    }


class CamelORMModel(BaseModel):
    model_config = {
        "alias_generator": to_camel,
        "populate_by_name": True,
        "from_attributes": True,
    }


class FileOut(CamelORMModel):
    id: uuid.UUID
    user_id: Optional[str] = None
    blob_content_id: str
    canonical_url: str
    size_bytes: int
    mime_type: str
    original_filename: Optional[str] = None
    created_at: datetime.datetime


def success(data: Any = None) -> dict:
    return {"success": True, "data": jsonable_encoder(data, by_alias=True)}


def failure(error: str, data: Any = None) -> dict:
    body = {"success": False, "error": error}
    if data is not None:
        body["data"] = jsonable_encoder(data, by_alias=True)
    return body
