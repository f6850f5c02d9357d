from pydantic import BaseModel, ConfigDict, Field
from typing import Optional


class PresignRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    folder: Optional[str] = None
    filename: str
    content_type: str = Field(default="application/octet-stream", alias="contentType")


class PresignResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    ok: bool = True
    key: str
    url: str
    expires_in: int = Field(alias="expiresIn")


class UploadResponse(BaseModel):
    ok: bool = True
    key: str
