from pydantic import BaseModel, ConfigDict, Field
from typing import List, Optional


class CreateTransferRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    pin: Optional[str] = None
    require_paid: bool = Field(default=False, alias="requirePaid")


class CreateTransferResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    ok: bool = True
    id: str
    expires_at: Optional[int] = Field(default=None, alias="expiresAt")


class TransferItem(BaseModel):
    key: str
    size: int


class TransferListing(BaseModel):
    ok: bool = True
    id: str
    items: List[TransferItem]


class DeleteTransferResponse(BaseModel):
    ok: bool = True
    id: str
    deleted: int
