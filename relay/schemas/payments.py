from pydantic import BaseModel
from typing import Optional


class PaymentRequest(BaseModel):
    id: Optional[str] = None
    amount: Optional[float] = None


class ClaimsTokenResponse(BaseModel):
    ok: bool = True
    id: str
    token: str
    exp: int


class ShortTokenResponse(BaseModel):
    ok: bool = True
    id: str
    pp: str
    exp: int
