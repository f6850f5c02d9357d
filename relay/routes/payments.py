"""
Payment token issuance.

Both endpoints mint a bearer token valid for PAID_SHORT_TTL seconds. They do
not talk to a payment provider; they are meant to sit behind whatever
confirms the payment.
"""
import time

from fastapi import APIRouter, Depends
import structlog

from ..auth.tokens import sign_claims, sign_short
from ..config import Settings
from ..deps import get_app_settings
from ..errors import InvalidRequest
from ..schemas.payments import ClaimsTokenResponse, PaymentRequest, ShortTokenResponse
from ..services.transfers import normalize_transfer_id

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api/pay", tags=["payments"])


def _transfer_id(req: PaymentRequest) -> str:
    if not req.id:
        raise InvalidRequest("missing_id")
    return normalize_transfer_id(req.id)


@router.post("/create", response_model=ClaimsTokenResponse)
def create_claims_token(req: PaymentRequest, settings: Settings = Depends(get_app_settings)):
    tid = _transfer_id(req)
    exp = int(time.time()) + settings.paid_short_ttl
    token = sign_claims({"id": tid, "amount": req.amount}, exp, settings.payment_secret_bytes)
    logger.info("payment_token_issued", transfer_id=tid, kind="claims", exp=exp)
    return ClaimsTokenResponse(id=tid, token=token, exp=exp)


@router.post("/create-short", response_model=ShortTokenResponse)
def create_short_token(req: PaymentRequest, settings: Settings = Depends(get_app_settings)):
    tid = _transfer_id(req)
    exp = int(time.time()) + settings.paid_short_ttl
    pp = sign_short(tid, exp, settings.payment_secret_bytes)
    logger.info("payment_token_issued", transfer_id=tid, kind="short", exp=exp)
    return ShortTokenResponse(id=tid, pp=pp, exp=exp)
