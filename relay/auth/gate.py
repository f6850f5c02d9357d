import hmac
from dataclasses import dataclass
from typing import Iterable, Optional

from fastapi import Header, Query

from ..services.metadata import TransferMeta
from .tokens import Secret, verify_claims, verify_short


@dataclass(frozen=True)
class DownloadCredentials:
    pin: Optional[str] = None
    plan: Optional[str] = None
    short_token: Optional[str] = None
    claims_token: Optional[str] = None


@dataclass(frozen=True)
class AccessDecision:
    allowed: bool
    error: Optional[str] = None
    via: Optional[str] = None


def download_credentials(
    pin: Optional[str] = Query(None),
    pp: Optional[str] = Query(None),
    paid: Optional[str] = Query(None),
    x_transfer_pin: Optional[str] = Header(None),
    x_user_plan: Optional[str] = Header(None),
) -> DownloadCredentials:
    """FastAPI dependency collecting download credentials from query and headers."""
    return DownloadCredentials(
        pin=pin if pin is not None else x_transfer_pin,
        plan=x_user_plan,
        short_token=pp,
        claims_token=paid,
    )


def pin_matches(expected: str, supplied: Optional[str]) -> bool:
    if supplied is None:
        return False
    return hmac.compare_digest(expected.encode("utf-8"), supplied.encode("utf-8"))


def authorize_download(
    transfer_id: str,
    meta: TransferMeta,
    credentials: DownloadCredentials,
    *,
    secret: Secret,
    bypass_plans: Iterable[str] = (),
    now: Optional[int] = None,
) -> AccessDecision:
    """
    Decide whether a download may proceed.

    Order matters and short-circuits: PIN first (fails closed before any
    payment check), then open transfers and bypass plans, then the short
    token, then the claims token whose id claim must name this transfer.
    """
    if meta.pin and not pin_matches(meta.pin, credentials.pin):
        return AccessDecision(False, "pin_required")

    if not meta.require_paid:
        return AccessDecision(True, via="open")
    if credentials.plan and credentials.plan in set(bypass_plans):
        return AccessDecision(True, via="plan")

    if credentials.short_token:
        if verify_short(transfer_id, credentials.short_token, secret, now=now).ok:
            return AccessDecision(True, via="short")

    if credentials.claims_token:
        result = verify_claims(credentials.claims_token, secret, now=now)
        if result.ok and result.claims and result.claims.get("id") == transfer_id:
            return AccessDecision(True, via="claims")

    return AccessDecision(False, "payment_required")
