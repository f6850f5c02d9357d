import time

from fastapi import APIRouter, Depends
from fastapi.responses import PlainTextResponse

from ..config import Settings
from ..deps import get_app_settings, get_storage
from ..storage.provider import StorageProvider

router = APIRouter(tags=["system"])


@router.get("/", response_class=PlainTextResponse)
def root(settings: Settings = Depends(get_app_settings)):
    return settings.app_name


@router.get("/api/health")
def health(storage: StorageProvider = Depends(get_storage)):
    return {"ok": True, "ts": int(time.time() * 1000), "storage": storage.name}


@router.get("/api/config")
def public_config(settings: Settings = Depends(get_app_settings)):
    return {
        "ok": True,
        "hasPaymentSecret": bool(settings.payment_secret),
        "paidShortTTL": settings.paid_short_ttl,
        "bypassPlans": list(settings.bypass_plans),
    }
