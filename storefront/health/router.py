from fastapi import APIRouter, Request

from storefront import config
from storefront.utils.rate_limit import rate_limit_health_info

router = APIRouter(prefix="/health", tags=["Health"])

@router.get("")
def health_root():
    return {
        "ok": True,
        "stripe_configured": bool(config.STRIPE_SECRET_KEY),
        "supabase_configured": bool(config.SUPABASE_URL and config.SUPABASE_SERVICE_KEY),
    }

@router.get("/rate-limit")
def health_rate_limit(request: Request):
    return rate_limit_health_info(request)
