from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from boutique.health.service import health_storage_info, health_fx_info
from boutique.utils.rate_limit import rate_limit_health_info

router = APIRouter(prefix="/health", tags=["Health"])

@router.get("")
def health_root():
    return {"ok": True}

@router.get("/storage")
def health_storage():
    info = health_storage_info()
    return JSONResponse(info, status_code=200 if info.get("ok") else 503)

@router.get("/fx")
def health_fx():
    return health_fx_info()

@router.get("/rate-limit")
def health_rate_limit(request: Request):
    return rate_limit_health_info(request)
