"""API 流量限制

所有路由共用 rate_limit（依來源 IP 計算）；登入與驗證碼相關的端點另外套用較嚴格的 auth_rate_limit，
避免 6 位數驗證碼被暴力嘗試。
"""
from fastapi import Request
from fastapi.responses import JSONResponse
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address
import logging

from app.config import get_settings

logger = logging.getLogger("rate_limit")

settings = get_settings()

limiter = Limiter(
    key_func=get_remote_address,
    default_limits=[settings.rate_limit],
    enabled=settings.rate_limit_enabled,
)


def auth_limit() -> str:
    return get_settings().auth_rate_limit


async def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded):
    logger.warning(f"超過流量限制：{get_remote_address(request)} {request.method} {request.url.path} ({exc.detail})")
    return JSONResponse(status_code=429, content={
        "success": False,
        "message": "Too many requests from this IP, please try again later",
    })
