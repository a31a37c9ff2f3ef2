from datetime import datetime
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from contextlib import asynccontextmanager
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
import logging
import time

from app.config import get_settings
from app.database import engine, Base
from app.routers import auth, categories, food_items, orders, offers, addresses, branches
from app.services.i18n import detect_language
from app.services.rate_limit import limiter, rate_limit_exceeded_handler

settings = get_settings()

# 設定 logging
logging.basicConfig(
    level=logging.DEBUG if settings.debug else logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger("main")
request_logger = logging.getLogger("request")

SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "SAMEORIGIN",
    "Referrer-Policy": "no-referrer",
    "Cross-Origin-Resource-Policy": "cross-origin",
}


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup: create tables
    from app import models  # noqa: F401

    Base.metadata.create_all(bind=engine)
    logger.info(f"{settings.app_name} 啟動 ({settings.environment})")

    yield
    # Shutdown


app = FastAPI(
    title=settings.app_name,
    lifespan=lifespan,
)

app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)
app.add_middleware(SlowAPIMiddleware)
app.add_middleware(GZipMiddleware, minimum_size=1000)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def response_headers(request: Request, call_next):
    started = time.perf_counter()
    response = await call_next(request)
    response.headers.setdefault("Content-Language", detect_language(request))
    for name, value in SECURITY_HEADERS.items():
        response.headers.setdefault(name, value)
    request_logger.info(
        f"{request.method} {request.url.path} {response.status_code} {(time.perf_counter() - started) * 1000:.0f}ms"
    )
    return response


def _field_name(loc) -> str:
    # 去掉 body / query 等來源前綴
    parts = [str(p) for p in loc if p not in ("body", "query", "path", "header", "cookie")]
    return ".".join(parts)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    errors = [
        {
            "field": _field_name(error.get("loc", ())),
            "message": str(error.get("msg", "")).removeprefix("Value error, "),
        }
        for error in exc.errors()
    ]
    return JSONResponse(status_code=400, content={
        "success": False,
        "message": "Validation failed",
        "errors": errors,
    })


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    if isinstance(exc.detail, dict):
        content = {"success": False, **exc.detail}
        content.setdefault("message", "Request failed")
    else:
        content = {"success": False, "message": exc.detail}
    return JSONResponse(status_code=exc.status_code, content=content, headers=getattr(exc, "headers", None))


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception(f"未預期的錯誤：{request.method} {request.url.path}")
    return JSONResponse(status_code=500, content={"success": False, "message": "Internal server error"})


# Routers
API_PREFIX = "/api/v1"
app.include_router(auth.router, prefix=f"{API_PREFIX}/auth", tags=["auth"])
app.include_router(categories.router, prefix=f"{API_PREFIX}/categories", tags=["categories"])
app.include_router(food_items.router, prefix=f"{API_PREFIX}/food-items", tags=["food-items"])
app.include_router(orders.router, prefix=f"{API_PREFIX}/orders", tags=["orders"])
app.include_router(offers.router, prefix=f"{API_PREFIX}/offers", tags=["offers"])
app.include_router(addresses.router, prefix=f"{API_PREFIX}/addresses", tags=["addresses"])
app.include_router(branches.router, prefix=f"{API_PREFIX}/branches", tags=["branches"])


@app.get("/health")
@limiter.exempt
async def health():
    return {
        "status": "OK",
        "timestamp": datetime.utcnow().isoformat(),
        "environment": settings.environment,
    }
