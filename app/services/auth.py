from datetime import datetime, timedelta
from jose import jwt, JWTError
from fastapi import Request, HTTPException
from passlib.context import CryptContext
from sqlalchemy.orm import Session
import hashlib
import secrets
import logging

from app.config import get_settings
from app.models.user import User, UserRole

settings = get_settings()
logger = logging.getLogger("auth")

# JWT settings
ALGORITHM = "HS256"
RESET_TOKEN_EXPIRE_MINUTES = 15

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    return pwd_context.verify(password, password_hash)


def create_access_token(user: User) -> str:
    """建立 JWT token"""
    now = datetime.utcnow()
    to_encode = {
        "user_id": user.id,
        "email": user.email,
        "role": user.role.value,
        "iat": now,
        "exp": now + timedelta(days=settings.access_token_expire_days),
    }
    return jwt.encode(to_encode, settings.secret_key, algorithm=ALGORITHM)


def create_reset_token(user: User) -> str:
    """重設密碼用的短效 token"""
    now = datetime.utcnow()
    to_encode = {
        "user_id": user.id,
        "email": user.email,
        "purpose": "password-reset",
        "iat": now,
        "exp": now + timedelta(minutes=RESET_TOKEN_EXPIRE_MINUTES),
    }
    return jwt.encode(to_encode, settings.secret_key, algorithm=ALGORITHM)


def decode_token(token: str) -> dict | None:
    try:
        payload = jwt.decode(token, settings.secret_key, algorithms=[ALGORITHM])
        return payload
    except JWTError:
        return None


def hash_otp(otp: str) -> str:
    return hashlib.sha256(otp.encode()).hexdigest()


def generate_otp() -> str:
    """6 位數驗證碼"""
    return f"{secrets.randbelow(10 ** 6):06d}"


def issue_email_otp(user: User) -> str:
    otp = generate_otp()
    user.email_otp_hash = hash_otp(otp)
    user.email_otp_expires_at = datetime.utcnow() + timedelta(minutes=settings.otp_expire_minutes)
    return otp


def issue_reset_otp(user: User) -> str:
    otp = generate_otp()
    user.reset_otp_hash = hash_otp(otp)
    user.reset_otp_expires_at = datetime.utcnow() + timedelta(minutes=settings.otp_expire_minutes)
    return otp


def check_otp(otp: str, otp_hash: str | None, expires_at: datetime | None) -> bool:
    if not otp_hash or not expires_at:
        return False
    if datetime.utcnow() > expires_at:
        return False
    return secrets.compare_digest(hash_otp(otp), otp_hash)


def _extract_token(request: Request) -> str | None:
    authorization = request.headers.get("authorization")
    if authorization and authorization.lower().startswith("bearer "):
        return authorization[7:].strip()
    return request.cookies.get("access_token")


async def get_current_user_optional(request: Request, db: Session) -> User | None:
    """取得目前使用者（可選）"""
    token = _extract_token(request)
    if not token:
        return None

    payload = decode_token(token)
    if not payload or payload.get("purpose"):
        return None

    user_id = payload.get("user_id")
    if not user_id:
        return None

    user = db.query(User).filter(User.id == user_id).first()
    if not user or not user.is_active:
        return None

    # email 變更後舊 token 失效
    if payload.get("email") != user.email:
        logger.warning(f"⚠️ token email 與帳號不符：user_id={user_id}")
        return None

    return user


async def get_current_user(request: Request, db: Session) -> User:
    """取得目前使用者（必須登入）"""
    user = await get_current_user_optional(request, db)
    if not user:
        raise HTTPException(status_code=401, detail="Not authorized, please log in")
    return user


async def get_staff_user(request: Request, db: Session) -> User:
    """管理員或店長"""
    user = await get_current_user(request, db)
    if not user.is_staff:
        raise HTTPException(status_code=403, detail="Not authorized to access this resource")
    return user


async def get_admin_user(request: Request, db: Session) -> User:
    """取得管理者使用者"""
    user = await get_current_user(request, db)
    if user.role != UserRole.ADMIN:
        raise HTTPException(status_code=403, detail="Not authorized to access this resource")
    return user
