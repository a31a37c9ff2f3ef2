from datetime import datetime
from fastapi import APIRouter, Request, Depends, HTTPException
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session
import logging

from app.config import get_settings
from app.database import get_db
from app.models.user import User
from app.schemas.auth import (
    RegisterRequest,
    EmailRequest,
    VerifyOtpRequest,
    LoginRequest,
    ProfileUpdate,
    ChangePasswordRequest,
    ResetPasswordRequest,
    UserOut,
)
from app.services.auth import (
    hash_password,
    verify_password,
    create_access_token,
    create_reset_token,
    decode_token,
    issue_email_otp,
    issue_reset_otp,
    check_otp,
    get_current_user,
)
from app.services.rate_limit import limiter, auth_limit
from app.services.email_service import (
    EmailDeliveryError,
    send_otp_email,
    send_password_reset_otp_email,
)

router = APIRouter()
settings = get_settings()
logger = logging.getLogger("auth")

FORGOT_PASSWORD_MESSAGE = "If an account exists with this email, a password reset code has been sent"


def user_to_out(user: User) -> dict:
    return UserOut.model_validate(user).model_dump(by_alias=True, mode="json")


def token_response(user: User, message: str, status_code: int = 200) -> JSONResponse:
    """回傳 token，同時寫入 cookie"""
    token = create_access_token(user)
    response = JSONResponse(status_code=status_code, content={
        "success": True,
        "message": message,
        "token": token,
        "user": user_to_out(user),
    })
    response.set_cookie(
        key="access_token",
        value=token,
        httponly=True,
        max_age=settings.access_token_expire_days * 24 * 60 * 60,
        samesite="lax",
    )
    return response


def _get_user_by_email(db: Session, email: str) -> User | None:
    return db.query(User).filter(User.email == email.lower()).first()


@router.post("/register", status_code=201)
async def register(payload: RegisterRequest, db: Session = Depends(get_db)):
    """註冊並寄出 email 驗證碼"""
    if _get_user_by_email(db, payload.email):
        raise HTTPException(status_code=400, detail="User already exists with this email")
    if db.query(User).filter(User.phone == payload.phone).first():
        raise HTTPException(status_code=400, detail="User already exists with this phone number")

    user = User(
        first_name=payload.first_name,
        last_name=payload.last_name,
        email=payload.email,
        phone=payload.phone,
        password_hash=hash_password(payload.password),
    )
    otp = issue_email_otp(user)
    db.add(user)
    db.commit()
    db.refresh(user)
    logger.info(f"新使用者註冊：{user.email} (id={user.id})")

    # 寄信失敗不影響註冊，使用者可以重寄
    try:
        await send_otp_email(user.email, user.first_name, otp)
    except EmailDeliveryError:
        logger.warning(f"註冊驗證信寄送失敗：{user.email}")

    return {
        "success": True,
        "message": "Registration successful. Please check your email for the verification code.",
        "userId": user.id,
        "email": user.email,
    }


@router.post("/verify-otp")
@limiter.limit(auth_limit)
async def verify_otp(payload: VerifyOtpRequest, request: Request, db: Session = Depends(get_db)):
    """驗證 email OTP，成功後直接登入"""
    user = _get_user_by_email(db, payload.email)
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    if user.email_verified:
        raise HTTPException(status_code=400, detail="Email is already verified")
    if not check_otp(payload.otp, user.email_otp_hash, user.email_otp_expires_at):
        raise HTTPException(status_code=400, detail="Invalid or expired OTP")

    user.email_verified = True
    user.email_otp_hash = None
    user.email_otp_expires_at = None
    user.last_login_at = datetime.utcnow()
    db.commit()
    db.refresh(user)

    return token_response(user, "Email verified successfully")


@router.post("/resend-otp")
async def resend_otp(payload: EmailRequest, db: Session = Depends(get_db)):
    user = _get_user_by_email(db, payload.email)
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    if user.email_verified:
        raise HTTPException(status_code=400, detail="Email is already verified")

    otp = issue_email_otp(user)
    db.commit()

    try:
        await send_otp_email(user.email, user.first_name, otp)
    except EmailDeliveryError:
        raise HTTPException(status_code=500, detail="Failed to send verification email")

    return {"success": True, "message": "A new verification code has been sent to your email"}


@router.post("/login")
@limiter.limit(auth_limit)
async def login(payload: LoginRequest, request: Request, db: Session = Depends(get_db)):
    user = _get_user_by_email(db, payload.email)
    if not user or not verify_password(payload.password, user.password_hash):
        raise HTTPException(status_code=401, detail="Invalid email or password")
    if not user.is_active:
        raise HTTPException(status_code=401, detail="Account has been deactivated")
    if not user.email_verified:
        raise HTTPException(status_code=403, detail={
            "message": "Please verify your email before logging in",
            "requiresVerification": True,
            "email": user.email,
        })

    user.last_login_at = datetime.utcnow()
    db.commit()
    db.refresh(user)
    logger.info(f"使用者登入：{user.email}")

    return token_response(user, "Login successful")


@router.get("/profile")
async def get_profile(request: Request, db: Session = Depends(get_db)):
    user = await get_current_user(request, db)
    return {"success": True, "user": user_to_out(user)}


@router.patch("/profile")
async def update_profile(payload: ProfileUpdate, request: Request, db: Session = Depends(get_db)):
    """更新個人資料（email 不可在此修改）"""
    user = await get_current_user(request, db)
    data = payload.model_dump(exclude_unset=True, exclude_none=True)

    if "phone" in data and data["phone"] != user.phone:
        exists = db.query(User).filter(User.phone == data["phone"], User.id != user.id).first()
        if exists:
            raise HTTPException(status_code=400, detail="Phone number is already in use")
        user.phone_verified = False

    for field, value in data.items():
        setattr(user, field, value.strip() if isinstance(value, str) else value)

    db.commit()
    db.refresh(user)
    return {"success": True, "message": "Profile updated successfully", "user": user_to_out(user)}


@router.patch("/change-password")
async def change_password(payload: ChangePasswordRequest, request: Request, db: Session = Depends(get_db)):
    user = await get_current_user(request, db)
    if not verify_password(payload.current_password, user.password_hash):
        raise HTTPException(status_code=400, detail="Current password is incorrect")

    user.password_hash = hash_password(payload.new_password)
    db.commit()
    logger.info(f"使用者變更密碼：{user.email}")
    return {"success": True, "message": "Password changed successfully"}


@router.post("/logout")
async def logout():
    """登出"""
    response = JSONResponse(content={"success": True, "message": "Logged out successfully"})
    response.delete_cookie("access_token")
    return response


@router.post("/forgot-password")
async def forgot_password(payload: EmailRequest, db: Session = Depends(get_db)):
    """寄出重設密碼驗證碼；不透露 email 是否存在"""
    user = _get_user_by_email(db, payload.email)
    if not user or not user.is_active:
        return {"success": True, "message": FORGOT_PASSWORD_MESSAGE}

    otp = issue_reset_otp(user)
    db.commit()

    try:
        await send_password_reset_otp_email(user.email, user.first_name, otp)
    except EmailDeliveryError:
        logger.warning(f"重設密碼信寄送失敗：{user.email}")

    return {"success": True, "message": FORGOT_PASSWORD_MESSAGE}


@router.post("/verify-reset-otp")
@limiter.limit(auth_limit)
async def verify_reset_otp(payload: VerifyOtpRequest, request: Request, db: Session = Depends(get_db)):
    """驗證重設密碼 OTP，回傳短效 reset token"""
    user = _get_user_by_email(db, payload.email)
    if not user or not check_otp(payload.otp, user.reset_otp_hash, user.reset_otp_expires_at):
        raise HTTPException(status_code=400, detail="Invalid or expired OTP")

    return {
        "success": True,
        "message": "OTP verified. You can now reset your password.",
        "resetToken": create_reset_token(user),
    }


@router.post("/reset-password")
@limiter.limit(auth_limit)
async def reset_password(payload: ResetPasswordRequest, request: Request, db: Session = Depends(get_db)):
    token_data = decode_token(payload.reset_token)
    if not token_data or token_data.get("purpose") != "password-reset":
        raise HTTPException(status_code=400, detail="Invalid or expired reset token")
    if token_data.get("email") != payload.email:
        raise HTTPException(status_code=400, detail="Reset token does not match this email")

    user = _get_user_by_email(db, payload.email)
    if not user or user.id != token_data.get("user_id"):
        raise HTTPException(status_code=400, detail="Invalid or expired reset token")
    # OTP 用過一次就清掉，token 不能重複使用
    if not user.reset_otp_hash or not user.reset_otp_expires_at or datetime.utcnow() > user.reset_otp_expires_at:
        raise HTTPException(status_code=400, detail="Reset session has expired, please request a new code")

    user.password_hash = hash_password(payload.new_password)
    user.reset_otp_hash = None
    user.reset_otp_expires_at = None
    db.commit()
    logger.info(f"使用者重設密碼：{user.email}")

    return {"success": True, "message": "Password has been reset successfully. Please log in."}


@router.post("/resend-reset-otp")
async def resend_reset_otp(payload: EmailRequest, db: Session = Depends(get_db)):
    user = _get_user_by_email(db, payload.email)
    if not user or not user.is_active:
        return {"success": True, "message": FORGOT_PASSWORD_MESSAGE}

    otp = issue_reset_otp(user)
    db.commit()

    try:
        await send_password_reset_otp_email(user.email, user.first_name, otp)
    except EmailDeliveryError:
        raise HTTPException(status_code=500, detail="Failed to send password reset email")

    return {"success": True, "message": FORGOT_PASSWORD_MESSAGE}
