"""
建立第一個管理員帳號
執行方式: python -m scripts.seed_admin --email admin@example.com --password secret
（也可用環境變數 ADMIN_EMAIL / ADMIN_PASSWORD / ADMIN_PHONE）
"""
import argparse
import os

from app.database import SessionLocal, engine, Base
from app.models import User, UserRole
from app.services.auth import hash_password


def seed_admin(email: str, password: str, phone: str, first_name: str = "Admin", last_name: str = "User") -> User | None:
    # 建立資料表
    Base.metadata.create_all(bind=engine)

    db = SessionLocal()

    try:
        # 檢查是否已有管理員
        if db.query(User).filter(User.role == UserRole.ADMIN).first():
            print("⚠️ 已有管理員帳號，略過")
            return None

        if db.query(User).filter(User.email == email.lower()).first():
            print(f"⚠️ {email} 已被註冊，略過")
            return None

        admin = User(
            first_name=first_name,
            last_name=last_name,
            email=email.lower(),
            phone=phone,
            password_hash=hash_password(password),
            role=UserRole.ADMIN,
            email_verified=True,
        )
        db.add(admin)
        db.commit()
        db.refresh(admin)
        print(f"✅ 建立管理員: {admin.email} (id={admin.id})")
        return admin

    except Exception as e:
        db.rollback()
        print(f"❌ 建立失敗: {e}")
        raise
    finally:
        db.close()


def main():
    parser = argparse.ArgumentParser(description="Create the first admin account")
    parser.add_argument("--email", default=os.getenv("ADMIN_EMAIL"))
    parser.add_argument("--password", default=os.getenv("ADMIN_PASSWORD"))
    parser.add_argument("--phone", default=os.getenv("ADMIN_PHONE", "+34000000000"))
    parser.add_argument("--first-name", default="Admin")
    parser.add_argument("--last-name", default="User")
    args = parser.parse_args()

    if not args.email or not args.password:
        parser.error("email and password are required (--email/--password or ADMIN_EMAIL/ADMIN_PASSWORD)")

    seed_admin(args.email, args.password, args.phone, args.first_name, args.last_name)


if __name__ == "__main__":
    main()
