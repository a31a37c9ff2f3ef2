"""Email 寄送服務

信件內容由 app/templates/email 下的 Jinja2 模板產生，透過 SMTP 寄出。
"""
import smtplib
import logging
from email.message import EmailMessage
from pathlib import Path
from jinja2 import Environment, FileSystemLoader, select_autoescape
from starlette.concurrency import run_in_threadpool

from app.config import get_settings

logger = logging.getLogger("email")

templates_dir = Path(__file__).resolve().parent.parent / "templates" / "email"
env = Environment(loader=FileSystemLoader(templates_dir), autoescape=select_autoescape(["html"]))


class EmailDeliveryError(Exception):
    pass


def render(template_name: str, **context) -> str:
    settings = get_settings()
    return env.get_template(template_name).render(app_name=settings.app_name, **context)


def send_email(to: str, subject: str, html: str):
    """同步寄信，失敗時丟 EmailDeliveryError"""
    settings = get_settings()
    sender = settings.email_from or settings.smtp_user

    message = EmailMessage()
    message["Subject"] = subject
    message["From"] = f"{settings.app_name} <{sender}>"
    message["To"] = to
    message.set_content("Please view this message in an HTML-capable email client.")
    message.add_alternative(html, subtype="html")

    try:
        with smtplib.SMTP(settings.smtp_host, settings.smtp_port, timeout=15) as smtp:
            smtp.starttls()
            if settings.smtp_user:
                smtp.login(settings.smtp_user, settings.smtp_password)
            smtp.send_message(message)
    except (smtplib.SMTPException, OSError) as e:
        logger.error(f"寄信失敗：to={to}, subject={subject}, error={e}")
        raise EmailDeliveryError(str(e)) from e

    logger.info(f"寄信成功：to={to}, subject={subject}")


async def send_otp_email(email: str, first_name: str, otp: str):
    settings = get_settings()
    html = render("otp.html", first_name=first_name, otp=otp, expire_minutes=settings.otp_expire_minutes)
    await run_in_threadpool(send_email, email, "Verify Your Email Address", html)


async def send_password_reset_otp_email(email: str, first_name: str, otp: str):
    settings = get_settings()
    html = render("password_reset.html", first_name=first_name, otp=otp, expire_minutes=settings.otp_expire_minutes)
    await run_in_threadpool(send_email, email, "Password Reset Request", html)


async def send_order_confirmation_email(email: str, first_name: str, order, lang: str = "en"):
    html = render("order_confirmation.html", first_name=first_name, order=order, lang=lang)
    await run_in_threadpool(send_email, email, f"Order {order.order_number} received", html)
