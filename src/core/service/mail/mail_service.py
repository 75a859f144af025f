"""
Transactional mail via Resend.

Dispatch is best effort: a failed send is logged and reported as False,
never raised into the request that triggered it.
"""

import html
from typing import Optional
from urllib.parse import quote

import resend
from starlette.concurrency import run_in_threadpool

from src.core.logger.logger import get_logger
from src.infra.config.settings import get_settings

logger = get_logger(__name__)
settings = get_settings()


def _wrap(content: str) -> str:
    return f"""
  <div style="font-family: sans-serif; line-height: 1.5; color: #333;">
    <div style="padding: 1rem; border: 1px solid #eee; border-radius: 8px; max-width: 600px; margin: auto;">
      <div style="text-align: center; margin-bottom: 1rem;">
        <h2 style="color: #0057B7;">{settings.APP_NAME} Community</h2>
      </div>
      {content}
      <hr style="margin: 2rem 0;" />
      <p style="font-size: 0.9rem; color: #888;">If you didn't request this email, you can safely ignore it.</p>
    </div>
  </div>
"""


class MailService:
    def __init__(self, api_key: Optional[str] = None, sender: Optional[str] = None):
        self.api_key = api_key if api_key is not None else settings.RESEND_API_KEY
        self.sender = sender or settings.MAIL_FROM

    async def send(self, to: str, subject: str, html: str) -> bool:
        if not self.api_key:
            logger.warning("Mail not sent, RESEND_API_KEY is not configured", extra={"subject": subject})
            return False

        params = {"from": self.sender, "to": [to], "subject": subject, "html": html}
        try:
            resend.api_key = self.api_key
            await run_in_threadpool(resend.Emails.send, params)
        except Exception as e:
            logger.error(
                "Mail dispatch failed",
                extra={"subject": subject, "error": str(e), "error_type": type(e).__name__},
                exc_info=True
            )
            return False

        logger.info("Mail sent", extra={"subject": subject})
        return True

    async def send_otp(self, to: str, otp: str, subject: str = "Verify your email") -> bool:
        body = _wrap(f"""
      <p>Hello,</p>
      <p>Your OTP for verification is:</p>
      <h2>{otp}</h2>
      <p>This OTP will expire in {settings.OTP_EXPIRY_MINUTES} minutes.</p>
""")
        return await self.send(to, subject, body)

    async def send_password_reset(self, to: str, otp: str) -> bool:
        reset_link = html.escape(f"{settings.CLIENT_URL}/reset-password?email={quote(to)}")
        body = _wrap(f"""
      <p>Hello,</p>
      <p>We received a request to reset your password. Use this code:</p>
      <h2>{otp}</h2>
      <p><a href="{reset_link}" style="background-color:#0057B7; color:white; padding:10px 20px; text-decoration:none; border-radius:5px;">Reset Password</a></p>
      <p>This code will expire in {settings.OTP_EXPIRY_MINUTES} minutes.</p>
""")
        return await self.send(to, "Reset Your Password", body)

    async def send_welcome(self, to: str, name: str) -> bool:
        body = _wrap(f"""
      <p>Hello {html.escape(name)},</p>
      <p>Welcome to {settings.APP_NAME} Community! Your account has been created successfully.</p>
      <p>We're excited to have you on board.</p>
""")
        return await self.send(to, f"Welcome to {settings.APP_NAME} Community", body)
