"""One-time codes for email verification and password reset. Only hashes are stored."""

import hashlib
import hmac
import secrets
from datetime import datetime, timedelta
from typing import Optional, Tuple

from src.core.utils.clock import ensure_utc


def generate_otp(length: int = 6) -> str:
    return "".join(secrets.choice("0123456789") for _ in range(length))


def hash_otp(otp: str) -> str:
    return hashlib.sha256(otp.encode()).hexdigest()


def issue_otp(now: datetime, expiry_minutes: int, length: int = 6) -> Tuple[str, str, datetime]:
    """Returns (plain code, stored hash, expiry)"""
    otp = generate_otp(length)
    return otp, hash_otp(otp), ensure_utc(now) + timedelta(minutes=expiry_minutes)


def otp_matches(
    otp: str,
    stored_hash: Optional[str],
    expires_at: Optional[datetime],
    now: datetime
) -> bool:
    if not stored_hash or expires_at is None:
        return False
    if ensure_utc(now) > ensure_utc(expires_at):
        return False
    return hmac.compare_digest(hash_otp(otp.strip()), stored_hash)
