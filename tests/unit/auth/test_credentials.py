from datetime import datetime, timedelta, timezone

from src.core.service.auth.otp import generate_otp, hash_otp, issue_otp, otp_matches
from src.core.service.auth.password import hash_password, verify_password

NOW = datetime(2024, 3, 15, 12, 0, tzinfo=timezone.utc)


def test_generate_otp_is_numeric_with_requested_length():
    otp = generate_otp(8)
    assert len(otp) == 8
    assert otp.isdigit()


def test_issue_otp_stores_only_the_hash():
    otp, otp_hash, expires_at = issue_otp(NOW, expiry_minutes=10)

    assert otp_hash == hash_otp(otp)
    assert otp not in otp_hash
    assert expires_at == NOW + timedelta(minutes=10)


def test_otp_matches_until_expiry():
    otp, otp_hash, expires_at = issue_otp(NOW, expiry_minutes=10)

    assert otp_matches(otp, otp_hash, expires_at, NOW + timedelta(minutes=10))
    assert otp_matches(f" {otp} ", otp_hash, expires_at, NOW)
    assert not otp_matches(otp, otp_hash, expires_at, NOW + timedelta(minutes=10, seconds=1))


def test_otp_rejects_wrong_or_missing_code():
    otp, otp_hash, expires_at = issue_otp(NOW, expiry_minutes=10)
    wrong = "0" * 6 if otp != "0" * 6 else "1" * 6

    assert not otp_matches(wrong, otp_hash, expires_at, NOW)
    assert not otp_matches(otp, None, expires_at, NOW)
    assert not otp_matches(otp, otp_hash, None, NOW)


def test_password_hash_roundtrip():
    password_hash = hash_password("s3cret-pass")

    assert password_hash != "s3cret-pass"
    assert verify_password("s3cret-pass", password_hash)
    assert not verify_password("wrong-pass", password_hash)


def test_password_verify_without_usable_hash():
    assert not verify_password("anything", "")
    assert not verify_password("anything", "not-a-real-hash")
