"""One-time verification codes stored on the account record."""

import secrets
from datetime import timedelta

from snapstudy.models import VerificationState

OTP_MIN = 1000
OTP_MAX = 9999

PURPOSE_REGISTRATION = 'registration'
PURPOSE_LOGIN = 'login'
PURPOSE_EMAIL_CHANGE = 'email_change'


def generate_code():
    return str(OTP_MIN + secrets.randbelow(OTP_MAX - OTP_MIN + 1))


def issue_otp(account, now, ttl_seconds=600, purpose=PURPOSE_REGISTRATION):
    """Store a fresh code on ``account`` and return it; supersedes any prior code."""
    code = generate_code()
    account.otp_code = code
    account.otp_expires_at = now + timedelta(seconds=ttl_seconds)
    account.otp_purpose = purpose
    return code


def verify_otp(account, submitted_code, now):
    if not account.otp_code or account.otp_expires_at is None:
        return False
    if now >= account.otp_expires_at:
        return False
    return secrets.compare_digest(str(submitted_code or ''), account.otp_code)


def clear_otp(account):
    account.otp_code = None
    account.otp_expires_at = None
    account.otp_purpose = None


def mark_verified(account):
    # One-way: there is no transition back to unverified.
    account.verification_state = VerificationState.VERIFIED
