"""Account lifecycle: registration, OTP challenges, login, profile and email changes.

Every state change goes through ``runtime.store.mutate_account`` so the OTP
check, its consumption, and the verification flip happen as one step.
"""

import logging

from snapstudy.errors import (
    ConflictError,
    ExternalServiceError,
    InvalidCredentialsError,
    InvalidOrExpiredCodeError,
    MustVerifyFirstError,
    NotFoundError,
    NotVerifiedError,
    ValidationError,
)
from snapstudy.logging_config import log_event
from snapstudy.models import Account, new_id
from snapstudy.services import otp_service, password_service, token_service

logger = logging.getLogger('snapstudy')


def _issue(runtime, account, purpose):
    return otp_service.issue_otp(account, runtime.clock(), runtime.config.otp_ttl_seconds, purpose)


def _throttle_resend(runtime, subject):
    config = runtime.config
    runtime.throttle(
        'otp_resend',
        subject,
        config.otp_resend_max_requests,
        config.otp_resend_window_seconds,
        message='Too many verification codes requested. Please wait before trying again.',
    )


VERIFY_THROTTLE_MESSAGE = 'Too many verification attempts. Please wait before trying again.'


def _throttle_verify(runtime, subject, client_key=None):
    """Per-client limit on code attempts for ``subject``, under a looser per-subject ceiling.

    A single client burning its attempts cannot lock the owner out; the
    ceiling still bounds guesses spread across many clients.
    """
    config = runtime.config
    runtime.throttle(
        'otp_verify_client',
        f'{subject}|{client_key or "unknown"}',
        config.otp_verify_max_attempts,
        config.otp_verify_window_seconds,
        message=VERIFY_THROTTLE_MESSAGE,
    )
    runtime.throttle(
        'otp_verify',
        subject,
        config.otp_verify_subject_max_attempts,
        config.otp_verify_window_seconds,
        message=VERIFY_THROTTLE_MESSAGE,
    )


def register(runtime, name, email, password):
    """Create (or refresh an unverified) account and send its verification code.

    Re-registering an email that never completed verification overwrites the
    pending record. A verified email is a conflict.
    """
    config = runtime.config
    existing = runtime.store.find_account_by_email(email)
    if existing is not None and existing.is_verified:
        raise ConflictError()

    password_hash = password_service.hash_password(password, config.bcrypt_rounds)
    privileged = config.is_developer_email(email)
    issued = {}

    def _prepare(account):
        if account.is_verified:
            raise ConflictError()
        account.display_name = name
        account.password_hash = password_hash
        account.credit_balance = config.starting_credits
        account.has_unlimited_credits = privileged
        account.is_developer = privileged
        issued['code'] = _issue(runtime, account, otp_service.PURPOSE_REGISTRATION)

    if existing is not None:
        account = runtime.store.mutate_account(existing.id, _prepare)
    else:
        now = runtime.clock()
        account = Account(
            id=new_id(),
            email=email,
            password_hash=password_hash,
            display_name=name,
            created_at=now,
            updated_at=now,
        )
        _prepare(account)
        account = runtime.store.create_account(account)

    log_event(logging.INFO, 'account_registered', account_id=account.id,
              refreshed=existing is not None, developer=privileged)
    runtime.notifier.send_otp(email, issued['code'], name, otp_service.PURPOSE_REGISTRATION)
    return account


def login(runtime, email, password):
    """Check credentials and send a login code. No token is issued here."""
    account = runtime.store.find_account_by_email(email)
    if account is None:
        password_service.burn_password_check(password, runtime.config.bcrypt_rounds)
        raise InvalidCredentialsError()
    if not password_service.password_matches(password, account.password_hash):
        raise InvalidCredentialsError()
    if not account.is_verified:
        raise NotVerifiedError()

    issued = {}

    def _prepare(target):
        issued['code'] = _issue(runtime, target, otp_service.PURPOSE_LOGIN)

    account = runtime.store.mutate_account(account.id, _prepare)
    log_event(logging.INFO, 'login_challenge_issued', account_id=account.id)
    runtime.notifier.send_otp(email, issued['code'], account.display_name, otp_service.PURPOSE_LOGIN)
    return account


def complete_challenge(runtime, email, code, is_login=False, client_key=None):
    """Consume a registration/login code and mint a session token.

    Returns ``(token, account)``.
    """
    _throttle_verify(runtime, email, client_key)
    account = runtime.store.find_account_by_email(email)
    if account is None:
        raise NotFoundError('User not found')

    now = runtime.clock()
    was_verified = account.is_verified

    def _consume(target):
        if target.otp_purpose == otp_service.PURPOSE_EMAIL_CHANGE:
            raise InvalidOrExpiredCodeError()
        if not otp_service.verify_otp(target, code, now):
            raise InvalidOrExpiredCodeError()
        otp_service.clear_otp(target)
        otp_service.mark_verified(target)

    try:
        account = runtime.store.mutate_account(account.id, _consume)
    except InvalidOrExpiredCodeError:
        log_event(logging.INFO, 'otp_rejected', account_id=account.id, is_login=bool(is_login))
        raise

    token = token_service.issue_session_token(
        account.id,
        secret=runtime.config.jwt_secret,
        ttl_seconds=runtime.config.jwt_ttl_seconds,
    )
    log_event(logging.INFO, 'otp_verified', account_id=account.id, is_login=bool(is_login))

    if not is_login and not was_verified:
        try:
            runtime.notifier.send_welcome(account.email, account.display_name)
        except ExternalServiceError as e:
            logger.warning(f"Welcome email for account {account.id} failed: {e}")
    return token, account


def resend_challenge(runtime, email, is_login=False):
    account = runtime.store.find_account_by_email(email)
    if account is None:
        raise NotFoundError('User not found')
    if is_login and not account.is_verified:
        raise MustVerifyFirstError()
    _throttle_resend(runtime, email)

    purpose = otp_service.PURPOSE_LOGIN if is_login else otp_service.PURPOSE_REGISTRATION
    issued = {}

    def _prepare(target):
        issued['code'] = _issue(runtime, target, purpose)

    account = runtime.store.mutate_account(account.id, _prepare)
    log_event(logging.INFO, 'otp_resent', account_id=account.id, purpose=purpose)
    runtime.notifier.send_otp(email, issued['code'], account.display_name, purpose)
    return account


def get_account(runtime, account_id):
    account = runtime.store.get_account(account_id)
    if account is None:
        raise NotFoundError('User not found')
    return account


def update_profile(runtime, account_id, updates):
    if not updates:
        return get_account(runtime, account_id)

    def _apply(target):
        for attr, value in updates.items():
            setattr(target, attr, value)

    account = runtime.store.mutate_account(account_id, _apply)
    log_event(logging.INFO, 'profile_updated', account_id=account_id, fields=sorted(updates))
    return account


def request_email_change(runtime, account_id, new_email, current_password):
    """Send a confirmation code to ``new_email``; the address changes only on confirm."""
    account = get_account(runtime, account_id)
    if not password_service.password_matches(current_password, account.password_hash):
        raise ValidationError('Current password is incorrect')
    if new_email == account.email:
        raise ValidationError('New email must be different from current email')
    other = runtime.store.find_account_by_email(new_email)
    if other is not None and other.id != account.id:
        raise ConflictError('Email address is already in use')
    _throttle_resend(runtime, account_id)

    issued = {}

    def _prepare(target):
        issued['code'] = _issue(runtime, target, otp_service.PURPOSE_EMAIL_CHANGE)
        target.pending_email = new_email

    account = runtime.store.mutate_account(account_id, _prepare)
    log_event(logging.INFO, 'email_change_requested', account_id=account_id)
    runtime.notifier.send_otp(new_email, issued['code'], account.display_name, otp_service.PURPOSE_EMAIL_CHANGE)
    return account


def confirm_email_change(runtime, account_id, new_email, code):
    _throttle_verify(runtime, account_id)
    now = runtime.clock()

    def _apply(target):
        if target.pending_email != new_email or target.otp_purpose != otp_service.PURPOSE_EMAIL_CHANGE:
            raise InvalidOrExpiredCodeError()
        if not otp_service.verify_otp(target, code, now):
            raise InvalidOrExpiredCodeError()
        otp_service.clear_otp(target)
        target.pending_email = None

    account = runtime.store.change_account_email(account_id, new_email, _apply)
    log_event(logging.INFO, 'email_changed', account_id=account_id)
    return account
