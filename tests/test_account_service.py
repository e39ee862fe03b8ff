import pytest

from conftest import DEVELOPER_EMAIL

from snapstudy.errors import (
    ConflictError,
    InvalidCredentialsError,
    InvalidOrExpiredCodeError,
    MustVerifyFirstError,
    NotFoundError,
    NotVerifiedError,
    RateLimitedError,
    ValidationError,
)
from snapstudy.models import VerificationState
from snapstudy.services import account_service, token_service
from snapstudy.services.email_service import EmailDeliveryError


def _wrong_code(code):
    return "1000" if code != "1000" else "1001"


def test_register_wrong_code_then_correct_code_verifies(runtime, notifier):
    account_service.register(runtime, "Ann", "ann@x.com", "Secret1")
    code = notifier.last_code("ann@x.com")

    with pytest.raises(InvalidOrExpiredCodeError):
        account_service.complete_challenge(runtime, "ann@x.com", _wrong_code(code))
    assert not runtime.store.find_account_by_email("ann@x.com").is_verified

    token, account = account_service.complete_challenge(runtime, "ann@x.com", code)

    assert account.verification_state == VerificationState.VERIFIED
    assert account.otp_code is None
    assert token_service.decode_session_token(token, secret=runtime.config.jwt_secret) == account.id
    assert notifier.welcomed == ["ann@x.com"]


def test_welcome_mail_is_sent_once_per_account(runtime, notifier):
    account_service.register(runtime, "Ann", "ann@x.com", "Secret1")
    account_service.complete_challenge(runtime, "ann@x.com", notifier.last_code("ann@x.com"))

    account_service.resend_challenge(runtime, "ann@x.com", is_login=False)
    token, account = account_service.complete_challenge(runtime, "ann@x.com", notifier.last_code("ann@x.com"))

    assert token
    assert account.is_verified
    assert notifier.welcomed == ["ann@x.com"]


def test_register_assigns_starting_credits_and_no_privileges(runtime):
    account = account_service.register(runtime, "Ann", "ann@x.com", "Secret1")

    assert account.credit_balance == runtime.config.starting_credits
    assert account.has_unlimited_credits is False
    assert account.is_developer is False
    assert account.password_hash != "Secret1"


def test_register_allow_listed_email_is_privileged(runtime):
    account = account_service.register(runtime, "Dev", DEVELOPER_EMAIL, "Secret1")

    assert account.has_unlimited_credits is True
    assert account.is_developer is True


def test_reregistering_unverified_email_overwrites_pending_account(runtime, notifier):
    first = account_service.register(runtime, "Ann", "ann@x.com", "Secret1")
    second = account_service.register(runtime, "Annie", "ann@x.com", "Secret2")

    assert second.id == first.id
    assert second.display_name == "Annie"
    assert len(notifier.sent) == 2
    with pytest.raises(InvalidCredentialsError):
        # not verified yet, but the password check runs first
        account_service.login(runtime, "ann@x.com", "Secret1")


def test_register_verified_email_conflicts(runtime, make_verified_account):
    make_verified_account(email="ann@x.com")

    with pytest.raises(ConflictError):
        account_service.register(runtime, "Ann", "ann@x.com", "Secret1")


def test_login_on_verified_account_issues_challenge_not_token(runtime, notifier, make_verified_account):
    make_verified_account(email="ann@x.com", password="Secret1")
    sent_before = len(notifier.sent)

    result = account_service.login(runtime, "ann@x.com", "Secret1")

    assert not isinstance(result, str)
    assert len(notifier.sent) == sent_before + 1
    assert notifier.sent[-1]["purpose"] == "login"

    token, account = account_service.complete_challenge(runtime, "ann@x.com", notifier.last_code("ann@x.com"), is_login=True)
    assert token_service.decode_session_token(token, secret=runtime.config.jwt_secret) == account.id
    assert account.is_verified


def test_login_on_unverified_account_fails_without_issuing_otp(runtime, notifier):
    account_service.register(runtime, "Ann", "ann@x.com", "Secret1")
    before = runtime.store.find_account_by_email("ann@x.com")
    sent_before = len(notifier.sent)

    with pytest.raises(NotVerifiedError):
        account_service.login(runtime, "ann@x.com", "Secret1")

    after = runtime.store.find_account_by_email("ann@x.com")
    assert len(notifier.sent) == sent_before
    assert after.otp_code == before.otp_code


def test_login_unknown_email_and_wrong_password_look_the_same(runtime, make_verified_account):
    make_verified_account(email="ann@x.com")

    with pytest.raises(InvalidCredentialsError) as unknown:
        account_service.login(runtime, "nobody@x.com", "Secret1")
    with pytest.raises(InvalidCredentialsError) as wrong:
        account_service.login(runtime, "ann@x.com", "Wrong123")

    assert unknown.value.message == wrong.value.message


def test_expired_code_is_rejected(runtime, notifier, clock):
    account_service.register(runtime, "Ann", "ann@x.com", "Secret1")
    clock.advance(runtime.config.otp_ttl_seconds)

    with pytest.raises(InvalidOrExpiredCodeError):
        account_service.complete_challenge(runtime, "ann@x.com", notifier.last_code("ann@x.com"))


def test_code_cannot_be_used_twice(runtime, notifier):
    account_service.register(runtime, "Ann", "ann@x.com", "Secret1")
    code = notifier.last_code("ann@x.com")
    account_service.complete_challenge(runtime, "ann@x.com", code)

    with pytest.raises(InvalidOrExpiredCodeError):
        account_service.complete_challenge(runtime, "ann@x.com", code)


def test_complete_challenge_unknown_email(runtime):
    with pytest.raises(NotFoundError):
        account_service.complete_challenge(runtime, "ghost@x.com", "1234")


def test_verify_attempts_are_throttled(runtime, notifier):
    account_service.register(runtime, "Ann", "ann@x.com", "Secret1")
    wrong = _wrong_code(notifier.last_code("ann@x.com"))

    for _ in range(runtime.config.otp_verify_max_attempts):
        with pytest.raises(InvalidOrExpiredCodeError):
            account_service.complete_challenge(runtime, "ann@x.com", wrong)

    with pytest.raises(RateLimitedError) as exc_info:
        account_service.complete_challenge(runtime, "ann@x.com", notifier.last_code("ann@x.com"))
    assert exc_info.value.retry_after >= 1


def test_one_client_exhausting_attempts_does_not_lock_out_the_owner(runtime, notifier):
    account_service.register(runtime, "Ann", "ann@x.com", "Secret1")
    wrong = _wrong_code(notifier.last_code("ann@x.com"))

    for _ in range(runtime.config.otp_verify_max_attempts):
        with pytest.raises(InvalidOrExpiredCodeError):
            account_service.complete_challenge(runtime, "ann@x.com", wrong, client_key="203.0.113.9")
    with pytest.raises(RateLimitedError):
        account_service.complete_challenge(runtime, "ann@x.com", wrong, client_key="203.0.113.9")

    token, account = account_service.complete_challenge(
        runtime, "ann@x.com", notifier.last_code("ann@x.com"), client_key="198.51.100.7",
    )
    assert token
    assert account.is_verified


def test_attempts_spread_across_clients_hit_the_per_email_ceiling(runtime, notifier):
    account_service.register(runtime, "Ann", "ann@x.com", "Secret1")
    wrong = _wrong_code(notifier.last_code("ann@x.com"))
    per_client = runtime.config.otp_verify_max_attempts
    clients = runtime.config.otp_verify_subject_max_attempts // per_client

    for index in range(clients):
        for _ in range(per_client):
            with pytest.raises(InvalidOrExpiredCodeError):
                account_service.complete_challenge(runtime, "ann@x.com", wrong, client_key=f"10.0.0.{index}")

    with pytest.raises(RateLimitedError):
        account_service.complete_challenge(runtime, "ann@x.com", notifier.last_code("ann@x.com"), client_key="10.0.1.1")
    assert not runtime.store.find_account_by_email("ann@x.com").is_verified


def test_resend_reissues_a_fresh_code(runtime, notifier, clock):
    account_service.register(runtime, "Ann", "ann@x.com", "Secret1")
    clock.advance(runtime.config.otp_ttl_seconds + 5)

    account_service.resend_challenge(runtime, "ann@x.com")
    code = notifier.last_code("ann@x.com")

    token, account = account_service.complete_challenge(runtime, "ann@x.com", code)
    assert token
    assert account.is_verified


def test_resend_login_for_unverified_account_must_verify_first(runtime):
    account_service.register(runtime, "Ann", "ann@x.com", "Secret1")

    with pytest.raises(MustVerifyFirstError):
        account_service.resend_challenge(runtime, "ann@x.com", is_login=True)


def test_resend_unknown_email(runtime):
    with pytest.raises(NotFoundError):
        account_service.resend_challenge(runtime, "ghost@x.com")


def test_resend_is_rate_limited(runtime, fake_time):
    account_service.register(runtime, "Ann", "ann@x.com", "Secret1")
    for _ in range(runtime.config.otp_resend_max_requests):
        account_service.resend_challenge(runtime, "ann@x.com")

    with pytest.raises(RateLimitedError):
        account_service.resend_challenge(runtime, "ann@x.com")

    fake_time.now += runtime.config.otp_resend_window_seconds + 1
    account_service.resend_challenge(runtime, "ann@x.com")


def test_delivery_failure_keeps_account_for_resend(runtime, notifier):
    notifier.fail = True
    with pytest.raises(EmailDeliveryError):
        account_service.register(runtime, "Ann", "ann@x.com", "Secret1")
    assert runtime.store.find_account_by_email("ann@x.com") is not None

    notifier.fail = False
    account_service.resend_challenge(runtime, "ann@x.com")
    token, _account = account_service.complete_challenge(runtime, "ann@x.com", notifier.last_code("ann@x.com"))
    assert token


def test_welcome_failure_does_not_block_verification(runtime, notifier):
    account_service.register(runtime, "Ann", "ann@x.com", "Secret1")
    code = notifier.last_code("ann@x.com")
    notifier.fail = True

    token, account = account_service.complete_challenge(runtime, "ann@x.com", code)

    assert token
    assert account.is_verified


def test_update_profile_sets_only_given_fields(runtime, make_verified_account):
    account, _token = make_verified_account()

    updated = account_service.update_profile(runtime, account.id, {"school_name": "UBC", "display_name": "Ann B"})

    assert updated.school_name == "UBC"
    assert updated.display_name == "Ann B"
    assert updated.email == account.email


def test_email_change_round_trip(runtime, notifier, make_verified_account):
    account, _token = make_verified_account(email="ann@x.com", password="Secret1")

    account_service.request_email_change(runtime, account.id, "ann.new@x.com", "Secret1")
    code = notifier.last_code("ann.new@x.com")
    assert notifier.sent[-1]["purpose"] == "email_change"

    updated = account_service.confirm_email_change(runtime, account.id, "ann.new@x.com", code)

    assert updated.email == "ann.new@x.com"
    assert updated.pending_email is None
    assert runtime.store.find_account_by_email("ann.new@x.com").id == account.id
    assert runtime.store.find_account_by_email("ann@x.com") is None


def test_email_change_requires_current_password(runtime, make_verified_account):
    account, _token = make_verified_account(email="ann@x.com", password="Secret1")

    with pytest.raises(ValidationError):
        account_service.request_email_change(runtime, account.id, "ann.new@x.com", "Wrong123")


def test_email_change_to_taken_address_conflicts(runtime, make_verified_account):
    account, _token = make_verified_account(email="ann@x.com")
    make_verified_account(email="bob@x.com", name="Bob")

    with pytest.raises(ConflictError):
        account_service.request_email_change(runtime, account.id, "bob@x.com", "Secret1")


def test_email_change_code_cannot_complete_a_login(runtime, notifier, make_verified_account):
    account, _token = make_verified_account(email="ann@x.com")
    account_service.request_email_change(runtime, account.id, "ann.new@x.com", "Secret1")

    with pytest.raises(InvalidOrExpiredCodeError):
        account_service.complete_challenge(runtime, "ann@x.com", notifier.last_code("ann.new@x.com"), is_login=True)


def test_confirm_email_change_for_other_address_is_rejected(runtime, notifier, make_verified_account):
    account, _token = make_verified_account(email="ann@x.com")
    account_service.request_email_change(runtime, account.id, "ann.new@x.com", "Secret1")

    with pytest.raises(InvalidOrExpiredCodeError):
        account_service.confirm_email_change(runtime, account.id, "other@x.com", notifier.last_code("ann.new@x.com"))
