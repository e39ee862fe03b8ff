import pytest

from snapstudy.services import password_service


def test_hash_and_match():
    stored = password_service.hash_password("Secret1", rounds=4)

    assert stored != "Secret1"
    assert password_service.password_matches("Secret1", stored) is True
    assert password_service.password_matches("secret1", stored) is False


def test_malformed_or_missing_hash_never_matches():
    assert password_service.password_matches("Secret1", "") is False
    assert password_service.password_matches("Secret1", None) is False
    assert password_service.password_matches("Secret1", "not-a-bcrypt-hash") is False


def test_burn_password_check_returns_nothing():
    assert password_service.burn_password_check("whatever", rounds=4) is None


def test_passwords_past_bcrypt_limit_are_rejected_not_truncated():
    long_password = "Aa1" + "x" * 80
    stored = password_service.hash_password("Aa1" + "x" * 69, rounds=4)

    assert password_service.password_too_long(long_password) is True
    assert password_service.password_too_long("Aa1" + "x" * 69) is False
    with pytest.raises(ValueError):
        password_service.hash_password(long_password, rounds=4)
    assert password_service.password_matches(long_password, stored) is False


def test_byte_limit_counts_utf8_bytes():
    assert password_service.password_too_long("é" * 36) is False
    assert password_service.password_too_long("é" * 37) is True


def test_burn_password_check_accepts_overlong_input():
    assert password_service.burn_password_check("x" * 200, rounds=4) is None
