"""bcrypt password hashing."""

from functools import lru_cache

import bcrypt

DEFAULT_ROUNDS = 12
# bcrypt only reads the first 72 bytes of its input.
PASSWORD_MAX_BYTES = 72


def password_too_long(plaintext):
    return len(str(plaintext or '').encode('utf-8')) > PASSWORD_MAX_BYTES


def hash_password(plaintext, rounds=DEFAULT_ROUNDS):
    if password_too_long(plaintext):
        raise ValueError(f'Password cannot be longer than {PASSWORD_MAX_BYTES} bytes')
    salt = bcrypt.gensalt(rounds=rounds)
    return bcrypt.hashpw(str(plaintext).encode('utf-8'), salt).decode('utf-8')


def password_matches(plaintext, stored_hash):
    if not stored_hash or password_too_long(plaintext):
        return False
    try:
        return bcrypt.checkpw(str(plaintext or '').encode('utf-8'), stored_hash.encode('utf-8'))
    except ValueError:
        return False


@lru_cache(maxsize=4)
def _timing_guard_hash(rounds):
    return hash_password('snapstudy-timing-guard', rounds)


def burn_password_check(plaintext, rounds=DEFAULT_ROUNDS):
    """Spend the same bcrypt work as a real check, for unknown emails."""
    bcrypt.checkpw(b'snapstudy-timing-guard-candidate', _timing_guard_hash(rounds).encode('utf-8'))
