"""Signed session tokens (HS256 JWT)."""

from datetime import timedelta

import jwt

from snapstudy.errors import AuthenticationError
from snapstudy.models import utcnow

TOKEN_TYPE = 'session'
ALGORITHM = 'HS256'


def issue_session_token(account_id, *, secret, ttl_seconds, now=None):
    now = now or utcnow()
    payload = {
        'sub': account_id,
        'typ': TOKEN_TYPE,
        'iat': now,
        'exp': now + timedelta(seconds=ttl_seconds),
    }
    return jwt.encode(payload, secret, algorithm=ALGORITHM)


def decode_session_token(token, *, secret):
    """Return the account id bound to ``token``; raise AuthenticationError otherwise."""
    try:
        payload = jwt.decode(token, secret, algorithms=[ALGORITHM], options={'require': ['sub', 'exp']})
    except jwt.ExpiredSignatureError:
        raise AuthenticationError('Not authorized - Token has expired')
    except jwt.InvalidTokenError:
        raise AuthenticationError('Not authorized - Token is invalid')
    if payload.get('typ') != TOKEN_TYPE:
        raise AuthenticationError('Not authorized - Token is invalid')
    return str(payload['sub'])
