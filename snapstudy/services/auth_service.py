"""Authentication utility helpers."""

from functools import wraps

from flask import g, request

from snapstudy.errors import AuthenticationError
from snapstudy.services import token_service

TOKEN_COOKIE_NAME = 'token'


def extract_session_token(req):
    """Bearer header first, then the ``token`` cookie."""
    auth_header = req.headers.get('Authorization', '')
    if auth_header.startswith('Bearer '):
        token = auth_header.split('Bearer ', 1)[1].strip()
        if token:
            return token
    return (req.cookies.get(TOKEN_COOKIE_NAME) or '').strip() or None


def authenticate_request(runtime, req):
    """Resolve the account behind ``req``. The account is re-read on every call."""
    token = extract_session_token(req)
    if not token:
        raise AuthenticationError('Not authorized - No token provided')
    account_id = token_service.decode_session_token(token, secret=runtime.config.jwt_secret)
    account = runtime.store.get_account(account_id)
    if account is None:
        raise AuthenticationError('Not authorized - User not found')
    return account


def login_required(view):
    @wraps(view)
    def wrapper(*args, **kwargs):
        from snapstudy.extensions import get_runtime

        g.account = authenticate_request(get_runtime(), request)
        return view(*args, **kwargs)

    return wrapper


def set_session_cookie(response, token, max_age, secure):
    response.set_cookie(
        TOKEN_COOKIE_NAME,
        token,
        max_age=max_age,
        httponly=True,
        secure=secure,
        samesite='Lax',
        path='/',
    )
    return response


def clear_session_cookie(response, secure):
    response.set_cookie(
        TOKEN_COOKIE_NAME,
        '',
        expires=0,
        max_age=0,
        httponly=True,
        secure=secure,
        samesite='Lax',
        path='/',
    )
    return response
