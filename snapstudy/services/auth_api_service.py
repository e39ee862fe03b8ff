"""Business logic handlers for auth APIs."""

from snapstudy import validation
from snapstudy.responses import json_body, success_response
from snapstudy.services import account_service, auth_service


def register(runtime, request):
    name, email, password = validation.validate_registration(json_body(request))
    account_service.register(runtime, name, email, password)
    return success_response(
        {'email': email, 'otpSent': True},
        'Registration successful. Please check your email for the verification code.',
        201,
    )


def login(runtime, request):
    email, password = validation.validate_login(json_body(request))
    account_service.login(runtime, email, password)
    return success_response(
        {'email': email, 'otpSent': True},
        'Verification code sent to your email.',
    )


def verify_otp(runtime, request):
    email, code, is_login = validation.validate_otp_submission(json_body(request))
    token, account = account_service.complete_challenge(
        runtime, email, code, is_login=is_login, client_key=request.remote_addr,
    )
    response, status = success_response(
        {'token': token, 'user': account.to_public_dict()},
        'Login successful' if is_login else 'Email verified successfully',
    )
    auth_service.set_session_cookie(
        response,
        token,
        max_age=runtime.config.jwt_ttl_seconds,
        secure=runtime.secure_cookies,
    )
    return response, status


def resend_otp(runtime, request):
    email, is_login = validation.validate_resend(json_body(request))
    account_service.resend_challenge(runtime, email, is_login=is_login)
    return success_response({'email': email, 'otpSent': True}, 'Verification code sent.')


def me(runtime, account):
    return success_response({'user': account.to_public_dict()})


def logout(runtime, request):
    response, status = success_response(message='Logged out successfully')
    auth_service.clear_session_cookie(response, secure=runtime.secure_cookies)
    return response, status
