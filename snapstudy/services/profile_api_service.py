"""Business logic handlers for profile APIs."""

from snapstudy import validation
from snapstudy.responses import json_body, success_response
from snapstudy.services import account_service


def get_profile(runtime, account):
    return success_response({'user': account.to_public_dict()})


def update_profile(runtime, request, account):
    updates = validation.validate_profile_update(json_body(request))
    account = account_service.update_profile(runtime, account.id, updates)
    return success_response({'user': account.to_public_dict()}, 'Profile updated successfully')


def request_email_change(runtime, request, account):
    new_email, current_password = validation.validate_email_change_request(json_body(request))
    account_service.request_email_change(runtime, account.id, new_email, current_password)
    return success_response(
        {'newEmail': new_email, 'otpSent': True},
        'Verification code sent to your new email address.',
    )


def confirm_email_change(runtime, request, account):
    new_email, code = validation.validate_email_change_confirmation(json_body(request))
    account = account_service.confirm_email_change(runtime, account.id, new_email, code)
    return success_response({'user': account.to_public_dict()}, 'Email updated successfully')
