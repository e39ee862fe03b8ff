"""Business logic handlers for payment APIs."""

from snapstudy import validation
from snapstudy.responses import json_body, success_response
from snapstudy.services import payment_service


def get_packages(runtime):
    return success_response({
        'packages': payment_service.list_credit_packages(runtime.config.payment_currency),
        'publishableKey': runtime.config.stripe_publishable_key,
        'pricePerCreditCents': payment_service.FALLBACK_PRICE_CENTS_PER_CREDIT,
    })


def create_payment_intent(runtime, request, account):
    credits = validation.validate_purchase_credits(json_body(request))
    return success_response(payment_service.create_payment_intent(runtime, account, credits))


def create_checkout_session(runtime, request, account):
    credits = validation.validate_purchase_credits(json_body(request))
    return success_response(payment_service.create_checkout_session(runtime, account, credits))


def _confirmation_response(result):
    if result['already_processed']:
        message = 'Payment already processed'
    else:
        message = f"Successfully added {result['credits_added']} credits"
    return success_response({
        'creditsAdded': result['credits_added'],
        'newBalance': result['new_balance'],
        'alreadyProcessed': result['already_processed'],
    }, message)


def confirm_payment(runtime, request, account):
    payment_intent_id = validation.validate_required_id(json_body(request), 'paymentIntentId', 'Payment intent ID')
    return _confirmation_response(payment_service.confirm_payment(runtime, account.id, payment_intent_id))


def checkout_success(runtime, request, account):
    payload = json_body(request)
    if not payload.get('sessionId') and request.args.get('session_id'):
        payload = {'sessionId': request.args.get('session_id')}
    session_id = validation.validate_required_id(payload, 'sessionId', 'Session ID')
    return _confirmation_response(payment_service.confirm_payment(runtime, account.id, session_id))


def get_purchase_history(runtime, account):
    return success_response({'purchases': payment_service.list_purchase_history(runtime, account.id)})


def stripe_webhook(runtime, request):
    payment_service.handle_webhook(
        runtime,
        request.get_data(),
        request.headers.get('Stripe-Signature', ''),
    )
    return success_response({'received': True})
