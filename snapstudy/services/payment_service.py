"""Stripe credit purchases and their reconciliation into the credit ledger.

The provider transaction id (``pi_...`` or ``cs_...``) is the idempotency key:
``confirm_payment`` and the webhook both credit through
``credit_ledger.credit_once`` with that id, so any combination of confirms and
webhook redeliveries for one transaction credits the account once.
"""

import logging

from snapstudy.errors import (
    AuthorizationError,
    ExternalServiceError,
    NotFoundError,
    NotSettledError,
    ServiceNotConfiguredError,
    SignatureError,
    ValidationError,
)
from snapstudy.logging_config import log_event
from snapstudy.services import credit_ledger

logger = logging.getLogger('snapstudy')

PURCHASE_TYPE = 'credit_purchase'
FALLBACK_PRICE_CENTS_PER_CREDIT = 20
HISTORY_LIMIT = 50

CREDIT_PACKAGES = {
    'starter': {
        'name': 'Starter',
        'description': '5 flashcard credits',
        'credits': 5,
        'price_cents': 100,
        'popular': False,
    },
    'basic': {
        'name': 'Basic',
        'description': '30 flashcard credits',
        'credits': 30,
        'price_cents': 500,
        'popular': False,
    },
    'pro': {
        'name': 'Pro',
        'description': '75 flashcard credits',
        'credits': 75,
        'price_cents': 1000,
        'popular': True,
    },
    'premium': {
        'name': 'Premium',
        'description': '175 flashcard credits',
        'credits': 175,
        'price_cents': 2500,
        'popular': False,
    },
}


def stripe_field(obj, key, default=None):
    """Read ``key`` from a StripeObject or a plain dict."""
    if obj is None:
        return default
    if isinstance(obj, dict):
        return obj.get(key, default)
    try:
        return obj[key]
    except (KeyError, TypeError, IndexError):
        return getattr(obj, key, default)


def package_for_credits(credits):
    for package_id, package in CREDIT_PACKAGES.items():
        if package['credits'] == credits:
            return package_id, package
    return None, None


def price_cents_for_credits(credits):
    _package_id, package = package_for_credits(credits)
    if package is not None:
        return package['price_cents']
    return int(credits) * FALLBACK_PRICE_CENTS_PER_CREDIT


def list_credit_packages(currency='cad'):
    return [
        {
            'id': package_id,
            'name': package['name'],
            'description': package['description'],
            'credits': package['credits'],
            'priceCents': package['price_cents'],
            'price': package['price_cents'] / 100,
            'currency': currency,
            'popular': package['popular'],
        }
        for package_id, package in CREDIT_PACKAGES.items()
    ]


def _require_stripe(runtime):
    if not runtime.config.stripe_secret_key or runtime.stripe is None:
        raise ServiceNotConfiguredError('Payment processing is not configured')
    return runtime.stripe


def _purchase_metadata(account, credits, package_id=None):
    metadata = {
        'account_id': account.id,
        'credits': str(int(credits)),
        'type': PURCHASE_TYPE,
    }
    if package_id:
        metadata['package_id'] = package_id
    return metadata


def create_payment_intent(runtime, account, credits):
    stripe = _require_stripe(runtime)
    package_id, _package = package_for_credits(credits)
    amount = price_cents_for_credits(credits)
    currency = runtime.config.payment_currency
    try:
        intent = stripe.PaymentIntent.create(
            amount=amount,
            currency=currency,
            automatic_payment_methods={'enabled': True},
            receipt_email=account.email,
            metadata=_purchase_metadata(account, credits, package_id),
        )
    except stripe.StripeError as e:
        logger.error(f"Stripe payment intent error for account {account.id}: {e}")
        raise ExternalServiceError('Could not create payment. Please try again.')
    log_event(logging.INFO, 'payment_intent_created', account_id=account.id,
              payment_intent_id=stripe_field(intent, 'id'), credits=credits, amount_cents=amount)
    return {
        'clientSecret': stripe_field(intent, 'client_secret'),
        'paymentIntentId': stripe_field(intent, 'id'),
        'amount': amount,
        'currency': currency,
        'credits': credits,
    }


def create_checkout_session(runtime, account, credits):
    """Hosted checkout for the fixed packages only."""
    package_id, package = package_for_credits(credits)
    if package is None:
        raise ValidationError('Invalid package selected', [{
            'field': 'credits',
            'message': 'Checkout is only available for the listed credit packages',
        }])
    stripe = _require_stripe(runtime)
    frontend_url = runtime.config.frontend_url
    try:
        session = stripe.checkout.Session.create(
            mode='payment',
            line_items=[{
                'price_data': {
                    'currency': runtime.config.payment_currency,
                    'product_data': {
                        'name': f"SnapStudy {package['name']}",
                        'description': package['description'],
                    },
                    'unit_amount': package['price_cents'],
                },
                'quantity': 1,
            }],
            success_url=frontend_url + '/payment/success?session_id={CHECKOUT_SESSION_ID}',
            cancel_url=frontend_url + '/pricing?payment=cancelled',
            customer_email=account.email,
            client_reference_id=account.id,
            metadata=_purchase_metadata(account, credits, package_id),
        )
    except stripe.StripeError as e:
        logger.error(f"Stripe checkout error for account {account.id}: {e}")
        raise ExternalServiceError('Could not create checkout session. Please try again.')
    log_event(logging.INFO, 'checkout_session_created', account_id=account.id,
              session_id=stripe_field(session, 'id'), package_id=package_id)
    return {'sessionId': stripe_field(session, 'id'), 'url': stripe_field(session, 'url')}


def _retrieve_transaction(stripe, transaction_id):
    """Return ``(transaction, settled)`` for a payment intent or checkout session."""
    if transaction_id.startswith('cs_'):
        session = stripe.checkout.Session.retrieve(transaction_id)
        return session, stripe_field(session, 'payment_status') == 'paid'
    intent = stripe.PaymentIntent.retrieve(transaction_id)
    return intent, stripe_field(intent, 'status') == 'succeeded'


def _purchased_credits(metadata):
    raw = stripe_field(metadata, 'credits')
    try:
        credits = int(str(raw).strip())
    except (TypeError, ValueError):
        credits = 0
    if credits <= 0:
        raise ValidationError('Payment is missing a valid credit amount')
    return credits


def _apply_purchase(runtime, transaction, transaction_id, account_id, source):
    metadata = stripe_field(transaction, 'metadata') or {}
    credits = _purchased_credits(metadata)
    amount_cents = stripe_field(transaction, 'amount')
    if amount_cents is None:
        amount_cents = stripe_field(transaction, 'amount_total')
    receipt = {
        'amount_cents': int(amount_cents or 0),
        'currency': stripe_field(transaction, 'currency') or runtime.config.payment_currency,
        'package_id': stripe_field(metadata, 'package_id'),
        'source': source,
    }
    account, applied = credit_ledger.credit_once(runtime.store, account_id, credits, transaction_id, receipt)
    log_event(logging.INFO, 'payment_confirmed' if applied else 'payment_duplicate',
              account_id=account_id, transaction_id=transaction_id, source=source, credits=credits)
    return {
        'credits_added': credits if applied else 0,
        'new_balance': account.credit_balance,
        'already_processed': not applied,
    }


def confirm_payment(runtime, account_id, transaction_id):
    """Interactive confirmation after the client finishes a payment."""
    stripe = _require_stripe(runtime)
    try:
        transaction, settled = _retrieve_transaction(stripe, transaction_id)
    except stripe.StripeError as e:
        logger.warning(f"Stripe retrieve failed for {transaction_id}: {e}")
        raise NotFoundError('Payment not found')
    if not settled:
        raise NotSettledError('Payment has not succeeded')

    metadata = stripe_field(transaction, 'metadata') or {}
    if stripe_field(metadata, 'account_id') != account_id:
        log_event(logging.WARNING, 'payment_account_mismatch', account_id=account_id, transaction_id=transaction_id)
        raise AuthorizationError('Payment does not belong to this account')
    if stripe_field(metadata, 'type') != PURCHASE_TYPE:
        raise ValidationError('Payment is not a credit purchase')
    return _apply_purchase(runtime, transaction, transaction_id, account_id, source='confirm')


def _credit_from_webhook(runtime, transaction, event_type):
    transaction_id = stripe_field(transaction, 'id')
    metadata = stripe_field(transaction, 'metadata') or {}
    if stripe_field(metadata, 'type') != PURCHASE_TYPE:
        logger.info(f"Stripe webhook {event_type} for {transaction_id} is not a credit purchase; ignoring")
        return None
    account_id = stripe_field(metadata, 'account_id')
    if not account_id or not transaction_id:
        logger.warning(f"Stripe webhook {event_type} missing account or transaction id; ignoring")
        return None
    if runtime.store.get_account(account_id) is None:
        # Surfaces as 404 so the provider keeps redelivering.
        logger.error(f"Stripe webhook {event_type} for unknown account {account_id} ({transaction_id})")
        raise NotFoundError('User not found')
    return _apply_purchase(runtime, transaction, transaction_id, account_id, source='webhook')


def handle_webhook(runtime, payload, signature_header):
    """Verify and apply a Stripe event. Returns the event type."""
    secret = runtime.config.stripe_webhook_secret
    if not secret or runtime.stripe is None:
        logger.error("Stripe webhook rejected: STRIPE_WEBHOOK_SECRET is not configured")
        raise ServiceNotConfiguredError('Webhook not configured')
    stripe = runtime.stripe
    try:
        event = stripe.Webhook.construct_event(payload, signature_header or '', secret)
    except ValueError:
        logger.warning("Stripe webhook: Invalid payload")
        raise SignatureError('Invalid payload')
    except stripe.SignatureVerificationError as e:
        logger.warning(f"Stripe webhook signature verification failed: {e}")
        raise SignatureError('Invalid signature')

    event_type = stripe_field(event, 'type', '')
    transaction = stripe_field(stripe_field(event, 'data') or {}, 'object') or {}
    if event_type == 'payment_intent.succeeded':
        _credit_from_webhook(runtime, transaction, event_type)
    elif event_type == 'checkout.session.completed':
        if stripe_field(transaction, 'payment_status') == 'paid':
            _credit_from_webhook(runtime, transaction, event_type)
        else:
            logger.info(f"Checkout session {stripe_field(transaction, 'id')} completed without payment yet")
    elif event_type == 'payment_intent.payment_failed':
        metadata = stripe_field(transaction, 'metadata') or {}
        log_event(logging.WARNING, 'payment_failed', transaction_id=stripe_field(transaction, 'id'),
                  account_id=stripe_field(metadata, 'account_id'))
    else:
        logger.info(f"Stripe webhook event {event_type} acknowledged without action")
    return event_type


def list_purchase_history(runtime, account_id, limit=HISTORY_LIMIT):
    history = []
    for receipt_id, receipt in runtime.store.list_receipts(account_id, limit):
        created_at = receipt.get('created_at')
        history.append({
            'id': receipt_id,
            'credits': int(receipt.get('credits', 0) or 0),
            'amountCents': int(receipt.get('amount_cents', 0) or 0),
            'currency': receipt.get('currency', ''),
            'packageId': receipt.get('package_id'),
            'source': receipt.get('source', ''),
            'createdAt': created_at.isoformat() if hasattr(created_at, 'isoformat') else created_at,
        })
    return history
