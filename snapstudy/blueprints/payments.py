from flask import Blueprint, g, request

from snapstudy.extensions import get_runtime
from snapstudy.services import payments_api_service
from snapstudy.services.auth_service import login_required

payments_bp = Blueprint('payments_api', __name__)


@payments_bp.route('/api/payments/packages', methods=['GET'])
@login_required
def get_packages():
    return payments_api_service.get_packages(get_runtime())


@payments_bp.route('/api/payments/create-payment-intent', methods=['POST'])
@login_required
def create_payment_intent():
    return payments_api_service.create_payment_intent(get_runtime(), request, g.account)


@payments_bp.route('/api/payments/create-checkout-session', methods=['POST'])
@login_required
def create_checkout_session():
    return payments_api_service.create_checkout_session(get_runtime(), request, g.account)


@payments_bp.route('/api/payments/confirm-payment', methods=['POST'])
@login_required
def confirm_payment():
    return payments_api_service.confirm_payment(get_runtime(), request, g.account)


@payments_bp.route('/api/payments/checkout-success', methods=['POST'])
@login_required
def checkout_success():
    return payments_api_service.checkout_success(get_runtime(), request, g.account)


@payments_bp.route('/api/payments/history', methods=['GET'])
@login_required
def purchase_history():
    return payments_api_service.get_purchase_history(get_runtime(), g.account)


@payments_bp.route('/api/payments/webhook', methods=['POST'])
def stripe_webhook():
    return payments_api_service.stripe_webhook(get_runtime(), request)
