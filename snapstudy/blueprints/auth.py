from flask import Blueprint, g, request

from snapstudy.extensions import get_runtime
from snapstudy.services import auth_api_service
from snapstudy.services.auth_service import login_required

auth_bp = Blueprint('auth_api', __name__)


@auth_bp.route('/api/auth/register', methods=['POST'])
def register():
    return auth_api_service.register(get_runtime(), request)


@auth_bp.route('/api/auth/login', methods=['POST'])
def login():
    return auth_api_service.login(get_runtime(), request)


@auth_bp.route('/api/auth/verify-otp', methods=['POST'])
def verify_otp():
    return auth_api_service.verify_otp(get_runtime(), request)


@auth_bp.route('/api/auth/resend-otp', methods=['POST'])
def resend_otp():
    return auth_api_service.resend_otp(get_runtime(), request)


@auth_bp.route('/api/auth/me', methods=['GET'])
@login_required
def me():
    return auth_api_service.me(get_runtime(), g.account)


@auth_bp.route('/api/auth/logout', methods=['POST'])
def logout():
    return auth_api_service.logout(get_runtime(), request)
