import uuid

import sentry_sdk
from flask import Flask, g, request

from .blueprints import auth_bp, flashcards_bp, health_bp, payments_bp, profile_bp
from .config import load_config
from .errors import register_error_handlers
from .extensions import build_runtime, init_extensions, init_sentry
from .logging_config import configure_logging

# Multipart framing on top of the file itself.
UPLOAD_OVERHEAD_BYTES = 1024 * 1024


def _register_request_hooks(app, config, sentry_enabled):
    def apply_cors_headers(response):
        origin = str(request.headers.get('Origin', '') or '').strip()
        if not origin:
            return response
        if not request.path.startswith('/api/'):
            return response
        if origin.lower() not in config.cors_allowed_origins:
            return response
        response.headers['Access-Control-Allow-Origin'] = origin
        response.headers['Access-Control-Allow-Credentials'] = 'true'
        response.headers['Vary'] = 'Origin'
        response.headers['Access-Control-Allow-Headers'] = 'Authorization, Content-Type, X-Request-ID'
        response.headers['Access-Control-Allow-Methods'] = 'GET, POST, PUT, DELETE, OPTIONS'
        return response

    @app.before_request
    def handle_api_options_preflight():
        if request.method == 'OPTIONS' and request.path.startswith('/api/'):
            return apply_cors_headers(app.make_default_options_response())

    @app.before_request
    def attach_request_context():
        request_id = str(request.headers.get('X-Request-ID', '') or '').strip()[:120] or uuid.uuid4().hex
        g.request_id = request_id
        if not sentry_enabled:
            return
        sentry_sdk.set_tag('request.id', request_id)
        sentry_sdk.set_tag('route.path', request.path)
        sentry_sdk.set_tag('route.method', request.method)
        sentry_sdk.set_tag('route.endpoint', request.endpoint or '')
        sentry_sdk.set_tag('route.environment', config.environment)

    @app.after_request
    def attach_response_context(response):
        request_id = str(getattr(g, 'request_id', '') or '').strip()
        if request_id:
            response.headers['X-Request-ID'] = request_id
        if sentry_enabled:
            sentry_sdk.set_tag('route.status_code', str(response.status_code))
        return apply_cors_headers(response)


def create_app(config=None, runtime=None):
    """App factory entrypoint.

    ``config`` defaults to the environment; ``runtime`` defaults to one built
    from ``config`` (Firestore, Resend email, Gemini and Stripe as configured).
    """
    config = config or load_config()
    configure_logging(config.log_level)
    sentry_enabled = init_sentry(config)

    app = Flask(__name__)
    app.config['SECRET_KEY'] = config.flask_secret_key or None
    app.config['MAX_CONTENT_LENGTH'] = config.max_upload_bytes + UPLOAD_OVERHEAD_BYTES

    init_extensions(app, runtime or build_runtime(config))
    register_error_handlers(app, config)
    _register_request_hooks(app, config, sentry_enabled)

    for blueprint in (health_bp, auth_bp, payments_bp, flashcards_bp, profile_bp):
        app.register_blueprint(blueprint)
    return app
