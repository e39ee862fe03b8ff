import os
from dataclasses import dataclass, field, replace

from dotenv import load_dotenv

DEV_ENV_NAMES = {'development', 'dev', 'local', 'test'}
DEFAULT_CORS_ORIGINS = frozenset({
    'http://localhost:3000',
    'http://127.0.0.1:3000',
    'http://localhost:3001',
})


def safe_int_env(name, default=0, minimum=1, maximum=100000):
    raw = os.getenv(name, str(default)).strip()
    try:
        value = int(raw)
    except Exception:
        value = int(default)
    return min(max(value, minimum), maximum)


def safe_float_env(name, default=0.0):
    raw = os.getenv(name, str(default)).strip()
    try:
        value = float(raw)
    except Exception:
        return default
    return min(max(value, 0.0), 1.0)


def parse_csv_env(name, lower=True):
    raw = (os.getenv(name, '') or '').strip()
    parts = [part.strip() for part in raw.split(',') if part.strip()]
    if lower:
        parts = [part.lower() for part in parts]
    return frozenset(parts)


def resolve_runtime_env():
    return (
        os.getenv('SENTRY_ENVIRONMENT')
        or os.getenv('FLASK_ENV')
        or os.getenv('ENV')
        or ('production' if os.getenv('RENDER') else 'development')
    ).strip().lower()


@dataclass(frozen=True)
class AppConfig:
    """Central config object; built from the environment by load_config()."""

    environment: str = 'development'
    flask_secret_key: str = ''
    log_level: str = 'INFO'
    sentry_dsn: str = ''
    sentry_environment: str = 'production'
    sentry_release: str = 'snapstudy'
    sentry_traces_sample_rate: float = 0.0

    jwt_secret: str = 'dev-secret-change-me'
    jwt_ttl_seconds: int = 7 * 24 * 3600
    bcrypt_rounds: int = 12

    otp_ttl_seconds: int = 600
    otp_resend_max_requests: int = 5
    otp_resend_window_seconds: int = 900
    otp_verify_max_attempts: int = 10
    otp_verify_subject_max_attempts: int = 30
    otp_verify_window_seconds: int = 600

    starting_credits: int = 5
    developer_emails: frozenset = field(default_factory=frozenset)

    stripe_secret_key: str = ''
    stripe_publishable_key: str = ''
    stripe_webhook_secret: str = ''
    payment_currency: str = 'cad'
    frontend_url: str = 'http://localhost:3000'

    gemini_api_key: str = ''
    gemini_model: str = 'gemini-2.5-flash'
    generation_timeout_seconds: int = 90
    max_upload_bytes: int = 10 * 1024 * 1024

    resend_api_key: str = ''
    email_timeout_seconds: int = 10
    email_from: str = 'no-reply@snapstudy.app'

    cors_allowed_origins: frozenset = DEFAULT_CORS_ORIGINS
    firebase_credentials: str = ''

    @property
    def is_dev(self):
        return self.environment in DEV_ENV_NAMES

    def is_developer_email(self, email):
        return str(email or '').strip().lower() in self.developer_emails


def load_config() -> AppConfig:
    load_dotenv()
    environment = resolve_runtime_env()
    cors_origins = parse_csv_env('CORS_ALLOWED_ORIGINS') or DEFAULT_CORS_ORIGINS
    config = AppConfig(
        environment=environment,
        flask_secret_key=os.getenv('FLASK_SECRET_KEY', ''),
        log_level=(os.getenv('LOG_LEVEL', 'INFO') or 'INFO').strip().upper(),
        sentry_dsn=os.getenv('SENTRY_DSN_BACKEND', '').strip(),
        sentry_environment=(os.getenv('SENTRY_ENVIRONMENT', os.getenv('FLASK_ENV', 'production')) or 'production').strip(),
        sentry_release=(os.getenv('SENTRY_RELEASE', 'snapstudy') or 'snapstudy').strip(),
        sentry_traces_sample_rate=safe_float_env('SENTRY_TRACES_SAMPLE_RATE', 0.0),
        jwt_secret=os.getenv('JWT_SECRET', ''),
        jwt_ttl_seconds=safe_int_env('JWT_TTL_SECONDS', 7 * 24 * 3600, minimum=60, maximum=90 * 24 * 3600),
        bcrypt_rounds=safe_int_env('BCRYPT_ROUNDS', 12, minimum=4, maximum=16),
        otp_ttl_seconds=safe_int_env('OTP_TTL_SECONDS', 600, minimum=60, maximum=3600),
        otp_resend_max_requests=safe_int_env('OTP_RESEND_MAX_REQUESTS', 5, minimum=1, maximum=100),
        otp_resend_window_seconds=safe_int_env('OTP_RESEND_WINDOW_SECONDS', 900, minimum=10, maximum=86400),
        otp_verify_max_attempts=safe_int_env('OTP_VERIFY_MAX_ATTEMPTS', 10, minimum=1, maximum=1000),
        otp_verify_subject_max_attempts=safe_int_env('OTP_VERIFY_SUBJECT_MAX_ATTEMPTS', 30, minimum=1, maximum=10000),
        otp_verify_window_seconds=safe_int_env('OTP_VERIFY_WINDOW_SECONDS', 600, minimum=10, maximum=86400),
        starting_credits=safe_int_env('STARTING_CREDITS', 5, minimum=0, maximum=100000),
        developer_emails=parse_csv_env('DEVELOPER_EMAILS'),
        stripe_secret_key=os.getenv('STRIPE_SECRET_KEY', '').strip(),
        stripe_publishable_key=os.getenv('STRIPE_PUBLISHABLE_KEY', '').strip(),
        stripe_webhook_secret=os.getenv('STRIPE_WEBHOOK_SECRET', '').strip(),
        payment_currency=(os.getenv('PAYMENT_CURRENCY', 'cad') or 'cad').strip().lower(),
        frontend_url=(os.getenv('FRONTEND_URL', 'http://localhost:3000') or 'http://localhost:3000').strip().rstrip('/'),
        gemini_api_key=os.getenv('GEMINI_API_KEY', '').strip(),
        gemini_model=(os.getenv('GEMINI_MODEL', 'gemini-2.5-flash') or 'gemini-2.5-flash').strip(),
        generation_timeout_seconds=safe_int_env('GENERATION_TIMEOUT_SECONDS', 90, minimum=5, maximum=600),
        max_upload_bytes=safe_int_env('MAX_UPLOAD_BYTES', 10 * 1024 * 1024, minimum=1024, maximum=100 * 1024 * 1024),
        resend_api_key=os.getenv('RESEND_API_KEY', '').strip(),
        email_timeout_seconds=safe_int_env('EMAIL_TIMEOUT_SECONDS', 10, minimum=1, maximum=60),
        email_from=(os.getenv('EMAIL_FROM', 'no-reply@snapstudy.app') or 'no-reply@snapstudy.app').strip(),
        cors_allowed_origins=cors_origins,
        firebase_credentials=(os.getenv('FIREBASE_CREDENTIALS', '') or '').strip(),
    )
    if not config.is_dev:
        if not config.flask_secret_key.strip():
            raise RuntimeError('FLASK_SECRET_KEY must be set in non-development environments.')
        if not config.jwt_secret.strip():
            raise RuntimeError('JWT_SECRET must be set in non-development environments.')
    if not config.jwt_secret:
        config = replace(config, jwt_secret='dev-secret-change-me')
    return config
