"""Runtime services shared by the request handlers.

``init_extensions`` builds a ``Runtime`` (store, notifier, generator, Stripe)
from config and attaches it to the app; handlers reach it through
``get_runtime()``.
"""

import json
import logging
import os
import time
from concurrent.futures import ThreadPoolExecutor

import firebase_admin
import sentry_sdk
import stripe
from firebase_admin import credentials, firestore
from flask import current_app
from sentry_sdk.integrations.flask import FlaskIntegration

from snapstudy.models import utcnow
from snapstudy.repositories.firestore_store import FirestoreStore
from snapstudy.repositories.memory_store import InMemoryStore
from snapstudy.services.email_service import ResendNotifier
from snapstudy.services.generation_service import GeminiFlashcardGenerator
from snapstudy.services.rate_limit_service import enforce_rate_limit

logger = logging.getLogger('snapstudy')

EXTENSION_KEY = 'snapstudy'
FIREBASE_CREDENTIALS_FILE = 'firebase-credentials.json'
GENERATION_WORKERS = 4


class Runtime:
    def __init__(
        self,
        config,
        store,
        *,
        fallback_store=None,
        notifier=None,
        generator=None,
        stripe_module=None,
        time_module=time,
        clock=utcnow,
        executor=None,
    ):
        self.config = config
        self.store = store
        self.fallback_store = fallback_store or InMemoryStore()
        self.notifier = notifier or ResendNotifier(config)
        self.generator = generator
        self.stripe = stripe_module
        self.time = time_module
        self.clock = clock
        self.executor = executor or ThreadPoolExecutor(
            max_workers=GENERATION_WORKERS,
            thread_name_prefix='snapstudy-generation',
        )

    def throttle(self, name, subject, limit, window_seconds, message=None):
        enforce_rate_limit(
            name,
            subject,
            limit,
            window_seconds,
            store=self.store,
            fallback_store=self.fallback_store,
            time_module=self.time,
            message=message,
        )

    @property
    def secure_cookies(self):
        return not self.config.is_dev


def init_sentry(config):
    if not config.sentry_dsn:
        return False
    sentry_sdk.init(
        dsn=config.sentry_dsn,
        integrations=[FlaskIntegration()],
        traces_sample_rate=config.sentry_traces_sample_rate,
        send_default_pii=False,
        environment=config.sentry_environment,
        release=config.sentry_release,
    )
    return True


def init_firestore(config):
    """Return a Firestore client, or None when no credentials are available."""
    try:
        if os.path.exists(FIREBASE_CREDENTIALS_FILE):
            cred = credentials.Certificate(FIREBASE_CREDENTIALS_FILE)
        else:
            if not config.firebase_credentials:
                raise ValueError("FIREBASE_CREDENTIALS is not set and firebase-credentials.json was not found.")
            cred = credentials.Certificate(json.loads(config.firebase_credentials))
        if not firebase_admin._apps:
            firebase_admin.initialize_app(cred)
        return firestore.client()
    except (ValueError, OSError) as e:
        logger.info(f"Firebase initialization skipped: {e}")
        return None


def build_store(config):
    db = init_firestore(config)
    if db is not None:
        return FirestoreStore(db)
    if not config.is_dev:
        raise RuntimeError('Firestore must be configured in non-development environments.')
    logger.warning("Using in-memory store; data will not survive a restart.")
    return InMemoryStore()


def build_generator(config):
    if not config.gemini_api_key:
        logger.info("GEMINI_API_KEY not set; flashcard generation is disabled.")
        return None
    return GeminiFlashcardGenerator(config.gemini_api_key, config.gemini_model)


def build_stripe(config):
    if not config.stripe_secret_key:
        logger.info("STRIPE_SECRET_KEY not set; payments are disabled.")
    stripe.api_key = config.stripe_secret_key or None
    return stripe


def build_runtime(config):
    return Runtime(
        config,
        build_store(config),
        generator=build_generator(config),
        stripe_module=build_stripe(config),
    )


def init_extensions(app, runtime):
    app.extensions[EXTENSION_KEY] = runtime
    return runtime


def get_runtime():
    return current_app.extensions[EXTENSION_KEY]
