import itertools
import json
import re
from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

import pytest

from snapstudy import create_app
from snapstudy.config import AppConfig
from snapstudy.extensions import Runtime
from snapstudy.repositories.memory_store import InMemoryStore
from snapstudy.services import account_service
from snapstudy.services.email_service import EmailDeliveryError

DEVELOPER_EMAIL = "dev@snapstudy.app"
WEBHOOK_SECRET = "whsec_test"


class FakeNotifier:
    def __init__(self):
        self.sent = []
        self.welcomed = []
        self.fail = False

    def send_otp(self, to_email, code, name, purpose="registration"):
        if self.fail:
            raise EmailDeliveryError()
        self.sent.append({"email": to_email, "code": code, "name": name, "purpose": purpose})

    def send_welcome(self, to_email, name):
        if self.fail:
            raise EmailDeliveryError()
        self.welcomed.append(to_email)

    def last_code(self, email):
        for message in reversed(self.sent):
            if message["email"] == email:
                return message["code"]
        return None


class FakeGenerator:
    def __init__(self):
        self.calls = []
        self.response = None
        self.error = None
        self.release = None

    def generate_text(self, prompt, document=None):
        self.calls.append({"prompt": prompt, "document": document})
        if self.release is not None:
            self.release.wait(5)
        if self.error is not None:
            raise self.error
        if self.response is not None:
            return self.response
        count = int(re.search(r"Create exactly (\d+) flashcards", prompt).group(1))
        return json.dumps([
            {"question": f"Question {i}?", "answer": f"Answer {i}", "difficulty": "medium", "tags": ["study"]}
            for i in range(count)
        ])


class FakeClock:
    def __init__(self):
        self.now = datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now = self.now + timedelta(seconds=seconds)


class FakeTime:
    def __init__(self):
        self.now = 1_767_268_800.0

    def time(self):
        return self.now


class FakeStripeError(Exception):
    pass


class FakeSignatureVerificationError(FakeStripeError):
    def __init__(self, message, sig_header=None):
        super().__init__(message)
        self.sig_header = sig_header


class _FakeResource:
    def __init__(self, prefix):
        self.prefix = prefix
        self.objects = {}
        self.created = []
        self._ids = itertools.count(1)

    def create(self, **kwargs):
        object_id = f"{self.prefix}_test_{next(self._ids)}"
        obj = dict(kwargs, id=object_id)
        if self.prefix == "pi":
            obj.setdefault("status", "requires_payment_method")
            obj["client_secret"] = f"{object_id}_secret"
        else:
            obj.setdefault("payment_status", "unpaid")
            obj["url"] = f"https://checkout.stripe.test/{object_id}"
        self.objects[object_id] = obj
        self.created.append(obj)
        return obj

    def retrieve(self, object_id):
        if object_id not in self.objects:
            raise FakeStripeError(f"No such object: {object_id}")
        return self.objects[object_id]


class _FakeWebhook:
    @staticmethod
    def construct_event(payload, sig_header, secret):
        if sig_header != f"valid:{secret}":
            raise FakeSignatureVerificationError("No signatures found matching the expected signature", sig_header)
        if isinstance(payload, bytes):
            payload = payload.decode("utf-8")
        return json.loads(payload)


class FakeStripe:
    StripeError = FakeStripeError
    SignatureVerificationError = FakeSignatureVerificationError
    Webhook = _FakeWebhook

    def __init__(self):
        self.PaymentIntent = _FakeResource("pi")
        self.checkout = SimpleNamespace(Session=_FakeResource("cs"))

    def settle_intent(self, account_id, credits, amount=None, package_id=None):
        metadata = {"account_id": account_id, "credits": str(credits), "type": "credit_purchase"}
        if package_id:
            metadata["package_id"] = package_id
        intent = self.PaymentIntent.create(
            amount=amount if amount is not None else credits * 20,
            currency="cad",
            metadata=metadata,
        )
        intent["status"] = "succeeded"
        return intent


def signed_headers(secret=WEBHOOK_SECRET):
    return {"Stripe-Signature": f"valid:{secret}", "Content-Type": "application/json"}


@pytest.fixture()
def config():
    return AppConfig(
        environment="test",
        jwt_secret="test-jwt-secret",
        bcrypt_rounds=4,
        developer_emails=frozenset({DEVELOPER_EMAIL}),
        stripe_secret_key="sk_test_snapstudy",
        stripe_publishable_key="pk_test_snapstudy",
        stripe_webhook_secret=WEBHOOK_SECRET,
        generation_timeout_seconds=5,
    )


@pytest.fixture()
def store():
    return InMemoryStore()


@pytest.fixture()
def notifier():
    return FakeNotifier()


@pytest.fixture()
def generator():
    return FakeGenerator()


@pytest.fixture()
def stripe_module():
    return FakeStripe()


@pytest.fixture()
def clock():
    return FakeClock()


@pytest.fixture()
def fake_time():
    return FakeTime()


@pytest.fixture()
def runtime(config, store, notifier, generator, stripe_module, clock, fake_time):
    rt = Runtime(
        config,
        store,
        notifier=notifier,
        generator=generator,
        stripe_module=stripe_module,
        clock=clock,
        time_module=fake_time,
    )
    yield rt
    if generator.release is not None:
        generator.release.set()
    rt.executor.shutdown(wait=False)


@pytest.fixture()
def app(config, runtime):
    flask_app = create_app(config=config, runtime=runtime)
    flask_app.config["TESTING"] = True
    return flask_app


@pytest.fixture()
def client(app):
    with app.test_client() as test_client:
        yield test_client


@pytest.fixture()
def make_verified_account(runtime, notifier):
    """Register and verify an account; returns ``(account, token)``."""

    def _make(email="ann@example.com", name="Ann", password="Secret1"):
        account_service.register(runtime, name, email, password)
        token, account = account_service.complete_challenge(runtime, email, notifier.last_code(email), is_login=False)
        return account, token

    return _make
