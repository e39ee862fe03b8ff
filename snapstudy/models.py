"""Account record and flashcard-set document helpers."""

import copy
import enum
import uuid
from dataclasses import asdict, dataclass, field, fields
from datetime import datetime, timezone
from typing import Optional


def utcnow():
    return datetime.now(timezone.utc)


def new_id():
    return uuid.uuid4().hex


def normalize_email(email):
    return str(email or '').strip().lower()


class VerificationState(str, enum.Enum):
    UNVERIFIED = 'unverified'
    VERIFIED = 'verified'


class SubscriptionTier(str, enum.Enum):
    FREE = 'free'
    PREMIUM = 'premium'
    ENTERPRISE = 'enterprise'


class FlashcardSetStatus(str, enum.Enum):
    GENERATING = 'generating'
    COMPLETED = 'completed'
    FAILED = 'failed'


@dataclass
class Account:
    """The aggregate root mutated only through a store's ``mutate_account``."""

    id: str
    email: str
    password_hash: str
    display_name: str
    verification_state: VerificationState = VerificationState.UNVERIFIED
    otp_code: Optional[str] = None
    otp_expires_at: Optional[datetime] = None
    otp_purpose: Optional[str] = None
    credit_balance: int = 0
    has_unlimited_credits: bool = False
    is_developer: bool = False
    total_generated_count: int = 0
    subscription_tier: SubscriptionTier = SubscriptionTier.FREE
    school_name: Optional[str] = None
    phone_number: Optional[str] = None
    birth_date: Optional[str] = None
    pending_email: Optional[str] = None
    stripe_customer_id: Optional[str] = None
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)

    @property
    def is_verified(self):
        return self.verification_state == VerificationState.VERIFIED

    def copy(self):
        return copy.deepcopy(self)

    def to_doc(self):
        doc = asdict(self)
        doc.pop('id')
        doc['verification_state'] = self.verification_state.value
        doc['subscription_tier'] = self.subscription_tier.value
        return doc

    @classmethod
    def from_doc(cls, account_id, data):
        data = dict(data or {})
        known = {f.name for f in fields(cls)}
        values = {key: value for key, value in data.items() if key in known and key != 'id'}
        values['verification_state'] = VerificationState(data.get('verification_state') or 'unverified')
        values['subscription_tier'] = SubscriptionTier(data.get('subscription_tier') or 'free')
        values['credit_balance'] = int(data.get('credit_balance', 0) or 0)
        values['total_generated_count'] = int(data.get('total_generated_count', 0) or 0)
        return cls(id=account_id, **values)

    def to_public_dict(self):
        """Shape returned by /me and the profile routes; never includes secrets."""
        return {
            'id': self.id,
            'name': self.display_name,
            'email': self.email,
            'isVerified': self.is_verified,
            'flashcardCredits': self.credit_balance,
            'hasUnlimitedCredits': self.has_unlimited_credits,
            'isDeveloper': self.is_developer,
            'totalFlashcardsGenerated': self.total_generated_count,
            'subscriptionStatus': self.subscription_tier.value,
            'schoolName': self.school_name,
            'phoneNumber': self.phone_number,
            'birthDate': self.birth_date,
            'createdAt': self.created_at.isoformat() if self.created_at else None,
        }


def build_flashcard_set_doc(account_id, title, description, settings, source_file=None, now=None):
    now = now or utcnow()
    return {
        'account_id': account_id,
        'title': title,
        'description': description,
        'cards': [],
        'source_file': source_file,
        'generation_settings': dict(settings),
        'status': FlashcardSetStatus.GENERATING.value,
        'generation_error': None,
        'credits_used': 0,
        'created_at': now,
        'updated_at': now,
    }


def public_flashcard_set(set_id, doc):
    created_at = doc.get('created_at')
    cards = list(doc.get('cards') or [])
    return {
        'id': set_id,
        'title': doc.get('title', ''),
        'description': doc.get('description', ''),
        'cards': cards,
        'cardCount': len(cards),
        'sourceFile': doc.get('source_file'),
        'generationSettings': doc.get('generation_settings') or {},
        'status': doc.get('status', FlashcardSetStatus.GENERATING.value),
        'generationError': doc.get('generation_error'),
        'creditsUsed': int(doc.get('credits_used', 0) or 0),
        'createdAt': created_at.isoformat() if isinstance(created_at, datetime) else created_at,
    }
