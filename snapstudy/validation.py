"""Request payload validation. Everything here runs before any state change."""

import re
from datetime import date

from snapstudy.errors import ValidationError
from snapstudy.models import normalize_email
from snapstudy.services.password_service import PASSWORD_MAX_BYTES, password_too_long

EMAIL_RE = re.compile(r'^[A-Za-z0-9._%+-]+@[A-Za-z0-9-]+(\.[A-Za-z0-9-]+)*\.[A-Za-z]{2,}$')
PASSWORD_STRENGTH_RE = re.compile(r'^(?=.*[a-z])(?=.*[A-Z])(?=.*\d)')
OTP_RE = re.compile(r'^\d{4}$')
PHONE_RE = re.compile(r'^\+?[1-9]\d{0,15}$')
DIFFICULTIES = ('easy', 'medium', 'hard', 'mixed')

NAME_MIN_LEN = 2
NAME_MAX_LEN = 50
PASSWORD_MIN_LEN = 6
TITLE_MAX_LEN = 100
DESCRIPTION_MAX_LEN = 500
SUBJECT_MAX_LEN = 100
CUSTOM_PROMPT_MAX_LEN = 1000
SCHOOL_NAME_MAX_LEN = 100
CONTENT_MIN_LEN = 50
MIN_CARDS = 1
MAX_CARDS = 100
MIN_PURCHASE_CREDITS = 1
MAX_PURCHASE_CREDITS = 1000


class _Collector:
    def __init__(self):
        self.errors = []

    def add(self, field, message):
        self.errors.append({'field': field, 'message': message})

    def raise_if_any(self):
        if self.errors:
            raise ValidationError('Validation failed', self.errors)


def _text(payload, key):
    value = payload.get(key)
    if value is None:
        return ''
    return str(value).strip()


def _bool(payload, key):
    value = payload.get(key, False)
    if isinstance(value, str):
        return value.strip().lower() in {'1', 'true', 'yes', 'on'}
    return bool(value)


def _check_email(errors, email, field='email'):
    if not email or not EMAIL_RE.match(email):
        errors.add(field, 'Please provide a valid email')


def _parse_int(value):
    if isinstance(value, bool):
        return None
    try:
        return int(str(value).strip())
    except (TypeError, ValueError):
        return None


def validate_registration(payload):
    errors = _Collector()
    name = _text(payload, 'name')
    email = normalize_email(payload.get('email'))
    password = str(payload.get('password') or '')
    if not name:
        errors.add('name', 'Name is required')
    elif not NAME_MIN_LEN <= len(name) <= NAME_MAX_LEN:
        errors.add('name', f'Name must be between {NAME_MIN_LEN} and {NAME_MAX_LEN} characters')
    _check_email(errors, email)
    if len(password) < PASSWORD_MIN_LEN:
        errors.add('password', f'Password must be at least {PASSWORD_MIN_LEN} characters long')
    elif password_too_long(password):
        errors.add('password', f'Password cannot exceed {PASSWORD_MAX_BYTES} bytes')
    elif not PASSWORD_STRENGTH_RE.match(password):
        errors.add('password', 'Password must contain at least one uppercase letter, one lowercase letter, and one number')
    errors.raise_if_any()
    return name, email, password


def validate_login(payload):
    errors = _Collector()
    email = normalize_email(payload.get('email'))
    password = str(payload.get('password') or '')
    _check_email(errors, email)
    if not password:
        errors.add('password', 'Password is required')
    elif password_too_long(password):
        errors.add('password', f'Password cannot exceed {PASSWORD_MAX_BYTES} bytes')
    errors.raise_if_any()
    return email, password


def validate_otp_submission(payload):
    errors = _Collector()
    email = normalize_email(payload.get('email'))
    code = _text(payload, 'otp')
    _check_email(errors, email)
    if not OTP_RE.match(code):
        errors.add('otp', 'OTP must be exactly 4 digits')
    errors.raise_if_any()
    return email, code, _bool(payload, 'isLogin')


def validate_resend(payload):
    errors = _Collector()
    email = normalize_email(payload.get('email'))
    _check_email(errors, email)
    errors.raise_if_any()
    return email, _bool(payload, 'isLogin')


def validate_generation_settings(payload, require_title=True):
    """Validate flashcard-generation fields shared by the text and file routes."""
    errors = _Collector()
    title = _text(payload, 'title')
    description = _text(payload, 'description')
    subject = _text(payload, 'subject')
    custom_prompt = _text(payload, 'customPrompt')
    difficulty = _text(payload, 'difficulty').lower() or 'medium'
    card_count = _parse_int(payload.get('cardCount'))

    if require_title and not title:
        errors.add('title', 'Title is required')
    elif len(title) > TITLE_MAX_LEN:
        errors.add('title', f'Title cannot exceed {TITLE_MAX_LEN} characters')
    if len(description) > DESCRIPTION_MAX_LEN:
        errors.add('description', f'Description cannot exceed {DESCRIPTION_MAX_LEN} characters')
    if card_count is None or not MIN_CARDS <= card_count <= MAX_CARDS:
        errors.add('cardCount', f'Card count must be between {MIN_CARDS} and {MAX_CARDS}')
    if difficulty not in DIFFICULTIES:
        errors.add('difficulty', 'Difficulty must be easy, medium, hard, or mixed')
    if len(subject) > SUBJECT_MAX_LEN:
        errors.add('subject', f'Subject cannot exceed {SUBJECT_MAX_LEN} characters')
    if len(custom_prompt) > CUSTOM_PROMPT_MAX_LEN:
        errors.add('customPrompt', f'Custom prompt cannot exceed {CUSTOM_PROMPT_MAX_LEN} characters')
    errors.raise_if_any()
    settings = {
        'card_count': card_count,
        'difficulty': difficulty,
        'subject': subject,
        'custom_prompt': custom_prompt,
    }
    return title, description, settings


def validate_text_content(payload):
    content = _text(payload, 'content')
    if not content:
        raise ValidationError('Validation failed', [{'field': 'content', 'message': 'Content is required'}])
    if len(content) < CONTENT_MIN_LEN:
        raise ValidationError('Validation failed', [{
            'field': 'content',
            'message': f'Content must be at least {CONTENT_MIN_LEN} characters long',
        }])
    return content


def validate_profile_update(payload):
    """Return only the fields present in ``payload``, mapped to account attributes."""
    errors = _Collector()
    updates = {}
    if 'name' in payload:
        name = _text(payload, 'name')
        if not NAME_MIN_LEN <= len(name) <= NAME_MAX_LEN:
            errors.add('name', f'Name must be between {NAME_MIN_LEN} and {NAME_MAX_LEN} characters')
        updates['display_name'] = name
    if 'schoolName' in payload:
        school = _text(payload, 'schoolName')
        if len(school) > SCHOOL_NAME_MAX_LEN:
            errors.add('schoolName', f'School name cannot exceed {SCHOOL_NAME_MAX_LEN} characters')
        updates['school_name'] = school or None
    if 'phoneNumber' in payload:
        phone = _text(payload, 'phoneNumber')
        if phone and not PHONE_RE.match(phone):
            errors.add('phoneNumber', 'Please enter a valid phone number')
        updates['phone_number'] = phone or None
    if 'birthDate' in payload:
        raw_date = _text(payload, 'birthDate')
        if raw_date:
            try:
                parsed = date.fromisoformat(raw_date[:10])
            except ValueError:
                errors.add('birthDate', 'Birth date must be a valid date (YYYY-MM-DD)')
            else:
                if parsed > date.today():
                    errors.add('birthDate', 'Birth date cannot be in the future')
                raw_date = parsed.isoformat()
        updates['birth_date'] = raw_date or None
    errors.raise_if_any()
    return updates


def validate_email_change_request(payload):
    errors = _Collector()
    new_email = normalize_email(payload.get('newEmail'))
    current_password = str(payload.get('currentPassword') or '')
    _check_email(errors, new_email, field='newEmail')
    if not current_password:
        errors.add('currentPassword', 'Current password is required')
    elif password_too_long(current_password):
        errors.add('currentPassword', f'Password cannot exceed {PASSWORD_MAX_BYTES} bytes')
    errors.raise_if_any()
    return new_email, current_password


def validate_email_change_confirmation(payload):
    errors = _Collector()
    new_email = normalize_email(payload.get('newEmail'))
    code = _text(payload, 'otp')
    _check_email(errors, new_email, field='newEmail')
    if not OTP_RE.match(code):
        errors.add('otp', 'OTP must be exactly 4 digits')
    errors.raise_if_any()
    return new_email, code


def validate_purchase_credits(payload):
    credits = _parse_int(payload.get('credits'))
    if credits is None or not MIN_PURCHASE_CREDITS <= credits <= MAX_PURCHASE_CREDITS:
        raise ValidationError('Validation failed', [{
            'field': 'credits',
            'message': f'Credits must be between {MIN_PURCHASE_CREDITS} and {MAX_PURCHASE_CREDITS}',
        }])
    return credits


def validate_required_id(payload, key, label):
    value = _text(payload, key)
    if not value or len(value) > 255:
        raise ValidationError('Validation failed', [{'field': key, 'message': f'{label} is required'}])
    return value
