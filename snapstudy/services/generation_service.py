"""Flashcard generation through Gemini, and the credit accounting around it.

Credits are checked before the model call and debited only after it succeeds.
A failed or timed-out call marks the set ``failed`` and never reaches the
ledger.
"""

import json
import logging
from concurrent.futures import TimeoutError as FutureTimeoutError

from google import genai
from google.genai import types

from snapstudy.errors import (
    ExternalServiceError,
    InsufficientCreditsError,
    NotFoundError,
    ServiceNotConfiguredError,
)
from snapstudy.logging_config import log_event
from snapstudy.models import FlashcardSetStatus, build_flashcard_set_doc, public_flashcard_set
from snapstudy.services import credit_ledger
from snapstudy.services.prompt_registry import build_flashcard_prompt

logger = logging.getLogger('snapstudy')

MAX_TEXT_LEN = 2000
MAX_TAGS = 10
MAX_TAG_LEN = 50
MAX_OUTPUT_TOKENS = 16384


class GeminiFlashcardGenerator:
    def __init__(self, api_key, model):
        self.model = model
        self.client = genai.Client(api_key=api_key)

    def generate_text(self, prompt, document=None):
        parts = []
        if document is not None:
            parts.append(types.Part.from_bytes(data=document.data, mime_type=document.mime_type))
        parts.append(types.Part.from_text(text=prompt))
        response = self.client.models.generate_content(
            model=self.model,
            contents=[types.Content(role='user', parts=parts)],
            config=types.GenerateContentConfig(
                max_output_tokens=MAX_OUTPUT_TOKENS,
                temperature=0.7,
                response_mime_type='application/json',
            ),
        )
        return response.text or ''


def extract_json_array(raw_text):
    if not raw_text:
        return None
    text = raw_text.strip()
    if text.startswith('```'):
        lines = text.splitlines()
        if len(lines) >= 3 and lines[0].startswith('```') and lines[-1].strip() == '```':
            text = '\n'.join(lines[1:-1]).strip()
    start = text.find('[')
    if start == -1:
        return None
    decoder = json.JSONDecoder()
    try:
        parsed, _ = decoder.raw_decode(text[start:])
        return parsed
    except json.JSONDecodeError:
        end = text.rfind(']')
        if end == -1 or end <= start:
            return None
        try:
            return json.loads(text[start:end + 1])
        except json.JSONDecodeError:
            return None


def sanitize_cards(items, max_items, default_difficulty='medium'):
    if not isinstance(items, list):
        return []
    cleaned = []
    seen = set()
    for item in items:
        if not isinstance(item, dict):
            continue
        question = str(item.get('question', '')).strip()[:MAX_TEXT_LEN]
        answer = str(item.get('answer', '')).strip()[:MAX_TEXT_LEN]
        if not question or not answer:
            continue
        key = (question.lower(), answer.lower())
        if key in seen:
            continue
        seen.add(key)
        difficulty = str(item.get('difficulty') or default_difficulty).strip().lower()
        if difficulty not in {'easy', 'medium', 'hard'}:
            difficulty = default_difficulty if default_difficulty != 'mixed' else 'medium'
        raw_tags = item.get('tags') if isinstance(item.get('tags'), list) else []
        tags = [str(tag).strip()[:MAX_TAG_LEN] for tag in raw_tags if str(tag).strip()][:MAX_TAGS]
        cleaned.append({'question': question, 'answer': answer, 'difficulty': difficulty, 'tags': tags})
        if len(cleaned) >= max_items:
            break
    return cleaned


def generate_cards(runtime, settings, content='', document=None):
    """Run the model call on the worker pool, bounded by the generation timeout."""
    generator = runtime.generator
    if generator is None:
        raise ServiceNotConfiguredError('Flashcard generation is not configured')
    prompt = build_flashcard_prompt(settings, content)
    future = runtime.executor.submit(generator.generate_text, prompt, document)
    try:
        raw_text = future.result(timeout=runtime.config.generation_timeout_seconds)
    except FutureTimeoutError:
        future.cancel()
        logger.error(f"Flashcard generation timed out after {runtime.config.generation_timeout_seconds}s")
        raise ExternalServiceError('Flashcard generation timed out. Please try again.')
    except Exception as e:
        logger.error(f"Flashcard generation failed: {e}")
        raise ExternalServiceError('Failed to generate flashcards. Please try again.')

    cards = sanitize_cards(extract_json_array(raw_text), settings['card_count'], settings.get('difficulty', 'medium'))
    if not cards:
        logger.error(f"Flashcard generation returned no usable cards: {str(raw_text)[:200]!r}")
        raise ExternalServiceError('Failed to generate properly formatted flashcards. Please try again.')
    if len(cards) != settings['card_count']:
        logger.warning(f"Expected {settings['card_count']} flashcards, got {len(cards)}")
    return cards


def generate_flashcard_set(runtime, account, title, description, settings, content='', document=None):
    """Create a set, fill it from the model, then charge for it.

    Returns ``(flashcard_set, credits_used, account)``.
    """
    credits_needed = credit_ledger.credits_for_cards(settings['card_count'])
    if not account.has_unlimited_credits and account.credit_balance < credits_needed:
        raise InsufficientCreditsError(required=credits_needed, available=account.credit_balance)

    source_file = document.source_file() if document is not None else None
    doc = build_flashcard_set_doc(account.id, title, description, settings, source_file=source_file)
    set_id = runtime.store.create_flashcard_set(doc)
    log_event(logging.INFO, 'generation_started', account_id=account.id, set_id=set_id,
              card_count=settings['card_count'], source='file' if document is not None else 'text')

    try:
        native = document if document is not None and document.needs_native_reading else None
        cards = generate_cards(runtime, settings, content=content, document=native)
    except ExternalServiceError as e:
        runtime.store.update_flashcard_set(set_id, {
            'status': FlashcardSetStatus.FAILED.value,
            'generation_error': e.message,
        })
        log_event(logging.WARNING, 'generation_failed', account_id=account.id, set_id=set_id, reason=e.message)
        raise

    try:
        account = credit_ledger.record_generation(runtime.store, account.id, credits_needed, len(cards))
    except InsufficientCreditsError:
        runtime.store.update_flashcard_set(set_id, {
            'status': FlashcardSetStatus.FAILED.value,
            'generation_error': 'Insufficient credits',
        })
        raise

    credits_used = 0 if account.has_unlimited_credits else credits_needed
    updates = {
        'cards': cards,
        'status': FlashcardSetStatus.COMPLETED.value,
        'credits_used': credits_used,
    }
    runtime.store.update_flashcard_set(set_id, updates)
    doc.update(updates)
    log_event(logging.INFO, 'generation_completed', account_id=account.id, set_id=set_id,
              cards=len(cards), credits_used=credits_used)
    return public_flashcard_set(set_id, doc), credits_used, account


def list_flashcard_sets(runtime, account_id, limit=50):
    return [public_flashcard_set(set_id, doc) for set_id, doc in runtime.store.list_flashcard_sets(account_id, limit)]


def get_owned_flashcard_set(runtime, account_id, set_id):
    doc = runtime.store.get_flashcard_set(set_id)
    if doc is None or doc.get('account_id') != account_id:
        raise NotFoundError('Flashcard set not found')
    return doc


def delete_flashcard_set(runtime, account_id, set_id):
    get_owned_flashcard_set(runtime, account_id, set_id)
    runtime.store.delete_flashcard_set(set_id)
    log_event(logging.INFO, 'flashcard_set_deleted', account_id=account_id, set_id=set_id)
