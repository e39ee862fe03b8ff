"""Business logic handlers for flashcard APIs."""

from snapstudy import validation
from snapstudy.models import public_flashcard_set
from snapstudy.responses import json_body, success_response
from snapstudy.services import document_service, generation_service


def _generation_response(flashcard_set, credits_used, account):
    return success_response({
        'flashcardSet': flashcard_set,
        'creditsUsed': credits_used,
        'remainingCredits': account.credit_balance,
        'hasUnlimitedCredits': account.has_unlimited_credits,
    }, 'Flashcards generated successfully', 201)


def generate_from_text(runtime, request, account):
    payload = json_body(request)
    title, description, settings = validation.validate_generation_settings(payload)
    content = validation.validate_text_content(payload)
    flashcard_set, credits_used, account = generation_service.generate_flashcard_set(
        runtime, account, title, description, settings, content=content,
    )
    return _generation_response(flashcard_set, credits_used, account)


def generate_from_file(runtime, request, account):
    form = request.form.to_dict()
    title, description, settings = validation.validate_generation_settings(form, require_title=False)
    document = document_service.load_upload(request.files.get('file'), runtime.config.max_upload_bytes)
    if not title:
        title = document.original_name.rsplit('.', 1)[0][:validation.TITLE_MAX_LEN] or 'Uploaded document'
    flashcard_set, credits_used, account = generation_service.generate_flashcard_set(
        runtime,
        account,
        title,
        description,
        settings,
        content=document.text or '',
        document=document,
    )
    return _generation_response(flashcard_set, credits_used, account)


def list_sets(runtime, account):
    sets = generation_service.list_flashcard_sets(runtime, account.id)
    return success_response({'flashcardSets': sets, 'count': len(sets)})


def get_set(runtime, account, set_id):
    doc = generation_service.get_owned_flashcard_set(runtime, account.id, set_id)
    return success_response({'flashcardSet': public_flashcard_set(set_id, doc)})


def delete_set(runtime, account, set_id):
    generation_service.delete_flashcard_set(runtime, account.id, set_id)
    return success_response(message='Flashcard set deleted successfully')
