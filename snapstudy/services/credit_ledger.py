"""Debit/credit operations over a single account's credit balance.

All mutations go through ``store.mutate_account`` so the sufficiency check and
the write happen in one serialized step per account.
"""

import logging
import math

from snapstudy.errors import InsufficientCreditsError
from snapstudy.logging_config import log_event

CARDS_PER_CREDIT = 10


def credits_for_cards(card_count):
    return max(1, math.ceil(int(card_count) / CARDS_PER_CREDIT))


def _require_positive(amount):
    if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
        raise ValueError(f'Credit amount must be a positive integer, got {amount!r}')


def apply_debit(account, amount):
    """In-place debit used inside a store mutation. Unlimited accounts are untouched."""
    if account.has_unlimited_credits:
        return
    if account.credit_balance < amount:
        raise InsufficientCreditsError(required=amount, available=account.credit_balance)
    account.credit_balance -= amount


def apply_credit(account, amount):
    account.credit_balance += amount


def debit(store, account_id, amount):
    _require_positive(amount)
    account = store.mutate_account(account_id, lambda acc: apply_debit(acc, amount))
    log_event(logging.INFO, 'credits_debited', account_id=account_id, amount=amount,
              unlimited=account.has_unlimited_credits, balance=account.credit_balance)
    return account


def credit(store, account_id, amount):
    _require_positive(amount)
    account = store.mutate_account(account_id, lambda acc: apply_credit(acc, amount))
    log_event(logging.INFO, 'credits_added', account_id=account_id, amount=amount, balance=account.credit_balance)
    return account


def credit_once(store, account_id, amount, receipt_id, receipt):
    """Credit ``amount`` unless ``receipt_id`` was already applied. Returns (account, applied)."""
    _require_positive(amount)
    account, applied = store.mutate_account_once(
        account_id,
        lambda acc: apply_credit(acc, amount),
        receipt_id,
        dict(receipt, credits=amount),
    )
    if applied:
        log_event(logging.INFO, 'credits_added', account_id=account_id, amount=amount,
                  balance=account.credit_balance, receipt_id=receipt_id)
    else:
        log_event(logging.INFO, 'credits_duplicate_ignored', account_id=account_id, receipt_id=receipt_id)
    return account, applied


def record_generation(store, account_id, amount, generated_count):
    """Debit for a finished generation and bump total_generated_count in one step."""
    _require_positive(amount)

    def _apply(account):
        apply_debit(account, amount)
        account.total_generated_count += max(0, int(generated_count))

    account = store.mutate_account(account_id, _apply)
    log_event(logging.INFO, 'credits_debited', account_id=account_id, amount=amount,
              unlimited=account.has_unlimited_credits, balance=account.credit_balance,
              generated_count=generated_count)
    return account
