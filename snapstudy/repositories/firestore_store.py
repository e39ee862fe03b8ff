"""Firestore-backed store.

Every account mutation runs inside a Firestore transaction that re-reads the
user document, so concurrent debits/credits against one account are
serialized by Firestore's optimistic concurrency (the transaction retries on
contention). Email uniqueness is enforced by an ``account_emails`` index
document created in the same transaction as the account.
"""

import hashlib
import logging

from firebase_admin import firestore

from snapstudy.errors import ConflictError, NotFoundError
from snapstudy.models import Account, new_id, utcnow

from . import flashcards_repo, purchases_repo, users_repo

logger = logging.getLogger('snapstudy')

RATE_LIMIT_COUNTER_COLLECTION = 'rate_limit_counters'


def window_counter_id(key, window_seconds, window_start):
    raw = f"{key}|{window_seconds}|{int(window_start)}".encode('utf-8')
    return hashlib.sha256(raw).hexdigest()


class FirestoreStore:
    def __init__(self, db, firestore_module=firestore):
        self.db = db
        self.firestore = firestore_module

    # --- accounts ---

    def get_account(self, account_id):
        if not account_id:
            return None
        snapshot = users_repo.get_doc(self.db, account_id)
        if not snapshot.exists:
            return None
        return Account.from_doc(snapshot.id, snapshot.to_dict())

    def find_account_by_email(self, email):
        index_doc = users_repo.get_email_doc(self.db, email)
        if not index_doc.exists:
            return None
        return self.get_account((index_doc.to_dict() or {}).get('account_id', ''))

    def create_account(self, account):
        user_ref = users_repo.doc_ref(self.db, account.id)
        email_ref = users_repo.email_ref(self.db, account.email)

        @self.firestore.transactional
        def _create_in_transaction(transaction):
            if email_ref.get(transaction=transaction).exists:
                raise ConflictError()
            transaction.create(email_ref, {'account_id': account.id, 'created_at': account.created_at})
            transaction.create(user_ref, account.to_doc())
            return account.copy()

        return _create_in_transaction(self.db.transaction())

    def mutate_account(self, account_id, mutator):
        """Apply ``mutator(account)`` atomically and return the stored result.

        An exception raised by the mutator aborts the transaction with no write.
        """
        user_ref = users_repo.doc_ref(self.db, account_id)

        @self.firestore.transactional
        def _mutate_in_transaction(transaction):
            snapshot = user_ref.get(transaction=transaction)
            if not snapshot.exists:
                raise NotFoundError('User not found')
            account = Account.from_doc(snapshot.id, snapshot.to_dict())
            mutator(account)
            account.updated_at = utcnow()
            transaction.set(user_ref, account.to_doc())
            return account

        return _mutate_in_transaction(self.db.transaction())

    def mutate_account_once(self, account_id, mutator, receipt_id, receipt):
        """Like mutate_account, but a no-op when ``receipt_id`` was already recorded.

        Returns ``(account, applied)``.
        """
        user_ref = users_repo.doc_ref(self.db, account_id)
        receipt_ref = purchases_repo.doc_ref(self.db, receipt_id)

        @self.firestore.transactional
        def _mutate_once_in_transaction(transaction):
            receipt_snapshot = receipt_ref.get(transaction=transaction)
            snapshot = user_ref.get(transaction=transaction)
            if not snapshot.exists:
                raise NotFoundError('User not found')
            account = Account.from_doc(snapshot.id, snapshot.to_dict())
            if receipt_snapshot.exists:
                return account, False
            mutator(account)
            account.updated_at = utcnow()
            transaction.set(user_ref, account.to_doc())
            transaction.create(receipt_ref, dict(receipt, account_id=account_id, created_at=utcnow()))
            return account, True

        return _mutate_once_in_transaction(self.db.transaction())

    def change_account_email(self, account_id, new_email, mutator):
        user_ref = users_repo.doc_ref(self.db, account_id)
        new_email_ref = users_repo.email_ref(self.db, new_email)

        @self.firestore.transactional
        def _change_in_transaction(transaction):
            snapshot = user_ref.get(transaction=transaction)
            if not snapshot.exists:
                raise NotFoundError('User not found')
            index_snapshot = new_email_ref.get(transaction=transaction)
            if index_snapshot.exists and (index_snapshot.to_dict() or {}).get('account_id') != account_id:
                raise ConflictError('Email address is already in use')
            account = Account.from_doc(snapshot.id, snapshot.to_dict())
            old_email_ref = users_repo.email_ref(self.db, account.email)
            mutator(account)
            account.email = new_email
            account.updated_at = utcnow()
            transaction.set(user_ref, account.to_doc())
            if not index_snapshot.exists:
                transaction.create(new_email_ref, {'account_id': account_id, 'created_at': utcnow()})
                transaction.delete(old_email_ref)
            return account

        return _change_in_transaction(self.db.transaction())

    # --- flashcard sets ---

    def create_flashcard_set(self, doc):
        set_id = new_id()
        flashcards_repo.set_doc(self.db, set_id, doc)
        return set_id

    def update_flashcard_set(self, set_id, updates):
        flashcards_repo.update_doc(self.db, set_id, dict(updates, updated_at=utcnow()))

    def get_flashcard_set(self, set_id):
        snapshot = flashcards_repo.get_doc(self.db, set_id)
        if not snapshot.exists:
            return None
        return snapshot.to_dict() or {}

    def list_flashcard_sets(self, account_id, limit):
        docs = flashcards_repo.list_by_account_recent(self.db, account_id, limit, self.firestore)
        return [(doc.id, doc.to_dict() or {}) for doc in docs]

    def delete_flashcard_set(self, set_id):
        flashcards_repo.delete_doc(self.db, set_id)

    # --- receipts ---

    def list_receipts(self, account_id, limit):
        docs = purchases_repo.list_by_account_recent(self.db, account_id, limit, self.firestore)
        return [(doc.id, doc.to_dict() or {}) for doc in docs]

    # --- rate limiting ---

    def consume_rate_limit(self, key, limit, window_seconds, now_ts):
        window_start = int(now_ts // window_seconds) * int(window_seconds)
        retry_after = max(1, int((window_start + window_seconds) - now_ts))
        counter_id = window_counter_id(key, window_seconds, window_start)
        counter_ref = self.db.collection(RATE_LIMIT_COUNTER_COLLECTION).document(counter_id)

        @self.firestore.transactional
        def _consume_in_transaction(transaction):
            snapshot = counter_ref.get(transaction=transaction)
            count = 0
            if snapshot.exists:
                count = int((snapshot.to_dict() or {}).get('count', 0) or 0)
            if count >= limit:
                return False, retry_after
            transaction.set(counter_ref, {
                'key': key,
                'count': count + 1,
                'window_start': window_start,
                'window_seconds': int(window_seconds),
                'updated_at': now_ts,
                'expires_at': window_start + (window_seconds * 3),
            }, merge=True)
            return True, 0

        return _consume_in_transaction(self.db.transaction())
