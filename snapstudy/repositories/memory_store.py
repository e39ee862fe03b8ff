"""Process-local store used when Firestore is not configured (local dev, tests).

Mirrors FirestoreStore's contract. A single re-entrant lock is the
serialization point for every mutation; callers always receive copies, so no
reference to live state leaks out of the lock.
"""

import threading

from snapstudy.errors import ConflictError, NotFoundError
from snapstudy.models import new_id, utcnow


class InMemoryStore:
    def __init__(self):
        self._lock = threading.RLock()
        self._accounts = {}
        self._email_index = {}
        self._flashcard_sets = {}
        self._receipts = {}
        self._rate_limit_events = {}

    # --- accounts ---

    def get_account(self, account_id):
        with self._lock:
            account = self._accounts.get(account_id)
            return account.copy() if account else None

    def find_account_by_email(self, email):
        with self._lock:
            account_id = self._email_index.get(email)
            return self.get_account(account_id) if account_id else None

    def create_account(self, account):
        with self._lock:
            if account.email in self._email_index:
                raise ConflictError()
            self._email_index[account.email] = account.id
            self._accounts[account.id] = account.copy()
            return account.copy()

    def mutate_account(self, account_id, mutator):
        with self._lock:
            stored = self._accounts.get(account_id)
            if stored is None:
                raise NotFoundError('User not found')
            account = stored.copy()
            mutator(account)
            account.updated_at = utcnow()
            self._accounts[account_id] = account
            return account.copy()

    def mutate_account_once(self, account_id, mutator, receipt_id, receipt):
        with self._lock:
            if account_id not in self._accounts:
                raise NotFoundError('User not found')
            if receipt_id in self._receipts:
                return self._accounts[account_id].copy(), False
            account = self.mutate_account(account_id, mutator)
            self._receipts[receipt_id] = dict(receipt, account_id=account_id, created_at=utcnow())
            return account, True

    def change_account_email(self, account_id, new_email, mutator):
        with self._lock:
            owner = self._email_index.get(new_email)
            if owner is not None and owner != account_id:
                raise ConflictError('Email address is already in use')
            old_email = self._accounts[account_id].email if account_id in self._accounts else None

            def _apply(account):
                mutator(account)
                account.email = new_email

            account = self.mutate_account(account_id, _apply)
            if owner is None:
                self._email_index.pop(old_email, None)
                self._email_index[new_email] = account_id
            return account

    # --- flashcard sets ---

    def create_flashcard_set(self, doc):
        set_id = new_id()
        with self._lock:
            self._flashcard_sets[set_id] = dict(doc)
        return set_id

    def update_flashcard_set(self, set_id, updates):
        with self._lock:
            if set_id not in self._flashcard_sets:
                raise NotFoundError('Flashcard set not found')
            self._flashcard_sets[set_id].update(updates, updated_at=utcnow())

    def get_flashcard_set(self, set_id):
        with self._lock:
            doc = self._flashcard_sets.get(set_id)
            return dict(doc) if doc is not None else None

    def list_flashcard_sets(self, account_id, limit):
        with self._lock:
            owned = [
                (set_id, dict(doc))
                for set_id, doc in self._flashcard_sets.items()
                if doc.get('account_id') == account_id
            ]
        owned.sort(key=lambda item: item[1].get('created_at'), reverse=True)
        return owned[:limit]

    def delete_flashcard_set(self, set_id):
        with self._lock:
            self._flashcard_sets.pop(set_id, None)

    # --- receipts ---

    def list_receipts(self, account_id, limit):
        with self._lock:
            owned = [
                (receipt_id, dict(receipt))
                for receipt_id, receipt in self._receipts.items()
                if receipt.get('account_id') == account_id
            ]
        owned.sort(key=lambda item: item[1].get('created_at'), reverse=True)
        return owned[:limit]

    # --- rate limiting ---

    def consume_rate_limit(self, key, limit, window_seconds, now_ts):
        with self._lock:
            cutoff = now_ts - window_seconds
            kept = [ts for ts in self._rate_limit_events.get(key, []) if ts >= cutoff]
            if len(kept) >= limit:
                retry_after = max(1, int((kept[0] + window_seconds) - now_ts))
                self._rate_limit_events[key] = kept
                return False, retry_after
            kept.append(now_ts)
            self._rate_limit_events[key] = kept
        return True, 0
