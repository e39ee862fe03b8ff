"""Firestore accessors for payment_receipts collection.

A receipt document id is the provider transaction id, so its existence is the
marker that the purchase has already been credited.
"""

from .query_utils import list_owned_recent

COLLECTION = 'payment_receipts'


def doc_ref(db, transaction_id):
    return db.collection(COLLECTION).document(transaction_id)


def get_doc(db, transaction_id):
    return doc_ref(db, transaction_id).get()


def list_by_account_recent(db, account_id, limit, firestore_module):
    return list_owned_recent(db, COLLECTION, account_id, limit, firestore_module)
