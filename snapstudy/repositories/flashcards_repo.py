"""Firestore accessors for flashcard_sets collection."""

from .query_utils import list_owned_recent

COLLECTION = 'flashcard_sets'


def doc_ref(db, set_id):
    return db.collection(COLLECTION).document(set_id)


def get_doc(db, set_id):
    return doc_ref(db, set_id).get()


def set_doc(db, set_id, data):
    return doc_ref(db, set_id).set(data)


def update_doc(db, set_id, updates):
    return doc_ref(db, set_id).update(updates)


def delete_doc(db, set_id):
    return doc_ref(db, set_id).delete()


def list_by_account_recent(db, account_id, limit, firestore_module):
    return list_owned_recent(db, COLLECTION, account_id, limit, firestore_module)
