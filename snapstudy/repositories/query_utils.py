"""Shared Firestore query helpers."""

from google.cloud.firestore_v1.base_query import FieldFilter


def apply_where(query, field_path, op_string, value):
    # Test doubles without the ``filter`` keyword get the positional form.
    try:
        return query.where(filter=FieldFilter(field_path, op_string, value))
    except TypeError:
        return query.where(field_path, op_string, value)


def list_owned_recent(db, collection_name, owner_id, limit, firestore_module, owner_field='account_id'):
    """Return up to ``limit`` docs owned by ``owner_id``, newest ``created_at`` first."""
    query = apply_where(db.collection(collection_name), owner_field, '==', owner_id)
    query = query.order_by('created_at', direction=firestore_module.Query.DESCENDING).limit(limit)
    return list(query.stream())
