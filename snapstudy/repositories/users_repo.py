"""Firestore accessors for the users collection and its email index."""

USERS_COLLECTION = 'users'
EMAIL_INDEX_COLLECTION = 'account_emails'


def doc_ref(db, account_id):
    return db.collection(USERS_COLLECTION).document(account_id)


def get_doc(db, account_id):
    return doc_ref(db, account_id).get()


def email_ref(db, email):
    # Document ids may not contain '/', which RFC 5321 never puts in a domain.
    return db.collection(EMAIL_INDEX_COLLECTION).document(email.replace('/', '%2F'))


def get_email_doc(db, email):
    return email_ref(db, email).get()


def list_by_emails(db, emails):
    docs = []
    for email in emails:
        index_doc = get_email_doc(db, email)
        if not index_doc.exists:
            continue
        account_id = (index_doc.to_dict() or {}).get('account_id', '')
        if account_id:
            docs.append(get_doc(db, account_id))
    return [doc for doc in docs if doc.exists]
