#!/usr/bin/env python3
"""Mark allow-listed developer accounts verified with unlimited credits.

Reads DEVELOPER_EMAILS from the environment. Dry-run unless --apply is given.
"""

import argparse
import sys
from typing import Iterable, List, Tuple

from snapstudy.config import load_config
from snapstudy.extensions import init_firestore
from snapstudy.models import Account
from snapstudy.repositories import users_repo
from snapstudy.repositories.firestore_store import FirestoreStore
from snapstudy.services import otp_service


def _needs_update(account: Account) -> bool:
    return not (account.is_verified and account.has_unlimited_credits and account.is_developer)


def _grant(account: Account) -> None:
    otp_service.clear_otp(account)
    otp_service.mark_verified(account)
    account.has_unlimited_credits = True
    account.is_developer = True


def verify_developer_accounts(db, emails: Iterable[str], apply_changes: bool) -> Tuple[int, List[str]]:
    store = FirestoreStore(db)
    emails = sorted(emails)
    pending = []
    for doc in users_repo.list_by_emails(db, emails):
        account = Account.from_doc(doc.id, doc.to_dict())
        if not _needs_update(account):
            continue
        pending.append(account.email)
        if apply_changes:
            store.mutate_account(account.id, _grant)
    return len(emails), pending


def main():
    parser = argparse.ArgumentParser(description="Verify developer accounts listed in DEVELOPER_EMAILS.")
    parser.add_argument(
        "--apply",
        action="store_true",
        help="Apply changes. Without this flag, the script runs in dry-run mode.",
    )
    args = parser.parse_args()

    config = load_config()
    if not config.developer_emails:
        print("DEVELOPER_EMAILS is empty; nothing to do.")
        return 0
    db = init_firestore(config)
    if db is None:
        print("Firestore is not configured (firebase-credentials.json or FIREBASE_CREDENTIALS).", file=sys.stderr)
        return 1

    listed, pending = verify_developer_accounts(db, config.developer_emails, apply_changes=args.apply)
    mode = "APPLY" if args.apply else "DRY-RUN"
    print(f"[{mode}] allow_listed={listed}, accounts_needing_update={len(pending)}")
    for email in pending:
        print(f"  - {email}")
    if not args.apply:
        print("No changes were written. Re-run with --apply to persist.")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
