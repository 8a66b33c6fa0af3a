#!/usr/bin/env python
"""Link a local profile to an account that already exists in the identity provider.

Used to bootstrap the first administrator (whose account is created in the
realm console) or to repair a profile lost after a failed onboarding.

Usage:
    python backend/scripts/link_user.py --subject <sub> --first-name Ada --last-name Admin \\
        --nickname ada --email ada@example.com
    python backend/scripts/link_user.py ... --verify     # check the subject exists in the IdP first
    python backend/scripts/link_user.py ... --dry-run    # run logic then rollback (no DB changes)
"""
from __future__ import annotations
import os, sys, argparse, textwrap
from sqlalchemy import inspect

# Allow running from repo root
sys.path.append(os.path.abspath('backend'))

from reimburse import create_app, get_db, get_idp  # type: ignore
from reimburse.errors import DomainError
from reimburse.models.user import Base
from reimburse.models import folder, purchase  # noqa: F401
from reimburse.services import identity


def parse_args(argv=None):
    p = argparse.ArgumentParser(
        description="Link a local user profile to an identity provider subject",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=textwrap.dedent("""Examples:\n  link: link_user.py --subject 8c1d... --first-name Ada --last-name Admin --nickname ada --email ada@example.com\n  dry run: link_user.py ... --dry-run\n""")
    )
    p.add_argument('--subject', required=True, help='Token "sub" of the existing account')
    p.add_argument('--first-name', required=True)
    p.add_argument('--last-name', required=True)
    p.add_argument('--nickname', required=True)
    p.add_argument('--email', required=True)
    p.add_argument('--verify', action='store_true', help='Read the account from the identity provider before linking')
    p.add_argument('--dry-run', action='store_true', help='Rollback after operations (no commit)')
    return p.parse_args(argv)


def ensure_schema(session):
    # Lightweight fallback when migrations were not run yet; prefer alembic upgrade
    engine = session.get_bind()
    if not inspect(engine).has_table('users'):
        Base.metadata.create_all(engine)
        print('[INFO] Schema created')


def main(argv=None, app=None):
    args = parse_args(argv)
    app = app or create_app()
    with app.app_context():
        session = get_db()
        ensure_schema(session)
        try:
            if args.verify:
                idp = get_idp()
                account = idp.get_user(idp.admin_token(), args.subject)
                print(f"[INFO] Identity provider account found: {account.get('username')}")
            existing = identity.find_by_subject(args.subject)
            user = identity.link_existing_account(
                args.subject, args.first_name, args.last_name, args.nickname, args.email,
                commit=not args.dry_run,
            )
        except DomainError as e:
            session.rollback()
            print(f"[ERROR] {e.description}")
            return 2
        if args.dry_run:
            session.rollback()
            print(f"[DRY-RUN] (rolled back) Would link {args.subject} as {args.nickname}")
        elif existing is not None:
            print(f"[DONE] Subject already linked to user {user.id} ({user.nickname})")
        else:
            print(f"[DONE] Linked {args.subject} to user {user.id} ({user.nickname})")
    return 0


if __name__ == '__main__':
    sys.exit(main())
