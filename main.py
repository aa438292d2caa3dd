#!/usr/bin/env python3
"""
LoanDesk -- operator command line.

Usage:
  python main.py score --credit-score 720 --income 5000 --debt 1500 --employment SALARIED
  python main.py score --credit-score 640 --income 3000 --debt 1600 --json
  python main.py create-user alice --role ANALYST
  python main.py create-user root --role ADMIN --password-stdin < secret.txt

create-user is the bootstrap path for accounts that need a role other than
CUSTOMER. It uses DATABASE_URL and SECRET_KEY from the environment / .env just
like the API server.

Environment variables:
  DATABASE_URL  SQLAlchemy URL of the user database (default: ./loandesk.db)
  SECRET_KEY    Signing key, at least 32 bytes (or DEBUG=true for a throwaway key)
"""

import argparse
import getpass
import json
import sys
from dataclasses import asdict
from typing import Optional

from loans.eligibility import evaluate


def _print_result(result, as_json: bool) -> None:
    data = asdict(result)
    data["decision"] = result.decision.value
    if as_json:
        print(json.dumps(data, indent=2))
        return
    print(f"  DTI              {result.dti:.2f}")
    print(f"  Risk score       {result.risk_score}")
    print(f"  Decision         {result.decision.value}")
    print(f"  Recommended rate {result.recommended_rate:.1f}%")


def _cmd_score(args: argparse.Namespace) -> int:
    result = evaluate(
        amount=args.amount,
        tenure=args.tenure,
        monthly_income=args.income,
        monthly_debt=args.debt,
        credit_score=args.credit_score,
        employment_type=args.employment,
        purpose=args.purpose,
    )
    _print_result(result, args.json)
    return 0


def _cmd_create_user(args: argparse.Namespace) -> int:
    # Imported here so `score` works without any configuration.
    from auth.authenticator import Authenticator
    from auth.models import Role
    from auth.store import UserStore
    from auth.tokens import TokenCodec
    from core.config import get_settings
    from core.exceptions import UsernameTaken

    role = Role.from_wire(args.role)
    if args.password_stdin:
        password = sys.stdin.readline().rstrip("\n")
    else:
        password = getpass.getpass(f"Password for {args.username}: ")
    if not password.strip():
        print("  [!] Password must not be blank.")
        return 1

    settings = get_settings()
    store = UserStore(settings.database_url)
    try:
        authenticator = Authenticator(store, TokenCodec.from_settings(settings))
        user = authenticator.create_account(args.username, password, role)
    except UsernameTaken:
        print(f"  [!] User '{args.username}' already exists.")
        return 1
    finally:
        store.close()
    print(f"  Created {user.role.value} account '{user.username}' (id={user.id})")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="loandesk", description="LoanDesk operator tools.")
    sub = parser.add_subparsers(dest="command", required=True)

    score = sub.add_parser("score", help="Evaluate eligibility for one application.")
    score.add_argument("--amount", type=float)
    score.add_argument("--tenure", type=int, help="Loan duration in months.")
    score.add_argument("--income", type=float, help="Monthly income.")
    score.add_argument("--debt", type=float, help="Monthly debt payments.")
    score.add_argument("--credit-score", type=int)
    score.add_argument("--employment", help="SALARIED, SELF_EMPLOYED, STUDENT, ...")
    score.add_argument("--purpose")
    score.add_argument("--json", action="store_true", help="Print the result as JSON.")
    score.set_defaults(func=_cmd_score)

    create = sub.add_parser("create-user", help="Create an account with an explicit role.")
    create.add_argument("username")
    create.add_argument("--role", default="CUSTOMER", choices=["ADMIN", "ANALYST", "CUSTOMER"], type=str.upper)
    create.add_argument("--password-stdin", action="store_true", help="Read the password from stdin.")
    create.set_defaults(func=_cmd_create_user)

    return parser


def main(argv: Optional[list[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
