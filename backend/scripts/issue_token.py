#!/usr/bin/env python3
"""Create an account (or find an existing one) and print a bearer token for it.

Usage:
    python scripts/issue_token.py <login> [email]
    python scripts/issue_token.py <login>/<sub-user login>
    python scripts/issue_token.py --list
"""
import asyncio
import os
import sys

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from sqlalchemy import select

from roletag.database import get_engine, get_session_local
from roletag.models.account import Account, SubUser
from roletag.models.base import Base
from roletag.utils.security import create_access_token


async def issue_token(login: str, email: str = None):
    # Ensure tables exist
    async with get_engine().begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    account_login, _, user_login = login.partition("/")
    SessionLocal = get_session_local()
    async with SessionLocal() as db:
        result = await db.execute(select(Account).where(Account.login == account_login))
        account = result.scalars().first()
        if account is None:
            if user_login:
                print(f"Error: Account '{account_login}' not found")
                return None
            account = Account(login=account_login, email=email or f"{account_login}@example.com")
            db.add(account)
            await db.commit()
            print(f"Created account '{account_login}' ({account.id})")

        subject = account
        if user_login:
            result = await db.execute(
                select(SubUser).where(SubUser.account_id == account.id, SubUser.login == user_login)
            )
            subject = result.scalars().first()
            if subject is None:
                print(f"Error: Sub-user '{user_login}' not found in '{account_login}'")
                return None

    token = create_access_token(subject.id)
    print(token)
    return token


async def list_accounts():
    SessionLocal = get_session_local()
    async with SessionLocal() as db:
        result = await db.execute(select(Account).order_by(Account.created_at.asc()))
        accounts = result.scalars().all()
        if not accounts:
            print("No accounts found")
            return

        print("\nAll accounts:")
        print("-" * 60)
        for account in accounts:
            print(f"  {account.login} ({account.email}) - {account.id}")
        print("-" * 60)


if __name__ == "__main__":
    if len(sys.argv) < 2:
        print(__doc__)
        sys.exit(1)
    if sys.argv[1] == "--list":
        asyncio.run(list_accounts())
    else:
        email = sys.argv[2] if len(sys.argv) > 2 else None
        if asyncio.run(issue_token(sys.argv[1], email)) is None:
            sys.exit(1)
