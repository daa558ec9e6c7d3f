# backend/tests/conftest.py
import asyncio
import json
from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from roletag.main import app
from roletag.database import get_sessionmaker
from roletag.models import Account, Base, Machine, Policy, Role, SubUser
from roletag.services.references import account_dn, policy_dn, sub_user_dn
from roletag.utils.security import create_access_token


def run(coro):
    """Drive a coroutine from a synchronous test or fixture."""
    return asyncio.run(coro)


@pytest.fixture
def session_factory(tmp_path):
    # File-backed so every connection sees the same database
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'roletag.db'}",
        poolclass=NullPool,
    )

    async def _create():
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    run(_create())
    yield async_sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)
    run(engine.dispose())


async def _seed(factory):
    async with factory() as session:
        acme = Account(login="acme", email="owner@acme.example")
        globex = Account(login="globex", email="owner@globex.example")
        session.add_all([acme, globex])
        await session.flush()

        alice = SubUser(account_id=acme.id, login="alice", email="alice@acme.example")
        bob = SubUser(account_id=acme.id, login="bob", email="bob@acme.example")
        read_only = Policy(
            account_id=acme.id,
            name="read-only",
            rules=json.dumps(["CAN listmachines", "CAN getmachine"]),
        )
        session.add_all([alice, bob, read_only])
        await session.flush()

        alice_dn = sub_user_dn(acme.id, alice.id)
        bob_dn = sub_user_dn(acme.id, bob.id)
        operators = Role(
            account_id=acme.id,
            name="operators",
            members=[alice_dn, bob_dn],
            default_members=[alice_dn],
            policies=[policy_dn(acme.id, read_only.id)],
        )
        auditors = Role(account_id=acme.id, name="auditors", members=[bob_dn], default_members=[], policies=[])
        partners = Role(
            account_id=acme.id,
            name="partners",
            members=[account_dn(globex.id)],
            default_members=[],
            policies=[],
        )
        web = Machine(owner_id=acme.id, alias="web-1", role_tags=[])
        session.add_all([operators, auditors, partners, web])
        await session.commit()

        entries = [acme, globex, alice, bob, read_only, operators, auditors, partners, web]
        for entry in entries:
            await session.refresh(entry)

    return SimpleNamespace(
        acme=acme, globex=globex, alice=alice, bob=bob, read_only=read_only,
        operators=operators, auditors=auditors, partners=partners, web=web,
    )


@pytest.fixture
def seed(session_factory):
    return run(_seed(session_factory))


def auth_headers(subject_id) -> dict:
    return {"Authorization": f"Bearer {create_access_token(subject_id)}"}


@pytest.fixture
def owner_headers(seed):
    return auth_headers(seed.acme.id)


@pytest.fixture
def alice_headers(seed):
    return auth_headers(seed.alice.id)


@pytest.fixture
def client(session_factory):
    app.dependency_overrides[get_sessionmaker] = lambda: session_factory
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()
