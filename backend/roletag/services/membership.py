"""
Membership resolution shared by role, policy, user and resource code.

Roles point at users and policies, and users are listed with the roles they
belong to. Keeping every resolver here, below both call sites, is what keeps
the API modules free of import cycles.

Every resolver takes a list of references (ByName, ById or ByPath), reduces
each to a (field, value) lookup and issues at most one directory search per
field for the whole batch. A MembershipCache is built once per request and
passed to every resolver; it is never shared between requests.
"""
import asyncio
import json
import logging
from abc import ABC, abstractmethod
from collections import OrderedDict
from typing import Dict, Iterable, List, Optional, Sequence, Tuple
from uuid import UUID

from roletag.errors import UnresolvedReferenceError
from roletag.schemas.membership import AccountInfo, Member, Policy, Role, User
from roletag.services.references import (
    ById,
    ByName,
    ByPath,
    Reference,
    is_uuid,
    parse_member,
    policy_dn,
    policy_id_from_dn,
    role_dn,
    role_id_from_dn,
    sub_user_dn,
    user_id_from_dn,
)

logger = logging.getLogger(__name__)

Lookup = Tuple[str, object]


class MembershipCache:
    """Request-scoped memo table.

    Users are stored under both ("id", uuid) and ("login", login), policies
    under ("id", uuid) and ("name", name), so either addressing form hits once
    the entity has been loaded. Cross-account lookups are stored by account
    UUID, including misses.
    """

    def __init__(self):
        self.users: Dict[Lookup, User] = {}
        self.policies: Dict[Lookup, Policy] = {}
        self.accounts: Dict[UUID, Optional[AccountInfo]] = {}

    def store_user(self, user: User) -> User:
        existing = self.users.get(("id", user.id))
        if existing is not None:
            return existing
        self.users[("id", user.id)] = user
        self.users[("login", user.login)] = user
        return user

    def store_policy(self, policy: Policy) -> Policy:
        existing = self.policies.get(("id", policy.id))
        if existing is not None:
            return existing
        self.policies[("id", policy.id)] = policy
        self.policies[("name", policy.name)] = policy
        return policy


def decode_rules(raw) -> List[str]:
    """Rule documents are usually stored JSON-encoded; anything else is kept raw."""
    if raw is None:
        return []
    if isinstance(raw, list):
        return [str(r) for r in raw]
    try:
        decoded = json.loads(raw)
    except (TypeError, ValueError):
        return [raw]
    if isinstance(decoded, list):
        return [str(r) for r in decoded]
    if isinstance(decoded, str):
        return [decoded]
    return [raw]


def translate_user(entry) -> User:
    return User.model_validate(entry)


def translate_policy(entry) -> Policy:
    return Policy(
        id=entry.id,
        name=entry.name,
        account_id=entry.account_id,
        rules=decode_rules(entry.rules),
        description=entry.description,
        dn=policy_dn(entry.account_id, entry.id),
    )


def translate_role(entry) -> Role:
    """Role without hydrated members or policies."""
    return Role(
        id=entry.id,
        name=entry.name,
        account_id=entry.account_id,
        dn=role_dn(entry.account_id, entry.id),
        member_dns=list(entry.members or []),
        default_member_dns=list(entry.default_members or []),
        policy_dns=list(entry.policies or []),
    )


def _unique(items: Iterable, key) -> list:
    seen = OrderedDict()
    for item in items:
        seen.setdefault(key(item), item)
    return list(seen.values())


class _CachedResolver(ABC):
    """Cache-first batch lookup shared by the user and policy resolvers.

    Concurrent resolve calls on one resolver run one at a time, so an
    identity already being fetched is a cache hit for the next caller
    instead of a second search.
    """

    kind = ""
    name_field = "name"

    def __init__(self, directory, cache: MembershipCache):
        self.directory = directory
        self.cache = cache
        self._lock = asyncio.Lock()

    @abstractmethod
    def _path_to_id(self, path: str) -> Optional[UUID]:
        ...

    @abstractmethod
    def _table(self) -> dict:
        ...

    @abstractmethod
    async def _search(self, account_id: UUID, field: str, values: list) -> list:
        ...

    @abstractmethod
    def _translate_and_store(self, entry):
        ...

    def _normalize(self, ref: Reference) -> Optional[Lookup]:
        if isinstance(ref, ByName):
            return (self.name_field, ref.value)
        if isinstance(ref, ById):
            return ("id", ref.value)
        entity_id = self._path_to_id(ref.value)
        if entity_id is None:
            logger.warning(f"Ignoring malformed {self.kind} path: {ref.value}")
            return None
        return ("id", entity_id)

    async def resolve(self, account_id: UUID, references: Sequence[Reference]) -> list:
        if not references:
            return []
        async with self._lock:
            return await self._resolve(account_id, references)

    async def _resolve(self, account_id: UUID, references: Sequence[Reference]) -> list:
        cached = []
        pending: Dict[str, list] = OrderedDict()
        table = self._table()

        for ref in references:
            lookup = self._normalize(ref)
            if lookup is None:
                continue
            if lookup in table:
                cached.append(table[lookup])
            else:
                values = pending.setdefault(lookup[0], [])
                if lookup[1] not in values:
                    values.append(lookup[1])

        loaded = []
        for field, values in pending.items():
            entries = await self._search(account_id, field, values)
            loaded.extend(self._translate_and_store(e) for e in entries)

        return _unique(loaded + cached, key=lambda e: e.id)


class PolicyResolver(_CachedResolver):
    kind = "policy"

    def _path_to_id(self, path):
        return policy_id_from_dn(path)

    def _table(self):
        return self.cache.policies

    async def _search(self, account_id, field, values):
        return await self.directory.search_policies(account_id, field, values)

    def _translate_and_store(self, entry):
        return self.cache.store_policy(translate_policy(entry))


class UserResolver(_CachedResolver):
    kind = "user"
    name_field = "login"

    def _path_to_id(self, path):
        return user_id_from_dn(path)

    def _table(self):
        return self.cache.users

    async def _search(self, account_id, field, values):
        return await self.directory.search_users(account_id, field, values)

    def _translate_and_store(self, entry):
        return self.cache.store_user(translate_user(entry))


class RoleResolver:
    def __init__(self, directory, account_lookup, cache: MembershipCache,
                 users: UserResolver, policies: PolicyResolver):
        self.directory = directory
        self.account_lookup = account_lookup
        self.cache = cache
        self.users = users
        self.policies = policies

    @staticmethod
    def _normalize(ref: Reference) -> Optional[Lookup]:
        if isinstance(ref, ByName):
            return ("name", ref.value)
        if isinstance(ref, ById):
            return ("id", ref.value)
        role_id = role_id_from_dn(ref.value)
        if role_id is None:
            logger.warning(f"Ignoring malformed role path: {ref.value}")
            return None
        return ("id", role_id)

    async def resolve(self, account_id: UUID, references: Sequence[Reference],
                      hydrate: bool = True) -> List[Role]:
        """
        Resolve role references. An empty list means every role of the account.

        Names come from end users (role tags are always given as names), so a
        name that matches nothing fails the whole call with every missing name
        listed. Identities come from storage and are not checked.
        """
        pending: Dict[str, list] = OrderedDict()
        for ref in references:
            lookup = self._normalize(ref)
            if lookup is None:
                continue
            values = pending.setdefault(lookup[0], [])
            if lookup[1] not in values:
                values.append(lookup[1])

        if not references:
            entries = await self.directory.list_roles(account_id)
        else:
            entries = []
            for field, values in pending.items():
                entries.extend(await self.directory.search_roles(account_id, field, values))
        entries = _unique(entries, key=lambda e: e.id)

        requested_names = pending.get("name", [])
        if requested_names:
            found = {e.name for e in entries}
            missing = [n for n in requested_names if n not in found]
            if missing:
                raise UnresolvedReferenceError("Role", missing)

        roles = [translate_role(e) for e in entries]
        if hydrate and roles:
            await self.hydrate(account_id, roles)
        return roles

    async def hydrate(self, account_id: UUID, roles: List[Role]) -> List[Role]:
        """Fill in members and policies for already translated roles."""
        parsed = {}
        for role in roles:
            for dn in role.member_dns + role.default_member_dns:
                if dn not in parsed:
                    parsed[dn] = parse_member(dn)

        user_refs = [ById(value=m.id) for m in parsed.values() if m is not None and m.kind in ("subuser", "id")]
        account_ids = _unique((m.id for m in parsed.values() if m is not None and m.kind == "account"),
                              key=lambda i: i)
        policy_refs = []
        for role in roles:
            for dn in role.policy_dns:
                policy_refs.append(ById(value=UUID(dn)) if is_uuid(dn) else ByPath(value=dn))

        users, policies, accounts = await asyncio.gather(
            self.users.resolve(account_id, user_refs),
            self.policies.resolve(account_id, policy_refs),
            self._lookup_accounts(account_ids),
        )
        users_by_id = {u.id: u for u in users}
        policies_by_id = {p.id: p for p in policies}

        for role in roles:
            defaults = set(role.default_member_dns)
            members = []
            for dn in _unique(role.member_dns + role.default_member_dns, key=lambda d: d):
                ref = parsed.get(dn)
                if ref is None:
                    logger.warning(f"Role {role.name} has unparseable member {dn}")
                    continue
                if ref.kind == "account":
                    account = accounts.get(ref.id)
                    if account is None:
                        continue
                    members.append(Member(kind="account", id=account.id, login=account.login,
                                          default=dn in defaults))
                else:
                    user = users_by_id.get(ref.id)
                    if user is None:
                        logger.debug(f"Role {role.name} member {dn} not found")
                        continue
                    members.append(Member(kind="subuser", id=user.id, login=user.login,
                                          default=dn in defaults))
            role.members = members

            role_policies = []
            for dn in role.policy_dns:
                policy_id = UUID(dn) if is_uuid(dn) else policy_id_from_dn(dn)
                policy = policies_by_id.get(policy_id)
                if policy is not None:
                    role_policies.append(policy)
            role.policies = role_policies

        return roles

    async def _lookup_accounts(self, account_ids: List[UUID]) -> Dict[UUID, Optional[AccountInfo]]:
        """Best effort: each lookup runs on its own and a failure drops that member only."""
        missing = [a for a in account_ids if a not in self.cache.accounts]
        if missing:
            results = await asyncio.gather(
                *[self.account_lookup.get_account(a) for a in missing],
                return_exceptions=True,
            )
            for account_id, result in zip(missing, results):
                if isinstance(result, Exception):
                    logger.warning(f"Cross-account member {account_id} lookup failed: {result}")
                    continue
                self.cache.accounts[account_id] = result
        return {a: self.cache.accounts.get(a) for a in account_ids}

    async def active_roles(self, account_id: UUID, user_id: UUID) -> List[Role]:
        """Roles the sub-user belongs to by default, i.e. its currently active roles."""
        dn = sub_user_dn(account_id, user_id)
        roles = await self.resolve(account_id, [], hydrate=False)
        return [r for r in roles if dn in r.default_member_dns]

    async def memberships(self, account_id: UUID, user_id: UUID) -> Tuple[List[Role], List[Role]]:
        """(roles, default roles) a sub-user is a member of."""
        dn = sub_user_dn(account_id, user_id)
        roles = await self.resolve(account_id, [], hydrate=False)
        member_of = [r for r in roles if dn in r.member_dns or dn in r.default_member_dns]
        default_of = [r for r in member_of if dn in r.default_member_dns]
        return member_of, default_of


class Membership:
    """The resolvers of one request, wired to one cache."""

    def __init__(self, directory, account_lookup, cache: Optional[MembershipCache] = None):
        self.cache = cache or MembershipCache()
        self.users = UserResolver(directory, self.cache)
        self.policies = PolicyResolver(directory, self.cache)
        self.roles = RoleResolver(directory, account_lookup, self.cache, self.users, self.policies)
