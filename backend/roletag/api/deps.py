import re
from typing import Annotated, List, Optional
from urllib.parse import quote, unquote
from uuid import UUID

from fastapi import Depends, HTTPException, Request, Response, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import async_sessionmaker

from roletag.config import get_settings
from roletag.database import get_sessionmaker
from roletag.errors import NotAuthorizedError
from roletag.models.account import Account, SubUser
from roletag.services.accounts import AccountLookup
from roletag.services.directory import DirectoryStore
from roletag.services.inventory import InstanceInventory
from roletag.services.membership import Membership
from roletag.services.resources import Resource, ResourceRoleBinding, resource_name
from roletag.utils.security import decode_access_token

security = HTTPBearer()

ROLE_TAG_HEADER = "role-tag"
VERSION_RE = re.compile(r"(\d+)")


def get_directory(sessionmaker: Annotated[async_sessionmaker, Depends(get_sessionmaker)]) -> DirectoryStore:
    return DirectoryStore(sessionmaker)


def get_inventory(sessionmaker: Annotated[async_sessionmaker, Depends(get_sessionmaker)]) -> InstanceInventory:
    return InstanceInventory(sessionmaker)


def get_account_lookup(sessionmaker: Annotated[async_sessionmaker, Depends(get_sessionmaker)]) -> AccountLookup:
    return AccountLookup(sessionmaker)


Directory = Annotated[DirectoryStore, Depends(get_directory)]
Inventory = Annotated[InstanceInventory, Depends(get_inventory)]


class Caller:
    """Authenticated principal: an account owner, or a sub-user of ``account``."""

    def __init__(self, account: Account, user: Optional[SubUser] = None):
        self.account = account
        self.user = user

    @property
    def is_subuser(self) -> bool:
        return self.user is not None

    @property
    def login(self) -> str:
        return self.user.login if self.user else self.account.login


async def get_caller(
    credentials: Annotated[HTTPAuthorizationCredentials, Depends(security)],
    directory: Directory,
) -> Caller:
    """Resolve the bearer token subject to an account or a sub-user."""
    subject_id = decode_access_token(credentials.credentials)
    if subject_id is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    account = await directory.get_account_by_id(subject_id)
    if account is not None:
        return Caller(account)

    user = await directory.get_user_by_id(subject_id)
    if user is not None:
        owner = await directory.get_account_by_id(user.account_id)
        if owner is not None:
            return Caller(owner, user)

    raise HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Caller not found",
        headers={"WWW-Authenticate": "Bearer"},
    )


CurrentCaller = Annotated[Caller, Depends(get_caller)]


async def get_account(account: str, caller: CurrentCaller, directory: Directory) -> Account:
    """The account named by the first path segment: ``my``, a login or a UUID."""
    if account == "my":
        return caller.account
    if account in (caller.account.login, str(caller.account.id)):
        return caller.account
    target = await directory.get_account(account)
    if target.id != caller.account.id:
        raise NotAuthorizedError(f"{caller.login} is not allowed to access {target.login}")
    return target


def normalize_segments(path: str, account: Account, prefix: str = "") -> List[str]:
    """Request path as canonicalizer input, account alias replaced by its login.

    ``path`` is the raw, still percent-encoded path; each segment is decoded
    exactly once after splitting, so an escaped "/" stays inside its segment.
    """
    if prefix and path.startswith(prefix):
        path = path[len(prefix):]
    segments = [unquote(s) for s in path.split("/") if s]
    if segments:
        segments[0] = account.login
    return segments


def parse_api_version(value: Optional[str], default: int) -> int:
    """Major version from an ``Accept-Version`` header such as ``~8`` or ``9.0.0``."""
    if not value:
        return default
    match = VERSION_RE.search(value)
    if match is None:
        return default
    return int(match.group(1))


def raw_path(request: Request) -> str:
    """Undecoded request path. Servers that omit raw_path get the decoded path re-encoded."""
    raw = request.scope.get("raw_path")
    if raw:
        return raw.decode("latin-1").split("?", 1)[0]
    return quote(request.url.path)


class RequestContext:
    """Everything one request needs to resolve and tag resources.

    The membership cache inside is created here and dies with the request.
    """

    def __init__(self, request: Request, account: Account, caller: Caller,
                 directory: DirectoryStore, inventory: InstanceInventory,
                 account_lookup: AccountLookup):
        settings = get_settings()
        self.request = request
        self.account = account
        self.caller = caller
        self.directory = directory
        self.inventory = inventory
        self.membership = Membership(directory, account_lookup)
        self.binding = ResourceRoleBinding(
            directory, inventory, self.membership, account,
            caller_user_id=caller.user.id if caller.user else None,
        )
        self.segments = normalize_segments(raw_path(request), account, settings.api_prefix)
        self.api_version = parse_api_version(
            request.headers.get("accept-version"), settings.structured_members_version
        )
        self.structured_since = settings.structured_members_version

    async def load_resource(self, item_id=None, machine=None) -> Resource:
        """Load role tags for the request path, the item addressed by ``item_id``."""
        segments = list(self.segments)
        if item_id is not None and len(segments) >= 3:
            segments[2] = str(item_id)
        return await self.binding.load_resource(resource_name(segments), machine=machine)

    def item_name(self, item_id) -> str:
        """Canonical name of a new item inside the requested collection."""
        return resource_name(self.segments[:2] + [str(item_id)])

    def requested_role_tags(self) -> Optional[List[str]]:
        header = self.request.headers.get(ROLE_TAG_HEADER)
        if header is None:
            return None
        return [t.strip() for t in header.split(",") if t.strip()]

    def set_role_tag_header(self, response: Response) -> None:
        tags = self.binding.get_role_tags()
        if tags:
            response.headers[ROLE_TAG_HEADER] = ",".join(tags)


async def get_context(
    request: Request,
    account: Annotated[Account, Depends(get_account)],
    caller: CurrentCaller,
    directory: Directory,
    inventory: Inventory,
    account_lookup: Annotated[AccountLookup, Depends(get_account_lookup)],
) -> RequestContext:
    return RequestContext(request, account, caller, directory, inventory, account_lookup)


Context = Annotated[RequestContext, Depends(get_context)]
