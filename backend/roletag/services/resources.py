"""
Role tagging of API resources.

A "role tag" is a reference from a resource to an account role. Tags are
given and shown as role names but stored as durable identities:

* Machines (``/<account>/machines/<id>``) keep role UUIDs on the machine
  record in the instance inventory.
* Everything else, including "virtual" resources with no entity of their
  own such as "the list of users", gets a binding record in the directory
  listing the tagging roles by DN.

Role tags together with the roles active for a sub-user decide what that
sub-user may do with a resource once policies are evaluated.
"""
import logging
from typing import List, Optional, Sequence, Tuple
from uuid import UUID, uuid4

from pydantic import BaseModel, Field

from roletag.errors import NotFoundError, TagWriteError
from roletag.schemas.membership import Role
from roletag.services.membership import Membership
from roletag.services.references import ids, is_uuid, names, paths

logger = logging.getLogger(__name__)

VALID_RESOURCES = [
    'machines', 'users', 'roles', 'packages',
    'images', 'policies', 'keys', 'datacenters',
    'analytics', 'fwrules', 'networks',
]


def resource_name(segments: Sequence[str]) -> str:
    """
    Canonical resource name for a request path.

    ``segments`` is the decoded path with the account alias already replaced
    by the account in scope. The common shape is
    ``/:account/:resource[/:id]``; the exceptions are:

    - ``/:account`` is the account itself.
    - Sub-user keys nest deeper (``/:account/users/:user/keys[/:key]``) and
      are kept whole so individual keys can be tagged.
    - Anything below ``/:account/machines/:id`` (snapshots, tags, metadata,
      audit, ...) inherits the machine's tags and maps to the machine.
    - Other deep paths keep four segments, which covers
      ``/:account/analytics/instrumentations/:id``.
    """
    p = list(segments)
    if len(p) == 1:
        return f"/{p[0]}"
    if len(p) in (2, 3):
        return "/" + "/".join(p)
    if p[1] == 'users' and p[3] == 'keys':
        return "/" + "/".join(p)
    if len(p) == 4 or p[1] == 'machines':
        return "/" + "/".join(p[:3])
    return "/" + "/".join(p[:4])


def is_machine_resource(name: str) -> bool:
    p = name.strip("/").split("/")
    return len(p) > 2 and p[1] == 'machines'


def _in_order(roles: List[Role], keys: Sequence, key) -> List[Role]:
    """Order resolved roles the way they were asked for."""
    position = {k: i for i, k in enumerate(keys)}
    return sorted(roles, key=lambda r: position.get(key(r), len(position)))


class Resource(BaseModel):
    """In-memory view of a resource's role-tag binding for one request."""
    name: str
    account_id: UUID
    id: Optional[UUID] = None  # binding record id; None while unbound
    roles: List[Role] = Field(default_factory=list)


class ResourceRoleBinding:
    """
    Load, save and delete the role tags of the resource a request targets.

    One instance per request. ``load_resource`` must run before any of the
    other operations.
    """

    def __init__(self, directory, inventory, membership: Membership, account,
                 caller_user_id: Optional[UUID] = None):
        self.directory = directory
        self.inventory = inventory
        self.membership = membership
        self.account = account
        self.caller_user_id = caller_user_id
        self.resource: Optional[Resource] = None
        self.machine = None

    @property
    def is_subuser(self) -> bool:
        return self.caller_user_id is not None

    def rebind(self, name: str) -> Resource:
        """Point the binding at a fresh, untagged resource.

        Creating an item tags the new item rather than the collection the
        request was sent to.
        """
        self.resource = Resource(name=name, account_id=self.account.id)
        self.machine = None
        return self.resource

    async def load_resource(self, name: str, machine=None) -> Resource:
        self.rebind(name)

        if is_machine_resource(name):
            if machine is None:
                raise ValueError(f"machine resource {name} loaded without its machine")
            self.machine = machine
            role_ids = [t for t in machine.role_tags or [] if is_uuid(str(t))]
            if role_ids:
                roles = await self.membership.roles.resolve(self.account.id, ids(role_ids), hydrate=False)
                roles = _in_order(roles, [str(t) for t in role_ids], key=lambda r: str(r.id))
                # Translate the machine's role UUIDs to names for whoever
                # renders the machine next.
                by_id = {str(r.id): r.name for r in roles}
                machine.role_tags = [by_id.get(str(t), t) for t in machine.role_tags]
                self.resource.roles = roles
            return self.resource

        try:
            record = await self.directory.get_resource(self.account.id, name)
        except NotFoundError:
            logger.debug(f"Resource {name} not found")
            return self.resource

        self.resource.id = record.id
        if record.member_roles:
            roles = await self.membership.roles.resolve(
                self.account.id, paths(record.member_roles), hydrate=False
            )
            self.resource.roles = _in_order(roles, record.member_roles, key=lambda r: r.dn)
        return self.resource

    def get_role_tags(self) -> List[str]:
        if self.resource is None:
            return []
        return [r.name for r in self.resource.roles]

    async def _desired_roles(self, role_names: Optional[Sequence[str]]) -> Optional[List[Role]]:
        if role_names is not None:
            role_names = [n.strip() for n in role_names if n and n.strip()]
            if not role_names:
                return []
            roles = await self.membership.roles.resolve(self.account.id, names(role_names), hydrate=False)
            return _in_order(roles, role_names, key=lambda r: r.name)
        if self.resource.roles:
            return list(self.resource.roles)
        if self.is_subuser:
            return await self.membership.roles.active_roles(self.account.id, self.caller_user_id)
        return None

    async def save_resource(self, role_names: Optional[Sequence[str]] = None) -> Tuple[str, List[str]]:
        """
        Persist the role tags of the loaded resource.

        The desired set comes from, in order: the role names given with the
        request, the roles already tagging the resource, and the caller's
        active roles when the caller is a sub-user. Account owners sending no
        names leave an untagged resource untouched.
        """
        if self.resource is None:
            raise ValueError("save_resource called before load_resource")

        roles = await self._desired_roles(role_names)
        if roles is None:
            return self.resource.name, []

        if is_machine_resource(self.resource.name):
            await self._save_machine(roles)
        else:
            await self._save_record(roles)

        self.resource.roles = roles
        applied = [r.name for r in roles]
        logger.debug(f"PUT {self.resource.name} -> role-tag={applied}")
        return self.resource.name, applied

    async def _save_machine(self, roles: List[Role]) -> None:
        if self.machine is not None:
            machine_id = self.machine.id
        else:
            machine_id = UUID(self.resource.name.strip("/").split("/")[2])
        try:
            if roles:
                await self.inventory.set_role_tags(self.account.id, machine_id, [r.id for r in roles])
            else:
                await self.inventory.clear_role_tags(self.account.id, machine_id)
        except Exception as e:
            logger.error(f"Error setting role tags on machine {machine_id}: {e}")
            raise TagWriteError() from e
        if self.machine is not None:
            self.machine.role_tags = [r.name for r in roles]

    async def _save_record(self, roles: List[Role]) -> None:
        if not roles:
            # Removing the last tag unbinds the resource
            if self.resource.id is not None:
                await self.directory.delete_resource(self.account.id, self.resource.id)
                self.resource.id = None
            return

        resource_id = self.resource.id or uuid4()
        entry = {
            "name": self.resource.name,
            "account_id": self.account.id,
            "member_roles": [r.dn for r in roles],
        }
        record = await self.directory.modify_resource(self.account.id, resource_id, entry)
        self.resource.id = record.id

    async def delete_resource(self, succeeded: bool = True) -> None:
        """
        Drop the binding record of a deleted resource.

        Runs after the resource itself is gone, so failures are logged and
        never fail the request.
        """
        if not succeeded or self.resource is None or self.resource.id is None:
            return
        if is_machine_resource(self.resource.name):
            return
        try:
            await self.directory.delete_resource(self.account.id, self.resource.id)
        except Exception as e:
            logger.warning(f"Failed to delete role tags of {self.resource.name}: {e}")
            return
        logger.debug(f"DELETE {self.resource.name} role tags -> ok")
        self.resource.id = None
        self.resource.roles = []
