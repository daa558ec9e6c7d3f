# backend/tests/unit/test_resources.py
"""Unit tests for role-tag binding of physical and virtual resources."""
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock
from uuid import uuid4

import pytest

from roletag.errors import BackendUnavailableError, NotFoundError, TagWriteError, UnresolvedReferenceError
from roletag.services.membership import Membership
from roletag.services.references import role_dn, sub_user_dn
from roletag.services.resources import ResourceRoleBinding

ACCOUNT = SimpleNamespace(id=uuid4(), login="acme")
ALICE_ID = uuid4()


def make_role(name, default_members=()):
    return SimpleNamespace(
        id=uuid4(), name=name, account_id=ACCOUNT.id,
        members=list(default_members), default_members=list(default_members), policies=[],
    )


@pytest.fixture
def roles():
    return {
        "operators": make_role("operators", default_members=[sub_user_dn(ACCOUNT.id, ALICE_ID)]),
        "auditors": make_role("auditors"),
    }


@pytest.fixture
def directory(roles):
    entries = list(roles.values())

    async def search_roles(account_id, field, values):
        return [e for e in entries if getattr(e, field) in values]

    directory = MagicMock()
    directory.search_roles = AsyncMock(side_effect=search_roles)
    directory.list_roles = AsyncMock(return_value=entries)
    directory.search_users = AsyncMock(return_value=[])
    directory.search_policies = AsyncMock(return_value=[])
    directory.get_resource = AsyncMock(side_effect=NotFoundError("resource does not exist"))
    directory.modify_resource = AsyncMock(
        side_effect=lambda account_id, resource_id, entry: SimpleNamespace(id=resource_id, **entry)
    )
    directory.delete_resource = AsyncMock(return_value=None)
    return directory


@pytest.fixture
def inventory():
    inventory = MagicMock()
    inventory.set_role_tags = AsyncMock(return_value=[])
    inventory.clear_role_tags = AsyncMock(return_value=[])
    return inventory


def make_binding(directory, inventory, caller_user_id=None):
    membership = Membership(directory, MagicMock())
    return ResourceRoleBinding(directory, inventory, membership, ACCOUNT, caller_user_id=caller_user_id)


class TestGenericResources:
    @pytest.mark.asyncio
    async def test_unbound_resource_loads_empty(self, directory, inventory):
        binding = make_binding(directory, inventory)

        resource = await binding.load_resource("/acme/users")

        assert resource.roles == []
        assert resource.id is None
        assert binding.get_role_tags() == []

    @pytest.mark.asyncio
    async def test_bound_resource_resolves_role_paths(self, directory, inventory, roles):
        record_id = uuid4()
        directory.get_resource = AsyncMock(return_value=SimpleNamespace(
            id=record_id, member_roles=[role_dn(ACCOUNT.id, roles["auditors"].id)],
        ))
        binding = make_binding(directory, inventory)

        resource = await binding.load_resource("/acme/users")

        assert resource.id == record_id
        assert binding.get_role_tags() == ["auditors"]
        assert directory.search_roles.await_args.args[1] == "id"

    @pytest.mark.asyncio
    async def test_save_creates_binding_record(self, directory, inventory, roles):
        binding = make_binding(directory, inventory)
        await binding.load_resource("/acme/users")

        name, applied = await binding.save_resource(["operators", "auditors"])

        assert name == "/acme/users"
        assert applied == ["operators", "auditors"]
        account_id, resource_id, entry = directory.modify_resource.await_args.args
        assert account_id == ACCOUNT.id
        assert resource_id is not None
        assert entry["name"] == "/acme/users"
        assert entry["member_roles"] == [
            role_dn(ACCOUNT.id, roles["operators"].id),
            role_dn(ACCOUNT.id, roles["auditors"].id),
        ]
        assert binding.resource.id == resource_id
        inventory.set_role_tags.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_save_reuses_existing_record_id(self, directory, inventory, roles):
        record_id = uuid4()
        directory.get_resource = AsyncMock(return_value=SimpleNamespace(
            id=record_id, member_roles=[role_dn(ACCOUNT.id, roles["auditors"].id)],
        ))
        binding = make_binding(directory, inventory)
        await binding.load_resource("/acme/policies")

        await binding.save_resource(["operators"])

        assert directory.modify_resource.await_args.args[1] == record_id

    @pytest.mark.asyncio
    async def test_empty_set_removes_record(self, directory, inventory, roles):
        record_id = uuid4()
        directory.get_resource = AsyncMock(return_value=SimpleNamespace(
            id=record_id, member_roles=[role_dn(ACCOUNT.id, roles["auditors"].id)],
        ))
        binding = make_binding(directory, inventory)
        await binding.load_resource("/acme/users")

        name, applied = await binding.save_resource([])

        assert applied == []
        directory.delete_resource.assert_awaited_once_with(ACCOUNT.id, record_id)
        directory.modify_resource.assert_not_awaited()
        assert binding.resource.id is None

    @pytest.mark.asyncio
    async def test_unknown_role_rejected_before_write(self, directory, inventory):
        binding = make_binding(directory, inventory)
        await binding.load_resource("/acme/users")

        with pytest.raises(UnresolvedReferenceError) as exc_info:
            await binding.save_resource(["operators", "ghost"])

        assert exc_info.value.names == ["ghost"]
        directory.modify_resource.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_owner_without_names_leaves_untagged_resource_alone(self, directory, inventory):
        binding = make_binding(directory, inventory)
        await binding.load_resource("/acme/roles")

        assert await binding.save_resource() == ("/acme/roles", [])
        directory.modify_resource.assert_not_awaited()
        directory.delete_resource.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_subuser_without_names_gets_active_roles(self, directory, inventory):
        binding = make_binding(directory, inventory, caller_user_id=ALICE_ID)
        await binding.load_resource("/acme/roles")

        _, applied = await binding.save_resource()

        assert applied == ["operators"]
        directory.modify_resource.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_loaded_roles_are_kept_without_names(self, directory, inventory, roles):
        directory.get_resource = AsyncMock(return_value=SimpleNamespace(
            id=uuid4(), member_roles=[role_dn(ACCOUNT.id, roles["auditors"].id)],
        ))
        binding = make_binding(directory, inventory, caller_user_id=ALICE_ID)
        await binding.load_resource("/acme/roles")

        _, applied = await binding.save_resource()

        assert applied == ["auditors"]

    @pytest.mark.asyncio
    async def test_store_failure_propagates(self, directory, inventory):
        directory.modify_resource = AsyncMock(side_effect=BackendUnavailableError("Directory service unavailable"))
        binding = make_binding(directory, inventory)
        await binding.load_resource("/acme/users")

        with pytest.raises(BackendUnavailableError):
            await binding.save_resource(["operators"])

    @pytest.mark.asyncio
    async def test_rebind_tags_the_new_item(self, directory, inventory):
        binding = make_binding(directory, inventory)
        await binding.load_resource("/acme/roles")
        binding.rebind("/acme/roles/new")

        name, _ = await binding.save_resource(["auditors"])

        assert name == "/acme/roles/new"
        assert directory.modify_resource.await_args.args[2]["name"] == "/acme/roles/new"


class TestMachineResources:
    @pytest.mark.asyncio
    async def test_load_translates_role_ids_in_place(self, directory, inventory, roles):
        machine = SimpleNamespace(id=uuid4(), role_tags=[str(roles["operators"].id)])
        binding = make_binding(directory, inventory)

        await binding.load_resource(f"/acme/machines/{machine.id}", machine=machine)

        assert machine.role_tags == ["operators"]
        assert binding.get_role_tags() == ["operators"]
        directory.get_resource.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_untagged_machine_does_not_list_roles(self, directory, inventory):
        machine = SimpleNamespace(id=uuid4(), role_tags=[])
        binding = make_binding(directory, inventory)

        await binding.load_resource(f"/acme/machines/{machine.id}", machine=machine)

        assert binding.get_role_tags() == []
        directory.list_roles.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_load_requires_machine(self, directory, inventory):
        binding = make_binding(directory, inventory)

        with pytest.raises(ValueError):
            await binding.load_resource(f"/acme/machines/{uuid4()}")

    @pytest.mark.asyncio
    async def test_save_writes_role_ids_to_machine(self, directory, inventory, roles):
        machine = SimpleNamespace(id=uuid4(), role_tags=[])
        binding = make_binding(directory, inventory)
        await binding.load_resource(f"/acme/machines/{machine.id}", machine=machine)

        name, applied = await binding.save_resource(["operators"])

        assert name == f"/acme/machines/{machine.id}"
        assert applied == ["operators"]
        inventory.set_role_tags.assert_awaited_once_with(ACCOUNT.id, machine.id, [roles["operators"].id])
        directory.modify_resource.assert_not_awaited()
        assert machine.role_tags == ["operators"]

    @pytest.mark.asyncio
    async def test_empty_set_clears_machine(self, directory, inventory, roles):
        machine = SimpleNamespace(id=uuid4(), role_tags=[str(roles["operators"].id)])
        binding = make_binding(directory, inventory)
        await binding.load_resource(f"/acme/machines/{machine.id}", machine=machine)

        await binding.save_resource([])

        inventory.clear_role_tags.assert_awaited_once_with(ACCOUNT.id, machine.id)

    @pytest.mark.asyncio
    async def test_write_failure_hides_cause(self, directory, inventory):
        inventory.set_role_tags = AsyncMock(side_effect=RuntimeError("vmapi timeout on cn-42"))
        machine = SimpleNamespace(id=uuid4(), role_tags=[])
        binding = make_binding(directory, inventory)
        await binding.load_resource(f"/acme/machines/{machine.id}", machine=machine)

        with pytest.raises(TagWriteError) as exc_info:
            await binding.save_resource(["operators"])

        assert str(exc_info.value) == "Invalid role-tag"
        assert "cn-42" not in exc_info.value.message
        assert isinstance(exc_info.value.__cause__, RuntimeError)

    @pytest.mark.asyncio
    async def test_delete_never_touches_machines(self, directory, inventory):
        machine = SimpleNamespace(id=uuid4(), role_tags=[])
        binding = make_binding(directory, inventory)
        await binding.load_resource(f"/acme/machines/{machine.id}", machine=machine)
        binding.resource.id = uuid4()

        await binding.delete_resource()

        directory.delete_resource.assert_not_awaited()


class TestDeleteResource:
    @pytest.mark.asyncio
    async def test_failure_is_suppressed(self, directory, inventory, roles):
        directory.get_resource = AsyncMock(return_value=SimpleNamespace(
            id=uuid4(), member_roles=[role_dn(ACCOUNT.id, roles["auditors"].id)],
        ))
        directory.delete_resource = AsyncMock(side_effect=BackendUnavailableError("Directory service unavailable"))
        binding = make_binding(directory, inventory)
        await binding.load_resource("/acme/roles/r1")

        await binding.delete_resource(succeeded=True)

        directory.delete_resource.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_noop_without_record(self, directory, inventory):
        binding = make_binding(directory, inventory)
        await binding.load_resource("/acme/roles/r1")

        await binding.delete_resource(succeeded=True)

        directory.delete_resource.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_noop_when_operation_failed(self, directory, inventory, roles):
        directory.get_resource = AsyncMock(return_value=SimpleNamespace(
            id=uuid4(), member_roles=[role_dn(ACCOUNT.id, roles["auditors"].id)],
        ))
        binding = make_binding(directory, inventory)
        await binding.load_resource("/acme/roles/r1")

        await binding.delete_resource(succeeded=False)

        directory.delete_resource.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_removes_record(self, directory, inventory, roles):
        record_id = uuid4()
        directory.get_resource = AsyncMock(return_value=SimpleNamespace(
            id=record_id, member_roles=[role_dn(ACCOUNT.id, roles["auditors"].id)],
        ))
        binding = make_binding(directory, inventory)
        await binding.load_resource("/acme/roles/r1")

        await binding.delete_resource()

        directory.delete_resource.assert_awaited_once_with(ACCOUNT.id, record_id)
        assert binding.get_role_tags() == []
