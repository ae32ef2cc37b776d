import asyncio

import pytest

from simple_assoc import Entity, Field, LoadError, MemoryDataSource, RelationState
from conftest import drain


def test_default_names(models, source):
    association = models.Person.get_association("address")

    assert association.name == "address"
    assert association.foreign_key == "address_id"
    assert association.primary_key == "id"
    assert association.store_name == "address_store"
    assert callable(models.Person.get_address)
    assert callable(models.Person.set_address)
    assert callable(models.Person.address_store)


def test_getter_loads_by_foreign_key(models, source):
    received = []

    async def scenario():
        person = models.Person(id=100, name="John Smith", address_id=20)
        assert person.get_address(lambda address, operation: received.append((address, operation))) is None
        await drain(person.address_store())
        return person

    person = asyncio.run(scenario())

    assert source.read_count == 1
    assert source.reads[0].model is models.Address
    assert source.reads[0].filters == {"id": 20}

    address, operation = received[0]
    assert address.get_id() == 20
    assert address.street == "742 Evergreen Terrace"
    assert operation.was_successful()
    assert operation.is_complete()
    assert person.get_address() is address


def test_store_is_cached_per_record(models, source):
    async def scenario():
        person = models.Person(address_id=20)
        first = person.address_store()
        person.get_address()
        person.get_address()
        assert person.address_store() is first
        await drain(first)
        assert person.address_store() is first

    asyncio.run(scenario())
    assert source.read_count == 1


def test_instances_get_independent_stores(models, source):
    async def scenario():
        john = models.Person(address_id=20)
        jane = models.Person(address_id=20)
        await drain(john.address_store())
        await drain(jane.address_store())

        assert john.address_store() is not jane.address_store()
        john.set_address(10)
        assert john.get_address().get_id() == 10
        assert jane.get_address().get_id() == 20

    asyncio.run(scenario())
    assert source.read_count == 2


def test_setter_with_key(models, source):
    async def scenario():
        person = models.Person(address_id=20)
        await drain(person.address_store())
        person.set_address(10)
        return person

    person = asyncio.run(scenario())

    store = person.address_store()
    assert store.get_count() == 1
    assert isinstance(person.get_address(), models.Address)
    assert person.get_address().get_id() == 10
    assert person.address_id == 10


def test_setter_with_instance_and_none(models, source):
    async def scenario():
        person = models.Person(address_id=20)
        await drain(person.address_store())

        address = models.Address(id=30, street="1 Main St")
        person.set_address(address)
        assert person.get_address() is address
        assert person.get("address_id") == 30

        person.set_address(None)
        assert person.get_address() is None
        assert person.address_store().get_count() == 0
        assert person.address_id is None

    asyncio.run(scenario())


def test_setter_never_holds_two_records(models, source):
    async def scenario():
        person = models.Person(address_id=20)
        await drain(person.address_store())
        store = person.address_store()

        person.set_address(10)
        assert store.get_count() == 1
        assert person.get_address().get_id() == 10
        person.set_address(20)
        assert store.get_count() == 1
        assert person.get_address().get_id() == 20

    asyncio.run(scenario())


def test_setter_rejects_other_entities(models, source):
    async def scenario():
        person = models.Person(address_id=20)
        with pytest.raises(TypeError):
            person.set_address(models.Person(id=1))

    asyncio.run(scenario())


def test_first_call_may_be_the_setter(models, source):
    async def scenario():
        person = models.Person(address_id=20)
        person.set_address(10)
        assert person.get_address().get_id() == 10
        await drain(person.address_store())
        return person

    person = asyncio.run(scenario())
    association = models.Person.get_association("address")

    # the initial load settled after the setter, the setter's record stays
    assert person.get_address().get_id() == 10
    assert person.address_store().get_count() == 1
    assert association.state_of(person) is RelationState.LOADED_PRESENT


def test_state_transitions(models, source):
    association = models.Person.get_association("address")

    async def scenario():
        person = models.Person(address_id=20)
        assert association.state_of(person) is RelationState.UNBOUND

        person.get_address()
        assert association.state_of(person) is RelationState.LOADING

        await drain(person.address_store())
        assert association.state_of(person) is RelationState.LOADED_PRESENT

        person.set_address(None)
        assert association.state_of(person) is RelationState.LOADED_EMPTY

        person.set_address(10)
        assert association.state_of(person) is RelationState.LOADED_PRESENT

    asyncio.run(scenario())


def test_not_found_is_an_empty_success(models, source):
    calls = []
    association = models.Person.get_association("address")

    async def scenario():
        person = models.Person(address_id=99)
        person.get_address(
            success=lambda address, op: calls.append(("success", address)),
            failure=lambda address, op: calls.append(("failure", address)),
        )
        await drain(person.address_store())
        return person

    person = asyncio.run(scenario())

    assert calls == [("success", None)]
    assert person.get_address() is None
    assert association.state_of(person) is RelationState.LOADED_EMPTY


def test_unset_foreign_key_skips_the_read(models, source):
    association = models.Person.get_association("address")

    async def scenario():
        person = models.Person(name="Nobody")
        person.get_address()
        await drain(person.address_store())
        return person

    person = asyncio.run(scenario())

    assert source.read_count == 0
    assert association.state_of(person) is RelationState.LOADED_EMPTY


def test_load_error_reaches_callbacks_and_can_be_retried(models, source):
    calls = []
    association = models.Person.get_association("address")
    source.fail_with = ConnectionError("backend down")

    async def scenario():
        person = models.Person(address_id=20)
        result = person.get_address({
            "success": lambda address, op: calls.append("success"),
            "failure": lambda address, op: calls.append(("failure", op.error)),
            "callback": lambda address, op: calls.append("callback"),
        })
        assert result is None
        await drain(person.address_store())
        assert association.state_of(person) is RelationState.LOADING
        assert person.get_address() is None

        source.fail_with = None
        person.get_address(reload=True)
        await drain(person.address_store())
        return person

    person = asyncio.run(scenario())

    kind, error = calls[0]
    assert kind == "failure"
    assert isinstance(error, LoadError)
    assert isinstance(error.cause, ConnectionError)
    assert calls[1] == "callback"
    assert len(calls) == 2

    assert source.read_count == 2
    assert person.get_address().get_id() == 20
    assert association.state_of(person) is RelationState.LOADED_PRESENT


def test_callbacks_after_load_use_the_cache(models, source):
    calls = []

    async def scenario():
        person = models.Person(address_id=20)
        await drain(person.address_store())
        person.get_address(lambda address, op: calls.append((address.get_id(), op.was_successful())))

    asyncio.run(scenario())

    assert calls == [(20, True)]
    assert source.read_count == 1


def test_scope_is_passed_first(models, source):
    calls = []
    scope = object()

    async def scenario():
        person = models.Person(address_id=20)
        person.get_address(lambda this, address, op: calls.append((this, address.get_id())), scope)
        await drain(person.address_store())

    asyncio.run(scenario())

    assert calls == [(scope, 20)]


def test_reload_uses_current_foreign_key(models, source):
    async def scenario():
        person = models.Person(address_id=20)
        await drain(person.address_store())
        person.set("address_id", 10)
        assert person.get_address().get_id() == 20

        person.get_address(reload=True)
        await drain(person.address_store())
        return person

    person = asyncio.run(scenario())

    assert source.reads[-1].filters == {"id": 10}
    assert person.get_address().get_id() == 10


def test_reload_while_loading_joins_the_read(models, source):
    calls = []

    async def scenario():
        person = models.Person(address_id=20)
        person.get_address(lambda address, op: calls.append("first"))
        person.get_address(lambda address, op: calls.append("second"), reload=True)
        await drain(person.address_store())

    asyncio.run(scenario())

    assert source.read_count == 1
    assert calls == ["first", "second"]


def test_setter_with_options_saves_the_owner(models, source):
    calls = []

    async def scenario():
        person = models.Person(name="John Smith", address_id=20)
        task = person.set_address(10, lambda owner, op: calls.append((owner, op)))
        operation = await task
        return person, operation

    person, operation = asyncio.run(scenario())

    assert operation.was_successful()
    assert calls == [(person, operation)]
    assert person.get_id() is not None

    async def reread():
        return await models.Person.get_by_id(person.get_id())

    stored = asyncio.run(reread())
    assert stored.address_id == 10
    assert stored.name == "John Smith"


def test_explicit_keys_override_defaults(registry):
    class Location(Entity):
        _registry = registry
        unique_id = Field(str, primary_key=True)
        street = Field(str)

    class Customer(Entity):
        _registry = registry
        addr_id = Field(str)
        associations = [
            {"type": "hasOne", "model": "Location", "name": "address",
             "primaryKey": "unique_id", "foreignKey": "addr_id"},
        ]

    source = MemoryDataSource(registry)
    source.add_rows(Location, {"unique_id": "loc-7", "street": "7 Oak Ave"})
    source.bind()

    async def scenario():
        customer = Customer(addr_id="loc-7")
        customer.get_address()
        await drain(customer.address_store())
        return customer

    customer = asyncio.run(scenario())

    assert source.reads[0].filters == {"unique_id": "loc-7"}
    assert customer.get_address().street == "7 Oak Ave"
    assert Location._primary_key == "unique_id"


def test_raising_callback_does_not_starve_joined_callers(models, source):
    calls = []

    def explode(address, op):
        calls.append("first")
        raise RuntimeError("callback failed")

    async def scenario():
        person = models.Person(address_id=20)
        person.get_address(explode)
        person.get_address(lambda address, op: calls.append(("second", address.get_id())))
        task = person.address_store()._load_task
        with pytest.raises(RuntimeError, match="callback failed"):
            await task
        return person

    person = asyncio.run(scenario())

    assert calls == ["first", ("second", 20)]
    assert person.get_address().get_id() == 20
    assert source.read_count == 1


def test_setter_save_failure_reaches_callbacks(registry, models):
    class BrokenSource(MemoryDataSource):
        async def insert(self, record):
            raise OSError("disk full")

    source = BrokenSource(registry).bind()
    calls = []

    async def scenario():
        person = models.Person(name="John Smith", address_id=20)
        task = person.set_address(10, {
            "success": lambda owner, op: calls.append(("success", owner)),
            "failure": lambda owner, op: calls.append(("failure", owner, op)),
            "callback": lambda owner, op: calls.append(("callback", owner, op)),
        })
        operation = await task
        return person, operation

    person, operation = asyncio.run(scenario())

    assert operation.has_exception()
    assert not operation.was_successful()
    assert isinstance(operation.error, OSError)
    assert calls == [("failure", person, operation), ("callback", person, operation)]
    # the relation itself still holds the new record
    assert person.get_address().get_id() == 10
    assert person.address_id == 10
    assert source.read_count == 1


def test_setter_settles_state_when_initial_load_fails(models, source):
    association = models.Person.get_association("address")
    source.fail_with = ConnectionError("backend down")

    async def scenario():
        person = models.Person(address_id=20)
        person.set_address(10)
        assert association.state_of(person) is RelationState.LOADING
        await drain(person.address_store())
        return person

    person = asyncio.run(scenario())

    assert person.address_store().last_operation.has_exception()
    assert person.get_address().get_id() == 10
    assert association.state_of(person) is RelationState.LOADED_PRESENT
