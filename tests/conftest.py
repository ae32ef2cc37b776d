import asyncio
from types import SimpleNamespace

import pytest

from simple_assoc import Entity, EntityRegistry, Field, MemoryDataSource


async def drain(store):
    """Let the event loop run until the store has no read in flight."""
    while store.loading:
        await asyncio.sleep(0)


@pytest.fixture
def registry():
    return EntityRegistry()


@pytest.fixture
def models(registry):
    class Address(Entity):
        _registry = registry
        street = Field(str)
        city = Field(str)

    class Person(Entity):
        _registry = registry
        name = Field(str)
        address_id = Field(int)
        associations = {"type": "hasOne", "model": "Address"}

    return SimpleNamespace(Person=Person, Address=Address)


@pytest.fixture
def source(registry, models):
    source = MemoryDataSource(registry)
    source.add_rows(
        models.Address,
        {"id": 10, "street": "10 Elm St", "city": "Shelbyville"},
        {"id": 20, "street": "742 Evergreen Terrace", "city": "Springfield"},
    )
    return source.bind()
