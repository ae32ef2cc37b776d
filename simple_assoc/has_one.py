"""One-to-one association backed by a single-record store.

The owner record carries a foreign key holding the primary key of the
associated record::

    class Person(Entity):
        name = Field(str)
        address_id = Field(int)
        associations = {"type": "hasOne", "model": "Address"}

    class Address(Entity):
        street = Field(str)

Once the data source is bound, ``Person`` gains three methods:

* ``address_store()`` returns the record's own ``Store`` for the relation,
  creating it on first use and starting its load.
* ``get_address(callback=None, scope=None, *, reload=False, success=None,
  failure=None)`` returns the cached ``Address`` or None while nothing has
  loaded. Callbacks get ``(address, operation)`` once the load settles
  (``callback`` always, ``success`` or ``failure`` depending on the outcome),
  with ``scope`` passed first when given. ``reload=True`` reads again.
* ``set_address(value, options=None)`` takes an ``Address``, a primary key or
  None, replaces the cached record and writes the foreign key, so
  ``person.set_address(10)`` also does ``person.set("address_id", 10)``.
  With ``options`` (a callable or a callback dict) the person is saved and
  the callbacks get ``(person, operation)``.

The first call of any of them swaps in getter and setter closures bound to
that record's store, so later calls go straight to the store.
"""
import asyncio
import logging

from .association import Association
from .entity import Entity
from .operation import Operation, has_callbacks, invoke_callbacks, normalize_options
from .states import RelationState
from .store import Store

logger = logging.getLogger(__name__)


class HasOne(Association, alias="hasone"):

    @property
    def getter_name(self):
        return f"get_{self.name}"

    @property
    def setter_name(self):
        return f"set_{self.name}"

    def install(self):
        factory = self.build_store_factory(self.store_config)
        getter_name = self.getter_name
        setter_name = self.setter_name

        def store_accessor(record):
            return factory(record)

        def getter(record, *args, **kwargs):
            factory(record)
            return getattr(record, getter_name)(*args, **kwargs)

        def setter(record, *args, **kwargs):
            factory(record)
            return getattr(record, setter_name)(*args, **kwargs)

        owner = self.owner_model
        for name, func in ((self.store_name, store_accessor), (getter_name, getter), (setter_name, setter)):
            func.__name__ = name
            func.__qualname__ = f"{owner.__name__}.{name}"
            setattr(owner, name, func)

    def build_store_factory(self, store_config=None):
        """Return ``factory(record) -> Store``, caching one store per record.

        The first call for a record builds its store, puts the getter and
        setter closures on the record and starts loading. It must run inside
        an event loop.
        """
        store_name = self.store_name

        def factory(record):
            stores = record.__dict__.setdefault("_stores", {})
            store = stores.get(store_name)
            if store is not None:
                return store

            asyncio.get_running_loop()

            config = dict(store_config or {})
            config.update(
                model=self.associated_model,
                filters={self.primary_key: record.get(self.foreign_key)},
                limit=1,
            )
            store = stores[store_name] = Store.from_config(config)
            setattr(record, self.getter_name, self.make_getter(record, store))
            setattr(record, self.setter_name, self.make_setter(record, store))
            logger.debug("created %s for %r", store_name, record)

            store.load()
            return store

        return factory

    def make_getter(self, record, store):
        def getter(options=None, scope=None, *, reload=None, callback=None, success=None, failure=None):
            options = normalize_options(
                options, scope=scope, reload=reload, callback=callback, success=success, failure=failure,
            )
            wants_callbacks = has_callbacks(options)

            if options.get("reload") or (wants_callbacks and not store.is_loaded):
                if not store.loading:
                    store.filters[self.primary_key] = record.get(self.foreign_key)
                store.load(options)
            elif wants_callbacks:
                if store.loading:
                    store.load(options)
                else:
                    invoke_callbacks(options, store.first(), store.last_operation)

            return store.first()

        getter.__name__ = self.getter_name
        return getter

    def make_setter(self, record, store):
        model = self.associated_model

        def setter(value, options=None):
            if value is None:
                key, associated = None, None
            elif isinstance(value, model):
                key, associated = value.get(self.primary_key), value
            elif isinstance(value, Entity):
                raise TypeError(f"{self.setter_name}() expects {model.__name__}, got {type(value).__name__}")
            else:
                key, associated = value, model(**{self.primary_key: value})

            store.remove_all()
            if associated is not None:
                store.add(associated)
            store.filters[self.primary_key] = key
            record.set(self.foreign_key, key)

            if options is None:
                return None
            return asyncio.get_running_loop().create_task(
                self._save_owner(record, normalize_options(options))
            )

        setter.__name__ = self.setter_name
        return setter

    async def _save_owner(self, record, options):
        operation = Operation("update" if record.get_id() else "create", type(record))
        operation.set_started()
        try:
            await record.save()
        except Exception as exc:
            operation.set_exception(exc)
            logger.warning("saving %r after %s() failed: %s", record, self.setter_name, exc)
        else:
            operation.set_completed([record])
        invoke_callbacks(options, record, operation)
        return operation

    def get_store(self, record):
        """The record's store, or None when the relation is still unbound."""
        return record.__dict__.get("_stores", {}).get(self.store_name)

    def state_of(self, record):
        store = self.get_store(record)
        if store is None:
            return RelationState.UNBOUND
        if not store.is_loaded:
            return RelationState.LOADING
        if store.get_count():
            return RelationState.LOADED_PRESENT
        return RelationState.LOADED_EMPTY
