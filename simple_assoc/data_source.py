import asyncio
import logging
from abc import ABC, abstractmethod

from .entity_meta import EntityMeta

logger = logging.getLogger(__name__)


class DataSource(ABC):
    """Where entities are read from and written to."""

    def __init__(self, registry=None):
        self.registry = EntityMeta.registry if registry is None else registry

    def bind(self):
        """Attach this data source to every registered entity.

        Associations declared on the entities are installed here, so
        configuration errors surface before any record is touched.
        """
        for cls in self.registry.values():
            cls._context = self
        self.registry.install_associations()
        return self

    @abstractmethod
    async def read(self, operation):
        """Return the records matching ``operation.filters``."""

    @abstractmethod
    async def insert(self, record):
        raise NotImplementedError()

    @abstractmethod
    async def update(self, record):
        raise NotImplementedError()

    @abstractmethod
    async def delete(self, record):
        raise NotImplementedError()


class MemoryDataSource(DataSource):
    """Keeps rows in dictionaries; every call yields to the event loop once.

    ``fail_with`` makes the next reads raise the given exception until it is
    reset to None.
    """

    def __init__(self, registry=None):
        super().__init__(registry)
        self._tables = {}
        self.reads = []
        self.fail_with = None

    @property
    def read_count(self):
        return len(self.reads)

    def _table(self, model):
        return self._tables.setdefault(model._table_name, {})

    def add_rows(self, model, *rows):
        """Seed rows (dicts) for ``model`` without going through insert."""
        table = self._table(model)
        for row in rows:
            table[row[model._primary_key]] = dict(row)

    async def read(self, operation):
        self.reads.append(operation)
        await asyncio.sleep(0)
        if self.fail_with is not None:
            raise self.fail_with

        model = operation.model
        matches = [
            model(**row)
            for row in self._table(model).values()
            if all(row.get(key) == value for key, value in operation.filters.items())
        ]
        if operation.limit is not None:
            matches = matches[:operation.limit]
        return matches

    async def insert(self, record):
        await asyncio.sleep(0)
        model = type(record)
        table = self._table(model)
        if record.get_id() is None:
            record.set(model._primary_key, max(table, default=0) + 1)
        table[record.get_id()] = record.to_dict()
        logger.debug("inserted %r", record)

    async def update(self, record):
        await asyncio.sleep(0)
        self._table(type(record))[record.get_id()] = record.to_dict()
        logger.debug("updated %r", record)

    async def delete(self, record):
        await asyncio.sleep(0)
        self._table(type(record)).pop(record.get_id(), None)
        logger.debug("deleted %r", record)
