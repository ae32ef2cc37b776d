import datetime
import logging
import os
from contextlib import asynccontextmanager
from decimal import Decimal

import aiosqlite

from .data_source import DataSource
from .query import Query, get_column_name, reverse_column_name

logger = logging.getLogger(__name__)

# python type -> (column type, to sqlite, from sqlite); None keeps the value as is
SQLITE_TYPES = {
    int: ("INTEGER", None, None),
    float: ("REAL", None, None),
    str: ("TEXT", None, None),
    bool: ("INTEGER", int, bool),
    datetime.datetime: ("TEXT", datetime.datetime.isoformat, datetime.datetime.fromisoformat),
    Decimal: ("REAL", float, lambda value: Decimal(str(value))),
}
DEFAULT_TYPE = ("TEXT", None, None)


def sql_type(field):
    return SQLITE_TYPES.get(field.py_type, DEFAULT_TYPE)[0]


def to_sql(field, value):
    convert = SQLITE_TYPES.get(field.py_type, DEFAULT_TYPE)[1]
    if value is None or convert is None:
        return value
    return convert(value)


def from_sql(field, value):
    convert = SQLITE_TYPES.get(field.py_type, DEFAULT_TYPE)[2]
    if value is None or convert is None:
        return value
    return convert(value)


class DbContext(DataSource):
    """SQLite data source backed by aiosqlite.

    Creating a context binds it to every entity in the registry and installs
    their associations. Subclass and override ``seed_data`` to insert rows
    after ``sync_schema``.
    """

    def __init__(self, db_path, sync_schema=False, registry=None):
        super().__init__(registry)
        self._db_path = db_path
        self._sync_schema = sync_schema

        self.bind()

        dir = os.path.dirname(self._db_path)
        if dir and not os.path.exists(dir):
            os.makedirs(dir)

    async def initialize(self):
        if self._sync_schema:
            await self.sync_schema()

    @asynccontextmanager
    async def get_connection(self):
        conn = await aiosqlite.connect(self._db_path)
        try:
            yield conn
        except Exception:
            await conn.rollback()
            raise
        finally:
            await conn.close()

    async def sync_schema(self):
        for cls in self.registry.values():
            logger.info("syncing table %s for %s", cls._table_name, cls.__name__)
            await self.create_table(cls)
        await self.seed_data()

    async def seed_data(self):
        pass

    async def create_table(self, cls):
        columns = []
        for f in cls._fields.values():
            col = f"{get_column_name(f.name)} {sql_type(f)}"
            if f.primary_key:
                col += " PRIMARY KEY AUTOINCREMENT" if f.py_type is int else " PRIMARY KEY"
            elif not f.nullable:
                col += " NOT NULL"
            if isinstance(f.default, bool):
                col += f" DEFAULT {int(f.default)}"
            columns.append(col)

        sql = f"CREATE TABLE IF NOT EXISTS {cls._table_name} ({', '.join(columns)})"
        async with self.get_connection() as conn:
            await conn.execute(sql)
            await conn.commit()

    def from_row(self, cls, row, description):
        """Build a record of ``cls`` from a row; unknown columns are ignored."""
        obj = cls()
        for idx, col in enumerate(description):
            field = cls._fields.get(col[0])
            if field is not None:
                setattr(obj, field.name, from_sql(field, row[idx]))
        return obj

    async def read(self, operation):
        query = Query(operation.model).filter_by(**operation.filters)
        if operation.limit is not None:
            query.limit(operation.limit)
        return await query.all()

    def _columns(self, cls, include_pk=False):
        return [
            get_column_name(f.name)
            for f in cls._fields.values()
            if include_pk or not f.primary_key
        ]

    def _values(self, record, columns):
        fields = record._fields
        return [
            to_sql(fields[reverse_column_name(c)], getattr(record, reverse_column_name(c)))
            for c in columns
        ]

    async def insert(self, record):
        cls = type(record)
        # an explicitly assigned primary key is written too
        columns = self._columns(cls, include_pk=record.get_id() is not None)
        placeholders = ", ".join("?" for _ in columns)
        sql = f"INSERT INTO {cls._table_name} ({', '.join(columns)}) VALUES ({placeholders})"

        async with self.get_connection() as conn:
            cur = await conn.execute(sql, self._values(record, columns))
            if record.get_id() is None:
                record.set(cls._primary_key, cur.lastrowid)
            await conn.commit()

    async def update(self, record):
        cls = type(record)
        columns = self._columns(cls)
        set_clause = ", ".join(f"{c} = ?" for c in columns)
        sql = f"UPDATE {cls._table_name} SET {set_clause} WHERE {get_column_name(cls._primary_key)} = ?"

        async with self.get_connection() as conn:
            await conn.execute(sql, self._values(record, columns) + [record.get_id()])
            await conn.commit()

    async def delete(self, record):
        cls = type(record)
        sql = f"DELETE FROM {cls._table_name} WHERE {get_column_name(cls._primary_key)} = ?"
        async with self.get_connection() as conn:
            await conn.execute(sql, (record.get_id(),))
            await conn.commit()

    async def insert_many(self, entities):
        if not entities:
            return

        grouped = {}
        for e in entities:
            grouped.setdefault(type(e), []).append(e)

        async with self.get_connection() as conn:
            for cls, items in grouped.items():
                columns = self._columns(cls)
                placeholders = ", ".join("?" for _ in columns)
                sql = f"INSERT INTO {cls._table_name} ({', '.join(columns)}) VALUES ({placeholders})"
                await conn.executemany(sql, [self._values(obj, columns) for obj in items])
            await conn.commit()
