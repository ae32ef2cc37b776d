KEY_WORDS = ["order", "group", "limit", "select", "where"]


def get_column_name(name: str) -> str:
    """Return the column name, escaping it if it's a SQL keyword."""
    if name.lower() in KEY_WORDS:
        return f"[{name}]"
    return name


def reverse_column_name(escaped_name: str) -> str:
    """Return the original column name from an escaped name."""
    if escaped_name.startswith("[") and escaped_name.endswith("]"):
        return escaped_name[1:-1]
    return escaped_name


class Condition:
    def __init__(self, sql, params):
        self.sql = sql
        self.params = params


class Column:
    """A column reference; ``Person.address_id == 20`` builds a Condition."""
    def __init__(self, name):
        self.name = name

    __hash__ = None

    def __eq__(self, other):
        if other is None:
            return Condition(f"{self} IS NULL", [])
        return Condition(f"{self} = ?", [other])

    def __str__(self):
        return get_column_name(self.name)


class Query:
    """Async SELECT over one entity's table, run through its DbContext."""
    def __init__(self, entity_cls):
        self.entity_cls = entity_cls
        self._filters = []
        self._params = []
        self._limit_val = None

    def filter(self, *conditions):
        """Add filter conditions built from columns.

        Example:
            await Person.query().filter(Person.address_id == 20).all()
        """
        for condition in conditions:
            if not isinstance(condition, Condition):
                raise TypeError(f"Expected Condition, got {type(condition)}")
            self._filters.append(condition.sql)
            self._params.extend(condition.params)
        return self

    def filter_by(self, **kwargs):
        for name, value in kwargs.items():
            self.filter(Column(name) == value)
        return self

    def limit(self, n):
        self._limit_val = n
        return self

    def _where(self):
        if self._filters:
            return f" WHERE {' AND '.join(self._filters)}"
        return ""

    def to_sql(self):
        sql = f"SELECT * FROM {self.entity_cls._table_name}{self._where()}"
        if self._limit_val is not None:
            sql += f" LIMIT {int(self._limit_val)}"
        return sql, list(self._params)

    async def all(self):
        context = self.entity_cls._context
        sql, params = self.to_sql()
        async with context.get_connection() as conn:
            cursor = await conn.execute(sql, params)
            rows = await cursor.fetchall()
            return [context.from_row(self.entity_cls, row, cursor.description) for row in rows]

    async def first(self):
        results = await self.limit(1).all()
        return results[0] if results else None

    async def count(self):
        sql = f"SELECT COUNT(*) FROM {self.entity_cls._table_name}{self._where()}"
        async with self.entity_cls._context.get_connection() as conn:
            cursor = await conn.execute(sql, self._params)
            result = await cursor.fetchone()
            return result[0]
