from .entity_meta import EntityMeta
from .errors import SimpleAssocError
from .field import Field
from .operation import Operation
from .query import Query


def table(name=''):
    """Class decorator setting the table an entity is stored in."""
    def decorate(cls):
        cls._table_name = name
        return cls
    return decorate


class Entity(metaclass=EntityMeta):
    id = Field(int, primary_key=True, nullable=False)
    _context = None

    # A relation specification dict, or a list of them, e.g.
    # {"type": "hasOne", "model": "Address", "foreign_key": "addr_id"}
    associations = None

    def __init__(self, **kwargs):
        # store name -> bound Store, one per association, owned by this record
        self._stores = {}
        for f in self._fields.values():
            setattr(self, f.name, kwargs.pop(f.name, f.default))
        for key, value in kwargs.items():
            setattr(self, key, value)

    def __repr__(self):
        return f"<{type(self).__name__}({self._primary_key}={self.get_id()!r})>"

    def get(self, name):
        return getattr(self, name, None)

    def set(self, name, value):
        setattr(self, name, value)

    def get_id(self):
        return getattr(self, self._primary_key, None)

    def to_dict(self):
        return {name: getattr(self, name) for name in self._fields}

    @classmethod
    def add_association(cls, spec, registry=None):
        """Define one association on this entity right away.

        Example:
            Person.add_association({"type": "hasOne", "model": Address})
        """
        from .association import install_associations
        return install_associations(cls, [spec], registry=registry)[0]

    @classmethod
    def get_association(cls, name):
        for klass in cls.__mro__:
            associations = klass.__dict__.get("_associations")
            if associations and name in associations:
                return associations[name]
        return None

    @classmethod
    def query(cls):
        """Create a new SQL query for this entity.

        Example:
            people = await Person.query().filter(Person.name == "John").all()
        """
        return Query(cls)

    @classmethod
    def _require_context(cls):
        if cls._context is None:
            raise SimpleAssocError(f"{cls.__name__} is not bound to a data source")
        return cls._context

    @classmethod
    async def get_by_id(cls, id):
        operation = Operation("read", cls, filters={cls._primary_key: id}, limit=1)
        records = await cls._require_context().read(operation)
        return records[0] if records else None

    async def insert(self):
        await self._require_context().insert(self)

    async def update(self):
        if not self.get_id():
            raise ValueError("Cannot update entity without an id. Use insert() for new entities.")
        await self._require_context().update(self)

    async def save(self):
        """Insert or update based on whether entity has an id."""
        if self.get_id():
            await self.update()
        else:
            await self.insert()
        return self

    async def delete(self):
        if not self.get_id():
            raise ValueError("Cannot delete entity without an id.")
        await self._require_context().delete(self)
        setattr(self, self._primary_key, None)
