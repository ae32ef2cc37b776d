import logging

import inflection

from .errors import AssociationConfigError
from .field import Field

logger = logging.getLogger(__name__)


class EntityRegistry:
    """Maps entity names to entity classes.

    A registry is passed to associations and data sources explicitly; the
    metaclass only owns a default one for classes that don't pick their own.
    """

    def __init__(self):
        self._entities = {}

    def register(self, cls):
        self._entities[cls.__name__] = cls
        return cls

    def resolve(self, ref):
        """Return the entity class for a class, a class name or a callable."""
        if isinstance(ref, str):
            try:
                return self._entities[ref]
            except KeyError:
                available = ', '.join(self._entities) or '<none>'
                raise AssociationConfigError(
                    f"Unknown entity '{ref}'. Available: {available}"
                ) from None
        if isinstance(ref, type):
            return ref
        if callable(ref):
            return self.resolve(ref())
        raise AssociationConfigError(f"Invalid entity reference: {ref!r}")

    def install_associations(self):
        """Build the declared associations of every registered entity.

        Entities whose associations are already installed are skipped, so
        this is safe to call each time a data source binds the registry.
        """
        from .association import install_associations

        for cls in list(self._entities.values()):
            if cls.__dict__.get("_associations_installed"):
                continue
            specs = cls.__dict__.get("associations")
            if specs:
                install_associations(cls, specs, registry=self)
            cls._associations_installed = True

    def values(self):
        return self._entities.values()

    def __contains__(self, item):
        if isinstance(item, type):
            return self._entities.get(item.__name__) is item
        return item in self._entities

    def __iter__(self):
        return iter(self._entities.values())


class EntityMeta(type):
    registry = EntityRegistry()

    def __new__(meta, name, bases, attrs):
        fields = {}
        for base in reversed(bases):
            fields.update(getattr(base, "_fields", {}))

        own = {key: val for key, val in attrs.items() if isinstance(val, Field)}
        if any(f.primary_key for f in own.values()):
            # a declared primary key replaces the inherited one
            fields = {key: f for key, f in fields.items() if not f.primary_key}

        for key, val in own.items():
            val.name = key
            fields[key] = val

        attrs["_fields"] = fields
        attrs["_associations"] = {}

        cls = super().__new__(meta, name, bases, attrs)

        cls._table_name = attrs.get("_table_name") or inflection.underscore(inflection.pluralize(name))
        cls._primary_key = next((f.name for f in fields.values() if f.primary_key), "id")

        if name != "Entity":
            registry = getattr(cls, "_registry", None)
            if registry is None:
                registry = meta.registry
            registry.register(cls)
            logger.debug("registered entity %s (table %s)", name, cls._table_name)

        return cls
