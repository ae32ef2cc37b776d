import logging

from .entity_meta import EntityMeta
from .errors import AssociationConfigError

logger = logging.getLogger(__name__)

# accepted spellings of the relation specification keys
SPEC_KEYS = {
    "model": "model",
    "name": "name",
    "primary_key": "primary_key",
    "primaryKey": "primary_key",
    "foreign_key": "foreign_key",
    "foreignKey": "foreign_key",
    "store": "store_config",
    "store_config": "store_config",
}


class Association:
    """Describes a relation between an owner entity and an associated one.

    Subclasses register under a type alias (``class HasOne(Association,
    alias="hasone")``) so that ``Association.create`` can build them from a
    relation specification dict. Instances are read-only once built.
    """

    types = {}

    def __init_subclass__(cls, alias=None, **kwargs):
        super().__init_subclass__(**kwargs)
        if alias:
            Association.types[alias] = cls

    def __init__(self, owner, model, name=None, primary_key=None, foreign_key=None,
                 store_config=None, registry=None):
        if registry is None:
            registry = getattr(owner, "_registry", None) or EntityMeta.registry
        associated = registry.resolve(model)

        self.owner_model = owner
        self.associated_model = associated
        self.associated_name = associated.__name__
        self.name = self.derive_name(name)
        if not self.name.isidentifier():
            raise AssociationConfigError(f"Invalid association name '{self.name}' on {owner.__name__}")

        self.primary_key = primary_key or getattr(associated, "_primary_key", None) or "id"
        self.foreign_key = foreign_key or f"{self.associated_name.lower()}_id"
        self.store_name = f"{self.name}_store"
        self.store_config = dict(store_config or {})
        self._frozen = True

    def __setattr__(self, key, value):
        if getattr(self, "_frozen", False):
            raise AttributeError(f"{type(self).__name__} is read-only")
        super().__setattr__(key, value)

    def __repr__(self):
        return (
            f"<{type(self).__name__} {self.owner_model.__name__}.{self.name} -> "
            f"{self.associated_name} ({self.foreign_key} -> {self.primary_key})>"
        )

    def derive_name(self, explicit_name=None):
        if explicit_name:
            return explicit_name
        return self.associated_name.lower()

    @classmethod
    def create(cls, spec, owner, registry=None):
        """Build an association from a relation specification dict.

        Example:
            Association.create({"type": "hasOne", "model": "Address"}, Person)
        """
        spec = dict(spec)
        kind = spec.pop("type", None)
        if not kind:
            raise AssociationConfigError(f"Association on {owner.__name__} has no type")

        klass = cls.types.get(str(kind).lower())
        if klass is None:
            raise AssociationConfigError(f"Unknown association type '{kind}' on {owner.__name__}")

        if "model" not in spec:
            raise AssociationConfigError(f"{kind} association on {owner.__name__} has no model")

        kwargs = {}
        for key, value in spec.items():
            if key not in SPEC_KEYS:
                raise AssociationConfigError(f"Unknown option '{key}' for {kind} association on {owner.__name__}")
            kwargs[SPEC_KEYS[key]] = value

        return klass(owner, registry=registry, **kwargs)

    def install(self):
        """Put the accessors of this association on the owner class."""
        raise NotImplementedError()


def installed_names(owner):
    names = set()
    for klass in owner.__mro__:
        names.update(klass.__dict__.get("_associations") or {})
    return names


def install_associations(owner, specs, registry=None):
    """Build and install associations on ``owner``, all or nothing.

    Every definition is built and checked for duplicate names (among the new
    ones and against those already on ``owner``) before anything is installed.
    """
    if isinstance(specs, (dict, Association)):
        specs = [specs]

    taken = installed_names(owner)
    built = []
    for spec in specs:
        if isinstance(spec, Association):
            association = spec
        else:
            association = Association.create(spec, owner, registry=registry)
        if association.name in taken:
            raise AssociationConfigError(
                f"Duplicate association '{association.name}' on {owner.__name__}"
            )
        taken.add(association.name)
        built.append(association)

    for association in built:
        association.install()
        owner._associations[association.name] = association
        logger.debug("installed %r", association)

    return built
