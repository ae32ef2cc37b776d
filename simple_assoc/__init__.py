# simple_assoc/__init__.py

from .errors import SimpleAssocError, AssociationConfigError, LoadError
from .field import Field
from .entity_meta import EntityMeta, EntityRegistry
from .entity import Entity, table
from .operation import Operation
from .store import Store
from .association import Association, install_associations
from .has_one import HasOne
from .states import RelationState
from .data_source import DataSource, MemoryDataSource
from .db_context import DbContext
from .query import Query, Column, Condition, get_column_name, reverse_column_name

__all__ = [
    'SimpleAssocError',
    'AssociationConfigError',
    'LoadError',
    'Field',
    'EntityMeta',
    'EntityRegistry',
    'Entity',
    'table',
    'Operation',
    'Store',
    'Association',
    'install_associations',
    'HasOne',
    'RelationState',
    'DataSource',
    'MemoryDataSource',
    'DbContext',
    'Query',
    'Column',
    'Condition',
    'get_column_name',
    'reverse_column_name',
]
