from enum import Enum, auto


class RelationState(Enum):
    UNBOUND = auto()
    LOADING = auto()
    LOADED_EMPTY = auto()
    LOADED_PRESENT = auto()
