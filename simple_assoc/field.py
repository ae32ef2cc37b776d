class Field:
    """A typed column on an entity.

    Read from the class it gives a query ``Column``; read from a record it
    gives the stored value, or ``default`` when nothing was set.
    """

    def __init__(self, py_type, primary_key=False, nullable=True, default=None):
        self.py_type = py_type
        self.primary_key = primary_key
        self.nullable = nullable
        self.default = default
        self.name = None

    def __set_name__(self, owner, name):
        self.name = name

    def __get__(self, obj, owner):
        if obj is None:
            from .query import Column
            return Column(self.name)
        return obj.__dict__.get(self.name, self.default)

    def __set__(self, obj, value):
        obj.__dict__[self.name] = value

    def __repr__(self):
        return f"<Field {self.name}: {self.py_type.__name__}>"
