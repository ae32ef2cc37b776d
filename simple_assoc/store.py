import asyncio
import logging

from .errors import AssociationConfigError, LoadError, SimpleAssocError
from .operation import Operation, has_callbacks, invoke_callbacks, normalize_options

logger = logging.getLogger(__name__)


class Store:
    """An ordered, lazily loaded collection of records of one model.

    ``load()`` schedules a read on the running event loop and returns at once;
    the records show up in the store when the read completes. Only one read
    is in flight at a time: loading an already loading store joins the
    running read.
    """

    CONFIG_KEYS = ("model", "data_source", "filters", "limit", "auto_load")

    def __init__(self, model, data_source=None, filters=None, limit=None, auto_load=False):
        self.model = model
        self.data_source = data_source
        self.filters = dict(filters or {})
        self.limit = limit
        self.last_operation = None
        self.mutation_count = 0
        self._records = []
        self._loaded = False
        self._load_task = None
        self._pending = []

        if auto_load:
            self.load()

    @classmethod
    def from_config(cls, config):
        unknown = set(config) - set(cls.CONFIG_KEYS)
        if unknown:
            raise AssociationConfigError(f"Unknown store options: {', '.join(sorted(unknown))}")
        return cls(**config)

    def __repr__(self):
        return f"<Store {self.model.__name__} count={len(self._records)} loaded={self._loaded}>"

    def __len__(self):
        return len(self._records)

    def __iter__(self):
        return iter(list(self._records))

    @property
    def loading(self):
        return self._load_task is not None

    @property
    def is_loaded(self):
        return self._loaded

    def get_data_source(self):
        return self.data_source or self.model._context

    def get_count(self):
        return len(self._records)

    def first(self):
        return self._records[0] if self._records else None

    def add(self, *records):
        for record in records:
            if not isinstance(record, self.model):
                raise TypeError(f"Expected {self.model.__name__}, got {type(record).__name__}")
        self._records.extend(records)
        self.mutation_count += 1
        return list(records)

    def remove_all(self):
        self._records = []
        self.mutation_count += 1

    def load(self, options=None, **kwargs):
        """Start (or join) a read and return the task running it.

        Accepts the same callback forms as ``normalize_options``. Callbacks
        are called with the store's first record and the finished operation.
        Every joined caller's callbacks run; if any raise, the first error is
        re-raised from the task once all of them have been called.
        """
        options = normalize_options(options, **kwargs)

        if self.loading:
            if has_callbacks(options):
                self._pending.append(options)
            return self._load_task

        operation = Operation("read", self.model, self.filters, self.limit)
        self._pending = [options] if has_callbacks(options) else []
        loop = asyncio.get_running_loop()
        # records added or removed after this point win over the read's result
        self._load_task = loop.create_task(self._run(operation, self.mutation_count))
        logger.debug("loading %s with filters %s", self.model.__name__, self.filters)
        return self._load_task

    async def _run(self, operation, mutations):
        operation.set_started()
        try:
            # a key filter that is unset cannot match anything
            if any(value is None for value in operation.filters.values()):
                records = []
            else:
                data_source = self.get_data_source()
                if data_source is None:
                    raise SimpleAssocError(f"{self.model.__name__} is not bound to a data source")
                records = await data_source.read(operation)
        except Exception as exc:
            if not isinstance(exc, LoadError):
                exc = LoadError(f"Failed to load {self.model.__name__}: {exc}", operation, exc)
            operation.set_exception(exc)
            logger.warning("%s", exc)
            if self.mutation_count != mutations:
                # records set while the read was running stand in for its result
                self._loaded = True
        else:
            if self.limit is not None:
                records = records[:self.limit]
            operation.set_completed(records)
            if self.mutation_count == mutations:
                self._records = list(records)
            else:
                logger.debug("store for %s changed while loading, keeping current records",
                             self.model.__name__)
            self._loaded = True
        finally:
            self.last_operation = operation
            self._load_task = None

        pending, self._pending = self._pending, []
        errors = []
        for options in pending:
            try:
                invoke_callbacks(options, self.first(), operation)
            except Exception as exc:
                logger.exception("callback for %s load raised", self.model.__name__)
                errors.append(exc)
        if errors:
            raise errors[0]
        return operation
