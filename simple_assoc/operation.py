class Operation:
    """Describes one request made to a data source and its outcome."""

    def __init__(self, action, model, filters=None, limit=None):
        self.action = action
        self.model = model
        self.filters = dict(filters or {})
        self.limit = limit
        self.records = []
        self.error = None
        self._started = False
        self._completed = False

    def __repr__(self):
        return (
            f"<Operation {self.action} {self.model.__name__} "
            f"filters={self.filters} complete={self._completed}>"
        )

    def set_started(self):
        self._started = True

    def set_completed(self, records=None):
        self.records = list(records or [])
        self._completed = True

    def set_exception(self, error):
        self.error = error
        self._completed = True

    def is_running(self):
        return self._started and not self._completed

    def is_complete(self):
        return self._completed

    def has_exception(self):
        return self.error is not None

    def was_successful(self):
        return self._completed and self.error is None

    def get_records(self):
        return self.records


CALLBACK_KEYS = ("reload", "callback", "success", "failure", "scope")


def normalize_options(options=None, scope=None, **kwargs):
    """Turn the accepted callback forms into one options dict.

    ``options`` may be a callable (used as ``callback``) or a dict with any of
    ``reload``, ``callback``, ``success``, ``failure`` and ``scope``. Keyword
    arguments that are not None override dict entries.
    """
    if options is None:
        normalized = {}
    elif callable(options):
        normalized = {"callback": options}
    elif isinstance(options, dict):
        unknown = set(options) - set(CALLBACK_KEYS)
        if unknown:
            raise TypeError(f"Unknown callback options: {', '.join(sorted(unknown))}")
        normalized = dict(options)
    else:
        raise TypeError(f"Expected a callable or an options dict, got {type(options).__name__}")

    if scope is not None:
        normalized["scope"] = scope
    for key, value in kwargs.items():
        if value is not None:
            normalized[key] = value
    return normalized


def has_callbacks(options):
    return any(options.get(key) for key in ("callback", "success", "failure"))


def invoke_callbacks(options, record, operation):
    """Fire ``success`` or ``failure``, then ``callback``.

    Each receives ``(record, operation)``, preceded by ``scope`` when one was
    given.
    """
    scope = options.get("scope")
    args = (record, operation) if scope is None else (scope, record, operation)

    if operation.was_successful():
        if options.get("success"):
            options["success"](*args)
    elif options.get("failure"):
        options["failure"](*args)

    if options.get("callback"):
        options["callback"](*args)
