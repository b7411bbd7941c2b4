from .client import DEFAULT_URI, CallTimeout, Client, ClientException, ErrnoMixin, ValidationErrors, undefined  # noqa
