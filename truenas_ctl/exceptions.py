import errno

from .client import ErrnoMixin


def get_errname(code):
    return errno.errorcode.get(code) or ErrnoMixin._get_errname(code) or 'EUNKNOWN'


class CtlException(Exception):
    """
    Base class for every error a command can end with. `main` turns these into
    a message on stderr and a non-zero exit status.
    """
    errmsg = None

    def __str__(self):
        return self.errmsg or self.__class__.__name__


class ValidationError(CtlException):
    """
    A flag value failed validation. Raised before any remote call is issued.
    """

    def __init__(self, attribute, errmsg):
        self.attribute = attribute
        self.errmsg = errmsg

    def __str__(self):
        if self.attribute:
            return f'{self.attribute}: {self.errmsg}'
        return self.errmsg


class NamespecError(CtlException):
    def __init__(self, spec, errmsg, kind=None):
        self.spec = spec
        self.kind = kind
        self.errmsg = errmsg


class NotFoundError(CtlException):
    def __init__(self, errmsg):
        self.errmsg = errmsg


class RemoteError(CtlException):
    """
    A direct or bulk call failed at the transport or service level.
    """

    def __init__(self, method, errmsg, errno=None):
        self.method = method
        self.errmsg = errmsg
        self.errno = errno

    def __str__(self):
        if self.errno:
            return f'[{get_errname(self.errno)}] {self.method}: {self.errmsg}'
        return f'{self.method}: {self.errmsg}'


class PartialBulkError(RemoteError):
    """
    One or more targets of a non best-effort bulk call failed.
    `failures` is a list of (target, message) tuples.
    """

    def __init__(self, method, failures):
        self.failures = list(failures)
        super().__init__(method, f'{len(self.failures)} target(s) failed')

    def __str__(self):
        lines = [f'{self.method}: {len(self.failures)} target(s) failed']
        for target, message in self.failures:
            lines.append(f'  {target}: {message}')
        return '\n'.join(lines)
