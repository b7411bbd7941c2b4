import json
import logging

from .client import ClientException
from .exceptions import RemoteError

logger = logging.getLogger(__name__)

DEFAULT_CALL_TIMEOUT = 10


def api_call(session, method, *params, timeout=DEFAULT_CALL_TIMEOUT, job=False):
    """
    Call `method` on `session`. Transport and service failures of any kind are
    re-raised as `RemoteError` carrying the method name.
    """
    if logger.isEnabledFor(logging.DEBUG):
        logger.debug('%s(%s) timeout=%r job=%r', method, _dump(params), timeout, job)
    try:
        result = session.call(method, *params, job=job, timeout=timeout)
    except ClientException as e:
        raise RemoteError(method, str(e), e.errno)

    if logger.isEnabledFor(logging.DEBUG):
        logger.debug('%s -> %s', method, _dump(result))
    return result


def _dump(obj):
    try:
        return json.dumps(obj, default=str)
    except (TypeError, ValueError):
        return repr(obj)
