import io
import logging

import pytest

from truenas_ctl.logger import CONSOLE_LOGFORMAT, DEFAULT_LOGFORMAT, setup_logging


@pytest.fixture(autouse=True)
def root_logger():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield root
    root.handlers[:] = handlers
    root.setLevel(level)


@pytest.mark.parametrize('debug,level,fmt', [
    (False, logging.WARNING, CONSOLE_LOGFORMAT),
    (True, logging.DEBUG, DEFAULT_LOGFORMAT),
])
def test__setup_logging(root_logger, debug, level, fmt):
    handler = setup_logging(debug, io.StringIO())
    assert root_logger.handlers == [handler]
    assert root_logger.level == level
    assert handler.formatter._fmt == fmt


def test__console_format(root_logger):
    stream = io.StringIO()
    setup_logging(stream=stream)
    logging.getLogger('truenas_ctl.bulk').warning('Ignoring failure of %s', 'zfs.snapshot.delete')
    logging.getLogger('truenas_ctl.bulk').debug('hidden')

    assert stream.getvalue() == 'WARNING: Ignoring failure of zfs.snapshot.delete\n'


def test__websocket_is_quiet():
    assert logging.getLogger('websocket').level == logging.WARNING
