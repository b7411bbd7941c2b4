import logging
import sys


# Set logging levels
for level, names in {
    logging.WARNING: (
        'urllib3',
        'websocket',  # we dont need websocket debug messages
    ),
}.items():
    for name in names:
        logging.getLogger(name).setLevel(level)


DEFAULT_LOGFORMAT = '[%(asctime)s] (%(levelname)s) %(name)s.%(funcName)s():%(lineno)d - %(message)s'
CONSOLE_LOGFORMAT = '%(levelname)s: %(message)s'


def setup_logging(debug=False, stream=None):
    """
    Send log records to stderr. Without `debug` only warnings and errors are
    shown, in a short format that does not drown the command output.
    """
    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setFormatter(logging.Formatter(DEFAULT_LOGFORMAT if debug else CONSOLE_LOGFORMAT))

    root = logging.getLogger()
    for existing in list(root.handlers):
        root.removeHandler(existing)
    root.addHandler(handler)
    root.setLevel(logging.DEBUG if debug else logging.WARNING)
    return handler
