import argparse
import logging
import sys

from .client import Client, ClientException
from .commands import families, register
from .config import load_config
from .exceptions import CtlException
from .flags import FlagSet
from .logger import setup_logging

logger = logging.getLogger(__name__)


class Session:
    """
    Connects and logs in on the first call, so that commands failing local
    validation never open a connection.
    """

    def __init__(self, config, client_factory=Client):
        self.config = config
        self._client_factory = client_factory
        self._client = None

    def _connect(self):
        client = self._client_factory(
            uri=self.config.url, call_timeout=self.config.call_timeout, verify_ssl=self.config.verify_ssl,
        )
        try:
            client.login(api_key=self.config.api_key, username=self.config.username, password=self.config.password)
        except ClientException:
            client.close()
            raise
        return client

    def call(self, method, *params, **kwargs):
        if self._client is None:
            self._client = self._connect()
        return self._client.call(method, *params, **kwargs)

    def close(self):
        if self._client is not None:
            self._client.close()
            self._client = None

    def __enter__(self):
        return self

    def __exit__(self, typ, value, traceback):
        self.close()


def build_parser():
    parser = argparse.ArgumentParser(prog='truenas_ctl')
    parser.add_argument('-u', '--url', help='Middleware websocket URL')
    parser.add_argument('-K', '--api-key')
    parser.add_argument('-U', '--username')
    parser.add_argument('-P', '--password')
    parser.add_argument('-k', '--insecure', action='store_true', help='Do not verify the server certificate')
    parser.add_argument('-t', '--timeout', type=int, help='Default timeout for calls without one of their own')
    parser.add_argument('--debug', action='store_true', help='Log requests and responses')

    subparsers = parser.add_subparsers(dest='family', metavar='<family>')
    subparsers.required = True
    for family in families():
        register(subparsers, family)

    return parser


def run(argv=None, client_factory=Client, stdout=None):
    args = build_parser().parse_args(argv)
    setup_logging(args.debug)
    stdout = stdout or sys.stdout

    try:
        config = load_config(
            url=args.url,
            api_key=args.api_key,
            username=args.username,
            password=args.password,
            verify_ssl=False if args.insecure else None,
            call_timeout=args.timeout,
        )
        command = args._command
        flags = FlagSet.from_namespace(args)
        with Session(config, client_factory) as session:
            output = command.handler(session, args.args, flags)
    except CtlException as e:
        print(f'Error: {e}', file=sys.stderr)
        return 1
    except ClientException as e:
        # Connection and login failures happen outside of `api_call`
        logger.debug('Transport failure', exc_info=True)
        print(f'Error: {e}', file=sys.stderr)
        return 1

    if output:
        print(output, file=stdout)
    return 0


def main():
    sys.exit(run())


if __name__ == '__main__':
    main()
