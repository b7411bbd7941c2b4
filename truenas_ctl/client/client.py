import errno
import json
import logging
import os
import socket
import ssl
import time
import uuid
from collections import namedtuple

import websocket

logger = logging.getLogger(__name__)

DEFAULT_URI = 'ws+unix:///var/run/middleware/middlewared.sock'
CALL_TIMEOUT = int(os.environ.get('CALL_TIMEOUT', 60))
CONNECT_TIMEOUT = 10
JOB_FINISHED_STATES = ('SUCCESS', 'FAILED', 'ABORTED')


class UndefinedType:
    def __repr__(self):
        return 'undefined'

    def __bool__(self):
        return False


undefined = UndefinedType()


class ErrnoMixin:
    ENOMETHOD = 201
    ESERVICESTARTFAILURE = 202
    EALERTCHECKERUNAVAILABLE = 203
    EREMOTENODEERROR = 204
    EDATASETISLOCKED = 205
    EINVALIDRRDTIMESTAMP = 206
    ENOTAUTHENTICATED = 207
    ESSLCERTVERIFICATIONERROR = 208

    @classmethod
    def _get_errname(cls, code):
        for k, v in cls.__dict__.items():
            if k.startswith('E') and v == code:
                return k


class ClientException(ErrnoMixin, Exception):
    def __init__(self, error, errno=None, trace=None, extra=None):
        self.errno = errno
        self.error = error
        self.trace = trace
        self.extra = extra

    def __str__(self):
        return self.error


Error = namedtuple('Error', ['attribute', 'errmsg', 'errcode'])


class ValidationErrors(ClientException):
    def __init__(self, errors):
        self.errors = []
        for e in errors or []:
            self.errors.append(Error(e[0], e[1], e[2]))

        super().__init__(str(self))

    def __str__(self):
        msgs = []
        for e in self.errors:
            errcode = errno.errorcode.get(e.errcode, 'EUNKNOWN')
            msgs.append(f'[{errcode}] {e.attribute or "ALL"}: {e.errmsg}')
        return '\n'.join(msgs)


class CallTimeout(ClientException):
    def __init__(self):
        super().__init__('Call timeout', errno.ETIMEDOUT)


def _job_exception(job):
    exc_info = job.get('exc_info') or {}
    if exc_info.get('type') == 'VALIDATION':
        return ValidationErrors(exc_info.get('extra'))

    return ClientException(
        job.get('error') or f'Job {job.get("id")} ended in state {job.get("state")}',
        trace={
            'class': exc_info.get('type'),
            'formatted': job.get('exception'),
        },
        extra=exc_info.get('extra'),
    )


class Client:
    """
    Synchronous middleware client.

    Everything happens in the calling thread: a call sends one message and then
    reads the socket until the matching result (and, for jobs, the terminal job
    event) has arrived. Messages that are not for the pending call are only
    inspected for job updates.
    """

    def __init__(self, uri=None, call_timeout=undefined, verify_ssl=True):
        if uri is None:
            uri = DEFAULT_URI

        if call_timeout is undefined:
            call_timeout = CALL_TIMEOUT

        self._call_timeout = call_timeout
        self._jobs = {}
        self._jobs_watching = False
        self._ws = self._connect(uri, verify_ssl)
        self._handshake()

    def __enter__(self):
        return self

    def __exit__(self, typ, value, traceback):
        self.close()

    @staticmethod
    def _connect(uri, verify_ssl):
        kwargs = {'timeout': CONNECT_TIMEOUT}
        unix_socket_prefix = 'ws+unix://'
        try:
            if uri.startswith(unix_socket_prefix):
                kwargs['socket'] = _unix_socket(uri.removeprefix(unix_socket_prefix))
                # Adviced by official docs to use dummy hostname
                uri = 'ws://localhost/websocket'
            elif not verify_ssl:
                kwargs['sslopt'] = {'cert_reqs': ssl.CERT_NONE, 'check_hostname': False}

            ws = websocket.create_connection(uri, **kwargs)
        except (OSError, websocket.WebSocketException) as e:
            raise ClientException(f'Failed to connect to {uri}: {e}', errno.ECONNREFUSED)

        logger.debug('Connected to %s', uri)
        return ws

    def _handshake(self):
        self._send({
            'msg': 'connect',
            'version': '1',
            'support': ['1'],
        })
        message = self._recv(time.monotonic() + CONNECT_TIMEOUT)
        if message.get('msg') == 'failed':
            raise ClientException('Unsupported protocol version')
        if message.get('msg') != 'connected':
            raise ClientException('Failed connection handshake')

    def _send(self, data):
        try:
            self._ws.send(json.dumps(data))
        except (AttributeError, websocket.WebSocketConnectionClosedException):
            raise ClientException('Unexpected closure of remote connection', errno.ECONNABORTED)

    def _recv(self, deadline):
        remaining = deadline - time.monotonic()
        if remaining <= 0:
            raise CallTimeout()

        self._ws.settimeout(remaining)
        try:
            data = self._ws.recv()
        except websocket.WebSocketTimeoutException:
            raise CallTimeout()
        except websocket.WebSocketConnectionClosedException:
            raise ClientException('Unexpected closure of remote connection', errno.ECONNABORTED)

        message = json.loads(data)
        self._process_job_event(message)
        return message

    def _process_job_event(self, message):
        if message.get('msg') not in ('added', 'changed') or message.get('collection') != 'core.get_jobs':
            return

        fields = message.get('fields') or {}
        if 'id' in fields:
            self._jobs.setdefault(fields['id'], {}).update(fields)

    def _wait_result(self, call_id, deadline):
        while True:
            message = self._recv(deadline)
            if message.get('msg') == 'result' and message.get('id') == call_id:
                return message
            if message.get('msg') == 'nosub' and message.get('id') == call_id:
                return message
            if message.get('msg') == 'ready' and call_id in message.get('subs', []):
                return message

    def _jobs_subscribe(self):
        sub_id = str(uuid.uuid4())
        self._send({
            'msg': 'sub',
            'id': sub_id,
            'name': 'core.get_jobs',
        })
        message = self._wait_result(sub_id, time.monotonic() + CONNECT_TIMEOUT)
        if message.get('msg') == 'nosub':
            error = message.get('error') or {}
            raise ClientException(error.get('reason') or 'Unable to subscribe to job updates')
        self._jobs_watching = True

    def _wait_job(self, job_id, deadline):
        while True:
            job = self._jobs.get(job_id)
            if job is not None and job.get('state') in JOB_FINISHED_STATES:
                self._jobs.pop(job_id)
                if job['state'] != 'SUCCESS':
                    raise _job_exception(job)
                return job.get('result')

            self._recv(deadline)

    def call(self, method, *params, job=False, timeout=undefined):
        if timeout is undefined:
            timeout = self._call_timeout

        # Job updates must be flowing before the job can possibly finish
        if job and not self._jobs_watching:
            self._jobs_subscribe()

        call_id = str(uuid.uuid4())
        deadline = time.monotonic() + timeout
        self._send({
            'msg': 'method',
            'method': method,
            'id': call_id,
            'params': list(params),
        })
        message = self._wait_result(call_id, deadline)

        if 'error' in message and message['error']:
            error = message['error']
            if error.get('trace') and error.get('type') == 'VALIDATION':
                raise ValidationErrors(error.get('extra'))
            raise ClientException(
                error.get('reason'), error.get('error'), error.get('trace'), error.get('extra'),
            )

        result = message.get('result')
        if job:
            return self._wait_job(result, deadline)

        return result

    def login(self, *, api_key=None, username=None, password=None):
        if api_key:
            if not self.call('auth.login_with_api_key', api_key):
                raise ClientException('Invalid API key', errno.EACCES)
        elif username and password:
            if not self.call('auth.login', username, password):
                raise ClientException('Invalid username or password', errno.EACCES)

    def close(self):
        if self._ws is not None:
            self._ws.close()
            self._ws = None


def _unix_socket(path):
    sock = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
    sock.settimeout(CONNECT_TIMEOUT)
    try:
        sock.connect(path)
    except OSError:
        sock.close()
        raise
    return sock
