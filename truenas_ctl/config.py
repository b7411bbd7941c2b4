import configparser
import logging
import os
from dataclasses import dataclass, replace

from .client import DEFAULT_URI
from .exceptions import ValidationError

logger = logging.getLogger(__name__)

CONFIG_ENV = 'TRUENAS_CTL_CONFIG'
DEFAULT_CONFIG_PATH = os.path.join('~', '.config', 'truenas_ctl', 'config.ini')
CONFIG_SECTION = 'Target'
DEFAULT_CALL_TIMEOUT = 60

ENV_KEYS = {
    'url': 'TRUENAS_URL',
    'api_key': 'TRUENAS_API_KEY',
    'username': 'TRUENAS_USERNAME',
    'password': 'TRUENAS_PASSWORD',
    'verify_ssl': 'TRUENAS_VERIFY_SSL',
    'call_timeout': 'CALL_TIMEOUT',
}


@dataclass(slots=True, frozen=True)
class Config:
    url: str = DEFAULT_URI
    api_key: str | None = None
    username: str | None = None
    password: str | None = None
    verify_ssl: bool = True
    call_timeout: int = DEFAULT_CALL_TIMEOUT

    def override(self, **kwargs):
        return replace(self, **{k: v for k, v in kwargs.items() if v is not None})


def _coerce(key, value):
    if key == 'verify_ssl':
        return str(value).strip().lower() not in ('0', 'false', 'no', 'off')
    if key == 'call_timeout':
        return int(value)
    return value


def config_path(environ=None):
    environ = os.environ if environ is None else environ
    return os.path.expanduser(environ.get(CONFIG_ENV) or DEFAULT_CONFIG_PATH)


def read_config_file(path):
    parser = configparser.ConfigParser()
    if not parser.read(path):
        return {}
    if not parser.has_section(CONFIG_SECTION):
        logger.debug('%s: no [%s] section', path, CONFIG_SECTION)
        return {}

    return {k: v for k, v in parser.items(CONFIG_SECTION) if k in ENV_KEYS}


def load_config(path=None, environ=None, **overrides):
    """
    Settings from the config file, then the environment, then `overrides`
    (command line), later sources winning.
    """
    environ = os.environ if environ is None else environ
    values = read_config_file(path or config_path(environ))
    for key, env in ENV_KEYS.items():
        if environ.get(env):
            values[key] = environ[env]

    try:
        values = {k: _coerce(k, v) for k, v in values.items()}
    except ValueError as e:
        raise ValidationError('config', f'Invalid configuration value: {e}')

    return Config(**values).override(**overrides)
