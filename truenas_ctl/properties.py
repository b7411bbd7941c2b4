import logging
import re
from dataclasses import dataclass

import humanfriendly

from .exceptions import ValidationError
from .schema import Boolean, Enum, Free, Integer, Percentage, Size

logger = logging.getLogger(__name__)

TRUE_STRINGS = ('true', 'yes', 'on', '1')
FALSE_STRINGS = ('false', 'no', 'off', '0')
SIZE_RE = re.compile(r'^\d+[KMGTP]?(i?B)?$', re.IGNORECASE)


@dataclass(slots=True, frozen=True)
class BoolValue:
    value: bool


@dataclass(slots=True, frozen=True)
class IntValue:
    value: int


@dataclass(slots=True, frozen=True)
class SizeValue:
    value: int


@dataclass(slots=True, frozen=True)
class StrValue:
    value: str


@dataclass(slots=True, frozen=True)
class KeyValue:
    key: str
    value: 'PropertyValue'


@dataclass(slots=True, frozen=True)
class KeyValueList:
    items: tuple[KeyValue, ...]


PropertyValue = BoolValue | IntValue | SizeValue | StrValue | KeyValueList


def to_wire(value):
    if isinstance(value, (BoolValue, IntValue, SizeValue, StrValue)):
        return value.value
    if isinstance(value, KeyValueList):
        return [{'key': kv.key, 'value': to_wire(kv.value)} for kv in value.items]
    raise TypeError(f'{value!r}: not a property value')


class PropertyPayload:
    """
    Ordered mapping of property name to `PropertyValue`.
    """

    def __init__(self):
        self._values = {}

    def __setitem__(self, name, value):
        if not isinstance(value, PropertyValue):
            raise TypeError(f'{name}: {value!r} is not a property value')
        self._values[name] = value

    def __getitem__(self, name):
        return self._values[name]

    def __contains__(self, name):
        return name in self._values

    def __iter__(self):
        return iter(self._values)

    def __len__(self):
        return len(self._values)

    def items(self):
        return self._values.items()

    def to_wire(self):
        return {name: to_wire(value) for name, value in self._values.items()}


def parse_size(name, raw):
    """
    Parse a byte size such as "0", "512", "10G" or "2TiB". Unit suffixes are
    binary multiples (K = 2**10 ... P = 2**50).
    """
    if isinstance(raw, bool):
        raise ValidationError(name, f'"{raw}" is not a size')
    if isinstance(raw, int):
        size = raw
    else:
        raw = str(raw).strip()
        if not SIZE_RE.match(raw):
            raise ValidationError(
                name, f'"{raw}" is not a size, expected an integer with an optional K, M, G, T or P suffix',
            )
        try:
            size = humanfriendly.parse_size(raw, binary=True)
        except humanfriendly.InvalidSize as e:
            raise ValidationError(name, f'Failed to parse size: {e}')

    if size < 0:
        raise ValidationError(name, 'negative numbers are not permitted')

    return size


def parse_int(name, raw):
    if isinstance(raw, bool):
        raise ValidationError(name, f'"{raw}" is not an integer')
    try:
        return int(raw)
    except (TypeError, ValueError):
        raise ValidationError(name, f'"{raw}" is not an integer')


def parse_percentage(name, raw):
    value = parse_int(name, raw)
    if value != 0 and not 1 <= value <= 100:
        raise ValidationError(name, f'{value} is not a valid percentage (1-100 or 0)')
    return value


def parse_bool(name, raw):
    if isinstance(raw, bool):
        return raw
    folded = str(raw).strip().casefold()
    if folded in TRUE_STRINGS:
        return True
    if folded in FALSE_STRINGS:
        return False
    raise ValidationError(name, f'"{raw}" is not a boolean')


def encode(name, raw, schema):
    """
    Validate `raw` against the kind `schema` declares for `name` and return the
    matching `PropertyValue`.
    """
    kind = schema.kind(name)
    if isinstance(kind, Enum):
        choice = kind.match(raw)
        if choice is None:
            raise ValidationError(
                name, f'Invalid value "{raw}". Must be one of: {", ".join(kind.choices)}',
            )
        return StrValue(choice)
    if isinstance(kind, Size):
        return SizeValue(parse_size(name, raw))
    if isinstance(kind, Percentage):
        return IntValue(parse_percentage(name, raw))
    if isinstance(kind, Integer):
        return IntValue(parse_int(name, raw))
    if isinstance(kind, Boolean):
        return BoolValue(parse_bool(name, raw))
    if isinstance(kind, Free):
        if isinstance(raw, bool):
            return BoolValue(raw)
        if isinstance(raw, int):
            return IntValue(raw)
        return StrValue(str(raw))
    raise TypeError(f'{name}: unsupported property kind {kind!r}')


def parse_kv_string(raw, attribute='option'):
    """
    Split "a=1,b=2" into the flat list ["a", "1", "b", "2"].
    """
    kv = []
    if not raw:
        return kv

    for pair in raw.split(','):
        if not pair.strip():
            continue
        key, sep, value = pair.partition('=')
        key = key.strip()
        if not sep:
            raise ValidationError(attribute, f'"{pair}" is not of the form key=value')
        if not key:
            raise ValidationError(attribute, f'"{pair}" has an empty key')
        kv.extend((key, value.strip()))

    return kv


def write_kv_to_payload(payload, kv, schema):
    for i in range(0, len(kv), 2):
        name = kv[i].replace('-', '_')
        payload[name] = encode(name, kv[i + 1], schema)


def encode_user_props(kv, schema):
    return KeyValueList(tuple(
        KeyValue(kv[i], encode(kv[i], kv[i + 1], schema)) for i in range(0, len(kv), 2)
    ))


def build_dataset_payload(flags, schema):
    """
    Build the `pool.dataset.create`/`pool.dataset.update` payload out of the
    flags the user explicitly passed.
    """
    payload = PropertyPayload()
    user_props = None
    for name, value in flags.used_flags.items():
        if name == 'create_parents':
            payload['create_ancestors'] = BoolValue(bool(value))
        elif name == 'user_props':
            user_props = value
        elif name == 'option':
            write_kv_to_payload(payload, parse_kv_string(value, 'option'), schema)
        else:
            payload[name] = encode(name, value, schema)

    if user_props:
        payload['user_properties'] = encode_user_props(parse_kv_string(user_props, 'user_props'), schema)

    return payload


def copy_used_flags(flags, names):
    """
    Plain wire mapping of the given flags, taken only when the user set them.
    """
    return {name: flags.used_flags[name] for name in names if name in flags.used_flags}
