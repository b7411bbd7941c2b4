import pytest

from truenas_ctl.exceptions import ValidationError
from truenas_ctl.flags import FlagSet
from truenas_ctl.properties import (
    BoolValue, IntValue, KeyValue, KeyValueList, PropertyPayload, SizeValue, StrValue,
    build_dataset_payload, copy_used_flags, encode, parse_kv_string, parse_percentage, parse_size,
    write_kv_to_payload,
)
from truenas_ctl.schema import DATASET_CREATE_UPDATE_SCHEMA


@pytest.mark.parametrize('raw,expected', [
    ('0', 0),
    ('512', 512),
    ('1K', 2 ** 10),
    ('1k', 2 ** 10),
    ('10M', 10 * 2 ** 20),
    ('2G', 2 * 2 ** 30),
    ('1T', 2 ** 40),
    ('1P', 2 ** 50),
    ('2TiB', 2 * 2 ** 40),
    ('512B', 512),
    (4096, 4096),
])
def test__parse_size(raw, expected):
    assert parse_size('quota', raw) == expected


@pytest.mark.parametrize('raw', ['-1', '-5G', 'lots', '', '1Q', '1E', '1.5G', '10kangaroo', -1, True])
def test__parse_size_rejects(raw):
    with pytest.raises(ValidationError) as ve:
        parse_size('quota', raw)

    assert ve.value.attribute == 'quota'


@pytest.mark.parametrize('raw,expected', [('0', 0), ('1', 1), ('55', 55), ('100', 100)])
def test__parse_percentage(raw, expected):
    assert parse_percentage('quota_warning', raw) == expected


@pytest.mark.parametrize('raw', ['-1', '101', '1000', 'half'])
def test__parse_percentage_rejects(raw):
    with pytest.raises(ValidationError):
        parse_percentage('quota_warning', raw)


@pytest.mark.parametrize('name,raw,expected', [
    ('compression', 'lz4', StrValue('lz4')),
    ('compression', 'LZ4', StrValue('lz4')),
    ('sync', 'Always', StrValue('always')),
    ('volblocksize', '16k', StrValue('16K')),
    ('quota', '1G', SizeValue(2 ** 30)),
    ('quota_critical', '95', IntValue(95)),
    ('copies', '2', IntValue(2)),
    ('sparse', True, BoolValue(True)),
    ('force_size', 'yes', BoolValue(True)),
    ('comments', 'backups', StrValue('backups')),
    ('managedby', 7, IntValue(7)),
])
def test__encode(name, raw, expected):
    assert encode(name, raw, DATASET_CREATE_UPDATE_SCHEMA) == expected


def test__encode_enum_names_choices():
    with pytest.raises(ValidationError) as ve:
        encode('sync', 'fast', DATASET_CREATE_UPDATE_SCHEMA)

    assert ve.value.attribute == 'sync'
    assert 'standard, always, disabled' in str(ve.value)


@pytest.mark.parametrize('raw,expected', [
    (None, []),
    ('', []),
    ('a=1', ['a', '1']),
    ('a=1,b=2', ['a', '1', 'b', '2']),
    (' a = 1 , b=', ['a', '1', 'b', '']),
    ('org:prop=x=y', ['org:prop', 'x=y']),
])
def test__parse_kv_string(raw, expected):
    assert parse_kv_string(raw) == expected


@pytest.mark.parametrize('raw', ['a', 'a=1,b', '=1'])
def test__parse_kv_string_rejects(raw):
    with pytest.raises(ValidationError) as ve:
        parse_kv_string(raw, 'user_props')

    assert ve.value.attribute == 'user_props'


def test__write_kv_to_payload_canonicalizes_names():
    payload = PropertyPayload()
    write_kv_to_payload(payload, ['quota-warning', '80', 'compression', 'ZSTD'], DATASET_CREATE_UPDATE_SCHEMA)
    assert payload.to_wire() == {'quota_warning': 80, 'compression': 'zstd'}


def test__payload_rejects_raw_values():
    payload = PropertyPayload()
    with pytest.raises(TypeError):
        payload['quota'] = 10


def test__key_value_list_to_wire():
    payload = PropertyPayload()
    payload['user_properties'] = KeyValueList((KeyValue('org:a', StrValue('1')), KeyValue('org:b', StrValue('x'))))
    assert payload.to_wire() == {
        'user_properties': [{'key': 'org:a', 'value': '1'}, {'key': 'org:b', 'value': 'x'}],
    }


def test__build_dataset_payload():
    flags = FlagSet(used_flags={
        'compression': 'LZ4',
        'quota': '10G',
        'create_parents': True,
        'user_props': 'org:owner=alice',
        'option': 'atime=off,refquota-critical=90',
    })
    payload = build_dataset_payload(flags, DATASET_CREATE_UPDATE_SCHEMA)
    assert payload.to_wire() == {
        'compression': 'lz4',
        'quota': 10 * 2 ** 30,
        'create_ancestors': True,
        'atime': 'off',
        'refquota_critical': 90,
        'user_properties': [{'key': 'org:owner', 'value': 'alice'}],
    }


def test__build_dataset_payload_ignores_defaults():
    flags = FlagSet(all_flags={'sync': 'standard', 'compression': 'off'}, used_flags={})
    assert build_dataset_payload(flags, DATASET_CREATE_UPDATE_SCHEMA).to_wire() == {}


def test__copy_used_flags():
    flags = FlagSet(all_flags={'recursive': True, 'force': False}, used_flags={'recursive': True})
    assert copy_used_flags(flags, ('recursive', 'force')) == {'recursive': True}
