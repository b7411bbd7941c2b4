from unittest.mock import Mock, call

import pytest

from truenas_ctl.exceptions import NamespecError, NotFoundError, PartialBulkError, ValidationError
from truenas_ctl.flags import FlagSet
from truenas_ctl.main import build_parser
from truenas_ctl.query import QUERY_TIMEOUT


def run_command(session, *argv):
    args = build_parser().parse_args(['dataset', *argv])
    return args._command.handler(session, args.args, FlagSet.from_namespace(args))


def middleware(responses):
    """
    Session answering each method with the matching entry of `responses`.
    """
    session = Mock()
    session.call.side_effect = lambda method, *params, **kwargs: responses.get(method)
    return session


def test__create_several_datasets():
    session = middleware({'core.bulk': [
        {'job_id': None, 'result': {}, 'error': None},
        {'job_id': None, 'result': {}, 'error': None},
    ]})
    run_command(session, 'create', 'pool/a', 'pool/b', '--compression=lz4')

    session.call.assert_called_once_with(
        'core.bulk', 'pool.dataset.create', [
            [{'compression': 'lz4', 'type': 'FILESYSTEM', 'name': 'pool/a'}],
            [{'compression': 'lz4', 'type': 'FILESYSTEM', 'name': 'pool/b'}],
        ],
        job=True, timeout=20,
    )


def test__create_volume():
    session = middleware({})
    run_command(session, 'create', 'pool/vol', '-V', '1G', '--sparse', '-b', '16k')

    session.call.assert_called_once_with(
        'pool.dataset.create',
        {'volsize': 2 ** 30, 'sparse': True, 'volblocksize': '16K', 'type': 'VOLUME', 'name': 'pool/vol'},
        job=False, timeout=10,
    )


def test__create_with_properties():
    session = middleware({})
    run_command(
        session, 'create', 'pool/a', '-p', '-u', 'org:owner=alice', '-o', 'atime=off',
        '--quota', '10G', '--quota-warning', '90',
    )

    payload = session.call.call_args.args[1]
    assert payload == {
        'create_ancestors': True,
        'user_properties': [{'key': 'org:owner', 'value': 'alice'}],
        'atime': 'off',
        'quota': 10 * 2 ** 30,
        'quota_warning': 90,
        'type': 'FILESYSTEM',
        'name': 'pool/a',
    }


@pytest.mark.parametrize('argv,attribute', [
    (['--sync=fast'], 'sync'),
    (['--quota', '-1'], 'quota'),
    (['--quota-critical', '101'], 'quota_critical'),
    (['-o', 'compression'], 'option'),
])
def test__create_validation_happens_before_any_call(argv, attribute):
    session = middleware({})
    with pytest.raises(ValidationError) as ve:
        run_command(session, 'create', 'pool/a', *argv)

    assert ve.value.attribute == attribute
    session.call.assert_not_called()


def test__sync_error_names_choices():
    with pytest.raises(ValidationError) as ve:
        run_command(middleware({}), 'create', 'pool/a', '--sync=fast')

    assert 'standard, always, disabled' in str(ve.value)


@pytest.mark.parametrize('spec', ['pool', 'pool/a@s1', '/mnt/pool/a', '12'])
def test__create_rejects_non_datasets(spec):
    session = middleware({})
    with pytest.raises(NamespecError):
        run_command(session, 'create', spec)

    session.call.assert_not_called()


def test__update_single_dataset_skips_existence_query():
    session = middleware({})
    run_command(session, 'update', 'pool/a/', '--comments', 'backups')

    session.call.assert_called_once_with(
        'pool.dataset.update', 'pool/a', {'comments': 'backups'}, job=False, timeout=10,
    )


def test__update_creates_missing_datasets():
    session = middleware({'pool.dataset.query': [{'name': 'pool/a', 'type': 'FILESYSTEM'}]})
    run_command(session, 'update', 'pool/a', 'pool/missing', '-c')

    assert session.call.call_args_list == [
        call(
            'pool.dataset.query',
            [['OR', [[['name', '=', 'pool/a']], [['name', '=', 'pool/missing']]]]],
            {'extra': {'flat': True, 'retrieve_children': False, 'user_properties': False}},
            job=False, timeout=QUERY_TIMEOUT,
        ),
        call('pool.dataset.update', 'pool/a', {}, job=False, timeout=10),
        call('pool.dataset.create', {'type': 'FILESYSTEM', 'name': 'pool/missing'}, job=False, timeout=10),
    ]


def test__update_missing_dataset_without_create():
    session = middleware({'pool.dataset.query': [{'name': 'pool/a'}]})
    with pytest.raises(NotFoundError) as ve:
        run_command(session, 'update', 'pool/a', 'pool/missing', '--sync', 'always')

    assert 'pool/missing' in str(ve.value)
    assert session.call.call_count == 1


def test__update_partial_failure():
    session = middleware({
        'pool.dataset.query': [{'name': 'pool/a'}, {'name': 'pool/b'}],
        'core.bulk': [
            {'job_id': None, 'result': {}, 'error': None},
            {'job_id': None, 'result': None, 'error': 'quota is smaller than used space'},
        ],
    })
    with pytest.raises(PartialBulkError) as ve:
        run_command(session, 'update', 'pool/a', 'pool/b', '--quota', '1M')

    assert ve.value.failures == [('pool/b', 'quota is smaller than used space')]


def test__delete():
    session = middleware({})
    run_command(session, 'delete', 'pool/a', '-f')

    session.call.assert_called_once_with('pool.dataset.delete', 'pool/a', {'force': True}, job=False, timeout=20)


def test__delete_recursive_uses_smart_timeout():
    session = middleware({'pool.dataset.query': [{'name': 'pool/a'}, {'name': 'pool/a/b'}, {'name': 'pool/a/c'}]})
    run_command(session, 'delete', 'pool/a', '-r')

    assert session.call.call_args_list[-1] == call(
        'pool.dataset.delete', 'pool/a', {'recursive': True}, job=False, timeout=40,
    )


def test__delete_recursive_without_smart_timeout():
    session = middleware({})
    run_command(session, 'delete', 'pool/a', '-r', '--no-smart-timeout')

    session.call.assert_called_once_with('pool.dataset.delete', 'pool/a', {'recursive': True}, job=False, timeout=20)


def test__delete_rejects_snapshots():
    with pytest.raises(NamespecError):
        run_command(middleware({}), 'delete', 'pool/a@s1')


def test__list():
    session = middleware({'pool.dataset.query': [
        {
            'name': 'pool/a',
            'compression': {'value': 'LZ4', 'rawvalue': 'lz4', 'parsed': 'lz4'},
            'used': {'value': '1.5M', 'rawvalue': '1572864', 'parsed': 1572864},
        },
    ]})
    output = run_command(session, 'list', 'pool/a', '-o', 'name,compression,used', '--format', 'csv')

    assert output == 'name,compression,used\npool/a,lz4,1.5M'
    filters, options = session.call.call_args.args[1:]
    assert filters == [['name', '=', 'pool/a']]
    assert options['extra']['properties'] == ['name', 'compression', 'used']


def test__list_parsable_json():
    session = middleware({'pool.dataset.query': [
        {'name': 'pool', 'used': {'value': '1.5M', 'rawvalue': '1572864', 'parsed': 1572864}},
    ]})
    output = run_command(session, 'list', 'pool', '-j', '-p', '-o', 'used')

    assert '"datasets"' in output
    assert '1572864' in output
    filters = session.call.call_args.args[1]
    assert filters == [['pool', '=', 'pool']]


def test__list_everything():
    session = middleware({'pool.dataset.query': []})
    run_command(session, 'list')

    filters, options = session.call.call_args.args[1:]
    assert filters == []
    assert options['extra']['retrieve_children'] is True


@pytest.mark.parametrize('spec', ['/mnt/pool/a', 'pool/a@s1'])
def test__list_rejects(spec):
    session = middleware({})
    with pytest.raises(NamespecError):
        run_command(session, 'list', spec)

    session.call.assert_not_called()


def test__promote():
    session = middleware({})
    run_command(session, 'promote', 'pool/clone')

    session.call.assert_called_once_with('pool.dataset.promote', 'pool/clone', job=False, timeout=10)


def test__rename():
    session = middleware({})
    run_command(session, 'rename', 'pool/a', 'pool/b')

    session.call.assert_called_once_with(
        'zfs.dataset.rename', 'pool/a', {'new_name': 'pool/b'}, job=False, timeout=10,
    )


def test__rename_updates_nfs_share():
    session = middleware({'sharing.nfs.query': [{'id': 5, 'path': '/mnt/pool/a'}]})
    run_command(session, 'rename', 'pool/a', 'pool/b', '--update-shares')

    assert session.call.call_args_list[1:] == [
        call('sharing.nfs.query', [['path', '=', '/mnt/pool/a']], {'select': ['id', 'path']}, job=False, timeout=10),
        call('sharing.nfs.update', 5, {'path': '/mnt/pool/b'}, job=False, timeout=10),
    ]


def test__rename_without_share():
    session = middleware({'sharing.nfs.query': []})
    output = run_command(session, 'rename', 'pool/a', 'pool/b', '-s')

    assert output == 'INFO: pool/a did not appear to have a share'
    assert session.call.call_count == 2


def test__rename_rejects_pool():
    with pytest.raises(NamespecError):
        run_command(middleware({}), 'rename', 'pool', 'other')


def test__list_format_is_case_insensitive():
    session = middleware({'pool.dataset.query': [{'name': 'pool/a'}]})
    output = run_command(session, 'list', 'pool/a', '--format', 'JSON')

    assert output.startswith('{')
    assert '"datasets"' in output
