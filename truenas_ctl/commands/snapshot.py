import logging

from . import Command, Family
from ..api import DEFAULT_CALL_TIMEOUT, api_call
from ..bulk import BulkCallRequest, TwoPhaseOperation, bulk_call, smart_timeout
from ..exceptions import NamespecError
from ..flags import Flag
from ..namespec import Kind, classify, classify_all, snapshot_list_types
from ..properties import PropertyPayload, copy_used_flags, parse_kv_string, write_kv_to_payload
from ..query import QueryParams, build_value_order, query
from ..render import enumerate_output_properties, render, resolve_format, select_columns
from ..schema import PropertySchema, SNAPSHOT_LIST_SCHEMA

logger = logging.getLogger(__name__)

SNAPSHOT_CALL_TIMEOUT = 10
REQUIRED_COLUMNS = ('name',)
SNAPSHOT_PROPERTY_SCHEMA = PropertySchema({})

CREATE_FLAGS = (
    Flag('delete', bool, short='d', help='Delete snapshot if it exists already'),
    Flag('recursive', bool, short='r', help='Also snapshot all children datasets'),
    Flag('exclude', help='Comma separated list of datasets to exclude'),
    Flag('option', short='o', help='Specify property=value,...'),
    Flag('suspend-vms', bool),
    Flag('vmware-sync', bool),
)
DELETE_FLAGS = (
    Flag('recursive', bool, short='r', help='recursively delete children'),
    Flag('defer', bool, help='defer the deletion of snapshot'),
    Flag('no-smart-timeout', bool,
         help='Disable performing a recursive list on the snapshot to determine a suitable deletion timeout'),
)
LIST_FLAGS = (
    Flag('recursive', bool, short='r', help='Retrieves snapshots of children'),
    Flag('user-properties', bool, short='u', help='Include user-properties'),
    Flag('json', bool, short='j', help='Equivalent to --format=json'),
    Flag('no-headers', bool, short='c', help='Equivalent to --format=compact. More easily parsed by scripts'),
    Flag('format', default='table', help='Output table format'),
    Flag('output', short='o', help='Output property list'),
    Flag('parsable', bool, short='p', help='Show raw values instead of the already parsed values'),
    Flag('all', bool, help='Output all properties'),
)
ROLLBACK_FLAGS = (
    Flag('force', bool, short='f', help='force unmount of any clones'),
    Flag('recursive', bool, short='r', help='destroy any snapshots and bookmarks more recent than the one specified'),
    Flag('recursive-clones', bool, short='R', help='like recursive, but also destroy any clones'),
    Flag('recursive-rollback', bool,
         help='perform a complete recursive rollback of each child snapshot. '
              'If any child does not have specified snapshot, this operation will fail.'),
)


def _snapshots(args, family):
    try:
        return classify_all(args, {Kind.SNAPSHOT}, family)
    except NamespecError as e:
        raise NamespecError(
            e.spec,
            f'No dataset name was found in snapshot specifier "{e.spec}".\n'
            'Expected <datasetname>@<snapshotname>.',
            e.kind,
        )


def create_snapshot(session, args, flags):
    namespecs = _snapshots(args, 'snapshot create')

    data = {'recursive': flags.is_true('recursive')}
    data.update(copy_used_flags(flags, ('suspend_vms', 'vmware_sync')))
    if exclude := flags.get('exclude'):
        data['exclude'] = [name.strip() for name in exclude.split(',') if name.strip()]

    properties = PropertyPayload()
    write_kv_to_payload(properties, parse_kv_string(flags.get('option'), 'option'), SNAPSHOT_PROPERTY_SCHEMA)
    data['properties'] = properties.to_wire()

    cleanup = None
    if flags.is_true('delete'):
        cleanup = BulkCallRequest(
            'zfs.snapshot.delete', SNAPSHOT_CALL_TIMEOUT, ({'recursive': True},), '',
            tuple(ns.normalized for ns in namespecs), best_effort=True,
        )

    TwoPhaseOperation(
        commit=BulkCallRequest(
            'zfs.snapshot.create', SNAPSHOT_CALL_TIMEOUT, (data,), ('dataset', 'name'),
            tuple((ns.dataset, ns.snapshot_name) for ns in namespecs),
        ),
        cleanup=cleanup,
    ).run(session)


def delete_snapshot(session, args, flags):
    namespecs = _snapshots(args, 'snapshot delete')
    specs = [ns.normalized for ns in namespecs]

    timeout = SNAPSHOT_CALL_TIMEOUT
    if flags.remove('no_smart_timeout') is None and flags.is_true('recursive'):
        params = QueryParams(value_order=build_value_order(True), recurse=True)
        response = query(session, 'zfs.snapshot', specs, ['name'] * len(specs), [], params)
        timeout = smart_timeout(len(response.results_map))
        logger.debug('Deleting %d snapshot(s), timeout %ds', len(response.results_map), timeout)

    options = copy_used_flags(flags, ('recursive', 'defer'))
    bulk_call(session, 'zfs.snapshot.delete', timeout, [options], '', specs)


def rollback_snapshot(session, args, flags):
    specs = [ns.normalized for ns in _snapshots(args, 'snapshot rollback')]
    options = copy_used_flags(flags, ('force', 'recursive', 'recursive_clones', 'recursive_rollback'))
    bulk_call(session, 'zfs.snapshot.rollback', SNAPSHOT_CALL_TIMEOUT, [options], '', specs)


def rename_snapshot(session, args, flags):
    source, dest = (classify(arg) for arg in args)
    if source.kind != Kind.SNAPSHOT:
        raise NamespecError(source.spec, f'"{source.normalized}" is not a snapshot', source.kind)

    if dest.kind == Kind.SNAPSHOT:
        if dest.dataset != source.dataset:
            raise NamespecError(
                dest.spec,
                'The destination snapshot does not share the same dataset as the source.\n'
                'Try leaving out the dataset name in the destination.',
                dest.kind,
            )
        new_name = dest.normalized
    else:
        new_name = f'{source.dataset}@{dest.normalized.removeprefix("@")}'

    api_call(session, 'zfs.snapshot.rename', source.normalized, new_name, timeout=DEFAULT_CALL_TIMEOUT)


def clone_snapshot(session, args, flags):
    source, dest = (classify(arg) for arg in args)
    if source.kind != Kind.SNAPSHOT:
        raise NamespecError(source.spec, f'"{source.normalized}" is not a snapshot', source.kind)
    if dest.kind not in (Kind.DATASET, Kind.POOL):
        raise NamespecError(dest.spec, f'"{dest.normalized}" is not a dataset', dest.kind)

    api_call(
        session, 'zfs.snapshot.clone', {'snapshot': source.normalized, 'dataset_dst': dest.normalized},
        timeout=DEFAULT_CALL_TIMEOUT,
    )


def list_snapshot(session, args, flags):
    fmt = resolve_format(flags, SNAPSHOT_LIST_SCHEMA)
    properties = enumerate_output_properties(flags)
    namespecs, type_tags = snapshot_list_types(args)

    params = QueryParams(
        value_order=build_value_order(flags.is_true('parsable')),
        get_all_props=flags.is_true('all'),
        get_user_props=flags.is_true('user_properties'),
        recurse=not args or flags.is_true('recursive'),
    )
    response = query(session, 'zfs.snapshot', [ns.spec for ns in namespecs], type_tags, properties, params)

    snapshots = response.records
    columns = select_columns(snapshots, REQUIRED_COLUMNS, properties, params.get_all_props)
    return render(fmt, 'snapshots', columns, snapshots)


SNAPSHOT_FAMILY = Family(
    'snapshot',
    'Edit or list snapshots on a remote or local machine',
    (
        Command(
            'clone', clone_snapshot, 'Clone a snapshot of a ZFS dataset into a new dataset', '<name>', nargs=2,
            description='Usage: snapshot clone <dataset>@<snapshot> <new dataset>',
        ),
        Command(
            'create', create_snapshot, 'Take a snapshot of a dataset, possibly recursive', '<dataset>@<snapshot>',
            flags=CREATE_FLAGS,
        ),
        Command(
            'delete', delete_snapshot, 'Delete a snapshot of a dataset, possibly recursive', '<dataset>@<snapshot>',
            aliases=('rm',), flags=DELETE_FLAGS,
        ),
        Command(
            'list', list_snapshot, 'List snapshots', '<dataset|snapshot>', nargs='*', aliases=('ls',),
            flags=LIST_FLAGS, schema=SNAPSHOT_LIST_SCHEMA,
        ),
        Command(
            'rename', rename_snapshot, 'Rename a ZFS snapshot', '<name>', nargs=2, aliases=('mv',),
            description='Usage: snapshot rename <dataset>@<old snapshot> <new snapshot>',
        ),
        Command(
            'rollback', rollback_snapshot, 'Rollback to a given snapshot', '<dataset>@<snapshot>',
            flags=ROLLBACK_FLAGS,
        ),
    ),
    aliases=('snap',),
)
