import logging

from . import Command, Family
from ..api import DEFAULT_CALL_TIMEOUT, api_call
from ..bulk import bulk_call, smart_timeout
from ..exceptions import NamespecError, NotFoundError
from ..flags import Flag
from ..namespec import DATASET_KINDS, Kind, classify, classify_all, dataset_list_types
from ..properties import build_dataset_payload, copy_used_flags
from ..query import QueryParams, build_value_order, lookup_nfs_id_by_path, lowercase_enum_values, query
from ..render import enumerate_output_properties, render, resolve_format, select_columns
from ..schema import DATASET_CREATE_UPDATE_SCHEMA, DATASET_LIST_SCHEMA

logger = logging.getLogger(__name__)

DATASET_CALL_TIMEOUT = 10
DELETE_TIMEOUT = 20
MOUNT_PREFIX = '/mnt/'
REQUIRED_COLUMNS = ('name',)

CREATE_UPDATE_FLAGS = (
    Flag('comments', help='User defined comments'),
    Flag('managedby', default='truenas_ctl', help='Manager of this dataset, must not be empty'),
    Flag('recordsize'),
    Flag('sync', default='standard', help='Controls the behavior of synchronous requests'),
    Flag('snapdir', default='hidden', help='Controls whether the .zfs directory is disabled, hidden or visible'),
    Flag('compression', default='off', help='Controls the compression algorithm used for this dataset'),
    Flag('atime', default='inherit', help='Controls whether the access time for files is updated when they are read'),
    Flag('exec', default='inherit', help='Controls whether processes can be executed from within this file system'),
    Flag('acltype', default='inherit', help='Controls whether ACLs are enabled and if so what type of ACL to use'),
    Flag('aclmode', default='inherit', help='Controls how an ACL is modified during chmod(2)'),
    Flag('deduplication', default='inherit'),
    Flag('checksum', default='inherit'),
    Flag('readonly', default='inherit'),
    Flag('casesensitivity', default='inherit'),
    Flag('share-type', default='inherit'),
    Flag('quota', default='0'),
    Flag('quota-warning', int, 0, 'Percentage (1-100 or 0)'),
    Flag('quota-critical', int, 0, 'Percentage (1-100 or 0)'),
    Flag('refquota', default='0'),
    Flag('refquota-warning', int, 0, 'Percentage (1-100 or 0)'),
    Flag('refquota-critical', int, 0, 'Percentage (1-100 or 0)'),
    Flag('reservation', default='0'),
    Flag('refreservation', default='0'),
    Flag('special-small-block-size', default='0'),
    Flag('copies', int, 0),
    Flag('create-parents', bool, help='Creates all the non-existing parent datasets', short='p'),
    Flag('user-props', help='Sets the specified user properties, key=value,...', short='u'),
    Flag('option', help='Specify property=value,...', short='o'),
    Flag('allow-shrinking', bool, help='Permit shrinking a volume to a smaller size'),
    Flag('volsize', default='0', short='V',
         help='Creates a volume of the given size instead of a filesystem, should be a multiple of the block size'),
    Flag('volblocksize', default='512', help='Volume block size', short='b'),
    Flag('sparse', bool, help='Creates a sparse volume with no reservation', short='s'),
    Flag('force-size', bool),
    Flag('snapdev', default='hidden', help='Controls whether the volume snapshot devices are hidden or visible'),
)
UPDATE_ONLY_FLAGS = (
    Flag('create', bool, help="If a dataset doesn't exist, create it", short='c'),
)
DELETE_FLAGS = (
    Flag('recursive', bool, short='r', help='Also delete/destroy all children datasets'),
    Flag('force', bool, short='f', help='Force delete busy datasets'),
    Flag('no-smart-timeout', bool,
         help='Disable performing a recursive list on the dataset to determine a suitable deletion timeout'),
)
LIST_FLAGS = (
    Flag('recursive', bool, short='r', help='Retrieves properties for children'),
    Flag('user-properties', bool, short='u', help='Include user-properties'),
    Flag('json', bool, short='j', help='Equivalent to --format=json'),
    Flag('no-headers', bool, short='c', help='Equivalent to --format=compact. More easily parsed by scripts'),
    Flag('format', default='table', help='Output table format'),
    Flag('output', short='o', help='Output property list'),
    Flag('parsable', bool, short='p', help='Show raw values instead of the already parsed values'),
    Flag('all', bool, short='a', help='Output all properties'),
)
RENAME_FLAGS = (
    Flag('update-shares', bool, short='s', help='Will update any shares as part of rename'),
)


def create_dataset(session, args, flags):
    return create_or_update_dataset(session, args, flags, 'create')


def update_dataset(session, args, flags):
    return create_or_update_dataset(session, args, flags, 'update')


def create_or_update_dataset(session, args, flags, cmd_type):
    specs = [ns.normalized for ns in classify_all(args, {Kind.DATASET}, f'dataset {cmd_type}')]

    flag_create = flags.is_true('create')
    flags.remove('create')
    if flags.remove('allow_shrinking'):
        logger.debug('--allow-shrinking has no effect on the request')

    payload = build_dataset_payload(flags, DATASET_CREATE_UPDATE_SCHEMA).to_wire()

    if cmd_type == 'create':
        to_create, to_update = specs, []
    elif len(specs) > 1 or flag_create:
        params = QueryParams(value_order=build_value_order(True))
        response = query(session, 'pool.dataset', specs, ['name'] * len(specs), [], params)
        to_create, to_update = [], []
        for spec in specs:
            if spec in response:
                to_update.append(spec)
            elif flag_create:
                to_create.append(spec)
            else:
                raise NotFoundError(
                    f'Could not find dataset "{spec}".\n'
                    'Try passing -c or --create to create a dataset if it doesn\'t exist.'
                )
    else:
        to_create, to_update = [], specs

    if to_update:
        bulk_call(session, 'pool.dataset.update', DATASET_CALL_TIMEOUT, [payload], '', to_update)

    if to_create:
        payload['type'] = 'VOLUME' if 'volsize' in payload else 'FILESYSTEM'
        bulk_call(session, 'pool.dataset.create', DATASET_CALL_TIMEOUT, [payload], 'name', to_create)


def delete_dataset(session, args, flags):
    specs = [ns.normalized for ns in classify_all(args, DATASET_KINDS, 'dataset delete')]

    timeout = DELETE_TIMEOUT
    if flags.remove('no_smart_timeout') is None and flags.is_true('recursive'):
        params = QueryParams(value_order=build_value_order(True), recurse=True)
        response = query(session, 'pool.dataset', specs, ['name'] * len(specs), [], params)
        timeout = smart_timeout(len(response.results_map))
        logger.debug('Deleting %d dataset(s), timeout %ds', len(response.results_map), timeout)

    options = copy_used_flags(flags, ('recursive', 'force'))
    bulk_call(session, 'pool.dataset.delete', timeout, [options], '', specs)


def list_dataset(session, args, flags):
    fmt = resolve_format(flags, DATASET_LIST_SCHEMA)
    properties = enumerate_output_properties(flags)
    namespecs, type_tags = dataset_list_types(args)

    params = QueryParams(
        value_order=build_value_order(flags.is_true('parsable')),
        get_all_props=flags.is_true('all'),
        get_user_props=flags.is_true('user_properties'),
        recurse=not args or flags.is_true('recursive'),
    )
    response = query(session, 'pool.dataset', [ns.spec for ns in namespecs], type_tags, properties, params)

    datasets = lowercase_enum_values(response.records, DATASET_CREATE_UPDATE_SCHEMA)
    columns = select_columns(datasets, REQUIRED_COLUMNS, properties, params.get_all_props)
    return render(fmt, 'datasets', columns, datasets)


def promote_dataset(session, args, flags):
    specs = [ns.normalized for ns in classify_all(args, DATASET_KINDS, 'dataset promote')]
    bulk_call(session, 'pool.dataset.promote', DATASET_CALL_TIMEOUT, [], '', specs)


def rename_dataset(session, args, flags):
    source, dest = (classify(arg) for arg in args)
    if source.kind not in (Kind.DATASET, Kind.SNAPSHOT):
        raise_kind(source, 'dataset rename source', 'a dataset or snapshot')

    api_call(session, 'zfs.dataset.rename', source.normalized, {'new_name': dest.normalized},
             timeout=DEFAULT_CALL_TIMEOUT)

    # Snapshots have no shares of their own
    if not flags.is_true('update_shares') or source.kind == Kind.SNAPSHOT:
        return

    share_id = lookup_nfs_id_by_path(session, MOUNT_PREFIX + source.normalized)
    if share_id is None:
        return f'INFO: {source.normalized} did not appear to have a share'

    api_call(session, 'sharing.nfs.update', share_id, {'path': MOUNT_PREFIX + dest.normalized},
             timeout=DEFAULT_CALL_TIMEOUT)


def raise_kind(ns, family, expected):
    raise NamespecError(ns.spec, f'{family} must be {expected} ({ns.normalized} is a {ns.kind})', ns.kind)


DATASET_FAMILY = Family(
    'dataset',
    'Edit or list datasets/zvols and their shares on a remote or local machine',
    (
        Command(
            'create', create_dataset, 'Creates a dataset/zvol.', '<dataset>',
            flags=CREATE_UPDATE_FLAGS, schema=DATASET_CREATE_UPDATE_SCHEMA,
        ),
        Command(
            'update', update_dataset, 'Updates an existing dataset/zvol.', '<dataset>', aliases=('set',),
            flags=CREATE_UPDATE_FLAGS + UPDATE_ONLY_FLAGS, schema=DATASET_CREATE_UPDATE_SCHEMA,
        ),
        Command(
            'delete', delete_dataset, 'Deletes a dataset/zvol.', '<dataset>', aliases=('rm',), flags=DELETE_FLAGS,
        ),
        Command(
            'list', list_dataset, 'Prints a table of datasets/zvols, given an optional set of properties.',
            '<dataset>', nargs='*', aliases=('ls',), flags=LIST_FLAGS, schema=DATASET_LIST_SCHEMA,
        ),
        Command(
            'promote', promote_dataset, 'Promote a clone dataset to no longer depend on the origin snapshot.',
            '<dataset>',
        ),
        Command(
            'rename', rename_dataset, 'Rename a ZFS dataset', '<name>', nargs=2, aliases=('mv',),
            flags=RENAME_FLAGS,
            description='Renames the given dataset. The new target can be located anywhere in the ZFS hierarchy, '
                        'with the exception of snapshots. Snapshots can only be renamed within the parent file '
                        'system or volume.',
        ),
    ),
    aliases=('ds',),
)
