import logging
from dataclasses import dataclass, field

from .api import api_call
from .namespec import normalize

logger = logging.getLogger(__name__)

QUERY_TIMEOUT = 30
PROPERTY_VALUE_KEYS = ('value', 'rawvalue', 'parsed')
FLATTENED_KEYS = ('properties', 'user_properties')
SKIPPED_KEYS = ('children',)


def build_value_order(parsable):
    """
    Order in which the keys of a `{value, rawvalue, parsed}` property are tried
    when reducing it to a single scalar.
    """
    if parsable:
        return ('parsed', 'rawvalue', 'value')
    return ('value', 'parsed', 'rawvalue')


@dataclass(slots=True, frozen=True)
class QueryParams:
    value_order: tuple[str, ...] = build_value_order(False)
    get_all_props: bool = False
    get_user_props: bool = False
    recurse: bool = False


@dataclass(slots=True)
class QueryResponse:
    results_map: dict = field(default_factory=dict)

    @property
    def records(self):
        return list(self.results_map.values())

    def __contains__(self, spec):
        return spec in self.results_map


def _filter_value(tag, value):
    if tag == 'snapshot_name':
        return value.removeprefix('@')
    return value


def build_filters(targets, type_tags, recurse):
    """
    Middleware query-filters selecting `targets`, OR-ed together. With `recurse`
    every dataset-like target also selects its descendants.
    """
    branches = []
    for target, tag in zip(targets, type_tags):
        value = _filter_value(tag, target)
        branches.append([[tag, '=', value]])
        if not recurse:
            continue

        if tag == 'name' and '@' in value:
            dataset, _, snapshot = value.partition('@')
            branches.append([['dataset', '^', f'{dataset}/'], ['snapshot_name', '=', snapshot]])
        elif tag in ('name', 'dataset'):
            branches.append([[tag, '^', f'{value}/']])

    if not branches:
        return []
    if len(branches) == 1:
        return branches[0]
    return [['OR', branches]]


def build_query_options(properties, params):
    extra = {
        'flat': True,
        'retrieve_children': params.recurse,
        'user_properties': params.get_user_props,
    }
    if properties and not params.get_all_props:
        extra['properties'] = list(properties)

    return {'extra': extra}


def reduce_value(value, value_order):
    if isinstance(value, dict) and any(k in value for k in PROPERTY_VALUE_KEYS):
        for key in value_order:
            if value.get(key) is not None:
                return value[key]
        return None

    return value


def flatten_record(record, value_order):
    flat = {}
    for key, value in record.items():
        if key in SKIPPED_KEYS:
            continue
        if key in FLATTENED_KEYS and isinstance(value, dict):
            for prop, prop_value in value.items():
                flat.setdefault(prop, reduce_value(prop_value, value_order))
            continue

        flat[key] = reduce_value(value, value_order)

    return flat


def query(session, object_type, targets, type_tags, properties, params):
    """
    Query `<object_type>.query` for `targets` and return the flattened records
    keyed by the caller's own input string when a record names it exactly, or by
    the record name otherwise (descendants, snapshot name matches).

    `targets` are the strings as the user typed them and `type_tags` their query tags
    (see `namespec.dataset_list_types`).
    """
    properties = list(properties or [])
    recurse = params.recurse or not targets
    get_user_props = params.get_user_props or any(':' in prop for prop in properties)
    params = QueryParams(params.value_order, params.get_all_props, get_user_props, recurse)

    normalized = [normalize(t) for t in targets]

    filters = build_filters(normalized, type_tags, recurse)
    options = build_query_options(properties, params)
    result = api_call(session, f'{object_type}.query', filters, options, timeout=QUERY_TIMEOUT)

    exact = dict(zip(normalized, targets))
    response = QueryResponse()
    for record in result or []:
        flat = flatten_record(record, params.value_order)
        name = flat.get('name')
        key = exact.get(name, name)
        if key in response.results_map:
            logger.debug('%s: duplicate record in %s response', key, object_type)
        response.results_map[key] = flat

    logger.debug('%s.query matched %d record(s)', object_type, len(response.results_map))
    return response


def lookup_nfs_id_by_path(session, path):
    shares = api_call(session, 'sharing.nfs.query', [['path', '=', path]], {'select': ['id', 'path']})
    if not shares:
        return None
    return shares[0]['id']


def lowercase_enum_values(records, schema):
    """
    The middleware reports enumerated values upper-cased (e.g. "LZ4"); bring
    them back to the spelling used on the command line.
    """
    enums = schema.enums()
    for record in records:
        for name, kind in enums.items():
            value = record.get(name)
            if isinstance(value, str):
                record[name] = kind.match(value) or value.lower()

    return records
