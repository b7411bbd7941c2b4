import enum
from dataclasses import dataclass

from .exceptions import NamespecError


class Kind(enum.StrEnum):
    POOL = 'pool'
    DATASET = 'dataset'
    SNAPSHOT = 'snapshot'
    SNAPSHOT_ONLY = 'snapshot_only'
    SHARE = 'share'
    ID = 'id'


DATASET_KINDS = frozenset({Kind.DATASET, Kind.POOL})


@dataclass(slots=True, frozen=True)
class Namespec:
    spec: str
    kind: Kind
    normalized: str

    @property
    def dataset(self):
        """Dataset part of a snapshot, the whole name for datasets and pools."""
        return self.normalized.partition('@')[0]

    @property
    def snapshot_name(self):
        return self.normalized.partition('@')[2]


def normalize(spec):
    spec = spec.strip()
    if len(spec) > 1 and not spec.startswith('/'):
        spec = spec.rstrip('/')
    return spec


def classify(spec):
    normalized = normalize(spec)
    if not normalized:
        raise NamespecError(spec, 'Empty object name')

    if normalized.startswith('/'):
        kind = Kind.SHARE
    elif normalized.isdigit():
        kind = Kind.ID
    elif '@' in normalized:
        dataset, _, name = normalized.partition('@')
        if not name:
            raise NamespecError(spec, f'Unrecognised namespec "{spec}": missing snapshot name after "@"')
        kind = Kind.SNAPSHOT if dataset else Kind.SNAPSHOT_ONLY
    elif '/' in normalized:
        kind = Kind.DATASET
    else:
        kind = Kind.POOL

    return Namespec(spec, kind, normalized)


def classify_all(specs, allowed, family):
    """
    Classify every spec and reject those whose kind is not in `allowed`.
    `family` is only used to word the error (e.g. "dataset create").
    """
    result = []
    for spec in specs:
        ns = classify(spec)
        if ns.kind not in allowed:
            raise NamespecError(
                spec, f'{family} only operates on {_describe(allowed)} ({ns.normalized} is a {ns.kind})', ns.kind,
            )
        result.append(ns)

    return result


def _describe(kinds):
    return ', '.join(sorted(f'{k}s' for k in kinds))


def _reject_mount_points(ns, family):
    if ns.kind in (Kind.ID, Kind.SHARE):
        raise NamespecError(ns.spec, f'querying {family} based on mount point is not yet supported', ns.kind)


def dataset_list_types(specs):
    """
    Returns the normalized specs together with the query type tag for each.
    """
    namespecs = [classify(spec) for spec in specs]
    tags = []
    for ns in namespecs:
        _reject_mount_points(ns, 'datasets')
        if ns.kind in (Kind.SNAPSHOT, Kind.SNAPSHOT_ONLY):
            raise NamespecError(ns.spec, 'querying datasets based on snapshot is not yet supported', ns.kind)
        tags.append('name' if ns.kind == Kind.DATASET else 'pool')

    return namespecs, tags


def snapshot_list_types(specs):
    namespecs = [classify(spec) for spec in specs]
    tags = []
    for ns in namespecs:
        _reject_mount_points(ns, 'snapshots')
        tags.append({
            Kind.SNAPSHOT: 'name',
            Kind.SNAPSHOT_ONLY: 'snapshot_name',
            Kind.DATASET: 'dataset',
            Kind.POOL: 'pool',
        }[ns.kind])

    return namespecs, tags
