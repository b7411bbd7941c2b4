import types
from dataclasses import dataclass


@dataclass(slots=True, frozen=True)
class Enum:
    choices: tuple[str, ...]

    def match(self, value):
        """Case-insensitive lookup returning the canonical spelling or None."""
        folded = str(value).casefold()
        for choice in self.choices:
            if choice.casefold() == folded:
                return choice
        return None


@dataclass(slots=True, frozen=True)
class Size:
    pass


@dataclass(slots=True, frozen=True)
class Percentage:
    pass


@dataclass(slots=True, frozen=True)
class Integer:
    pass


@dataclass(slots=True, frozen=True)
class Boolean:
    pass


@dataclass(slots=True, frozen=True)
class Free:
    pass


PropertyKind = Enum | Size | Percentage | Integer | Boolean | Free
FREE = Free()
SIZE = Size()
PERCENTAGE = Percentage()
INTEGER = Integer()
BOOLEAN = Boolean()


class PropertySchema:
    """
    Read-only mapping of property name to `PropertyKind`. Names not present in
    the schema are free-form.
    """

    __slots__ = ('_kinds',)

    def __init__(self, kinds):
        self._kinds = types.MappingProxyType(dict(kinds))

    def kind(self, name):
        return self._kinds.get(name, FREE)

    def enums(self):
        return {name: kind for name, kind in self._kinds.items() if isinstance(kind, Enum)}

    def __contains__(self, name):
        return name in self._kinds

    def __iter__(self):
        return iter(self._kinds)

    def __len__(self):
        return len(self._kinds)


COMPRESSION_CHOICES = (
    'on', 'off', 'gzip',
    'gzip-1', 'gzip-9',
    'lz4', 'lzjb', 'zle', 'zstd',
    *(f'zstd-{i}' for i in range(1, 20)),
    'zstd-fast',
    *(f'zstd-fast-{i}' for i in range(1, 10)),
    *(f'zstd-fast-{i}' for i in range(10, 100, 10)),
    'zstd-fast-100', 'zstd-fast-500', 'zstd-fast-1000',
)
OUTPUT_FORMATS = ('csv', 'json', 'table', 'compact')

SIZE_PROPERTIES = ('quota', 'refquota', 'reservation', 'refreservation', 'volsize', 'special_small_block_size')
PERCENTAGE_PROPERTIES = ('quota_warning', 'quota_critical', 'refquota_warning', 'refquota_critical')

DATASET_CREATE_UPDATE_SCHEMA = PropertySchema({
    'sync': Enum(('standard', 'always', 'disabled')),
    'snapdir': Enum(('disabled', 'hidden', 'visible')),
    'compression': Enum(COMPRESSION_CHOICES),
    'atime': Enum(('inherit', 'on', 'off')),
    'exec': Enum(('inherit', 'on', 'off')),
    'acltype': Enum(('inherit', 'posix', 'nfsv4', 'off')),
    'aclmode': Enum(('inherit', 'passthrough', 'restricted', 'discard')),
    'deduplication': Enum(('inherit', 'on', 'verify', 'off')),
    'checksum': Enum((
        'inherit', 'on', 'off', 'fletcher2', 'fletcher4', 'sha256', 'sha512', 'skein', 'edonr', 'blake3',
    )),
    'readonly': Enum(('inherit', 'on', 'off')),
    'casesensitivity': Enum(('inherit', 'sensitive', 'insensitive')),
    'share_type': Enum(('inherit', 'generic', 'multiprotocol', 'nfs', 'smb', 'apps')),
    'volblocksize': Enum(('512', '1K', '2K', '4K', '8K', '16K', '32K', '64K', '128K')),
    'snapdev': Enum(('hidden', 'visible')),
    'type': Enum(('volume', 'filesystem')),
    **{name: SIZE for name in SIZE_PROPERTIES},
    **{name: PERCENTAGE for name in PERCENTAGE_PROPERTIES},
    'copies': INTEGER,
    'sparse': BOOLEAN,
    'force_size': BOOLEAN,
    'create_ancestors': BOOLEAN,
})

DATASET_LIST_SCHEMA = PropertySchema({
    'format': Enum(OUTPUT_FORMATS),
})

SNAPSHOT_LIST_SCHEMA = PropertySchema({
    'format': Enum(OUTPUT_FORMATS),
})
