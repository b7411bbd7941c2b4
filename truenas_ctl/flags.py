import argparse
from dataclasses import dataclass, field

from .schema import Enum


@dataclass(slots=True, frozen=True)
class Flag:
    name: str
    value_type: type = str
    default: object = None
    help: str = ''
    short: str | None = None

    @property
    def dest(self):
        return canonical(self.name)

    def add_to(self, parser, schema=None):
        names = [f'--{self.name}']
        if self.short:
            names.insert(0, f'-{self.short}')

        help_ = self.help
        kind = schema.kind(self.dest) if schema is not None else None
        if isinstance(kind, Enum):
            help_ = f'{help_} ({"|".join(kind.choices)})'.strip()
        if self.default not in (None, '', False):
            help_ = f'{help_} [default: {self.default}]'.strip()

        # Defaults are filled in by `FlagSet` so that explicitly passed flags
        # can be told apart from defaulted ones.
        kwargs = {'dest': self.dest, 'default': argparse.SUPPRESS, 'help': help_}
        if self.value_type is bool:
            kwargs['action'] = 'store_true'
        else:
            kwargs['type'] = self.value_type
            kwargs['metavar'] = self.name.upper().replace('-', '_')

        parser.add_argument(*names, **kwargs)


def canonical(name):
    return name.replace('-', '_')


def add_flags(parser, flags, schema=None):
    for flag in flags:
        flag.add_to(parser, schema)
    parser.set_defaults(_flags=tuple(flags))


@dataclass(slots=True)
class FlagSet:
    all_flags: dict = field(default_factory=dict)
    used_flags: dict = field(default_factory=dict)

    @classmethod
    def from_namespace(cls, namespace, flags=None):
        if flags is None:
            flags = getattr(namespace, '_flags', ())

        values = vars(namespace)
        all_flags = {}
        used_flags = {}
        for flag in flags:
            if flag.dest in values:
                all_flags[flag.dest] = used_flags[flag.dest] = values[flag.dest]
            else:
                all_flags[flag.dest] = False if flag.value_type is bool and flag.default is None else flag.default

        return cls(all_flags, used_flags)

    def is_true(self, name):
        return self.all_flags.get(name) is True

    def get(self, name, default=None):
        value = self.all_flags.get(name)
        return default if value is None else value

    def remove(self, name):
        self.all_flags.pop(name, None)
        return self.used_flags.pop(name, None)
