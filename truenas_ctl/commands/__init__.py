from dataclasses import dataclass

from ..flags import add_flags


@dataclass(slots=True, frozen=True)
class Command:
    """
    Declarative description of a `<family> <verb>` command.

    `handler(session, args, flags)` receives the positional arguments and the
    materialized `FlagSet`; whatever string it returns is printed.
    """
    name: str
    handler: object
    help: str
    metavar: str
    nargs: object = '+'
    aliases: tuple = ()
    flags: tuple = ()
    schema: object = None
    description: str | None = None


@dataclass(slots=True, frozen=True)
class Family:
    name: str
    help: str
    commands: tuple
    aliases: tuple = ()


def register(subparsers, family):
    parser = subparsers.add_parser(family.name, aliases=list(family.aliases), help=family.help)
    verbs = parser.add_subparsers(dest='verb', metavar='<command>')
    verbs.required = True
    for command in family.commands:
        cmd_parser = verbs.add_parser(
            command.name, aliases=list(command.aliases), help=command.help,
            description=command.description or command.help,
        )
        cmd_parser.add_argument('args', nargs=command.nargs, metavar=command.metavar)
        add_flags(cmd_parser, command.flags, command.schema)
        cmd_parser.set_defaults(_command=command)

    return parser


def families():
    from .dataset import DATASET_FAMILY
    from .snapshot import SNAPSHOT_FAMILY

    return DATASET_FAMILY, SNAPSHOT_FAMILY
