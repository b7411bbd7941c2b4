import csv
import io
import json
import shutil

from texttable import Texttable

from .exceptions import ValidationError
from .schema import DATASET_LIST_SCHEMA, OUTPUT_FORMATS

MISSING = '-'


def resolve_format(flags, schema=DATASET_LIST_SCHEMA):
    """
    Turn `--format`, `--json` and `--no-headers` into a single output format.
    The shortcut flags may not contradict each other or an explicit `--format`.
    """
    raw = flags.get('format', 'table')
    fmt = schema.kind('format').match(raw)
    if fmt is None:
        raise ValidationError('format', f'Unrecognised format "{raw}". Must be one of: {", ".join(OUTPUT_FORMATS)}')

    explicit = 'format' in flags.used_flags
    shortcuts = []
    if flags.is_true('json'):
        shortcuts.append(('--json', 'json'))
    if flags.is_true('no_headers'):
        shortcuts.append(('--no-headers', 'compact'))

    if len(shortcuts) > 1:
        raise ValidationError('format', '--json and --no-headers are mutually exclusive')
    if shortcuts:
        flag, shortcut_fmt = shortcuts[0]
        if explicit and fmt != shortcut_fmt:
            raise ValidationError('format', f'{flag} conflicts with --format={fmt}')
        fmt = shortcut_fmt

    return fmt


def enumerate_output_properties(flags):
    output = flags.get('output', '')
    return [prop.strip() for prop in output.split(',') if prop.strip()]


def select_columns(records, required, properties, all_props):
    if all_props:
        columns = list(required)
        seen = set(columns)
        for record in records:
            for key in record:
                if key not in seen:
                    seen.add(key)
                    columns.append(key)
        return columns

    if properties:
        return list(properties)

    return list(required)


def _cell(value, missing=MISSING):
    if value is None:
        return missing
    if isinstance(value, bool):
        return 'true' if value else 'false'
    if isinstance(value, (list, tuple)):
        return ','.join(_cell(v, missing) for v in value)
    if isinstance(value, dict):
        return json.dumps(value, default=str)
    return str(value)


def _rows(columns, records, missing=MISSING):
    return [[_cell(record.get(column), missing) for column in columns] for record in records]


def _texttable(columns, records, headers):
    width = shutil.get_terminal_size().columns if headers else 0
    table = Texttable(max_width=width)
    table.set_cols_dtype(['t'] * len(columns))
    table.set_cols_align(['l'] * len(columns))
    if headers:
        table.set_deco(Texttable.HEADER)
        table.header(columns)
    else:
        table.set_deco(0)
    table.add_rows(_rows(columns, records), header=False)
    return table.draw() or ''


def _csv(columns, records):
    out = io.StringIO()
    writer = csv.writer(out, lineterminator='\n')
    writer.writerow(columns)
    writer.writerows(_rows(columns, records, missing=''))
    return out.getvalue().rstrip('\n')


def _json(target_label, columns, records):
    return json.dumps(
        {target_label: [{column: record.get(column) for column in columns} for record in records]},
        indent=4, default=str,
    )


def render(fmt, target_label, columns, records):
    if not columns:
        raise ValidationError('output', 'No columns to display')

    if fmt == 'table':
        return _texttable(columns, records, headers=True)
    if fmt == 'compact':
        return _texttable(columns, records, headers=False)
    if fmt == 'csv':
        return _csv(columns, records)
    if fmt == 'json':
        return _json(target_label, columns, records)

    raise ValidationError('format', f'Unrecognised format "{fmt}". Must be one of: {", ".join(OUTPUT_FORMATS)}')
