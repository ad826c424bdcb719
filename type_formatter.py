"""
Type Formatter
--------------
Turns the raw sys.columns / sys.parameters attributes of a column or
parameter into the type signature shown in the documentation, e.g.
``[nvarchar](50) NOT NULL`` or ``[int] IDENTITY(1, 1) NOT NULL DEFAULT ((0))``.
"""
from typing import Any, Callable, Dict, Optional

# max_length of -1 marks a (MAX) column
MAX_LENGTH_SENTINEL = -1

# Types whose sample values are never written literally
REDACTED_TYPES = frozenset([
    'binary',
    'varbinary',
    'image',
    'timestamp',
    'rowversion',
    'geography',
    'geometry',
    'hierarchyid',
    'xml',
])

RETURN_VALUE_LABEL = 'RETURNS'


def _length(divisor: int) -> Callable[[Dict[str, Any]], str]:
    """Qualifier for sized types; divisor is the bytes per character"""
    def qualify(column: Dict[str, Any]) -> str:
        max_length = column.get('max_length')
        if max_length == MAX_LENGTH_SENTINEL:
            return '(MAX)'
        if max_length is None:
            return ''
        return f'({max_length // divisor})'
    return qualify


def _precision_scale(column: Dict[str, Any]) -> str:
    return f"({column.get('precision')}, {column.get('scale')})"


TYPE_QUALIFIERS: Dict[str, Callable[[Dict[str, Any]], str]] = {
    'binary': _length(1),
    'char': _length(1),
    'datetime2': _length(1),
    'datetimeoffset': _length(1),
    'time': _length(1),
    'varbinary': _length(1),
    'varchar': _length(1),
    # nchar/nvarchar lengths are stored in bytes (UTF-16)
    'nchar': _length(2),
    'nvarchar': _length(2),
    'decimal': _precision_scale,
    'numeric': _precision_scale,
}


def format_base_type(type_name: str, column: Dict[str, Any]) -> str:
    """Format just the type and its length/precision qualifier"""
    qualifier = TYPE_QUALIFIERS.get(type_name)
    if qualifier is None:
        return f'[{type_name}]'
    return f'[{type_name}]{qualifier(column)}'


def format_type(column: Dict[str, Any]) -> str:
    """
    Build the full type signature for a column or parameter row

    Args:
        column: catalog row with type_name, max_length, precision, scale,
            is_nullable and optionally is_identity, seed_value,
            increment_value and default_definition

    Returns:
        Type signature string
    """
    type_def = format_base_type(column['type_name'], column)

    if column.get('is_identity'):
        type_def += f" IDENTITY({column.get('seed_value')}, {column.get('increment_value')})"

    type_def += ' NULL' if column.get('is_nullable') else ' NOT NULL'

    default_definition: Optional[str] = column.get('default_definition')
    if default_definition:
        type_def += f' DEFAULT {default_definition}'

    return type_def


def format_parameter_name(name: Optional[str]) -> str:
    """The unnamed parameter of a function is its return value"""
    if not name:
        return RETURN_VALUE_LABEL
    return name


def is_redacted(type_name: Optional[str]) -> bool:
    return (type_name or '').lower() in REDACTED_TYPES


def is_redacted_column(column: Dict[str, Any]) -> bool:
    """Redact by declared type, underlying system type, or CLR user type"""
    return bool(
        is_redacted(column.get('type_name'))
        or is_redacted(column.get('system_type_name'))
        or column.get('is_assembly_type')
    )
