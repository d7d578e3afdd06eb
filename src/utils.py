"""
Utility functions for type mapping, alias handling and exporting view definitions
"""
import re
from typing import Dict, Optional, Union
import pandas as pd
import logging

from view_model import (
    AttributeType, CaseMode, InvalidParameterError, SourceKind, TypeMode, ViewDefinition
)

logger = logging.getLogger(__name__)


# Cast type written after '::' for each attribute type, per type policy
TYPE_MAPPINGS: Dict[TypeMode, Dict[AttributeType, str]] = {
    TypeMode.MATCH_TYPES: {
        AttributeType.ARRAY: 'ARRAY',
        AttributeType.BOOLEAN: 'BOOLEAN',
        AttributeType.NUMBER: 'FLOAT',
        AttributeType.STRING: 'STRING',
    },
    TypeMode.STRING_TYPES: {
        AttributeType.ARRAY: 'ARRAY',
        AttributeType.BOOLEAN: 'STRING',
        AttributeType.NUMBER: 'STRING',
        AttributeType.STRING: 'STRING',
    },
}

_ARRAY_INDEX_PATTERN = re.compile(r'\[[^\]]*\]')
_NON_ALIAS_CHARS = re.compile(r'[^a-zA-Z0-9]')
_IDENTIFIER_PATTERN = re.compile(r'^[A-Za-z_][\w$]*$')


def get_snowflake_type(attribute_type: AttributeType, type_mode: TypeMode) -> str:
    """Map an attribute type to the Snowflake cast type for the given policy"""
    return TYPE_MAPPINGS[type_mode][attribute_type]


def sanitize_alias(raw_path: str) -> str:
    """
    Build a column alias from a raw FLATTEN path: array subscripts are dropped
    and every other non-alphanumeric character becomes '_'.

    'contact.phone[0]' -> 'contact_phone', '[0].type' -> '_type'
    """
    return _NON_ALIAS_CHARS.sub('_', _ARRAY_INDEX_PATTERN.sub('', raw_path or ''))


def quote_alias(alias: str, case_mode: CaseMode) -> str:
    """Wrap an alias in double quotes when the source case must be kept"""
    if case_mode == CaseMode.MATCH_CASE:
        return '"' + alias.replace('"', '""') + '"'
    return alias


def parse_case_mode(value: Union[str, CaseMode, None]) -> CaseMode:
    """
    Accept a CaseMode or the procedure-style strings
    ('match col case', 'uppercase cols'); only the first letter matters.
    """
    if isinstance(value, CaseMode):
        return value
    text = (value or '').strip().upper()
    if text.startswith('M'):
        return CaseMode.MATCH_CASE
    if text.startswith('U'):
        return CaseMode.UPPERCASE
    raise InvalidParameterError(
        f"Unrecognised column case '{value}'. Use 'match col case' or 'uppercase cols'."
    )


def parse_type_mode(value: Union[str, TypeMode, None]) -> TypeMode:
    """
    Accept a TypeMode or the procedure-style strings
    ('match datatypes', 'string datatypes'); only the first letter matters.
    """
    if isinstance(value, TypeMode):
        return value
    text = (value or '').strip().upper()
    if text.startswith('S'):
        return TypeMode.STRING_TYPES
    if text.startswith('M'):
        return TypeMode.MATCH_TYPES
    raise InvalidParameterError(
        f"Unrecognised column type '{value}'. Use 'match datatypes' or 'string datatypes'."
    )


def validate_identifier(name: Optional[str], label: str) -> str:
    """Reject blank or unsafe database/schema/table identifiers"""
    cleaned = (name or '').strip()
    if not cleaned:
        raise InvalidParameterError(f"{label} is required")
    if not _IDENTIFIER_PATTERN.match(cleaned):
        raise InvalidParameterError(f"Invalid {label.lower()}: {name}")
    return cleaned


def fragments_to_dataframe(view: ViewDefinition) -> pd.DataFrame:
    """Export the projection list of a view definition for display or download"""
    source_names = {
        source.id: (source.origin_expression if source.kind == SourceKind.BASE else source.alias)
        for source in view.sources
    }
    rows = [
        {
            'Alias': fragment.alias,
            'Expression': fragment.expression,
            'Source': source_names.get(fragment.source_id, str(fragment.source_id)),
        }
        for fragment in view.fragments
    ]
    return pd.DataFrame(rows, columns=['Alias', 'Expression', 'Source'])
