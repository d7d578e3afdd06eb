"""Tests for type policy mapping, alias helpers and export."""

import pytest

from conftest import leaf, member
from sql_generator import ProjectionOptions, assemble_view, resolve_array_expansion
from utils import (
    fragments_to_dataframe, get_snowflake_type, parse_case_mode, parse_type_mode, quote_alias,
    sanitize_alias, validate_identifier
)
from view_model import AttributeType, CaseMode, InvalidParameterError, TypeMode, ViewBuildContext


@pytest.mark.parametrize("attribute_type, expected", [
    (AttributeType.ARRAY, 'ARRAY'),
    (AttributeType.BOOLEAN, 'BOOLEAN'),
    (AttributeType.NUMBER, 'FLOAT'),
    (AttributeType.STRING, 'STRING'),
])
def test_match_types_mapping(attribute_type, expected):
    assert get_snowflake_type(attribute_type, TypeMode.MATCH_TYPES) == expected


def test_string_types_keeps_only_arrays():
    mapped = {t: get_snowflake_type(t, TypeMode.STRING_TYPES) for t in AttributeType}
    assert mapped == {
        AttributeType.ARRAY: 'ARRAY',
        AttributeType.BOOLEAN: 'STRING',
        AttributeType.NUMBER: 'STRING',
        AttributeType.STRING: 'STRING',
    }


@pytest.mark.parametrize("raw, expected", [
    ('name.first', 'name_first'),
    ('contact.phone[0]', 'contact_phone'),
    ('[0].type', '_type'),
    ('[3]', ''),
    ('geo.lat-long', 'geo_lat_long'),
])
def test_sanitize_alias(raw, expected):
    assert sanitize_alias(raw) == expected


def test_quote_alias():
    assert quote_alias('json_data_City', CaseMode.MATCH_CASE) == '"json_data_City"'
    assert quote_alias('json_data_City', CaseMode.UPPERCASE) == 'json_data_City'


@pytest.mark.parametrize("value, expected", [
    ('match col case', CaseMode.MATCH_CASE),
    ('Match', CaseMode.MATCH_CASE),
    ('uppercase cols', CaseMode.UPPERCASE),
    (CaseMode.UPPERCASE, CaseMode.UPPERCASE),
])
def test_parse_case_mode(value, expected):
    assert parse_case_mode(value) == expected


@pytest.mark.parametrize("value, expected", [
    ('string datatypes', TypeMode.STRING_TYPES),
    ('match datatypes', TypeMode.MATCH_TYPES),
    (TypeMode.STRING_TYPES, TypeMode.STRING_TYPES),
])
def test_parse_type_mode(value, expected):
    assert parse_type_mode(value) == expected


@pytest.mark.parametrize("value", ['lower', '', None])
def test_parse_case_mode_rejects_unknown(value):
    with pytest.raises(InvalidParameterError):
        parse_case_mode(value)


def test_validate_identifier():
    assert validate_identifier(' EDW_DEV ', 'Database') == 'EDW_DEV'
    with pytest.raises(InvalidParameterError, match="Table is required"):
        validate_identifier('  ', 'Table')
    with pytest.raises(InvalidParameterError):
        validate_identifier("T'; DROP TABLE X", 'Table')


def test_fragments_to_dataframe():
    context = ViewBuildContext.start('DB.S.T')
    context = resolve_array_expansion(
        context, 'j', leaf('items', AttributeType.ARRAY, 'items'),
        [member('.sku', AttributeType.STRING, '_sku')],
        ProjectionOptions(CaseMode.UPPERCASE, TypeMode.MATCH_TYPES),
    )
    df = fragments_to_dataframe(assemble_view(context, 'DB.S.T_VW'))

    assert list(df.columns) == ['Alias', 'Expression', 'Source']
    assert df.to_dict('records') == [
        {'Alias': 'j_items_sku', 'Expression': 'a1.value:"sku"::STRING', 'Source': 'a1'}
    ]
