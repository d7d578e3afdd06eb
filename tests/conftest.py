"""Shared fakes for the catalog, discovery oracle and statement executor."""

from typing import Callable, Dict, List, Optional, Sequence, Tuple

import pandas as pd
import pytest

from snowflake_connector import StatementResult
from view_model import ArrayElement, AttributePath, AttributeType, LeafPath


def leaf(path: str, attribute_type: AttributeType, alias: str) -> LeafPath:
    return LeafPath(AttributePath.parse(path), attribute_type, alias)


def simple(attribute_type: AttributeType, index: int) -> ArrayElement:
    return ArrayElement(AttributePath(()), attribute_type, '', index)


def member(path: str, attribute_type: AttributeType, alias: str) -> ArrayElement:
    return ArrayElement(AttributePath.parse(path), attribute_type, alias)


def fragment_set(view) -> set:
    return {(f.alias, f.expression, f.source_id) for f in view.fragments}


class FakeCatalog:
    def __init__(self, columns: Sequence[Tuple[str, str]]):
        self.columns = list(columns)
        self.calls: List[Tuple[str, str, str]] = []

    def list_columns(self, database: str, schema: str, table: str) -> List[Tuple[str, str]]:
        self.calls.append((database, schema, table))
        return list(self.columns)


class FakeOracle:
    """Serves canned discovery results; reverse=True flips enumeration order."""

    def __init__(self, leaves: Dict[str, List[LeafPath]],
                 arrays: Optional[Dict[Tuple[str, str], List[ArrayElement]]] = None,
                 reverse: bool = False):
        self.leaves = leaves
        self.arrays = arrays or {}
        self.reverse = reverse
        self.array_calls: List[Tuple[str, str]] = []

    def _order(self, items):
        items = list(items)
        return items[::-1] if self.reverse else items

    def discover_leaf_paths(self, column: str) -> List[LeafPath]:
        return self._order(self.leaves.get(column, []))

    def discover_array_elements(self, column: str, array_path: AttributePath) -> List[ArrayElement]:
        self.array_calls.append((column, str(array_path)))
        return self._order(self.arrays.get((column, str(array_path)), []))


class FakeExecutor:
    """Records statements; answers with a responder or a single-row DDL result."""

    def __init__(self, responder: Optional[Callable[[str], pd.DataFrame]] = None,
                 error: Optional[Exception] = None):
        self.responder = responder
        self.error = error
        self.statements: List[str] = []

    def run(self, sql: str) -> StatementResult:
        self.statements.append(sql)
        if self.error is not None:
            raise self.error
        if self.responder is not None:
            return StatementResult(self.responder(sql))
        return StatementResult(pd.DataFrame([{'status': 'View successfully created.'}]))


@pytest.fixture
def contacts_catalog() -> FakeCatalog:
    return FakeCatalog([('ID', 'NUMBER'), ('json_data', 'VARIANT'), ('LOADED_AT', 'TIMESTAMP_NTZ')])


@pytest.fixture
def contacts_oracle() -> FakeOracle:
    return FakeOracle(
        leaves={
            'json_data': [
                leaf('name.first', AttributeType.STRING, 'name_first'),
                leaf('name.last', AttributeType.STRING, 'name_last'),
                leaf('code.rgb', AttributeType.ARRAY, 'code_rgb'),
                leaf('contact.phone', AttributeType.ARRAY, 'contact_phone'),
            ]
        },
        arrays={
            ('json_data', 'code.rgb'): [
                simple(AttributeType.NUMBER, 0),
                simple(AttributeType.NUMBER, 1),
                simple(AttributeType.NUMBER, 2),
            ],
            ('json_data', 'contact.phone'): [
                simple(AttributeType.STRING, 0),
                member('.type', AttributeType.STRING, '_type'),
                member('.number', AttributeType.STRING, '_number'),
                simple(AttributeType.STRING, 1),
            ],
        },
    )
