"""
JSON structure analysis over sample documents

Offline stand-ins for the Snowflake catalog and discovery oracle: paths, types
and aliases are derived exactly as LATERAL FLATTEN would report them, so a view
can be previewed from a handful of exported rows without a connection.
"""
import json
from typing import Any, Dict, Iterator, List, Optional, Sequence, Tuple
import logging

from utils import sanitize_alias
from view_model import ArrayElement, AttributePath, AttributeType, InvalidParameterError, LeafPath

logger = logging.getLogger(__name__)


def snowflake_typeof(value: Any) -> str:
    """Name returned by Snowflake's TYPEOF() for a parsed JSON value"""
    if value is None:
        return 'NULL_VALUE'
    if isinstance(value, bool):
        return 'BOOLEAN'
    if isinstance(value, int):
        return 'INTEGER'
    if isinstance(value, float):
        return 'DOUBLE'
    if isinstance(value, str):
        return 'VARCHAR'
    if isinstance(value, list):
        return 'ARRAY'
    if isinstance(value, dict):
        return 'OBJECT'
    return 'VARCHAR'


def parse_document(value: Any) -> Any:
    """Parse JSON text the way it would be stored in a VARIANT; other values pass through"""
    if isinstance(value, str):
        try:
            return json.loads(value)
        except json.JSONDecodeError:
            return value
    return value


def _join(prefix: str, key: str) -> str:
    return f"{prefix}.{key}" if prefix else key


def _walk_members(obj: Dict[str, Any], prefix: str) -> Iterator[Tuple[str, Any]]:
    """Yield (raw path, value) for every non-object member, without descending into arrays"""
    for key, value in obj.items():
        path = _join(prefix, str(key))
        if isinstance(value, dict):
            yield from _walk_members(value, path)
        else:
            yield path, value


def _resolve(document: Any, path: AttributePath) -> Any:
    current = document
    for segment in path.segments:
        if not isinstance(current, dict) or segment not in current:
            return None
        current = current[segment]
    return current


class SampleDocumentOracle:
    """Path discovery over in-memory rows: {column name: VARIANT value}"""

    def __init__(self, rows: Sequence[Dict[str, Any]]):
        self.rows = list(rows)

    def _documents(self, column: str) -> Iterator[Any]:
        for row in self.rows:
            if row.get(column) is not None:
                yield parse_document(row[column])

    def discover_leaf_paths(self, column: str) -> List[LeafPath]:
        leaves = []
        seen = set()

        for document in self._documents(column):
            if not isinstance(document, dict):
                # Root scalars and root arrays have no named attribute
                continue
            for raw_path, value in _walk_members(document, ""):
                leaf = LeafPath(
                    AttributePath.parse(raw_path),
                    AttributeType.parse(snowflake_typeof(value)),
                    sanitize_alias(raw_path),
                )
                if leaf not in seen:
                    seen.add(leaf)
                    leaves.append(leaf)

        logger.debug(f"{column}: discovered {len(leaves)} leaf path(s) in {len(self.rows)} sample row(s)")
        return leaves

    def discover_array_elements(self, column: str, array_path: AttributePath) -> List[ArrayElement]:
        elements = []
        seen = set()

        def add(element: ArrayElement):
            if element not in seen:
                seen.add(element)
                elements.append(element)

        for document in self._documents(column):
            array = _resolve(document, array_path)
            if not isinstance(array, list):
                continue

            for index, item in enumerate(array):
                add(ArrayElement(AttributePath(()), AttributeType.parse(snowflake_typeof(item)), '', index))
                if not isinstance(item, dict):
                    continue
                for raw_path, value in _walk_members(item, ""):
                    relative = f".{raw_path}"
                    add(ArrayElement(
                        AttributePath.parse(relative),
                        AttributeType.parse(snowflake_typeof(value)),
                        sanitize_alias(relative),
                    ))

        logger.debug(f"{column}:{array_path}: discovered {len(elements)} array element(s)")
        return elements


def infer_declared_type(values: Sequence[Any]) -> str:
    """Best-effort Snowflake column type for a column of sample values"""
    present = [v for v in values if v is not None]
    if not present:
        return 'VARCHAR'
    if any(isinstance(parse_document(v), (dict, list)) for v in present):
        return 'VARIANT'
    if all(isinstance(v, bool) for v in present):
        return 'BOOLEAN'
    if all(isinstance(v, (int, float)) and not isinstance(v, bool) for v in present):
        return 'NUMBER'
    return 'TEXT'


class SampleCatalog:
    """Column listing for sample rows; declared types are given or inferred"""

    def __init__(self, rows: Sequence[Dict[str, Any]], declared_types: Optional[Dict[str, str]] = None):
        self.rows = list(rows)
        self.declared_types = dict(declared_types or {})

    def list_columns(self, database: str, schema: str, table: str) -> List[Tuple[str, str]]:
        names = list(self.declared_types)
        for row in self.rows:
            for name in row:
                if name not in names:
                    names.append(name)

        return [
            (name, self.declared_types.get(name) or infer_declared_type([row.get(name) for row in self.rows]))
            for name in names
        ]


def load_sample_file(path: str) -> Tuple[SampleCatalog, SampleDocumentOracle]:
    """
    Load sample rows from a JSON file. Accepted shapes:

        [{"ID": 1, "JSON_DATA": {...}}, ...]
        {"columns": {"ID": "NUMBER", "JSON_DATA": "VARIANT"}, "rows": [...]}
    """
    try:
        with open(path, encoding='utf-8') as handle:
            content = json.load(handle)
    except (OSError, json.JSONDecodeError) as e:
        raise InvalidParameterError(f"Cannot read sample file {path}: {e}") from e

    if isinstance(content, dict):
        rows = content.get('rows', [])
        declared_types = content.get('columns')
    else:
        rows = content
        declared_types = None

    if not isinstance(rows, list) or not all(isinstance(row, dict) for row in rows):
        raise InvalidParameterError(f"{path}: expected a list of row objects")

    logger.info(f"Loaded {len(rows)} sample row(s) from {path}")
    return SampleCatalog(rows, declared_types), SampleDocumentOracle(rows)
