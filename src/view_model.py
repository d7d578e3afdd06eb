"""
Data model for metadata-driven view generation
Columns, attribute paths, projection fragments, join sources and the build context
"""
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Dict, List, Optional, Tuple
import logging

logger = logging.getLogger(__name__)


# ==============================================================================
# ERRORS
# ==============================================================================

class ViewGenerationError(Exception):
    """Base class for all view generation failures"""


class InvalidParameterError(ViewGenerationError):
    """A user supplied parameter could not be interpreted"""


class EmptyMetadataError(ViewGenerationError):
    """The catalog returned no columns for the requested table"""

    def __init__(self, database: str, schema: str, table: str):
        self.database = database
        self.schema = schema
        self.table = table
        super().__init__(
            f"No columns found for {database}.{schema}.{table}. "
            f"Check the database, schema and table names (they are case sensitive)."
        )


class StatementExecutionError(ViewGenerationError):
    """A metadata query or the final DDL failed at the executor"""

    def __init__(self, message: str, sql: Optional[str] = None):
        self.sql = sql
        super().__init__(message)


class AliasCollisionError(ViewGenerationError):
    """Two projection fragments resolve to the same output column"""

    def __init__(self, duplicates: Dict[str, List[str]]):
        self.duplicates = duplicates
        self.type_conflicts = {
            alias: casts for alias, casts in
            ((alias, _conflicting_casts(exprs)) for alias, exprs in duplicates.items())
            if casts
        }
        details = "; ".join(f"{alias}: {', '.join(exprs)}" for alias, exprs in duplicates.items())
        message = f"Duplicate view column aliases: {details}"
        if self.type_conflicts:
            conflicts = "; ".join(f"{alias} as {' and '.join(casts)}"
                                  for alias, casts in self.type_conflicts.items())
            message += (f". The same attribute was discovered with different types ({conflicts}); "
                        f"use 'string datatypes' or clean up the source data")
        super().__init__(message)


def _conflicting_casts(expressions: List[str]) -> List[str]:
    """Cast types of expressions that read the same path and differ only in their cast"""
    parts = [expr.rpartition('::') for expr in expressions]
    if any(not sep for _, sep, _ in parts) or len({base for base, _, _ in parts}) != 1:
        return []
    return sorted({cast for _, _, cast in parts})


# ==============================================================================
# ENUMS
# ==============================================================================

class ColumnKind(Enum):
    SCALAR = "scalar"
    SEMI_STRUCTURED = "semi_structured"


class AttributeType(Enum):
    """Closed set of attribute types a discovered path can carry"""
    ARRAY = "ARRAY"
    BOOLEAN = "BOOLEAN"
    NUMBER = "NUMBER"
    STRING = "STRING"

    @classmethod
    def parse(cls, raw_type: Optional[str]) -> "AttributeType":
        """Parse a raw type tag reported by a discovery oracle, coercing unknown tags to STRING"""
        tag = (raw_type or "").strip().upper()
        parsed = _RAW_TYPE_TAGS.get(tag)
        if parsed is None:
            logger.debug(f"Unmapped attribute type '{raw_type}', coercing to STRING")
            return cls.STRING
        return parsed


_RAW_TYPE_TAGS = {
    'ARRAY': AttributeType.ARRAY,
    'BOOLEAN': AttributeType.BOOLEAN,
    'INTEGER': AttributeType.NUMBER,
    'DECIMAL': AttributeType.NUMBER,
    'DOUBLE': AttributeType.NUMBER,
    'FLOAT': AttributeType.NUMBER,
    'NUMBER': AttributeType.NUMBER,
    'STRING': AttributeType.STRING,
    'VARCHAR': AttributeType.STRING,
}


class ArrayKind(Enum):
    SIMPLE = "simple"
    OBJECT = "object"


class SourceKind(Enum):
    BASE = "base"
    AUXILIARY_EXPANSION = "auxiliary_expansion"


class CaseMode(Enum):
    """How generated column aliases are cased"""
    MATCH_CASE = "match col case"
    UPPERCASE = "uppercase cols"


class TypeMode(Enum):
    """How discovered attribute types are cast"""
    MATCH_TYPES = "match datatypes"
    STRING_TYPES = "string datatypes"


# ==============================================================================
# CATALOG AND DISCOVERY RECORDS
# ==============================================================================

@dataclass(frozen=True)
class ColumnDescriptor:
    name: str
    declared_type: str
    kind: ColumnKind


@dataclass(frozen=True)
class AttributePath:
    """
    A sequence of field names relative to a semi-structured column's root,
    optionally ending in an array index.
    """
    segments: Tuple[str, ...]
    index: Optional[int] = None

    @classmethod
    def parse(cls, text: str) -> "AttributePath":
        """Parse a dotted path such as 'name.first', '"name"."first"' or '.type'"""
        cleaned = (text or "").strip()
        if cleaned.startswith('.'):
            cleaned = cleaned[1:]
        if not cleaned:
            return cls(())

        segments = []
        for part in _split_path(cleaned):
            if len(part) >= 2 and part.startswith('"') and part.endswith('"'):
                part = part[1:-1].replace('""', '"')
            segments.append(part)
        return cls(tuple(segments))

    def is_empty(self) -> bool:
        return not self.segments

    def at_index(self, index: int) -> "AttributePath":
        return replace(self, index=index)

    def render(self) -> str:
        """Render as Snowflake path syntax: "a"."b"[0]"""
        rendered = ".".join('"' + segment.replace('"', '""') + '"' for segment in self.segments)
        if self.index is not None:
            rendered += f"[{self.index}]"
        return rendered

    def __str__(self) -> str:
        return ".".join(self.segments)


def _split_path(text: str) -> List[str]:
    """Split on dots that are not inside double quotes"""
    parts = []
    current = []
    in_quotes = False
    for char in text:
        if char == '"':
            in_quotes = not in_quotes
        if char == '.' and not in_quotes:
            parts.append("".join(current))
            current = []
        else:
            current.append(char)
    parts.append("".join(current))
    return [part for part in parts if part]


@dataclass(frozen=True)
class LeafPath:
    """One distinct leaf attribute discovered in a semi-structured column"""
    path: AttributePath
    attribute_type: AttributeType
    alias: str


@dataclass(frozen=True)
class ArrayElement:
    """
    One distinct element found below an array path.

    An empty relative path means an index-addressed element of a simple array;
    anything else is a keyed member of an object array.
    """
    relative_path: AttributePath
    attribute_type: AttributeType
    alias: str
    index: Optional[int] = None

    @property
    def is_simple(self) -> bool:
        return self.relative_path.is_empty()


# ==============================================================================
# VIEW STRUCTURE
# ==============================================================================

BASE_SOURCE_ID = 0


@dataclass(frozen=True)
class ProjectionFragment:
    """One output column of the generated view"""
    expression: str
    alias: str
    source_id: int = BASE_SOURCE_ID

    def render(self) -> str:
        if self.expression == self.alias:
            return self.expression
        return f"{self.expression} as {self.alias}"


@dataclass(frozen=True)
class JoinSource:
    id: int
    kind: SourceKind
    origin_expression: str

    @property
    def alias(self) -> str:
        return f"a{self.id}"

    def render(self) -> str:
        if self.kind == SourceKind.BASE:
            return self.origin_expression
        return f"LATERAL FLATTEN({self.origin_expression}) {self.alias}"


@dataclass(frozen=True)
class ViewBuildContext:
    """
    Accumulator for one generation run. Every stage takes a context and
    returns a new one; nothing is mutated in place.
    """
    fragments: Tuple[ProjectionFragment, ...] = ()
    sources: Tuple[JoinSource, ...] = ()
    array_counter: int = 0

    @classmethod
    def start(cls, base_table: str) -> "ViewBuildContext":
        return cls(sources=(JoinSource(BASE_SOURCE_ID, SourceKind.BASE, base_table),))

    def with_fragments(self, fragments) -> "ViewBuildContext":
        return replace(self, fragments=self.fragments + tuple(fragments))

    def with_source(self, source: JoinSource) -> "ViewBuildContext":
        return replace(self, sources=self.sources + (source,))

    def allocate_array_id(self) -> Tuple["ViewBuildContext", int]:
        array_id = self.array_counter + 1
        return replace(self, array_counter=array_id), array_id


@dataclass(frozen=True)
class ViewDefinition:
    name: str
    fragments: Tuple[ProjectionFragment, ...]
    sources: Tuple[JoinSource, ...]
    columns: Tuple[ColumnDescriptor, ...] = field(default=(), compare=False)

    @property
    def auxiliary_sources(self) -> Tuple[JoinSource, ...]:
        return tuple(s for s in self.sources if s.kind == SourceKind.AUXILIARY_EXPANSION)

    def find_alias_collisions(self) -> Dict[str, List[str]]:
        """
        Group fragments whose aliases name the same view column.
        Quoted aliases are compared verbatim, unquoted ones after upper-casing
        the way Snowflake folds identifiers.
        """
        seen: Dict[str, List[ProjectionFragment]] = {}
        for fragment in self.fragments:
            seen.setdefault(normalize_identifier(fragment.alias), []).append(fragment)
        return {
            key: [f.expression for f in group]
            for key, group in seen.items() if len(group) > 1
        }

    def validate(self, check_aliases: bool = True) -> None:
        source_ids = {s.id for s in self.sources}
        dangling = [f for f in self.fragments if f.source_id not in source_ids]
        if dangling:
            raise ViewGenerationError(
                f"Fragments reference unknown sources: {[f.alias for f in dangling]}"
            )

        if not check_aliases:
            return
        duplicates = self.find_alias_collisions()
        if duplicates:
            raise AliasCollisionError(duplicates)


def normalize_identifier(identifier: str) -> str:
    if len(identifier) >= 2 and identifier.startswith('"') and identifier.endswith('"'):
        return identifier[1:-1]
    return identifier.upper()
