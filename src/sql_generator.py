"""
SQL generation module for metadata-driven Snowflake views

Builds a flat view over a table holding VARIANT columns:
    - scalar columns are passed through unchanged
    - non-array JSON attributes become  col:"path"."to"."leaf"::TYPE as col_path_to_leaf
    - simple arrays become one column per index  col:"path"[0]::TYPE as col_path_0
    - object arrays get a LATERAL FLATTEN source a<n> and one column per member key
"""
from dataclasses import dataclass
from typing import Iterable, List, Optional, Sequence, Tuple, Union
import logging

from config import config
from utils import get_snowflake_type, parse_case_mode, parse_type_mode, quote_alias, validate_identifier
from view_model import (
    ArrayElement, ArrayKind, AttributeType, CaseMode, ColumnDescriptor, ColumnKind,
    EmptyMetadataError, JoinSource, LeafPath, ProjectionFragment, SourceKind, TypeMode,
    ViewBuildContext, ViewDefinition, BASE_SOURCE_ID
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProjectionOptions:
    case_mode: CaseMode = CaseMode.UPPERCASE
    type_mode: TypeMode = TypeMode.MATCH_TYPES

    def alias(self, text: str) -> str:
        return quote_alias(text, self.case_mode)

    def cast(self, attribute_type: AttributeType) -> str:
        return get_snowflake_type(attribute_type, self.type_mode)


# ==============================================================================
# PIPELINE STAGES
# ==============================================================================

def classify_columns(columns: Iterable[Tuple[str, str]],
                     semi_structured_types: Sequence[str] = ('VARIANT',)
                     ) -> Tuple[List[ColumnDescriptor], List[ColumnDescriptor]]:
    """Split catalog columns into scalar and semi-structured, keeping catalog order"""
    semi_types = {t.strip().upper() for t in semi_structured_types}
    scalar, semi_structured = [], []

    for name, declared_type in columns:
        if (declared_type or '').strip().upper() in semi_types:
            semi_structured.append(ColumnDescriptor(name, declared_type, ColumnKind.SEMI_STRUCTURED))
        else:
            scalar.append(ColumnDescriptor(name, declared_type, ColumnKind.SCALAR))

    return scalar, semi_structured


def build_scalar_projections(context: ViewBuildContext,
                             columns: Iterable[ColumnDescriptor]) -> ViewBuildContext:
    """Pass scalar columns through by name"""
    return context.with_fragments(
        ProjectionFragment(column.name, column.name, BASE_SOURCE_ID) for column in columns
    )


def build_object_projections(context: ViewBuildContext, column: str,
                             leaf_paths: Iterable[LeafPath],
                             options: ProjectionOptions) -> ViewBuildContext:
    """Project every non-array leaf attribute of one semi-structured column"""
    fragments = []
    for leaf in leaf_paths:
        if leaf.path.is_empty():
            # A bare scalar stored at the column root has no attribute to project
            logger.debug(f"Skipping root value of {column}")
            continue
        if leaf.attribute_type == AttributeType.ARRAY:
            continue

        fragment = ProjectionFragment(
            expression=f"{column}:{leaf.path.render()}::{options.cast(leaf.attribute_type)}",
            alias=options.alias(f"{column}_{leaf.alias}"),
            source_id=BASE_SOURCE_ID,
        )
        # Leaves that differ only in type can collapse to one cast
        if fragment not in fragments:
            fragments.append(fragment)

    logger.debug(f"{column}: {len(fragments)} object attribute(s) projected")
    return context.with_fragments(fragments)


def resolve_array_expansion(context: ViewBuildContext, column: str, array_leaf: LeafPath,
                            elements: Iterable[ArrayElement],
                            options: ProjectionOptions) -> ViewBuildContext:
    """
    Project the elements of one array attribute.

    Index-addressed elements become one column per index. If any element is
    addressed by key the array is treated as an array of objects: the indexed
    candidates are dropped, and the members are read from a new
    LATERAL FLATTEN source instead.
    """
    context, array_id = context.allocate_array_id()
    flatten = JoinSource(array_id, SourceKind.AUXILIARY_EXPANSION, f"{column}:{array_leaf.path.render()}")

    simple_candidates = []
    object_candidates = []

    for element in elements:
        cast = options.cast(element.attribute_type)
        if element.is_simple:
            simple_candidates.append(ProjectionFragment(
                expression=f"{column}:{array_leaf.path.at_index(element.index).render()}::{cast}",
                alias=options.alias(f"{column}_{array_leaf.alias}_{element.index}"),
                source_id=BASE_SOURCE_ID,
            ))
        else:
            # Member aliases already start with '_' so they are appended as-is
            object_candidates.append(ProjectionFragment(
                expression=f"{flatten.alias}.value:{element.relative_path.render()}::{cast}",
                alias=options.alias(f"{column}_{array_leaf.alias}{element.alias}"),
                source_id=array_id,
            ))

    kind = ArrayKind.OBJECT if object_candidates else ArrayKind.SIMPLE

    if kind == ArrayKind.OBJECT:
        if simple_candidates:
            logger.info(
                f"{column}:{array_leaf.path} is an object array; "
                f"dropping {len(simple_candidates)} indexed element(s)"
            )
        return context.with_fragments(object_candidates).with_source(flatten)

    logger.debug(f"{column}:{array_leaf.path} is a simple array with {len(simple_candidates)} element(s)")
    return context.with_fragments(simple_candidates)


def assemble_view(context: ViewBuildContext, view_name: str,
                  columns: Sequence[ColumnDescriptor] = (),
                  check_aliases: bool = True) -> ViewDefinition:
    """Freeze the accumulated fragments and sources into a view definition"""
    base = [s for s in context.sources if s.kind == SourceKind.BASE]
    auxiliary = sorted(
        (s for s in context.sources if s.kind == SourceKind.AUXILIARY_EXPANSION),
        key=lambda s: s.id
    )
    view = ViewDefinition(
        name=view_name,
        fragments=context.fragments,
        sources=tuple(base + auxiliary),
        columns=tuple(columns),
    )
    view.validate(check_aliases=check_aliases)
    return view


def render_view_ddl(view: ViewDefinition) -> str:
    """Render a view definition as a CREATE OR REPLACE VIEW statement"""
    select_list = ", \n".join(fragment.render() for fragment in view.fragments)
    from_list = ",\n ".join(source.render() for source in view.sources)
    return (
        f"CREATE OR REPLACE VIEW {view.name} AS \n"
        f"SELECT \n{select_list}\n"
        f"FROM {from_list}"
    )


# ==============================================================================
# ENTRY POINTS
# ==============================================================================

def generate_view_definition(database: str, schema: str, table: str,
                             column_case: Union[str, CaseMode],
                             column_type: Union[str, TypeMode],
                             catalog, oracle,
                             view_suffix: Optional[str] = None,
                             semi_structured_types: Optional[Sequence[str]] = None,
                             validate_aliases: Optional[bool] = None) -> ViewDefinition:
    """
    Run the full generation pipeline without executing anything.

    catalog must provide list_columns(database, schema, table);
    oracle must provide discover_leaf_paths(column) and
    discover_array_elements(column, array_path).
    """
    database = validate_identifier(database, "Database")
    schema = validate_identifier(schema, "Schema")
    table = validate_identifier(table, "Table")
    options = ProjectionOptions(parse_case_mode(column_case), parse_type_mode(column_type))

    if view_suffix is None:
        view_suffix = config.VIEW_NAME_SUFFIX
    if semi_structured_types is None:
        semi_structured_types = config.SEMI_STRUCTURED_TYPES
    if validate_aliases is None:
        validate_aliases = config.VALIDATE_ALIASES

    columns = list(catalog.list_columns(database, schema, table))
    if not columns:
        raise EmptyMetadataError(database, schema, table)

    scalar_columns, semi_columns = classify_columns(columns, semi_structured_types)
    logger.info(
        f"{database}.{schema}.{table}: {len(scalar_columns)} scalar and "
        f"{len(semi_columns)} semi-structured column(s)"
    )

    context = ViewBuildContext.start(f"{database}.{schema}.{table}")
    context = build_scalar_projections(context, scalar_columns)

    for column in semi_columns:
        leaf_paths = [leaf for leaf in oracle.discover_leaf_paths(column.name) if not leaf.path.is_empty()]
        context = build_object_projections(context, column.name, leaf_paths, options)

        # Array ids must not depend on the oracle's enumeration order
        array_leaves = sorted(
            (leaf for leaf in leaf_paths if leaf.attribute_type == AttributeType.ARRAY),
            key=lambda leaf: leaf.path.segments
        )
        for leaf in array_leaves:
            elements = oracle.discover_array_elements(column.name, leaf.path)
            context = resolve_array_expansion(context, column.name, leaf, elements, options)

    view = assemble_view(
        context,
        f"{database}.{schema}.{table}{view_suffix}",
        columns=scalar_columns + semi_columns,
        check_aliases=validate_aliases,
    )
    logger.info(
        f"Generated {view.name} with {len(view.fragments)} column(s) and "
        f"{len(view.auxiliary_sources)} LATERAL FLATTEN source(s)"
    )
    return view


def _default_collaborators(executor, database: str, schema: str, table: str, catalog, oracle):
    from snowflake_connector import SnowflakeCatalog, SnowflakeDiscoveryOracle

    if catalog is None:
        catalog = SnowflakeCatalog(executor)
    if oracle is None:
        oracle = SnowflakeDiscoveryOracle(executor, f"{database}.{schema}.{table}")
    return catalog, oracle


def preview_view_ddl(database: str, schema: str, table: str,
                     column_case: Union[str, CaseMode], column_type: Union[str, TypeMode],
                     executor=None, catalog=None, oracle=None, **kwargs) -> str:
    """Generate the CREATE VIEW statement without running it"""
    catalog, oracle = _default_collaborators(executor, database, schema, table, catalog, oracle)
    view = generate_view_definition(database, schema, table, column_case, column_type,
                                    catalog, oracle, **kwargs)
    return render_view_ddl(view)


def create_view_using_metadata(database: str, schema: str, table: str,
                               column_case: Union[str, CaseMode], column_type: Union[str, TypeMode],
                               executor, catalog=None, oracle=None, dry_run: bool = False,
                               **kwargs) -> Union[bool, str]:
    """
    Generate and create <table>_VW over a table with VARIANT columns.

    Usage:
        create_view_using_metadata('EDW_DEV', 'SENSOR_SCHEMA', 'SENSOR_NOTIFICATION_ALL',
                                   'uppercase cols', 'string datatypes', executor)

    Returns True when the CREATE statement yields a result row. With
    dry_run the rendered DDL is returned and nothing is executed. Executor
    failures propagate as StatementExecutionError.
    """
    catalog, oracle = _default_collaborators(executor, database, schema, table, catalog, oracle)
    view = generate_view_definition(database, schema, table, column_case, column_type,
                                    catalog, oracle, **kwargs)
    if dry_run:
        logger.info(f"Dry run: {view.name} not created")
        return render_view_ddl(view)
    return execute_view_definition(view, executor)


def execute_view_definition(view: ViewDefinition, executor) -> bool:
    """Run the rendered DDL; True when the statement yields at least one row"""
    result = executor.run(render_view_ddl(view))
    logger.info(f"CREATE OR REPLACE VIEW {view.name}: {result.row_count} row(s) returned")
    return result.row_count > 0
