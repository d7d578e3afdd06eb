"""
Command line entry point for the view generator.

Usage
-----
json-view --database EDW_DEV --schema SENSOR_SCHEMA --table SENSOR_NOTIFICATION_ALL
json-view --database EDW_DEV --schema PUBLIC --table CONTACTS --case "match col case" --dry-run
json-view --database DEMO --schema PUBLIC --table CONTACTS --sample-file rows.json --export columns.csv

Connection settings come from SNOWFLAKE_* environment variables (or .env),
overridable with --account/--user/--warehouse/--role.
"""
import argparse
import logging
import sys
from typing import List, Optional

from config import config
from json_analyzer import load_sample_file
from snowflake_connector import SnowflakeCatalog, SnowflakeConnectionManager, SnowflakeDiscoveryOracle
from sql_generator import execute_view_definition, generate_view_definition, render_view_ddl
from utils import fragments_to_dataframe, validate_identifier
from view_model import (
    AliasCollisionError, EmptyMetadataError, InvalidParameterError, StatementExecutionError
)

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_USAGE = 2

# Only used to name the view when no database is given in --sample-file mode
SAMPLE_DATABASE = "SAMPLE_DB"


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="json-view",
        description="Create a flat view over a Snowflake table with VARIANT (JSON) columns.",
    )
    parser.add_argument("--database", default=config.SNOWFLAKE_DATABASE,
                        help="Database holding the table (defaults to SAMPLE_DB with --sample-file)")
    parser.add_argument("--schema", default=config.SNOWFLAKE_SCHEMA, help="Schema holding the table")
    parser.add_argument("--table", required=True, help="Table containing the semi-structured data")
    parser.add_argument("--case", dest="column_case", default=config.DEFAULT_COLUMN_CASE,
                        help="'uppercase cols' or 'match col case'")
    parser.add_argument("--type", dest="column_type", default=config.DEFAULT_COLUMN_TYPE,
                        help="'match datatypes' or 'string datatypes'")
    parser.add_argument("--dry-run", action="store_true", help="Print the DDL without creating the view")
    parser.add_argument("--export", metavar="CSV", help="Write the generated column list to a CSV file")
    parser.add_argument("--sample-file", metavar="JSON",
                        help="Build the view from sample rows in a JSON file instead of querying Snowflake")
    parser.add_argument("--account", help="Snowflake account identifier")
    parser.add_argument("--user", help="Snowflake user")
    parser.add_argument("--warehouse", help="Snowflake warehouse")
    parser.add_argument("--role", help="Snowflake role")
    return parser


def _connection_overrides(args: argparse.Namespace) -> dict:
    overrides = {
        'account': args.account,
        'user': args.user,
        'warehouse': args.warehouse,
        'role': args.role,
        'database': args.database,
        'schema': args.schema,
    }
    return {key: value for key, value in overrides.items() if value}


def _finish(view, args: argparse.Namespace, executor=None) -> int:
    if args.export:
        fragments_to_dataframe(view).to_csv(args.export, index=False)
        logger.info(f"Wrote {len(view.fragments)} column(s) to {args.export}")

    if args.dry_run or executor is None:
        print(render_view_ddl(view))
        return EXIT_OK

    if execute_view_definition(view, executor):
        print(f"Created view {view.name} with {len(view.fragments)} column(s)")
        return EXIT_OK

    print(f"CREATE VIEW {view.name} returned no result", file=sys.stderr)
    return EXIT_FAILED


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    config.setup_logging()

    try:
        database = args.database
        if args.sample_file and not database:
            database = SAMPLE_DATABASE
        database = validate_identifier(database, "Database")
        schema = validate_identifier(args.schema, "Schema")
        table = validate_identifier(args.table, "Table")

        if args.sample_file:
            catalog, oracle = load_sample_file(args.sample_file)
            view = generate_view_definition(database, schema, table,
                                            args.column_case, args.column_type, catalog, oracle)
            return _finish(view, args)

        manager = SnowflakeConnectionManager()
        if not manager.connect(config.get_connection_params(**_connection_overrides(args))):
            print("Could not connect to Snowflake; check the SNOWFLAKE_* settings", file=sys.stderr)
            return EXIT_FAILED

        with manager:
            view = generate_view_definition(database, schema, table,
                                            args.column_case, args.column_type,
                                            SnowflakeCatalog(manager),
                                            SnowflakeDiscoveryOracle(manager, f"{database}.{schema}.{table}"))
            return _finish(view, args, manager)

    except (InvalidParameterError, EmptyMetadataError) as e:
        print(f"error: {e}", file=sys.stderr)
        return EXIT_USAGE
    except (AliasCollisionError, StatementExecutionError) as e:
        print(f"error: {e}", file=sys.stderr)
        return EXIT_FAILED


if __name__ == "__main__":
    sys.exit(main())
