"""
Snowflake Database Connector
Statement execution, INFORMATION_SCHEMA column lookup and FLATTEN-based path discovery
"""
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple
import logging

import pandas as pd
import snowflake.connector
from snowflake.connector import DictCursor
from snowflake.connector.errors import Error as SnowflakeError

from utils import sanitize_alias
from view_model import (
    ArrayElement, AttributePath, AttributeType, LeafPath, StatementExecutionError
)

logger = logging.getLogger(__name__)


@dataclass
class StatementResult:
    """Rows returned by one executed statement"""
    rows: pd.DataFrame = field(default_factory=pd.DataFrame)

    @property
    def row_count(self) -> int:
        return len(self.rows)


def _sql_literal(value: str) -> str:
    return "'" + value.replace("'", "''") + "'"


def _text(value: Any) -> str:
    return value if isinstance(value, str) else ''


def _optional_int(value: Any) -> Optional[int]:
    if value is None or pd.isna(value):
        return None
    return int(value)


class SnowflakeConnectionManager:
    """Manages a Snowflake connection and runs generated statements on it"""

    def __init__(self):
        self.connection = None
        self.connection_params = {}
        self.is_connected = False

    def __enter__(self) -> "SnowflakeConnectionManager":
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        self.disconnect()
        return False

    def test_connection(self, connection_params: Dict[str, Any]) -> Tuple[bool, str]:
        """Test Snowflake connection parameters"""
        try:
            test_conn = snowflake.connector.connect(**connection_params)
            test_cursor = test_conn.cursor()
            test_cursor.execute("SELECT CURRENT_DATABASE(), CURRENT_SCHEMA(), CURRENT_VERSION()")
            result = test_cursor.fetchone()
            test_cursor.close()
            test_conn.close()

            return True, f"✅ Connected successfully! Database: {result[0]}, Schema: {result[1]}, Version: {result[2]}"

        except SnowflakeError as e:
            return self._handle_connection_error(str(e))

    def _handle_connection_error(self, error_msg: str) -> Tuple[bool, str]:
        """Translate common connector errors into actionable messages"""
        if "Authentication" in error_msg:
            return False, "❌ Authentication failed. Please check your username and password."
        elif "Account" in error_msg:
            return False, "❌ Account identifier is invalid. Please check your account name."
        elif "Database" in error_msg or "does not exist" in error_msg:
            return False, "❌ Database or schema not found. Please verify they exist and you have access."
        elif "Network" in error_msg or "timeout" in error_msg.lower():
            return False, "❌ Network connection failed. Check your internet connection."
        elif "permission" in error_msg.lower() or "access" in error_msg.lower():
            return False, "❌ Access denied. Check your role and permissions."
        else:
            return False, f"❌ Connection failed: {error_msg}"

    def connect(self, connection_params: Dict[str, Any]) -> bool:
        """Establish persistent connection"""
        try:
            self.connection = snowflake.connector.connect(**connection_params)
        except SnowflakeError as e:
            logger.error(f"Failed to establish connection: {e}")
            return False

        self.connection_params = connection_params.copy()
        self.is_connected = True
        logger.info(
            f"Connected to Snowflake account {connection_params.get('account', 'N/A')} "
            f"as {connection_params.get('user', 'N/A')}"
        )
        return True

    def disconnect(self):
        """Close the connection"""
        if self.connection:
            try:
                self.connection.close()
            except SnowflakeError as e:
                logger.warning(f"Error while closing connection: {e}")
            finally:
                self.connection = None
                self.is_connected = False
                self.connection_params = {}

    def run(self, sql: str) -> StatementResult:
        """Execute one statement and return all of its rows"""
        if not self.is_connected:
            raise StatementExecutionError("Not connected to database", sql)

        logger.debug(f"Executing statement:\n{sql}")
        try:
            cursor = self.connection.cursor(DictCursor)
            try:
                cursor.execute(sql)
                columns = [desc[0] for desc in cursor.description] if cursor.description else []
                rows = cursor.fetchall()
            finally:
                cursor.close()
        except SnowflakeError as e:
            logger.error(f"Statement failed: {e}")
            raise StatementExecutionError(str(e), sql) from e

        return StatementResult(pd.DataFrame(rows, columns=columns))

    def list_variant_tables(self, database: str, schema: str) -> List[str]:
        """Names of tables in a schema that have at least one VARIANT column"""
        sql = (
            f"SELECT DISTINCT TABLE_NAME \n"
            f"FROM {database}.INFORMATION_SCHEMA.COLUMNS \n"
            f"WHERE TABLE_SCHEMA = {_sql_literal(schema)} \n"
            f"AND DATA_TYPE = 'VARIANT' \n"
            f"ORDER BY TABLE_NAME"
        )
        result = self.run(sql)
        if result.rows.empty:
            return []
        return [str(name) for name in result.rows['TABLE_NAME']]


class SnowflakeCatalog:
    """Looks up declared columns in INFORMATION_SCHEMA"""

    def __init__(self, executor):
        self.executor = executor

    def list_columns(self, database: str, schema: str, table: str) -> List[Tuple[str, str]]:
        sql = (
            f"SELECT COLUMN_NAME, DATA_TYPE \n"
            f"FROM {database}.INFORMATION_SCHEMA.COLUMNS \n"
            f"WHERE TABLE_NAME = {_sql_literal(table)} \n"
            f"AND TABLE_SCHEMA = {_sql_literal(schema)} \n"
            f"ORDER BY ORDINAL_POSITION"
        )
        result = self.executor.run(sql)

        columns = []
        seen = set()
        for _, row in result.rows.iterrows():
            name = str(row['COLUMN_NAME'])
            if name in seen:
                continue
            seen.add(name)
            columns.append((name, str(row['DATA_TYPE'])))

        logger.info(f"Found {len(columns)} column(s) for {database}.{schema}.{table}")
        return columns


class SnowflakeDiscoveryOracle:
    """
    Discovers attribute paths by flattening the stored documents.

    Leaf discovery skips objects (their members are returned instead) and
    anything below an array. Array discovery flattens one array path, skips
    members of arrays nested inside it, and skips keyed members that are
    themselves objects.
    """

    def __init__(self, executor, table: str):
        self.executor = executor
        self.table = table

    def _leaf_query(self, column: str) -> str:
        return (
            f"SELECT DISTINCT \n"
            f"f.path AS path_name, \n"
            f"typeof(f.value) AS attribute_type \n"
            f"FROM {self.table}, \n"
            f"LATERAL FLATTEN({column}, RECURSIVE=>true) f \n"
            f"WHERE typeof(f.value) != 'OBJECT' \n"
            f"AND NOT contains(f.path, '[')"
        )

    def _array_query(self, column: str, array_path: AttributePath) -> str:
        return (
            f"SELECT DISTINCT \n"
            f"regexp_replace(f.path, '\\\\[(.+)\\\\]') AS path_name, \n"
            f"typeof(f.value) AS attribute_type, \n"
            f"f.index AS element_index \n"
            f"FROM {self.table}, \n"
            f"LATERAL FLATTEN({column}:{array_path.render()}, RECURSIVE=>true) f \n"
            f"WHERE ARRAY_SIZE(SPLIT(f.path, '[')) <= 2 \n"
            f"AND (typeof(f.value) != 'OBJECT' OR f.key IS NULL)"
        )

    def discover_leaf_paths(self, column: str) -> List[LeafPath]:
        result = self.executor.run(self._leaf_query(column))

        leaves = []
        seen = set()
        for _, row in result.rows.iterrows():
            raw_path = _text(row['PATH_NAME'])
            leaf = LeafPath(
                AttributePath.parse(raw_path),
                AttributeType.parse(row['ATTRIBUTE_TYPE']),
                sanitize_alias(raw_path),
            )
            if leaf.path.is_empty() or leaf in seen:
                continue
            seen.add(leaf)
            leaves.append(leaf)

        logger.debug(f"{column}: discovered {len(leaves)} leaf path(s)")
        return leaves

    def discover_array_elements(self, column: str, array_path: AttributePath) -> List[ArrayElement]:
        result = self.executor.run(self._array_query(column, array_path))

        elements = []
        seen = set()
        for _, row in result.rows.iterrows():
            raw_path = _text(row['PATH_NAME'])
            relative_path = AttributePath.parse(raw_path)
            element = ArrayElement(
                relative_path,
                AttributeType.parse(row['ATTRIBUTE_TYPE']),
                sanitize_alias(raw_path),
                _optional_int(row['ELEMENT_INDEX']) if relative_path.is_empty() else None,
            )
            if element in seen:
                continue
            seen.add(element)
            elements.append(element)

        logger.debug(f"{column}:{array_path}: discovered {len(elements)} array element(s)")
        return elements
