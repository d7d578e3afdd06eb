import streamlit as st
import json
from datetime import datetime
from typing import Optional
import logging

from config import config
from json_analyzer import SampleCatalog, SampleDocumentOracle
from snowflake_connector import SnowflakeCatalog, SnowflakeConnectionManager, SnowflakeDiscoveryOracle
from sql_generator import execute_view_definition, generate_view_definition, render_view_ddl
from utils import fragments_to_dataframe
from view_model import CaseMode, TypeMode, ViewGenerationError

logger = logging.getLogger(__name__)

CASE_OPTIONS = {
    "UPPERCASE (unquoted aliases)": CaseMode.UPPERCASE,
    "Match JSON attribute case (quoted aliases)": CaseMode.MATCH_CASE,
}
TYPE_OPTIONS = {
    "Match JSON data types": TypeMode.MATCH_TYPES,
    "Cast everything to STRING": TypeMode.STRING_TYPES,
}

SAMPLE_ROWS = """[
  {"ID": 1, "JSON_DATA": {"name": {"first": "John", "last": "Doe"},
                          "code": {"rgb": [255, 255, 0]},
                          "contact": {"phone": [{"type": "work", "number": "404-555-1234"},
                                                {"type": "mobile", "number": "770-555-1234"}]}}}
]"""


def render_connection_sidebar() -> Optional[SnowflakeConnectionManager]:
    """Render Snowflake connection form and return the active connection if any"""
    st.sidebar.header("🔗 Snowflake Connection")

    existing = st.session_state.get('snowflake_connection')
    if existing is not None and existing.is_connected:
        st.sidebar.success(f"✅ Connected to {existing.connection_params.get('account', 'N/A')}")
        if st.sidebar.button("🔌 Disconnect"):
            existing.disconnect()
            del st.session_state['snowflake_connection']
            st.rerun()
        return existing

    with st.sidebar.form("snowflake_connection_form", clear_on_submit=False):
        account = st.text_input("Account Identifier*", value=config.SNOWFLAKE_ACCOUNT or "",
                                placeholder="your-account.region.cloud")
        user = st.text_input("Username*", value=config.SNOWFLAKE_USER or "")
        password = st.text_input("Password*", type="password")
        warehouse = st.text_input("Warehouse*", value=config.SNOWFLAKE_WAREHOUSE)
        role = st.text_input("Role", value=config.SNOWFLAKE_ROLE or "")

        col1, col2 = st.columns(2)
        with col1:
            test_connection = st.form_submit_button("🧪 Test", type="secondary")
        with col2:
            connect_button = st.form_submit_button("🔗 Connect", type="primary")

    if not (test_connection or connect_button):
        return None

    required_fields = {'Account': account, 'Username': user, 'Password': password, 'Warehouse': warehouse}
    missing_fields = [name for name, value in required_fields.items() if not value or not value.strip()]
    if missing_fields:
        st.sidebar.error(f"❌ Please fill in required fields: {', '.join(missing_fields)}")
        return None

    connection_params = config.get_connection_params(
        account=account, user=user, password=password, warehouse=warehouse, role=role or None
    )
    conn_manager = SnowflakeConnectionManager()

    if test_connection:
        with st.spinner("🔄 Testing connection..."):
            success, message = conn_manager.test_connection(connection_params)
        (st.sidebar.success if success else st.sidebar.error)(message)
        return None

    with st.spinner("🔄 Connecting to Snowflake..."):
        if conn_manager.connect(connection_params):
            st.session_state['snowflake_connection'] = conn_manager
            st.rerun()
        st.sidebar.error("❌ Failed to establish connection. See logs for details.")
    return None


def render_generation_options(key_prefix: str):
    col1, col2 = st.columns(2)
    with col1:
        case_label = st.radio("Column name case", list(CASE_OPTIONS), key=f"{key_prefix}_case")
    with col2:
        type_label = st.radio("Column data types", list(TYPE_OPTIONS), key=f"{key_prefix}_type")
    return CASE_OPTIONS[case_label], TYPE_OPTIONS[type_label]


def render_view_result(view, key_prefix: str):
    st.subheader("📄 Generated DDL")
    st.code(render_view_ddl(view), language="sql")

    col1, col2, col3 = st.columns(3)
    col1.metric("View Columns", len(view.fragments))
    col2.metric("LATERAL FLATTEN Sources", len(view.auxiliary_sources))
    col3.metric("Source Columns", len(view.columns))

    fragments_df = fragments_to_dataframe(view)
    st.dataframe(fragments_df, use_container_width=True)
    st.download_button(
        "📥 Download Column List",
        data=fragments_df.to_csv(index=False).encode('utf-8'),
        file_name=f"view_columns_{datetime.now().strftime('%Y%m%d_%H%M%S')}.csv",
        mime="text/csv",
        key=f"{key_prefix}_download"
    )


def render_snowflake_tab(conn_manager: Optional[SnowflakeConnectionManager]):
    st.subheader("🏔️ Generate From a Snowflake Table")
    if conn_manager is None:
        st.info("ℹ️ Connect to Snowflake in the sidebar to read table metadata.")
        return

    col1, col2, col3 = st.columns(3)
    with col1:
        database = st.text_input("Database*", value=config.SNOWFLAKE_DATABASE or "")
    with col2:
        schema = st.text_input("Schema*", value=config.SNOWFLAKE_SCHEMA)
    with col3:
        table = st.text_input("Table*", placeholder="SENSOR_NOTIFICATION_ALL")

    if database and schema and st.button("📋 List tables with VARIANT columns"):
        try:
            tables = conn_manager.list_variant_tables(database, schema)
            st.write(", ".join(tables) if tables else "No tables with VARIANT columns found")
        except ViewGenerationError as e:
            st.error(f"❌ {e}")

    case_mode, type_mode = render_generation_options("snowflake")

    col4, col5 = st.columns(2)
    with col4:
        preview = st.button("🔍 Preview View", type="secondary")
    with col5:
        create = st.button("🚀 Create View", type="primary")

    if not (preview or create):
        return

    try:
        with st.spinner("🔍 Discovering JSON attributes..."):
            view = generate_view_definition(
                database, schema, table, case_mode, type_mode,
                SnowflakeCatalog(conn_manager),
                SnowflakeDiscoveryOracle(conn_manager, f"{database}.{schema}.{table}")
            )
        render_view_result(view, "snowflake")

        if create:
            with st.spinner(f"🔨 Creating {view.name}..."):
                if execute_view_definition(view, conn_manager):
                    st.success(f"✅ View {view.name} created")
                else:
                    st.error(f"❌ CREATE VIEW {view.name} returned no result")
    except ViewGenerationError as e:
        logger.error(f"View generation failed: {e}")
        st.error(f"❌ {e}")


def render_sample_tab():
    st.subheader("🐍 Preview From Sample Rows")
    st.caption("Paste table rows as a JSON list; object or array values are treated as VARIANT columns.")

    rows_text = st.text_area("Sample rows", value=SAMPLE_ROWS, height=220)
    col1, col2, col3 = st.columns(3)
    with col1:
        database = st.text_input("Database", value="MYDATABASE", key="sample_database")
    with col2:
        schema = st.text_input("Schema", value="PUBLIC", key="sample_schema")
    with col3:
        table = st.text_input("Table", value="CONTACTS", key="sample_table")

    case_mode, type_mode = render_generation_options("sample")

    if not st.button("🔍 Generate DDL", type="primary"):
        return

    try:
        rows = json.loads(rows_text)
    except json.JSONDecodeError as e:
        st.error(f"❌ Invalid JSON: {e}")
        return
    if not isinstance(rows, list) or not all(isinstance(row, dict) for row in rows):
        st.error("❌ Expected a JSON list of row objects")
        return

    try:
        view = generate_view_definition(database, schema, table, case_mode, type_mode,
                                        SampleCatalog(rows), SampleDocumentOracle(rows))
        render_view_result(view, "sample")
    except ViewGenerationError as e:
        st.error(f"❌ {e}")


def main():
    st.set_page_config(page_title=f"❄️ {config.APP_NAME}", page_icon="❄️", layout="wide")
    st.title(f"❄️ {config.APP_NAME}")
    st.markdown(
        "Creates `<TABLE>_VW` with one column per JSON attribute found in each VARIANT column: "
        "nested objects, simple arrays (one column per index) and object arrays "
        "(one column per key, via `LATERAL FLATTEN`)."
    )

    conn_manager = render_connection_sidebar()

    tab1, tab2 = st.tabs(["🏔️ Snowflake Table", "🐍 Sample JSON"])
    with tab1:
        render_snowflake_tab(conn_manager)
    with tab2:
        render_sample_tab()


if __name__ == "__main__":
    main()
