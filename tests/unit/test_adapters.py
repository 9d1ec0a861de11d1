"""
Unit Tests for Connection Adapters
"""
import sqlite3
import threading
import time
import pytest
from unittest.mock import MagicMock, patch
import sys
import os

# Add src to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', '..', 'src'))

from agent_introspection.adapters import (
    ConnectionAdapterRegistry,
    DiscoveredTable,
    MAX_SAMPLE_ROWS,
    Result,
    create_adapter,
    get_supported_engines,
    normalize_row_count,
)
from agent_introspection.adapters.base import group_foreign_keys, group_indexes, odbc_value
from agent_introspection.adapters.databricks_adapter import DatabricksAdapter
from agent_introspection.adapters.db2_adapter import DB2Adapter
from agent_introspection.adapters.mssql_adapter import MSSQLAdapter
from agent_introspection.adapters.sqlite_adapter import SQLiteAdapter
from agent_introspection.config import ConnectionProfile, EngineType
from agent_introspection.utils import ConfigurationError, IntrospectionError, NotFoundError, UnsupportedEngineError
from agent_introspection.vault import SecretBundle


@pytest.fixture
def sqlite_file(tmp_path):
    """SQLite database with customers and orders"""
    path = str(tmp_path / "shop.db")
    conn = sqlite3.connect(path)
    conn.executescript("""
        CREATE TABLE customers (
            id INTEGER PRIMARY KEY,
            name TEXT NOT NULL,
            email TEXT UNIQUE
        );
        CREATE TABLE orders (
            id INTEGER PRIMARY KEY,
            customer_id INTEGER NOT NULL REFERENCES customers(id),
            total DECIMAL(10,2) DEFAULT 0
        );
        CREATE INDEX idx_orders_customer ON orders(customer_id);
    """)
    conn.executemany("INSERT INTO customers (name, email) VALUES (?, ?)", [
        ("Ada", "ada@example.com"), ("Grace", "grace@example.com"),
    ])
    conn.executemany("INSERT INTO orders (customer_id, total) VALUES (?, ?)", [
        (1, 10.5), (1, 20.0), (2, 7.25),
    ])
    conn.commit()
    conn.close()
    return path


def sqlite_adapter(path):
    return SQLiteAdapter(ConnectionProfile(engine=EngineType.SQLITE, sqlite_path=path))


class TestRegistry:
    """Tests for ConnectionAdapterRegistry"""

    def test_all_engines_registered(self):
        """Test every engine has an adapter"""
        engines = set(get_supported_engines())
        assert engines == set(EngineType)

    def test_create_adapter(self):
        """Test factory dispatches on engine"""
        adapter = create_adapter(ConnectionProfile(engine=EngineType.SQLITE, sqlite_path=":memory:"))
        assert isinstance(adapter, SQLiteAdapter)

    def test_unsupported_engine(self):
        """Test unknown engines are configuration errors"""
        with pytest.raises(UnsupportedEngineError):
            ConnectionAdapterRegistry.get_adapter_class("cassandra")
        assert not ConnectionAdapterRegistry.is_supported("cassandra")


class TestHelpers:
    """Tests for shared helpers"""

    def test_normalize_row_count(self):
        """Test negative or unknown estimates become 0 and unreliable"""
        assert normalize_row_count(-1) == (0, False)
        assert normalize_row_count(None) == (0, False)
        assert normalize_row_count("n/a") == (0, False)
        assert normalize_row_count(12.0) == (12, True)
        assert normalize_row_count(0) == (0, True)

    def test_group_foreign_keys(self):
        """Test composite keys are grouped by constraint"""
        fks = group_foreign_keys([
            ("fk_a", "x", "t", "id1"),
            ("fk_a", "y", "t", "id2"),
            ("fk_b", "z", "u", "id"),
        ])
        assert len(fks) == 2
        assert fks[0].columns == ["x", "y"]
        assert fks[0].referenced_columns == ["id1", "id2"]

    def test_group_indexes_skips_expressions(self):
        """Test expression entries (no column name) are left out of the column list"""
        indexes = group_indexes([
            ("idx_lower_email", None, True, False),
            ("idx_name_city", "name", False, False),
            ("idx_name_city", "city", False, False),
        ])
        assert indexes[0].columns == []
        assert indexes[0].is_unique
        assert indexes[1].columns == ["name", "city"]

    def test_odbc_value(self):
        """Test brace quoting doubles closing braces"""
        assert odbc_value("p;w}d") == "{p;w}}d}"

    def test_result(self):
        """Test Result helpers"""
        ok = Result.success([1])
        assert ok.unwrap() == [1]
        failed = Result.failure(ConfigurationError("bad"))
        with pytest.raises(ConfigurationError):
            failed.unwrap()
        assert failed.to_dict()["error"]["category"] == "configuration"


class TestSQLiteAdapter:
    """Tests for SQLiteAdapter against a real file"""

    def test_discover_tables(self, sqlite_file):
        """Test discovery lists user tables with unreliable zero counts"""
        result = sqlite_adapter(sqlite_file).discover_tables()
        assert result.ok
        names = [t.name for t in result.value]
        assert names == ["customers", "orders"]
        assert all(t.row_count == 0 and not t.row_count_reliable for t in result.value)

    def test_fetch_table_details(self, sqlite_file):
        """Test columns, keys and indexes"""
        details = sqlite_adapter(sqlite_file).fetch_table_details("orders", include_row_count=True)
        assert [c.name for c in details.columns] == ["id", "customer_id", "total"]
        assert details.primary_key == ["id"]
        assert details.row_count == 3

        fk = details.foreign_keys[0]
        assert fk.columns == ["customer_id"]
        assert fk.referenced_table == "customers"
        assert fk.referenced_columns == ["id"]

        customer_id = details.columns[1]
        assert customer_id.is_foreign_key
        assert customer_id.referenced_table == "customers"
        assert not customer_id.nullable

        assert any(idx.name == "idx_orders_customer" and idx.columns == ["customer_id"] for idx in details.indexes)

    def test_unknown_table(self, sqlite_file):
        """Test a missing table raises NotFoundError"""
        with pytest.raises(NotFoundError):
            sqlite_adapter(sqlite_file).fetch_table_details("missing")

    def test_count_rows(self, sqlite_file):
        """Test exact row counts"""
        assert sqlite_adapter(sqlite_file).count_rows("customers") == 2

    def test_sample_rows_clamped(self, sqlite_file):
        """Test sampling never exceeds the row cap"""
        result = sqlite_adapter(sqlite_file).sample_rows("orders", limit=1000)
        assert result.success
        assert result.columns == ["id", "customer_id", "total"]
        assert result.row_count == 3
        assert MAX_SAMPLE_ROWS == 100

    def test_read_only(self, sqlite_file):
        """Test the connection refuses writes"""
        adapter = sqlite_adapter(sqlite_file)
        with adapter:
            with pytest.raises(sqlite3.OperationalError):
                adapter._connection.execute("DELETE FROM orders")

    def test_connection_success(self, sqlite_file):
        """Test successful connection message names the file"""
        result = sqlite_adapter(sqlite_file).test_connection()
        assert result.success
        assert "shop.db" in result.message

    def test_missing_file(self, tmp_path):
        """Test a missing file is a structured failure"""
        result = sqlite_adapter(str(tmp_path / "nope.db")).test_connection()
        assert not result.success
        assert result.error_category == "network"

    def test_missing_path(self):
        """Test a profile without a path fails with a configuration error"""
        result = SQLiteAdapter(ConnectionProfile(engine=EngineType.SQLITE)).discover_tables()
        assert not result.ok
        assert isinstance(result.error, ConfigurationError)


class TestPostgreSQLAdapter:
    """Tests for PostgreSQLAdapter with a mocked driver"""

    @pytest.fixture
    def profile(self):
        return ConnectionProfile(engine=EngineType.POSTGRESQL, host="10.255.255.1", database="sales", connection_timeout=2)

    def test_unreachable_host(self, profile):
        """Test an unreachable host yields success=False"""
        fake_psycopg2 = MagicMock()
        fake_psycopg2.connect.side_effect = Exception(
            'could not connect to server: Connection refused\n\tIs the server running on host "10.255.255.1"?'
        )
        with patch.dict(sys.modules, {"psycopg2": fake_psycopg2}):
            start = time.time()
            result = create_adapter(profile, SecretBundle(username="u", password="p")).test_connection()

        assert not result.success
        assert result.error_category == "network"
        assert "10.255.255.1:5432" in result.error
        assert time.time() - start < profile.watchdog_seconds

    def test_connect_parameters(self, profile):
        """Test driver receives timeout, ssl mode and credentials"""
        fake_psycopg2 = MagicMock()
        with patch.dict(sys.modules, {"psycopg2": fake_psycopg2}):
            result = create_adapter(profile, SecretBundle(username="u", password="p")).test_connection()

        assert result.success
        kwargs = fake_psycopg2.connect.call_args.kwargs
        assert kwargs["connect_timeout"] == 2
        assert kwargs["sslmode"] == "disable"
        assert kwargs["user"] == "u"
        fake_psycopg2.connect.return_value.close.assert_called_once()

    def test_password_scrubbed(self, profile):
        """Test the password never appears in error output"""
        fake_psycopg2 = MagicMock()
        fake_psycopg2.connect.side_effect = Exception(
            'FATAL: password authentication failed for user "u" with hunter2'
        )
        with patch.dict(sys.modules, {"psycopg2": fake_psycopg2}):
            result = create_adapter(profile, SecretBundle(username="u", password="hunter2")).test_connection()

        assert result.error_category == "authentication"
        assert "hunter2" not in result.error

    def test_driver_missing(self, profile):
        """Test a missing driver is a soft configuration failure"""
        with patch.dict(sys.modules, {"psycopg2": None}):
            result = create_adapter(profile).discover_tables()
        assert not result.ok
        assert result.error.category.value == "configuration"
        assert "psycopg2-binary" in result.error.message

    def test_negative_estimate_hidden(self, profile):
        """Test reltuples of -1 is reported as 0"""
        cursor = MagicMock()
        cursor.description = [("relname",)]
        cursor.fetchall.return_value = [("orders", "public", -1, None), ("pg_x", "pg_catalog", 5, None)]
        fake_psycopg2 = MagicMock()
        fake_psycopg2.connect.return_value.cursor.return_value = cursor
        with patch.dict(sys.modules, {"psycopg2": fake_psycopg2}):
            result = create_adapter(profile).discover_tables()

        assert result.ok
        assert [t.name for t in result.value] == ["orders"]
        assert result.value[0].row_count == 0
        assert not result.value[0].row_count_reliable

    def test_indexes_from_pg_index(self, profile):
        """Test index columns come from the catalog key list, not the definition text"""
        index_rows = [
            ("idx_orders_covering", "customer_id", False, False),
            ("idx_orders_expr", None, False, False),
            ("orders_pkey", "id", True, True),
        ]
        cursor = MagicMock()
        cursor.description = [("c",)]

        def execute(sql, params=()):
            cursor.fetchall.return_value = index_rows if "indnkeyatts" in sql else []

        cursor.execute.side_effect = execute
        fake_psycopg2 = MagicMock()
        fake_psycopg2.connect.return_value.cursor.return_value = cursor
        with patch.dict(sys.modules, {"psycopg2": fake_psycopg2}):
            adapter = create_adapter(profile)
            indexes = adapter._run_bounded(
                "indexes", lambda: adapter._fetch_indexes("orders", "public")
            )

        assert [idx.name for idx in indexes] == ["idx_orders_covering", "idx_orders_expr", "orders_pkey"]
        assert indexes[0].columns == ["customer_id"]
        assert indexes[1].columns == []
        assert indexes[2].is_primary and indexes[2].is_unique
        assert not any("pg_indexes" in c.args[0] for c in cursor.execute.call_args_list)


class TestWatchdog:
    """Tests for the outer time bound"""

    def test_hung_driver_times_out(self, sqlite_file):
        """Test a call that never returns becomes a timeout failure"""
        release = threading.Event()
        profile = ConnectionProfile(
            engine=EngineType.SQLITE, sqlite_path=sqlite_file, connection_timeout=1, query_timeout=1
        )
        adapter = SQLiteAdapter(profile)
        held = []

        def hang():
            held.append(adapter._connection)
            release.wait(10)

        try:
            with patch.object(SQLiteAdapter, "_ping", side_effect=hang):
                start = time.time()
                result = adapter.test_connection()
                elapsed = time.time() - start
                connected_after = adapter.is_connected()
        finally:
            release.set()

        assert not result.success
        assert result.error_category == "timeout"
        assert elapsed < 5
        assert not connected_after
        with pytest.raises(sqlite3.ProgrammingError):
            held[0].execute("SELECT 1")

    def test_hung_statement_is_cancelled(self):
        """Test the in-flight cursor is cancelled and the connection closed on timeout"""
        cancelled = threading.Event()
        cursor = MagicMock()
        cursor.execute.side_effect = lambda *args: cancelled.wait(10)
        cursor.cancel.side_effect = cancelled.set
        fake_pyodbc = MagicMock()
        connection = fake_pyodbc.connect.return_value
        connection.cursor.return_value = cursor

        profile = ConnectionProfile(
            engine=EngineType.MSSQL, host="sql01", database="crm", connection_timeout=1, query_timeout=1
        )
        adapter = MSSQLAdapter(profile, SecretBundle(username="sa", password="pw"))
        with patch.dict(sys.modules, {"pyodbc": fake_pyodbc}):
            result = adapter.test_connection()

        assert result.error_category == "timeout"
        assert cancelled.is_set()
        connection.close.assert_called()
        assert not adapter.is_connected()


class FakeDB2Cursor:
    """Routes SYSCAT queries to canned rows"""

    def __init__(self, log, card):
        self.log = log
        self.card = card
        self.description = [("C",)]
        self._rows = []

    def execute(self, sql, params=()):
        self.log.append(sql)
        if "COUNT(*)" in sql:
            self._rows = [(42,)]
        elif "SELECT CARD FROM SYSCAT.TABLES" in sql:
            self._rows = [(self.card,)]
        elif "SELECT REMARKS FROM SYSCAT.TABLES" in sql:
            self._rows = [("Customer orders",)]
        elif "FROM SYSCAT.TABLES" in sql:
            self._rows = [("ORDERS    ", "APP     ", self.card, None)]
        elif "KEYSEQ IS NOT NULL" in sql:
            self._rows = [("ID",)]
        elif "FROM SYSCAT.COLUMNS" in sql:
            self._rows = [
                ("ID", "INTEGER", 4, 0, "N", None, 1, None),
                ("CUSTOMER_ID", "INTEGER", 4, 0, "N", None, None, "Owning customer"),
                ("AMOUNT", "DECIMAL", 10, 2, "Y", None, None, None),
            ]
        elif "FROM SYSCAT.REFERENCES" in sql:
            self._rows = [("FK_CUST", "CUSTOMER_ID         ", "CUSTOMERS", "ID                  ")]
        elif "FROM SYSCAT.INDEXES" in sql:
            self._rows = [("PK_ORDERS", "+ID", "P"), ("IX_CUST", "+CUSTOMER_ID-AMOUNT", "D")]
        else:
            self._rows = [(1,)]

    def fetchall(self):
        return self._rows

    def close(self):
        pass


class TestDB2Adapter:
    """Tests for DB2Adapter with a mocked ibm_db_dbi"""

    def _fake_driver(self, card):
        log = []
        connection = MagicMock()
        connection.cursor.side_effect = lambda: FakeDB2Cursor(log, card)
        module = MagicMock()
        module.connect.return_value = connection
        return module, log

    def _adapter(self):
        profile = ConnectionProfile(engine=EngineType.DB2, host="localhost", database="SAMPLE", schema_name="app")
        return DB2Adapter(profile, SecretBundle(username="db2inst1", password="pw"))

    def test_connection_string(self):
        """Test localhost is forced to IPv4 and timeouts are set"""
        conn_str = self._adapter().build_connection_string()
        assert "HOSTNAME=127.0.0.1" in conn_str
        assert "PORT=50000" in conn_str
        assert "CONNECTTIMEOUT=15" in conn_str

    def test_password_with_separator_is_quoted(self):
        """Test a password containing ; stays one attribute"""
        profile = ConnectionProfile(engine=EngineType.DB2, host="db2host", database="SAMPLE")
        adapter = DB2Adapter(profile, SecretBundle(username="db2inst1", password="a;PORT=1}"))
        conn_str = adapter.build_connection_string()
        assert "PWD={a;PORT=1}}};" in conn_str
        assert "UID={db2inst1};" in conn_str
        assert conn_str.count("PORT=50000") == 1

    def test_discovery_hides_unknown_card(self):
        """Test CARD=-1 is reported as 0 during discovery"""
        module, _log = self._fake_driver(card=-1)
        with patch.dict(sys.modules, {"ibm_db_dbi": module}):
            result = self._adapter().discover_tables()
        assert result.ok
        table = result.value[0]
        assert table.name == "ORDERS"
        assert table.schema_name == "APP"
        assert table.row_count == 0
        assert not table.row_count_reliable

    def test_import_counts_rows_when_card_unknown(self):
        """Test COUNT(*) runs for a selected table without statistics"""
        module, log = self._fake_driver(card=-1)
        with patch.dict(sys.modules, {"ibm_db_dbi": module}):
            details = self._adapter().fetch_table_details("ORDERS", include_row_count=True)

        assert details.row_count == 42
        assert any("COUNT(*)" in sql for sql in log)
        assert details.schema_name == "APP"
        assert details.primary_key == ["ID"]
        assert details.foreign_keys[0].columns == ["CUSTOMER_ID"]
        assert details.indexes[1].columns == ["CUSTOMER_ID", "AMOUNT"]
        assert details.columns[2].precision == 10
        assert details.columns[2].scale == 2
        assert details.comment == "Customer orders"

    def test_import_uses_card_when_known(self):
        """Test reliable statistics skip COUNT(*)"""
        module, log = self._fake_driver(card=1000)
        with patch.dict(sys.modules, {"ibm_db_dbi": module}):
            details = self._adapter().fetch_table_details("ORDERS", include_row_count=True)
        assert details.row_count == 1000
        assert not any("COUNT(*)" in sql for sql in log)

    def test_communication_error(self):
        """Test SQL30081N becomes a connectivity failure with DB2 hints"""
        module = MagicMock()
        module.connect.side_effect = Exception(
            "[IBM][CLI Driver] SQL30081N  A communication error has been detected. "
            "Communication protocol being used: TCP/IP. Function: selectForConnectTimeout"
        )
        with patch.dict(sys.modules, {"ibm_db_dbi": module}):
            result = self._adapter().test_connection()
        assert not result.success
        assert result.error_category == "network"
        assert any("DB2COMM" in s for s in result.suggestions)


class TestMSSQLAdapter:
    """Tests for MSSQLAdapter connection strings"""

    def test_host_and_port(self):
        """Test host,port addressing"""
        adapter = MSSQLAdapter(
            ConnectionProfile(engine=EngineType.MSSQL, host="sql01", port=1533, database="crm"),
            SecretBundle(username="sa", password="p;w}d"),
        )
        conn_str = adapter.build_connection_string()
        assert "SERVER=sql01,1533" in conn_str
        assert "PWD={p;w}}d}" in conn_str
        assert "ApplicationIntent=ReadOnly" in conn_str

    def test_named_instance(self):
        """Test named instances use host\\instance"""
        profile = ConnectionProfile.from_config("mssql", {"host": "sql01", "instanceName": "SQLEXPRESS"})
        conn_str = MSSQLAdapter(profile).build_connection_string()
        assert "SERVER=sql01\\SQLEXPRESS" in conn_str
        assert "Trusted_Connection=yes" in conn_str

    def test_sample_uses_top(self):
        """Test SQL Server sampling syntax"""
        adapter = MSSQLAdapter(ConnectionProfile(engine=EngineType.MSSQL))
        assert adapter._sample_sql("[dbo].[t]", 5) == "SELECT TOP 5 * FROM [dbo].[t]"


def _databricks_response(payload, status_code=200):
    response = MagicMock()
    response.status_code = status_code
    response.json.return_value = payload
    return response


class TestDatabricksAdapter:
    """Tests for DatabricksAdapter with a mocked requests session"""

    @pytest.fixture
    def secrets(self):
        return SecretBundle(
            server_hostname="https://adb-123.azuredatabricks.net/",
            http_path="/sql/1.0/warehouses/abc123",
            access_token="dapi-secret",
        )

    @pytest.fixture
    def profile(self):
        return ConnectionProfile(engine=EngineType.DATABRICKS, catalog="main", schema_name="sales")

    def test_addressing(self, profile, secrets):
        """Test hostname normalization and warehouse extraction"""
        adapter = DatabricksAdapter(profile, secrets)
        assert adapter.server_hostname == "adb-123.azuredatabricks.net"
        assert adapter.warehouse_id == "abc123"

    def test_discover_tables(self, profile, secrets):
        """Test SHOW TABLES parsing skips temporary tables"""
        session = MagicMock()
        session.request.return_value = _databricks_response({
            "status": {"state": "SUCCEEDED"},
            "result": {"data_array": [["sales", "orders", "false"], ["sales", "tmp", "true"]]},
        })
        with patch("agent_introspection.adapters.databricks_adapter.requests.Session", return_value=session):
            result = DatabricksAdapter(profile, secrets).discover_tables()

        assert result.ok
        assert [t.name for t in result.value] == ["orders"]
        body = session.request.call_args.kwargs["json"]
        assert body["statement"] == "SHOW TABLES IN `main`.`sales`"
        assert body["warehouse_id"] == "abc123"
        session.close.assert_called_once()

    def test_describe_stops_at_partition_section(self, profile, secrets):
        """Test DESCRIBE TABLE parsing ends at the first detail row"""
        session = MagicMock()
        session.request.return_value = _databricks_response({
            "status": {"state": "SUCCEEDED"},
            "result": {"data_array": [
                ["id", "bigint", None],
                ["region", "string", "Sales region"],
                ["", "", ""],
                ["# Partition Information", "", ""],
            ]},
        })
        with patch("agent_introspection.adapters.databricks_adapter.requests.Session", return_value=session):
            details = DatabricksAdapter(profile, secrets).fetch_table_details("orders")

        assert [c.name for c in details.columns] == ["id", "region"]
        assert details.columns[1].comment == "Sales region"

    def test_failed_statement(self, profile, secrets):
        """Test non-SUCCEEDED states are reported as failures"""
        session = MagicMock()
        session.request.return_value = _databricks_response({
            "status": {"state": "FAILED", "error": {"message": "TABLE_OR_VIEW_NOT_FOUND"}},
        })
        with patch("agent_introspection.adapters.databricks_adapter.requests.Session", return_value=session):
            result = DatabricksAdapter(profile, secrets).discover_tables()
        assert not result.ok
        assert "TABLE_OR_VIEW_NOT_FOUND" in result.error.message

    def test_invalid_token(self, profile, secrets):
        """Test 401 responses are authentication failures"""
        session = MagicMock()
        session.request.return_value = _databricks_response({}, status_code=401)
        with patch("agent_introspection.adapters.databricks_adapter.requests.Session", return_value=session):
            result = DatabricksAdapter(profile, secrets).test_connection()
        assert not result.success
        assert result.error_category == "authentication"
        assert "dapi-secret" not in result.error

    def test_missing_token(self, profile):
        """Test a bundle without a token is a configuration failure"""
        result = DatabricksAdapter(
            profile, SecretBundle(server_hostname="adb-1.net", http_path="/sql/1.0/warehouses/w")
        ).test_connection()
        assert not result.success
        assert result.error_category == "configuration"


class TestBigQueryAdapter:
    """Tests for BigQueryAdapter configuration handling"""

    def test_requires_dataset(self):
        """Test a profile without dataset is a configuration error"""
        adapter = create_adapter(ConnectionProfile(engine=EngineType.BIGQUERY, project_id="p"))
        with pytest.raises(ConfigurationError):
            adapter.dataset_id

    def test_project_from_service_account(self):
        """Test project id falls back to the service-account document"""
        adapter = create_adapter(
            ConnectionProfile(engine=EngineType.BIGQUERY, dataset="analytics"),
            SecretBundle(service_account_json='{"type": "service_account", "project_id": "acme"}'),
        )
        assert adapter.project_id == "acme"
        assert adapter.default_schema == "analytics"

    def test_invalid_service_account(self):
        """Test malformed service-account JSON is a configuration error"""
        adapter = create_adapter(
            ConnectionProfile(engine=EngineType.BIGQUERY, dataset="d"),
            SecretBundle(service_account_json="{broken"),
        )
        with pytest.raises(ConfigurationError):
            adapter.project_id

    def test_discover_with_mocked_client(self):
        """Test listing skips views and reads num_rows"""
        client = MagicMock()
        table_item = MagicMock(table_type="TABLE", table_id="events", dataset_id="analytics")
        view_item = MagicMock(table_type="VIEW", table_id="v_events", dataset_id="analytics")
        client.list_tables.return_value = [table_item, view_item]
        client.get_table.return_value = MagicMock(num_rows=1500, description="Raw events")

        adapter = create_adapter(
            ConnectionProfile(engine=EngineType.BIGQUERY, project_id="acme", dataset="analytics"),
        )

        def fake_connect():
            adapter._connection = client

        with patch.object(adapter, "connect", side_effect=fake_connect):
            result = adapter.discover_tables()

        assert result.ok
        assert [(t.name, t.row_count) for t in result.value] == [("events", 1500)]
        client.close.assert_called_once()


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
