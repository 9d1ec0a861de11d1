"""
Base Connection Adapter Module
Defines the uniform adapter interface using the Template Method pattern

Every public operation opens its own connection, runs under a watchdog,
closes the connection on every path, and converts driver exceptions into
the error taxonomy.
"""
from __future__ import annotations

import concurrent.futures
import threading
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, FrozenSet, Generic, List, Optional, Sequence, Tuple, Type, TypeVar

from ..config import ConnectionProfile, EngineType, resolve_engine
from ..utils import (
    ConnectionTimeoutError,
    DriverNotInstalledError,
    IntrospectionError,
    IntrospectionMetrics,
    NotFoundError,
    UnsupportedEngineError,
    classify_driver_error,
    get_logger,
    register_secret_values,
    release_secret_values,
)
from ..vault import SecretBundle

logger = get_logger(__name__)

T = TypeVar("T")

MAX_SAMPLE_ROWS = 100


@dataclass
class Result(Generic[T]):
    """Typed outcome of an operation that reports failure as data"""
    ok: bool
    value: Optional[T] = None
    error: Optional[IntrospectionError] = None

    @classmethod
    def success(cls, value: T) -> "Result[T]":
        return cls(ok=True, value=value)

    @classmethod
    def failure(cls, error: IntrospectionError) -> "Result[T]":
        return cls(ok=False, error=error)

    def unwrap(self) -> T:
        if not self.ok:
            raise self.error
        return self.value

    def to_dict(self) -> Dict[str, Any]:
        value = self.value
        if isinstance(value, list):
            value = [v.to_dict() if hasattr(v, "to_dict") else v for v in value]
        elif hasattr(value, "to_dict"):
            value = value.to_dict()
        return {
            "ok": self.ok,
            "value": value,
            "error": self.error.to_dict() if self.error else None,
        }


@dataclass
class DiscoveredTable:
    """Table listed during discovery; row_count is never negative"""
    name: str
    schema_name: Optional[str] = None
    row_count: int = 0
    row_count_reliable: bool = True
    comment: Optional[str] = None
    table_type: str = "TABLE"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "schema_name": self.schema_name,
            "row_count": self.row_count,
            "row_count_reliable": self.row_count_reliable,
            "comment": self.comment,
            "table_type": self.table_type,
        }


@dataclass
class ColumnMetadata:
    """Column information extracted from a catalog"""
    name: str
    data_type: str
    nullable: bool = True
    default_value: Optional[str] = None
    is_primary_key: bool = False
    comment: Optional[str] = None
    max_length: Optional[int] = None
    precision: Optional[int] = None
    scale: Optional[int] = None
    is_foreign_key: bool = False
    referenced_table: Optional[str] = None
    referenced_column: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "data_type": self.data_type,
            "nullable": self.nullable,
            "default_value": self.default_value,
            "is_primary_key": self.is_primary_key,
            "comment": self.comment,
            "max_length": self.max_length,
            "precision": self.precision,
            "scale": self.scale,
            "is_foreign_key": self.is_foreign_key,
            "referenced_table": self.referenced_table,
            "referenced_column": self.referenced_column,
        }


@dataclass
class ForeignKeyInfo:
    """Declared foreign key"""
    name: str
    columns: List[str]
    referenced_table: str
    referenced_columns: List[str]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "columns": self.columns,
            "referenced_table": self.referenced_table,
            "referenced_columns": self.referenced_columns,
        }


@dataclass
class IndexInfo:
    """Index information"""
    name: str
    columns: List[str]
    is_unique: bool = False
    is_primary: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "columns": self.columns,
            "is_unique": self.is_unique,
            "is_primary": self.is_primary,
        }


@dataclass
class TableDetails:
    """Everything the import pipeline persists about one table"""
    name: str
    schema_name: Optional[str]
    columns: List[ColumnMetadata] = field(default_factory=list)
    primary_key: List[str] = field(default_factory=list)
    foreign_keys: List[ForeignKeyInfo] = field(default_factory=list)
    indexes: List[IndexInfo] = field(default_factory=list)
    comment: Optional[str] = None
    row_count: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "schema_name": self.schema_name,
            "columns": [c.to_dict() for c in self.columns],
            "primary_key": self.primary_key,
            "foreign_keys": [fk.to_dict() for fk in self.foreign_keys],
            "indexes": [idx.to_dict() for idx in self.indexes],
            "comment": self.comment,
            "row_count": self.row_count,
        }


@dataclass
class QueryResult:
    """Result of a read-only query"""
    success: bool
    columns: List[str] = field(default_factory=list)
    rows: List[Tuple[Any, ...]] = field(default_factory=list)
    row_count: int = 0
    execution_time_ms: float = 0.0
    error_message: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "columns": self.columns,
            "rows": [list(row) for row in self.rows],
            "row_count": self.row_count,
            "execution_time_ms": self.execution_time_ms,
            "error_message": self.error_message,
        }


@dataclass
class ConnectionTestResult:
    """Outcome of a connection test; failures carry a classified message"""
    success: bool
    engine: str
    message: Optional[str] = None
    error: Optional[str] = None
    error_category: Optional[str] = None
    suggestions: List[str] = field(default_factory=list)
    latency_ms: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "engine": self.engine,
            "message": self.message,
            "error": self.error,
            "error_category": self.error_category,
            "suggestions": self.suggestions,
            "latency_ms": self.latency_ms,
        }


def normalize_row_count(value: Any) -> Tuple[int, bool]:
    """
    Map a catalog row estimate to (row_count, reliable)

    Missing, unparsable or negative estimates become (0, False).
    """
    if value is None:
        return 0, False
    try:
        count = int(float(value))
    except (TypeError, ValueError):
        return 0, False
    if count < 0:
        return 0, False
    return count, True


def group_foreign_keys(rows: Sequence[Sequence[Any]]) -> List[ForeignKeyInfo]:
    """Rows of (constraint, column, referenced_table, referenced_column), one per column pair"""
    grouped: Dict[str, ForeignKeyInfo] = {}
    for name, column, ref_table, ref_column in rows:
        fk = grouped.get(name)
        if fk is None:
            fk = grouped[name] = ForeignKeyInfo(name=name, columns=[], referenced_table=ref_table, referenced_columns=[])
        fk.columns.append(column)
        fk.referenced_columns.append(ref_column)
    return list(grouped.values())


def group_indexes(rows: Sequence[Sequence[Any]]) -> List[IndexInfo]:
    """Rows of (index, column, is_unique, is_primary) in column order"""
    grouped: Dict[str, IndexInfo] = {}
    for name, column, is_unique, is_primary in rows:
        idx = grouped.get(name)
        if idx is None:
            idx = grouped[name] = IndexInfo(name=name, columns=[], is_unique=bool(is_unique), is_primary=bool(is_primary))
        if column:
            idx.columns.append(column)
    return list(grouped.values())


def apply_keys(details: TableDetails) -> TableDetails:
    """Propagate primary and foreign key membership onto the column list"""
    pk = set(details.primary_key)
    fk_map = {}
    for fk in details.foreign_keys:
        for col, ref_col in zip(fk.columns, fk.referenced_columns):
            fk_map[col] = (fk.referenced_table, ref_col)
    for column in details.columns:
        if column.name in pk:
            column.is_primary_key = True
        if column.name in fk_map:
            column.is_foreign_key = True
            column.referenced_table, column.referenced_column = fk_map[column.name]
    if not details.primary_key:
        details.primary_key = [c.name for c in details.columns if c.is_primary_key]
    return details


class BaseConnectionAdapter(ABC):
    """
    Abstract base class for connection adapters

    An adapter instance is bound to one profile and one secret bundle.
    Subclasses implement connect/disconnect and the catalog hooks; the
    public template methods add the watchdog, scoped connections, metrics
    and error classification.
    """

    engine_type: EngineType
    system_schemas: FrozenSet[str] = frozenset()
    driver_package: Optional[str] = None
    driver_extra: Optional[str] = None

    def __init__(self, profile: ConnectionProfile, secrets: Optional[SecretBundle] = None):
        self.profile = profile
        self.secrets = secrets or SecretBundle()
        self._connection: Any = None
        self._lock = threading.Lock()

    # -- lifecycle -------------------------------------------------------

    @abstractmethod
    def connect(self) -> None:
        """Open the underlying connection or client"""

    @abstractmethod
    def disconnect(self) -> None:
        """Release the underlying connection; must not raise"""

    def is_connected(self) -> bool:
        return self._connection is not None

    def __enter__(self) -> "BaseConnectionAdapter":
        self.connect()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.disconnect()

    # -- catalog hooks ---------------------------------------------------

    @abstractmethod
    def _list_tables(self) -> List[DiscoveredTable]:
        """List user tables, row counts as raw catalog estimates"""

    @abstractmethod
    def _fetch_columns(self, table_name: str, schema_name: Optional[str]) -> List[ColumnMetadata]:
        pass

    def _fetch_primary_key(self, table_name: str, schema_name: Optional[str]) -> List[str]:
        return []

    def _fetch_foreign_keys(self, table_name: str, schema_name: Optional[str]) -> List[ForeignKeyInfo]:
        return []

    def _fetch_indexes(self, table_name: str, schema_name: Optional[str]) -> List[IndexInfo]:
        return []

    def _fetch_table_comment(self, table_name: str, schema_name: Optional[str]) -> Optional[str]:
        return None

    def _estimate_rows(self, table_name: str, schema_name: Optional[str]) -> Optional[int]:
        """Catalog estimate, or None when the catalog has none"""
        return None

    @abstractmethod
    def _count_rows(self, table_name: str, schema_name: Optional[str]) -> int:
        """Exact COUNT(*)"""

    @abstractmethod
    def _sample_rows(self, table_name: str, schema_name: Optional[str], limit: int) -> QueryResult:
        pass

    @abstractmethod
    def _ping(self) -> None:
        """Cheapest statement proving the session works"""

    # -- helpers ---------------------------------------------------------

    @property
    def engine(self) -> str:
        return self.profile.engine

    @property
    def label(self) -> str:
        return self.profile.engine_label

    @property
    def default_schema(self) -> Optional[str]:
        return self.profile.schema_name

    def describe_target(self) -> str:
        """Human-readable target for success messages"""
        return f"database '{self.profile.database}' on {self.profile.host}:{self.profile.effective_port}"

    def is_system_schema(self, schema_name: Optional[str]) -> bool:
        if not schema_name:
            return False
        return schema_name.strip().lower() in {s.lower() for s in self.system_schemas}

    def _cancel(self) -> None:
        """Abort the statement running on the current connection, where the driver allows it"""

    def _release(self, connection: Any) -> None:
        """Disconnect, unless connection was already closed or replaced"""
        with self._lock:
            if connection is not None and self._connection is connection:
                self.disconnect()

    def _interrupt(self) -> None:
        """Cancel and close from the watchdog side after the worker overran"""
        with self._lock:
            if self._connection is None:
                return
            try:
                self._cancel()
            except Exception as e:
                logger.debug(f"Could not cancel {self.label} statement: {e}")
            try:
                self.disconnect()
            except Exception as e:
                logger.debug(f"Ignoring error while closing {self.label} connection: {e}")
            self._connection = None

    def _require_driver(self, importer: Callable[[], Any]) -> Any:
        try:
            return importer()
        except ImportError as e:
            raise DriverNotInstalledError(self.label, self.driver_package or "driver", self.driver_extra) from e

    def _run_bounded(self, operation: str, fn: Callable[[], T]) -> T:
        """
        Run fn inside a scoped connection on a worker thread

        Raises ConnectionTimeoutError when the watchdog expires and a
        classified IntrospectionError for any driver failure.
        """
        secret_values = self.secrets.secret_values()
        register_secret_values(secret_values)
        abandoned = threading.Event()

        def scoped() -> T:
            self.connect()
            connection = self._connection
            try:
                if abandoned.is_set():
                    # connect() outlived the watchdog; nobody waits for a result
                    raise ConnectionTimeoutError(f"{self.label} {operation} abandoned after timeout")
                return fn()
            finally:
                self._release(connection)

        timeout = self.profile.watchdog_seconds
        start = time.time()
        executor = concurrent.futures.ThreadPoolExecutor(
            max_workers=1, thread_name_prefix=f"adapter-{self.engine}"
        )
        success = False
        try:
            future = executor.submit(scoped)
            try:
                result = future.result(timeout=timeout)
            except concurrent.futures.TimeoutError:
                abandoned.set()
                future.cancel()
                self._interrupt()
                raise ConnectionTimeoutError(
                    f"{self.label} {operation} against {self.profile.host}:{self.profile.effective_port} "
                    f"did not complete within {timeout:.0f}s",
                    timeout_seconds=timeout,
                )
            except IntrospectionError:
                raise
            except Exception as e:
                raise classify_driver_error(
                    e, self.label, self.profile.host, self.profile.effective_port, secret_values
                ) from None
            success = True
            return result
        finally:
            # A hung worker is not joined; its connection was closed by _interrupt
            executor.shutdown(wait=False)
            release_secret_values(secret_values)
            IntrospectionMetrics.record_adapter_call(time.time() - start, self.engine, operation, success)

    # -- template methods ------------------------------------------------

    def discover_tables(self) -> Result[List[DiscoveredTable]]:
        """List non-system tables with non-negative row counts"""
        def run() -> List[DiscoveredTable]:
            tables = []
            for table in self._list_tables():
                if self.is_system_schema(table.schema_name):
                    continue
                table.row_count, reliable = normalize_row_count(table.row_count)
                table.row_count_reliable = table.row_count_reliable and reliable
                tables.append(table)
            return tables

        try:
            tables = self._run_bounded("discover_tables", run)
        except IntrospectionError as e:
            logger.warning(
                f"Table discovery failed: {e.message}",
                extra={"extra_fields": {"engine": self.engine, "category": e.category.value}}
            )
            IntrospectionMetrics.record_error(type(e).__name__, e.category.value, self.engine)
            return Result.failure(e)

        logger.info(
            "Discovered tables",
            extra={"extra_fields": {"engine": self.engine, "tables": len(tables)}}
        )
        return Result.success(tables)

    def test_connection(self) -> ConnectionTestResult:
        """Connect, run a trivial statement, disconnect"""
        start = time.time()
        try:
            self._run_bounded("test_connection", self._ping)
        except IntrospectionError as e:
            return ConnectionTestResult(
                success=False,
                engine=self.engine,
                error=e.message,
                error_category=e.category.value,
                suggestions=list(e.suggestions),
                latency_ms=round((time.time() - start) * 1000, 2),
            )
        return ConnectionTestResult(
            success=True,
            engine=self.engine,
            message=f"Successfully connected to {self.label} {self.describe_target()}",
            latency_ms=round((time.time() - start) * 1000, 2),
        )

    def fetch_table_details(
        self,
        table_name: str,
        schema_name: Optional[str] = None,
        include_row_count: bool = False
    ) -> TableDetails:
        """
        Columns, keys, indexes and comment for one table

        With include_row_count, the catalog estimate is used when reliable
        and an exact COUNT(*) otherwise.
        """
        schema_name = schema_name or self.default_schema

        def run() -> TableDetails:
            columns = self._fetch_columns(table_name, schema_name)
            if not columns:
                raise NotFoundError("Table", self._display_name(table_name, schema_name))
            details = TableDetails(
                name=table_name,
                schema_name=schema_name,
                columns=columns,
                primary_key=self._fetch_primary_key(table_name, schema_name),
                foreign_keys=self._fetch_foreign_keys(table_name, schema_name),
                indexes=self._fetch_indexes(table_name, schema_name),
                comment=self._fetch_table_comment(table_name, schema_name),
            )
            if include_row_count:
                count, reliable = normalize_row_count(self._estimate_rows(table_name, schema_name))
                if not reliable:
                    count, _ = normalize_row_count(self._count_rows(table_name, schema_name))
                details.row_count = count
            return apply_keys(details)

        return self._run_bounded("fetch_table_details", run)

    def count_rows(self, table_name: str, schema_name: Optional[str] = None) -> int:
        schema_name = schema_name or self.default_schema
        count = self._run_bounded("count_rows", lambda: self._count_rows(table_name, schema_name))
        return normalize_row_count(count)[0]

    def sample_rows(self, table_name: str, schema_name: Optional[str] = None, limit: int = 10) -> QueryResult:
        """Read-only preview of at most MAX_SAMPLE_ROWS rows"""
        schema_name = schema_name or self.default_schema
        limit = max(1, min(int(limit), MAX_SAMPLE_ROWS))
        start = time.time()
        try:
            result = self._run_bounded(
                "sample_rows", lambda: self._sample_rows(table_name, schema_name, limit)
            )
        except IntrospectionError as e:
            return QueryResult(
                success=False,
                execution_time_ms=(time.time() - start) * 1000,
                error_message=e.message,
            )
        result.execution_time_ms = (time.time() - start) * 1000
        return result

    @staticmethod
    def _display_name(table_name: str, schema_name: Optional[str]) -> str:
        return f"{schema_name}.{table_name}" if schema_name else table_name


class SQLConnectionAdapter(BaseConnectionAdapter):
    """
    Shared behaviour for DB-API 2.0 drivers

    Subclasses supply connect() and the catalog SQL; identifier quoting,
    COUNT(*), sampling and ping are generic.
    """

    quote_char = '"'
    ping_sql = "SELECT 1"

    def __init__(self, profile: ConnectionProfile, secrets: Optional[SecretBundle] = None):
        super().__init__(profile, secrets)
        self._active_cursor: Any = None

    def disconnect(self) -> None:
        if self._connection is not None:
            try:
                self._connection.close()
            except Exception as e:
                logger.debug(f"Ignoring error while closing {self.label} connection: {e}")
            self._connection = None

    def _cancel(self) -> None:
        # pyodbc and most DB-API drivers cancel per cursor
        cancel = getattr(self._active_cursor, "cancel", None)
        if cancel is not None:
            cancel()

    def _open_cursor(self) -> Any:
        cursor = self._connection.cursor()
        self._active_cursor = cursor
        return cursor

    def _close_cursor(self, cursor: Any) -> None:
        self._active_cursor = None
        cursor.close()

    def _query(self, sql: str, params: Sequence[Any] = ()) -> List[Tuple[Any, ...]]:
        """Run a catalog query and return all rows; raises driver errors"""
        cursor = self._open_cursor()
        try:
            if params:
                cursor.execute(sql, tuple(params))
            else:
                cursor.execute(sql)
            if cursor.description is None:
                return []
            return [tuple(row) for row in cursor.fetchall()]
        finally:
            self._close_cursor(cursor)

    def _query_with_columns(self, sql: str) -> QueryResult:
        cursor = self._open_cursor()
        try:
            cursor.execute(sql)
            columns = [desc[0] for desc in (cursor.description or [])]
            rows = [tuple(row) for row in cursor.fetchall()]
        finally:
            self._close_cursor(cursor)
        return QueryResult(success=True, columns=columns, rows=rows, row_count=len(rows))

    def quote_identifier(self, name: str) -> str:
        close = {"[": "]"}.get(self.quote_char, self.quote_char)
        return f"{self.quote_char}{name.replace(close, close + close)}{close}"

    def qualified_name(self, table_name: str, schema_name: Optional[str]) -> str:
        if schema_name:
            return f"{self.quote_identifier(schema_name)}.{self.quote_identifier(table_name)}"
        return self.quote_identifier(table_name)

    def _count_rows(self, table_name: str, schema_name: Optional[str]) -> int:
        rows = self._query(f"SELECT COUNT(*) FROM {self.qualified_name(table_name, schema_name)}")
        return int(rows[0][0]) if rows else 0

    def _sample_sql(self, qualified: str, limit: int) -> str:
        return f"SELECT * FROM {qualified} LIMIT {int(limit)}"

    def _sample_rows(self, table_name: str, schema_name: Optional[str], limit: int) -> QueryResult:
        return self._query_with_columns(self._sample_sql(self.qualified_name(table_name, schema_name), limit))

    def _ping(self) -> None:
        self._query(self.ping_sql)


def odbc_value(value: str) -> str:
    """Brace-quote a value for an ODBC or DB2 CLI connection string"""
    return "{" + value.replace("}", "}}") + "}"


# Type alias for adapter classes
AdapterClass = Type[BaseConnectionAdapter]


class ConnectionAdapterRegistry:
    """Registry for connection adapters using Factory pattern"""

    _adapters: Dict[EngineType, AdapterClass] = {}
    _lock = threading.Lock()

    @classmethod
    def register(cls, engine: EngineType, adapter_class: AdapterClass) -> None:
        with cls._lock:
            cls._adapters[engine] = adapter_class

    @classmethod
    def get_adapter_class(cls, engine: Any) -> AdapterClass:
        engine_type = resolve_engine(engine)
        with cls._lock:
            if engine_type not in cls._adapters:
                raise UnsupportedEngineError(engine_type.value)
            return cls._adapters[engine_type]

    @classmethod
    def create_adapter(cls, profile: ConnectionProfile, secrets: Optional[SecretBundle] = None) -> BaseConnectionAdapter:
        adapter_class = cls.get_adapter_class(profile.engine)
        return adapter_class(profile, secrets)

    @classmethod
    def get_supported_engines(cls) -> List[EngineType]:
        with cls._lock:
            return list(cls._adapters.keys())

    @classmethod
    def is_supported(cls, engine: Any) -> bool:
        try:
            engine_type = resolve_engine(engine)
        except UnsupportedEngineError:
            return False
        with cls._lock:
            return engine_type in cls._adapters


def register_adapter(engine: EngineType):
    """Decorator to register a connection adapter class"""
    def decorator(cls: AdapterClass) -> AdapterClass:
        cls.engine_type = engine
        ConnectionAdapterRegistry.register(engine, cls)
        return cls
    return decorator
