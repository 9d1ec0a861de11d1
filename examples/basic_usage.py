#!/usr/bin/env python3
"""
Basic Usage Example for Data Agent Introspection

This example demonstrates:
1. Registering a data agent backed by a SQLite file
2. Storing credentials and testing the connection
3. Discovering and importing tables
4. Optionally asking the configured model for relationships (--analyze)
"""
import sqlite3
import sys
import os
import tempfile

# Add src to path for local development
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from agent_introspection import (
    InMemoryMetadataRepository,
    IntrospectionError,
    SystemConfig,
    create_service,
)


def build_demo_database(path):
    conn = sqlite3.connect(path)
    conn.executescript("""
        CREATE TABLE users (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            name TEXT NOT NULL,
            email TEXT UNIQUE
        );
        CREATE TABLE orders (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            user_id INTEGER REFERENCES users(id),
            product_name TEXT NOT NULL,
            total_amount DECIMAL(10,2)
        );
        INSERT INTO users (name, email) VALUES ('Alice', 'alice@example.com'), ('Bob', 'bob@example.com');
        INSERT INTO orders (user_id, product_name, total_amount) VALUES (1, 'Laptop', 999.99), (2, 'Mouse', 24.99);
    """)
    conn.commit()
    conn.close()


def main():
    analyze = "--analyze" in sys.argv[1:]

    print("=" * 60)
    print("Data Agent Introspection - Basic Usage Example")
    print("=" * 60)

    workdir = tempfile.mkdtemp(prefix="introspection-demo-")
    db_path = os.path.join(workdir, "shop.db")
    build_demo_database(db_path)
    print(f"\n1. Created demo database at {db_path}")

    config = SystemConfig.from_env()
    repo = InMemoryMetadataRepository()
    service = create_service(config=config, repository=repo)

    agent = repo.add_data_agent("shop", engine="sqlite")
    env = repo.add_environment(agent.id, "local", {"sqlite_path": db_path})

    print("\n2. Testing connection...")
    result = service.test_environment_connection(agent.id, env.id)
    print(f"   {'OK' if result.success else 'FAILED'}: {result.message or result.error}")
    if not result.success:
        return 1

    print("\n3. Discovering tables...")
    discovered = service.discover_tables(agent.id, env.id)
    if not discovered.ok:
        print(f"   Discovery failed: {discovered.error}")
        return 1
    for table in discovered.value:
        print(f"   - {table.schema_name}.{table.name}")

    print("\n4. Importing tables...")
    imported = service.import_tables(agent.id, env.id, [t.name for t in discovered.value])
    for item in imported:
        print(f"   - {item.table_name}: {item.columns_imported} columns, {item.row_count} rows")

    print("\n5. Sample rows from orders:")
    sample = service.sample_rows(agent.id, env.id, "orders", limit=5)
    print(f"   Columns: {sample.columns}")
    for row in sample.rows:
        print(f"   {row}")

    if analyze:
        print("\n6. Analyzing relationships...")
        try:
            summary = service.analyze_relationships(agent.id)
        except IntrospectionError as e:
            print(f"   Analysis failed: {e.message}")
            return 1
        print(f"   Created {summary['relationships_created']} of {summary['total_suggestions']} suggestions")
        print(f"   {summary['analysis_text']}")

    print("\n" + "=" * 60)
    print("Example completed!")
    print("=" * 60)
    return 0


if __name__ == "__main__":
    sys.exit(main())
